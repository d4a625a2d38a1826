"""Tests for the Spotify token repository and its read cache."""

from __future__ import annotations

import pytest

from shared.repositories.channel import SpotifyTokenRepository


class FakeConnection:
    def __init__(self, row: dict | None) -> None:
        self.row = row
        self.fetches = 0
        self.executed: list[tuple] = []

    async def fetchrow(self, query: str, *args):
        self.fetches += 1
        return self.row

    async def execute(self, query: str, *args) -> str:
        self.executed.append(args)
        if self.row is not None:
            self.row = {**self.row, "access_token": args[1]}
        return "UPDATE 1"


class _Acquire:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn

    async def __aenter__(self) -> FakeConnection:
        return self.conn

    async def __aexit__(self, *exc) -> bool:
        return False


class FakePool:
    def __init__(self, row: dict | None) -> None:
        self.conn = FakeConnection(row)

    def acquire(self) -> _Acquire:
        return _Acquire(self.conn)


def token_row(channel_id: str, access_token: str = "access-1") -> dict:
    return {
        "channel_id": channel_id,
        "access_token": access_token,
        "refresh_token": "refresh-1",
        "created_at": None,
        "updated_at": None,
    }


@pytest.mark.asyncio
async def test_get_token_is_cached() -> None:
    pool = FakePool(token_row("cache-1"))
    repo = SpotifyTokenRepository(pool)  # type: ignore[arg-type]

    first = await repo.get_token("cache-1")
    second = await repo.get_token("cache-1")

    assert first is not None
    assert first.access_token == "access-1"
    assert second is first
    assert pool.conn.fetches == 1


@pytest.mark.asyncio
async def test_update_tokens_invalidates_cache() -> None:
    pool = FakePool(token_row("cache-2"))
    repo = SpotifyTokenRepository(pool)  # type: ignore[arg-type]
    await repo.get_token("cache-2")

    await repo.update_tokens("cache-2", "access-2")
    token = await repo.get_token("cache-2")

    assert pool.conn.executed == [("cache-2", "access-2", None)]
    assert token is not None
    assert token.access_token == "access-2"
    assert pool.conn.fetches == 2


@pytest.mark.asyncio
async def test_missing_token_is_none() -> None:
    repo = SpotifyTokenRepository(FakePool(None))  # type: ignore[arg-type]

    assert await repo.get_token("cache-3") is None
