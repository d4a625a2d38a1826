"""Tests for routing chat messages and redemptions through the Twitch component."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from conftest import FakeSpotifyClient
from services.song_request import RequestStatus, SongRequestResult
from twitch.components import song_requests
from twitch.components.song_requests import SongRequestComponent

BOT_ID = "bot-1"


class FakeBroadcaster:
    def __init__(self, channel_id: str = "123") -> None:
        self.id = channel_id
        self.sent: list[dict] = []

    async def send_message(self, **kwargs) -> None:
        self.sent.append(kwargs)


class RecordingCommands:
    def __init__(self, reply: str | None = "@viewer the request queue is empty") -> None:
        self.reply = reply
        self.calls: list[tuple] = []
        self.error: Exception | None = None

    async def handle(self, channel_id, client, user_name, text, *, privileged=False):
        self.calls.append((channel_id, user_name, text, privileged))
        if self.error is not None:
            raise self.error
        return self.reply


class RecordingRequests:
    def __init__(self) -> None:
        self.requests: list[tuple] = []
        self.skips: list[tuple] = []

    async def request(self, channel_id, client, user_name, raw_input) -> SongRequestResult:
        self.requests.append((channel_id, user_name, raw_input))
        return SongRequestResult(RequestStatus.ACCEPTED, f"@{user_name} Band - Song added to the queue")

    async def skip(self, channel_id, client, user_name) -> str:
        self.skips.append((channel_id, user_name))
        return f"@{user_name} skipped the track on your request"


class FakeSessions:
    def __init__(self, clients: dict) -> None:
        self.clients = clients
        self.commands = RecordingCommands()
        self.requests = RecordingRequests()
        self.lookups: list[str] = []

    async def get_client(self, channel_id: str):
        self.lookups.append(channel_id)
        return self.clients.get(channel_id)


def chatter(user_id: str = "42", name: str = "viewer", **roles) -> SimpleNamespace:
    return SimpleNamespace(
        id=user_id,
        name=name,
        display_name=name,
        broadcaster=roles.get("broadcaster", False),
        moderator=roles.get("moderator", False),
        vip=roles.get("vip", False),
        subscriber=roles.get("subscriber", False),
    )


def chat_message(text: str, author: SimpleNamespace, broadcaster: FakeBroadcaster) -> SimpleNamespace:
    return SimpleNamespace(text=text, chatter=author, broadcaster=broadcaster)


def redemption(title: str, user_input: str, broadcaster: FakeBroadcaster) -> SimpleNamespace:
    return SimpleNamespace(
        broadcaster=broadcaster,
        user=SimpleNamespace(name="viewer", display_name="viewer"),
        user_input=user_input,
        reward=SimpleNamespace(title=title),
    )


@pytest.fixture
def sessions() -> FakeSessions:
    return FakeSessions({"123": FakeSpotifyClient()})


@pytest.fixture
def component(monkeypatch, sessions) -> SongRequestComponent:
    monkeypatch.setattr(
        song_requests,
        "get_settings",
        lambda: SimpleNamespace(request_reward_title="Request song", skip_reward_title="Skip song"),
    )
    return SongRequestComponent(SimpleNamespace(bot_id=BOT_ID, sessions=sessions))  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Chat messages
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_command_reply_is_sent_as_bot(component, sessions) -> None:
    broadcaster = FakeBroadcaster()

    await component.event_message(chat_message("!sq", chatter(), broadcaster))

    assert sessions.commands.calls == [("123", "viewer", "!sq", False)]
    assert broadcaster.sent == [
        {"message": "@viewer the request queue is empty", "sender": BOT_ID, "token_for": BOT_ID}
    ]


@pytest.mark.asyncio
async def test_moderator_commands_are_privileged(component, sessions) -> None:
    await component.event_message(
        chat_message("!volume 40", chatter(moderator=True), FakeBroadcaster())
    )

    assert sessions.commands.calls == [("123", "viewer", "!volume 40", True)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "message",
    [
        chat_message("!sq", chatter(user_id=BOT_ID, name="songbot"), FakeBroadcaster()),
        chat_message("hello chat", chatter(), FakeBroadcaster()),
    ],
)
async def test_bot_messages_and_plain_chat_are_ignored(component, sessions, message) -> None:
    await component.event_message(message)

    assert sessions.lookups == []
    assert sessions.commands.calls == []
    assert message.broadcaster.sent == []


@pytest.mark.asyncio
async def test_channel_without_spotify_ignores_commands(component, sessions) -> None:
    broadcaster = FakeBroadcaster("999")

    await component.event_message(chat_message("!sq", chatter(), broadcaster))

    assert sessions.lookups == ["999"]
    assert sessions.commands.calls == []
    assert broadcaster.sent == []


@pytest.mark.asyncio
async def test_no_reply_sends_nothing(component, sessions) -> None:
    sessions.commands.reply = None
    broadcaster = FakeBroadcaster()

    await component.event_message(chat_message("!volume abc", chatter(moderator=True), broadcaster))

    assert broadcaster.sent == []


@pytest.mark.asyncio
async def test_command_failure_is_contained(component, sessions) -> None:
    sessions.commands.error = RuntimeError("boom")
    broadcaster = FakeBroadcaster()

    await component.event_message(chat_message("!sq", chatter(), broadcaster))

    assert broadcaster.sent == []


# ---------------------------------------------------------------------------
# Redemptions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_request_reward_queues_input(component, sessions) -> None:
    broadcaster = FakeBroadcaster()

    await component.event_custom_redemption_add(redemption("Request song", "band song", broadcaster))

    assert sessions.requests.requests == [("123", "viewer", "band song")]
    assert [m["message"] for m in broadcaster.sent] == ["@viewer Band - Song added to the queue"]


@pytest.mark.asyncio
async def test_skip_reward_skips(component, sessions) -> None:
    broadcaster = FakeBroadcaster()

    await component.event_custom_redemption_add(redemption("skip SONG", "", broadcaster))

    assert sessions.requests.skips == [("123", "viewer")]
    assert sessions.requests.requests == []
    assert [m["message"] for m in broadcaster.sent] == ["@viewer skipped the track on your request"]


@pytest.mark.asyncio
async def test_unrelated_reward_without_input_is_ignored(component, sessions) -> None:
    broadcaster = FakeBroadcaster()

    await component.event_custom_redemption_add(redemption("Hydrate", "", broadcaster))

    assert sessions.lookups == []
    assert broadcaster.sent == []


@pytest.mark.asyncio
async def test_redemption_without_spotify_is_ignored(component, sessions) -> None:
    broadcaster = FakeBroadcaster("999")

    await component.event_custom_redemption_add(redemption("Request song", "band song", broadcaster))

    assert sessions.requests.requests == []
    assert broadcaster.sent == []
