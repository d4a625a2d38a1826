"""Entry point: Twitch song request bot plus its HTTP server."""

import asyncio
import logging

import asyncpg

from services.channel_sessions import ChannelSessionManager
from services.queue_projection import QueueProjectionService
from services.song_commands import SongCommandHandler
from services.song_request import SongRequestService
from shared.duplicates import DuplicateRegistry
from shared.repositories.block import BlockRepository
from shared.repositories.channel import ChannelRepository, SpotifyTokenRepository
from shared.repositories.song_queue import (
    JsonFileQueueLogStore,
    PostgresQueueLogStore,
    QueueLogRepository,
    QueueLogStore,
)
from twitch.core.bot import Bot
from twitch.core.config import SongBotSettings, get_settings
from twitch.core.health_server import HealthCheckServer
from twitch.core.logging import setup_logging

LOGGER: logging.Logger = logging.getLogger("Bot")


async def build_queue_store(settings: SongBotSettings, pool: asyncpg.Pool) -> QueueLogStore:
    if settings.queue_store == "postgres":
        store = PostgresQueueLogStore(pool, cap=settings.queue_log_cap)
        await store.ensure_table()
        LOGGER.info("Queue logs stored in PostgreSQL")
        return store

    LOGGER.info(f"Queue logs stored in {settings.data_dir}")
    return JsonFileQueueLogStore(settings.data_dir)


def build_sessions(
    settings: SongBotSettings, pool: asyncpg.Pool, store: QueueLogStore
) -> ChannelSessionManager:
    duplicates = DuplicateRegistry(cooldown_seconds=settings.duplicate_cooldown_seconds)
    queue_logs = QueueLogRepository(store, cap=settings.queue_log_cap)
    projection = QueueProjectionService(queue_logs, ttl=settings.projection_ttl_seconds)
    return ChannelSessionManager(
        spotify_client_id=settings.spotify_client_id,
        spotify_client_secret=settings.spotify_client_secret,
        tokens=SpotifyTokenRepository(pool),
        duplicates=duplicates,
        queue_logs=queue_logs,
        projection=projection,
        requests=SongRequestService(
            duplicates,
            queue_logs,
            blocks=BlockRepository(pool),
            max_song_length_ms=settings.max_song_length_seconds * 1000,
            confirm_enqueue=settings.confirm_enqueue,
        ),
        commands=SongCommandHandler(projection, public_url=settings.public_url),
    )


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)

    async def runner() -> None:
        pool = await asyncpg.create_pool(
            settings.database_url, min_size=1, max_size=10, statement_cache_size=0
        )
        if pool is None:
            LOGGER.error("Failed to create database connection pool")
            return

        sessions: ChannelSessionManager | None = None
        health: HealthCheckServer | None = None
        try:
            await ChannelRepository(pool).ensure_tables()
            store = await build_queue_store(settings, pool)
            sessions = build_sessions(settings, pool, store)
            health = HealthCheckServer(sessions=sessions, port=settings.http_port)

            async with Bot(
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                bot_id=settings.bot_id,
                owner_id=settings.owner_id,
                conduit_id=settings.conduit_id or None,
                token_database=pool,
                sessions=sessions,
            ) as bot:
                health.bot = bot
                await health.start()
                await bot.start()
        finally:
            if health is not None:
                await health.stop()
            if sessions is not None:
                await sessions.close()
            await pool.close()

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")


if __name__ == "__main__":
    main()
