"""HTTP server: health check and per-channel queue projection"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import asyncpg
from aiohttp import web

from shared.errors import SongQueueError

if TYPE_CHECKING:
    from services.channel_sessions import ChannelSessionManager

logger = logging.getLogger("Bot.Health")

QUEUE_CACHE_CONTROL = "public, max-age=30"


class HealthCheckServer:
    """HTTP server for liveness checks and the public queue page data"""

    def __init__(
        self,
        bot: Any = None,
        sessions: "ChannelSessionManager | None" = None,
        host: str = "0.0.0.0",
        port: int = 4344,
    ):
        self.bot: Any = bot
        self.sessions = sessions
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._start_time: float = time.time()
        self._heartbeat_task: asyncio.Task | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure HTTP routes"""
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/queue/{channel_id}", self.handle_queue)

    async def handle_root(self, request: web.Request) -> web.Response:
        """Root endpoint - minimal service info"""
        return web.json_response({"service": "songqueue-twitch", "status": "running"})

    async def handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint, always 200 (liveness)"""
        ready = self.bot is not None and self.bot.bot_id is not None
        return web.json_response(
            {
                "status": "healthy" if ready else "starting",
                "ready": ready,
                "uptime_seconds": int(time.time() - self._start_time),
            },
        )

    async def handle_queue(self, request: web.Request) -> web.Response:
        """Queued requests for a channel with the time until each one plays"""
        channel_id = request.match_info["channel_id"]
        if self.sessions is None:
            return web.json_response({"error": "not ready"}, status=503)

        try:
            client = await self.sessions.get_client(channel_id)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Token lookup failed for {channel_id}: {e}")
            return web.json_response({"error": "database unavailable"}, status=503)
        if client is None:
            return web.json_response({"error": "unknown channel"}, status=404)

        try:
            snapshot = await self.sessions.projection.project(channel_id, client)
        except SongQueueError as e:
            logger.warning(f"Queue projection failed for {channel_id}: {e}")
            return web.json_response({"error": "playback provider unavailable"}, status=502)

        return web.json_response(
            {"channel_id": channel_id, **snapshot.to_dict()},
            headers={"Cache-Control": QUEUE_CACHE_CONTROL},
        )

    async def _heartbeat(self) -> None:
        """Periodic heartbeat: log uptime and bot status"""
        while True:
            await asyncio.sleep(300)
            uptime = int(time.time() - self._start_time)
            ready = self.bot is not None and self.bot.bot_id is not None
            logger.info(f"Heartbeat: uptime={uptime}s, ready={ready}")

    async def start(self) -> None:
        """Start HTTP server"""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()

            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()

            self._heartbeat_task = asyncio.create_task(self._heartbeat())

            logger.info(f"Health server started on {self.host}:{self.port}")
            logger.info(f"  GET http://{self.host}:{self.port}/health - Health check")
            logger.info(f"  GET http://{self.host}:{self.port}/queue/<channel_id> - Queue ETAs")

        except Exception as e:
            logger.exception(f"Failed to start health server: {e}")
            raise

    async def stop(self) -> None:
        """Stop HTTP server"""
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner:
            try:
                await self.runner.cleanup()
                logger.info("Health server stopped")
            except Exception as e:
                logger.exception(f"Error stopping health server: {e}")
