"""Twitch Bot class: lifecycle, token storage and channel subscriptions."""

from __future__ import annotations

import asyncio
import logging

import asyncpg
import twitchio
from twitchio import eventsub
from twitchio.ext import commands

from services.channel_sessions import ChannelSessionManager
from shared.repositories.channel import ChannelRepository
from twitch.core.subscriptions import get_channel_subscriptions

LOGGER: logging.Logger = logging.getLogger("Bot")

COMPONENT_MODULES = ("twitch.components.song_requests",)


class Bot(commands.AutoBot):
    token_database: asyncpg.Pool

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        bot_id: str,
        owner_id: str,
        conduit_id: str | None,
        token_database: asyncpg.Pool,
        sessions: ChannelSessionManager,
        subs: list[eventsub.SubscriptionPayload] | None = None,
    ) -> None:
        self.token_database = token_database
        self.sessions = sessions
        self.channels = ChannelRepository(token_database)
        self._subscribed_channels: set[str] = set()
        self._bot_id = bot_id

        init_kwargs: dict = dict(
            client_id=client_id,
            client_secret=client_secret,
            bot_id=bot_id,
            owner_id=owner_id,
            prefix="!",
            subscriptions=subs or [],
            force_subscribe=True,
        )
        if conduit_id:
            init_kwargs["conduit_id"] = conduit_id

        super().__init__(**init_kwargs)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def setup_hook(self) -> None:
        for module_name in COMPONENT_MODULES:
            try:
                await self.load_module(module_name)
            except Exception as e:
                LOGGER.error(f"Failed to load component {module_name}: {e}")

        asyncio.create_task(self._subscribe_initial_channels())

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def event_ready(self) -> None:
        LOGGER.info("Successfully logged in as: %s", self.bot_id)

    async def event_eventsub_ready(self) -> None:
        LOGGER.info("EventSub is ready to receive notifications")

    async def event_eventsub_error(self, error: Exception) -> None:
        LOGGER.error(f"EventSub error: {error}")

    async def event_oauth_authorized(
        self, payload: twitchio.authentication.UserTokenPayload
    ) -> None:
        await self.add_token(payload.access_token, payload.refresh_token)

        if not payload.user_id or payload.user_id == self.bot_id:
            return

        users = await self.fetch_users(ids=[payload.user_id])
        if users and users[0].name:
            await self.add_channel_to_db(users[0].id, users[0].name)

        await self.subscribe_channel_events(payload.user_id)

    async def event_message(self, payload: twitchio.ChatMessage) -> None:
        if payload.broadcaster and payload.broadcaster.id not in self._subscribed_channels:
            LOGGER.debug(
                f"[BLOCK] Ignoring message from unsubscribed channel: {payload.broadcaster.name}"
            )
            return

        await super().event_message(payload)

    # ------------------------------------------------------------------
    # Token management
    # ------------------------------------------------------------------

    async def add_token(
        self, token: str, refresh: str
    ) -> twitchio.authentication.ValidateTokenPayload:
        resp: twitchio.authentication.ValidateTokenPayload = await super().add_token(token, refresh)

        if resp.user_id:
            for attempt in range(1, 4):
                try:
                    await self.channels.upsert_token(resp.user_id, token, refresh)
                    break
                except (asyncpg.PostgresError, OSError) as e:
                    if attempt < 3:
                        LOGGER.warning(f"save_token attempt {attempt}/3 failed: {e}")
                        await asyncio.sleep(2)
                    else:
                        LOGGER.error(f"save_token failed after 3 attempts: {e}")

        LOGGER.info(f"Added token to database: {resp.login or 'unknown'} ({resp.user_id})")
        return resp

    async def load_tokens(self, path: str | None = None) -> None:
        for user_id, token, refresh in await self.channels.list_tokens():
            try:
                await self.add_token(token, refresh)
            except twitchio.exceptions.InvalidTokenException as e:
                LOGGER.warning(
                    f"Invalid token for user_id {user_id}, skipping. "
                    f"User needs to re-authenticate: {e}"
                )

    # ------------------------------------------------------------------
    # Channel management
    # ------------------------------------------------------------------

    async def add_channel_to_db(self, channel_id: str, channel_name: str) -> None:
        if channel_id == self._bot_id:
            LOGGER.debug(f"Skipping bot's own channel: {channel_name}")
            return

        await self.channels.upsert_channel(channel_id, channel_name.lower())
        LOGGER.info(f"Added channel {channel_name} (ID: {channel_id}) to database")

    async def subscribe_channel_events(self, broadcaster_user_id: str) -> None:
        if broadcaster_user_id in self._subscribed_channels:
            LOGGER.debug(f"Already subscribed: {broadcaster_user_id}")
            return

        try:
            subs = get_channel_subscriptions(broadcaster_user_id, self._bot_id)
            resp = await self.multi_subscribe(subs)
            if resp.errors:
                non_conflict = [
                    e for e in resp.errors if "409" not in str(e) and "already exists" not in str(e)
                ]
                if non_conflict:
                    LOGGER.warning(f"Subscription errors: {non_conflict}")

            self._subscribed_channels.add(broadcaster_user_id)
            LOGGER.info(f"Subscribed to song request events for channel: {broadcaster_user_id}")

        except Exception as e:
            LOGGER.exception(f"Failed to subscribe channel {broadcaster_user_id}: {e}")

    async def _subscribe_initial_channels(self) -> None:
        """Subscribe to EventSub for all enabled channels on startup."""
        try:
            await asyncio.sleep(2)

            enabled_channels = await self.channels.list_enabled_channels()
            LOGGER.info(f"Subscribing to {len(enabled_channels)} enabled channels...")

            for ch in enabled_channels:
                if ch.channel_id == self._bot_id:
                    continue
                await self.subscribe_channel_events(ch.channel_id)

            LOGGER.info("Initial channel subscription complete")
        except Exception as e:
            LOGGER.exception(f"Error subscribing to initial channels: {e}")
