"""Song Requests component: channel-point redemptions and chat commands

Redemptions:
    <request reward>    Queue the Spotify link or search text from the input
    <skip reward>       Skip the current track

Chat:
    !sq, !sc, !sr, !volume, !songhelp   (see services.song_commands)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import twitchio
from twitchio.ext import commands

from services.song_request import RedemptionAction, route_redemption
from twitch.core.config import get_settings
from twitch.core.guards import is_privileged

if TYPE_CHECKING:
    from twitch.core.bot import Bot

LOGGER = logging.getLogger("SongRequests")


class SongRequestComponent(commands.Component):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot: Bot = bot  # type: ignore[assignment]
        self.sessions = self.bot.sessions
        self._settings = get_settings()

    async def component_load(self) -> None:
        LOGGER.info("SongRequests component loaded")

    # ------------------------------------------------------------------
    # Chat commands
    # ------------------------------------------------------------------

    @commands.Component.listener()
    async def event_message(self, payload: twitchio.ChatMessage) -> None:
        text = payload.text or ""
        if not text.startswith("!") or payload.chatter.id == self.bot.bot_id:
            return

        channel_id = payload.broadcaster.id
        try:
            client = await self.sessions.get_client(channel_id)
            if client is None:
                return
            reply = await self.sessions.commands.handle(
                channel_id,
                client,
                payload.chatter.display_name or payload.chatter.name or "",
                text,
                privileged=is_privileged(payload.chatter),
            )
        except Exception as e:
            LOGGER.exception(f"[{channel_id}] Song command failed: {e}")
            return

        if reply:
            await self._send(payload.broadcaster, reply)

    # ------------------------------------------------------------------
    # Redemptions
    # ------------------------------------------------------------------

    @commands.Component.listener()
    async def event_custom_redemption_add(
        self,
        payload: twitchio.ChannelPointsRedemptionAdd,
    ) -> None:
        channel_id = payload.broadcaster.id
        user_name = payload.user.display_name or payload.user.name or ""
        user_input = payload.user_input or ""

        action = route_redemption(
            payload.reward.title,
            user_input,
            request_title=self._settings.request_reward_title,
            skip_title=self._settings.skip_reward_title,
        )
        if action is RedemptionAction.IGNORE:
            return

        LOGGER.info(f"[{channel_id}] {user_name} redeemed '{payload.reward.title}' ({action})")

        try:
            client = await self.sessions.get_client(channel_id)
            if client is None:
                LOGGER.warning(f"[{channel_id}] No Spotify account linked, ignoring redemption")
                return

            if action is RedemptionAction.SKIP:
                reply = await self.sessions.requests.skip(channel_id, client, user_name)
            else:
                result = await self.sessions.requests.request(
                    channel_id, client, user_name, user_input
                )
                reply = result.message
        except Exception as e:
            LOGGER.exception(f"[{channel_id}] Redemption handling failed: {e}")
            return

        await self._send(payload.broadcaster, reply)

    async def _send(self, broadcaster: twitchio.PartialUser, message: str) -> None:
        try:
            await broadcaster.send_message(
                message=message,
                sender=self.bot.bot_id,
                token_for=self.bot.bot_id,
            )
        except Exception as e:
            LOGGER.warning(f"Failed to send chat message: {e}")


async def setup(bot: commands.Bot) -> None:
    """Entry point for the module."""
    await bot.add_component(SongRequestComponent(bot))


async def teardown(bot: commands.Bot) -> None:
    """Optional teardown coroutine for cleanup."""
    ...
