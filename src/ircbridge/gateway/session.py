"""Bridge session: resolve -> provision -> IRC identify -> relay loop, under a supervisor."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from ircbridge.adapters.discord.webhook import provision_webhooks
from ircbridge.core.constants import DEFAULT_IDENTIFY_TIMEOUT, ErrorPolicy
from ircbridge.events import BridgeMessage, InboundIrcEvent, SessionEnded, session_ended
from ircbridge.gateway.relay import Relay
from ircbridge.gateway.router import resolve_channel_mapping

if TYPE_CHECKING:
    from ircbridge.adapters.discord.client import GuildClient
    from ircbridge.gateway.broadcast import Receiver


class IrcSession(Protocol):
    """What the session needs from an IRC connection."""

    async def open(self, timeout: float = ...) -> None: ...

    def events(self) -> AsyncIterator[InboundIrcEvent]: ...

    async def send_privmsg(self, channel: str, text: str) -> None: ...

    async def disconnect(self, expected: bool = ...) -> None: ...


class BridgeSession:
    """One guild-connection lifetime. All state is built here and dropped on exit."""

    def __init__(
        self,
        client: GuildClient,
        guild_id: int,
        irc_factory: Callable[[], IrcSession],
        receiver: Receiver[BridgeMessage],
        *,
        error_policy: ErrorPolicy = "isolate",
        identify_timeout: float = DEFAULT_IDENTIFY_TIMEOUT,
    ) -> None:
        self._client = client
        self._guild_id = guild_id
        self._irc_factory = irc_factory
        self._receiver = receiver
        self._error_policy = error_policy
        self._identify_timeout = identify_timeout

    async def run(self) -> None:
        """Build the maps, connect IRC and relay until the IRC stream ends.

        Any UpstreamError before the loop starts aborts the session.
        """
        try:
            mapping = await resolve_channel_mapping(self._client, self._guild_id)
            webhooks = await provision_webhooks(self._client, mapping)

            logger.info("Starting IRC connection...")
            irc = self._irc_factory()
            try:
                await irc.open(timeout=self._identify_timeout)
                relay = Relay(self._client, irc, mapping, webhooks, error_policy=self._error_policy)
                await relay.run(irc.events(), self._receiver)
            finally:
                await _close_irc(irc)
        finally:
            self._receiver.close()


async def _close_irc(irc: IrcSession) -> None:
    try:
        await irc.disconnect(expected=True)
    except Exception as exc:
        logger.debug("IRC disconnect failed: {}", exc)


async def supervise(session: BridgeSession) -> SessionEnded:
    """Run a session to completion and log how it ended. Never raises except on cancellation."""
    try:
        await session.run()
    except asyncio.CancelledError:
        logger.info("listen loop cancelled")
        raise
    except Exception as exc:
        logger.opt(exception=exc).error("listen loop errored: {}", exc)
        _, evt = session_ended("errored", exc)
        return evt
    logger.info("listen loop exited")
    _, evt = session_ended("exited")
    return evt
