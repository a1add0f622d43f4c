"""Relay: the bridge event loop.

Waits on the next IRC event and the next guild BridgeMessage at the same
time and handles whichever is ready first. Runs until the IRC stream ends.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger

from ircbridge.adapters.discord.webhook import WebhookMap, webhook_send
from ircbridge.core.constants import ErrorPolicy
from ircbridge.core.errors import BroadcastClosed, ReceiverLagged, UpstreamError
from ircbridge.events import BridgeMessage, InboundIrcEvent, IrcChatLine, IrcOther, IrcTopicChange
from ircbridge.gateway.router import ChannelMapping, strip_channel_prefix

if TYPE_CHECKING:
    from ircbridge.adapters.discord.client import GuildClient
    from ircbridge.gateway.broadcast import Receiver


class IrcSender(Protocol):
    async def send_privmsg(self, channel: str, text: str) -> None: ...


async def _next_irc_event(events: AsyncIterator[InboundIrcEvent]) -> InboundIrcEvent | None:
    """Next IRC event, or None once the stream is exhausted."""
    try:
        return await anext(events)
    except StopAsyncIteration:
        return None


class Relay:
    """Routes IRC events to Discord and BridgeMessages to IRC for one session.

    Owns its ChannelMapping and WebhookMap; nothing else touches them.
    """

    def __init__(
        self,
        client: GuildClient,
        irc: IrcSender,
        mapping: ChannelMapping,
        webhooks: WebhookMap,
        *,
        error_policy: ErrorPolicy = "isolate",
    ) -> None:
        self._client = client
        self._irc = irc
        self._mapping = mapping
        self._webhooks = webhooks
        self._error_policy = error_policy
        self._irc_handlers: dict[type, Callable[[Any], Awaitable[None]]] = {
            IrcChatLine: self._on_chat_line,
            IrcTopicChange: self._on_topic_change,
            IrcOther: self._on_other,
        }

    async def handle_irc_event(self, evt: InboundIrcEvent) -> None:
        """Dispatch one IRC event to its handler."""
        handler = self._irc_handlers.get(type(evt))
        if handler is None:
            return
        await handler(evt)

    async def _on_chat_line(self, evt: IrcChatLine) -> None:
        webhook = self._webhooks.get(strip_channel_prefix(evt.channel))
        if webhook is None:
            return
        await webhook_send(self._client, webhook, evt.nick, evt.body)
        logger.debug("message received in {}: {}", evt.channel, evt.body)

    async def _on_topic_change(self, evt: IrcTopicChange) -> None:
        channel_id = self._mapping.channel_for_irc(evt.channel)
        if channel_id is None:
            return
        await self._client.set_channel_topic(channel_id, evt.topic or "")
        logger.info("Topic of {} propagated to channel {}", evt.channel, channel_id)

    async def _on_other(self, evt: IrcOther) -> None:
        return None

    async def handle_bridge_message(self, msg: BridgeMessage) -> None:
        """Send a guild-originated line to the mapped IRC channel; drop it if the channel is not bridged."""
        name = self._mapping.name_for(msg.channel_id)
        if name is None:
            logger.debug("Dropping message from unbridged channel {}", msg.channel_id)
            return
        logger.debug('sending "{}" in #{}', msg.body, name)
        await self._irc.send_privmsg(f"#{name}", msg.body)

    async def _guarded(self, coro: Awaitable[None], what: str) -> None:
        """Run one relay call under the configured error policy."""
        try:
            await coro
        except UpstreamError as exc:
            if self._error_policy == "terminate":
                raise
            logger.error("Relay of {} failed, continuing: {}", what, exc)

    async def run(
        self,
        events: AsyncIterator[InboundIrcEvent],
        receiver: Receiver[BridgeMessage] | None,
    ) -> None:
        """Multiplex both sources until the IRC stream ends."""
        irc_task: asyncio.Task = asyncio.ensure_future(_next_irc_event(events))
        guild_task: asyncio.Task | None = asyncio.ensure_future(receiver.recv()) if receiver else None
        try:
            while True:
                waiting = {irc_task} if guild_task is None else {irc_task, guild_task}
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)

                ended = False
                if irc_task in done:
                    evt = irc_task.result()
                    if evt is None:
                        ended = True
                    else:
                        await self._guarded(self.handle_irc_event(evt), type(evt).__name__)
                        irc_task = asyncio.ensure_future(_next_irc_event(events))

                if guild_task is not None and guild_task in done:
                    guild_task = await self._take_bridge_message(guild_task, receiver)

                if ended:
                    logger.info("IRC event stream ended")
                    return
        finally:
            for task in (irc_task, guild_task):
                if task is not None and not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

    async def _take_bridge_message(
        self,
        task: asyncio.Task,
        receiver: Receiver[BridgeMessage],
    ) -> asyncio.Task | None:
        """Handle a finished recv(); return the next recv task, or None once the broadcast is closed."""
        try:
            msg = task.result()
        except ReceiverLagged as exc:
            logger.warning("Guild relay lagged; {} message(s) dropped", exc.skipped)
        except BroadcastClosed:
            logger.info("Guild relay channel closed; relaying IRC -> Discord only")
            return None
        else:
            await self._guarded(self.handle_bridge_message(msg), "BridgeMessage")
        return asyncio.ensure_future(receiver.recv())
