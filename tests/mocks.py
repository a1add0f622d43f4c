"""Fake Discord and IRC collaborators for testing the bridge without real connections."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from ircbridge.adapters.discord.client import CATEGORY_KIND, ChannelWebhook, GuildChannel
from ircbridge.core.errors import UpstreamError
from ircbridge.events import InboundIrcEvent

TEXT_KIND = "text"


def category(channel_id: int, name: str = "irc") -> GuildChannel:
    return GuildChannel(id=channel_id, kind=CATEGORY_KIND, name=name)


def text_channel(channel_id: int, name: str, parent_id: int | None = None) -> GuildChannel:
    return GuildChannel(id=channel_id, kind=TEXT_KIND, name=name, parent_id=parent_id)


class FakeGuildClient:
    """In-memory guild: channels, per-channel webhooks, and a log of every write call."""

    def __init__(self, channels: list[GuildChannel] | None = None) -> None:
        self.channels = list(channels or [])
        self.webhooks: dict[int, list[ChannelWebhook]] = {}
        self.posts: list[dict[str, Any]] = []
        self.topics: list[tuple[int, str]] = []
        self.created: list[tuple[int, str]] = []
        self.fail_on: set[str] = set()
        self._next_id = 9000

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise UpstreamError(f"Discord {operation} failed: boom", code=operation)

    async def list_channels(self, guild_id: int) -> list[GuildChannel]:
        self._maybe_fail("list_channels")
        return list(self.channels)

    async def list_webhooks(self, channel_id: int) -> list[ChannelWebhook]:
        self._maybe_fail("list_webhooks")
        return list(self.webhooks.get(channel_id, []))

    async def create_webhook(self, channel_id: int, name: str) -> ChannelWebhook:
        self._maybe_fail("create_webhook")
        self._next_id += 1
        wh = ChannelWebhook(id=self._next_id, name=name, handle=f"hook-{channel_id}-{self._next_id}")
        self.webhooks.setdefault(channel_id, []).append(wh)
        self.created.append((channel_id, name))
        return wh

    async def post_via_webhook(self, webhook: Any, *, username: str, content: str, avatar_url: str) -> None:
        self._maybe_fail("post_via_webhook")
        self.posts.append({"webhook": webhook, "username": username, "content": content, "avatar_url": avatar_url})

    async def set_channel_topic(self, channel_id: int, topic: str) -> None:
        self._maybe_fail("set_channel_topic")
        self.topics.append((channel_id, topic))


class FakeIrc:
    """Scripted IRC connection: feed events, collect sent PRIVMSGs."""

    def __init__(self, *, fail_open: bool = False, fail_send: bool = False) -> None:
        self.queue: asyncio.Queue[InboundIrcEvent | None] = asyncio.Queue()
        self.sent: list[tuple[str, str]] = []
        self.opened = False
        self.disconnected = False
        self.fail_open = fail_open
        self.fail_send = fail_send

    def feed(self, *events: InboundIrcEvent) -> None:
        for evt in events:
            self.queue.put_nowait(evt)

    def end(self) -> None:
        self.queue.put_nowait(None)

    async def open(self, timeout: float = 30.0) -> None:
        if self.fail_open:
            raise UpstreamError("IRC client failed to identify", code="irc_identify")
        self.opened = True

    async def events(self) -> AsyncIterator[InboundIrcEvent]:
        while True:
            evt = await self.queue.get()
            if evt is None:
                return
            yield evt

    async def send_privmsg(self, channel: str, text: str) -> None:
        if self.fail_send:
            raise UpstreamError(f"IRC send to {channel} failed", code="irc_send")
        self.sent.append((channel, text))

    async def disconnect(self, expected: bool = True) -> None:
        self.disconnected = True
