"""Guild platform client: the Discord calls the bridge core depends on."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp
import discord
from loguru import logger

from ircbridge.core.errors import UpstreamError

CATEGORY_KIND = str(discord.ChannelType.category)


@dataclass(frozen=True)
class GuildChannel:
    """One guild channel as listed by the API."""

    id: int
    kind: str
    name: str
    parent_id: int | None = None

    @property
    def is_category(self) -> bool:
        return self.kind == CATEGORY_KIND


@dataclass(frozen=True)
class ChannelWebhook:
    """Webhook attached to a channel. `handle` is whatever `post_via_webhook` accepts."""

    id: int
    name: str | None
    handle: Any


class GuildClient(Protocol):
    """Operations on the guild platform used by resolver, provisioner and relay."""

    async def list_channels(self, guild_id: int) -> Sequence[GuildChannel]: ...

    async def list_webhooks(self, channel_id: int) -> Sequence[ChannelWebhook]: ...

    async def create_webhook(self, channel_id: int, name: str) -> ChannelWebhook: ...

    async def post_via_webhook(self, webhook: Any, *, username: str, content: str, avatar_url: str) -> None: ...

    async def set_channel_topic(self, channel_id: int, topic: str) -> None: ...


@contextlib.contextmanager
def _upstream(operation: str, **details: object) -> Iterator[None]:
    """Convert discord.py / transport failures into UpstreamError."""
    try:
        yield
    except (discord.DiscordException, aiohttp.ClientError, OSError) as exc:
        raise UpstreamError(
            f"Discord {operation} failed: {exc}",
            code=operation,
            details=dict(details),
            original_error=exc,
        ) from exc


class DiscordGuildClient:
    """GuildClient over a connected discord.py client."""

    def __init__(self, client: discord.Client) -> None:
        self._client = client

    async def _channel(self, channel_id: int) -> Any:
        channel = self._client.get_channel(channel_id)
        if channel is None:
            channel = await self._client.fetch_channel(channel_id)
        return channel

    async def list_channels(self, guild_id: int) -> list[GuildChannel]:
        with _upstream("list_channels", guild_id=guild_id):
            guild = self._client.get_guild(guild_id) or await self._client.fetch_guild(guild_id)
            channels = await guild.fetch_channels()
        return [
            GuildChannel(
                id=int(ch.id),
                kind=str(ch.type),
                name=ch.name,
                parent_id=getattr(ch, "category_id", None),
            )
            for ch in channels
        ]

    async def list_webhooks(self, channel_id: int) -> list[ChannelWebhook]:
        with _upstream("list_webhooks", channel_id=channel_id):
            channel = await self._channel(channel_id)
            hooks = await channel.webhooks()
        return [ChannelWebhook(id=int(wh.id), name=wh.name, handle=wh) for wh in hooks]

    async def create_webhook(self, channel_id: int, name: str) -> ChannelWebhook:
        with _upstream("create_webhook", channel_id=channel_id):
            channel = await self._channel(channel_id)
            wh = await channel.create_webhook(name=name, reason="IRC bridge relay")
        return ChannelWebhook(id=int(wh.id), name=wh.name, handle=wh)

    async def post_via_webhook(
        self,
        webhook: discord.Webhook,
        *,
        username: str,
        content: str,
        avatar_url: str,
    ) -> None:
        with _upstream("post_via_webhook", webhook_id=getattr(webhook, "id", None)):
            await webhook.send(content=content, username=username, avatar_url=avatar_url)

    async def set_channel_topic(self, channel_id: int, topic: str) -> None:
        with _upstream("set_channel_topic", channel_id=channel_id):
            channel = await self._channel(channel_id)
            await channel.edit(topic=topic)
        logger.debug("Discord: topic of channel {} set to {!r}", channel_id, topic)
