"""Discord webhook utilities: one reusable relay webhook per bridged channel."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from ircbridge.core.constants import UNKNOWN_NICK, WEBHOOK_NAME
from ircbridge.identity import avatar_url

if TYPE_CHECKING:
    from ircbridge.adapters.discord.client import GuildClient
    from ircbridge.gateway.router import ChannelMapping

# channel name -> webhook handle
WebhookMap = dict[str, Any]


async def get_or_create_webhook(client: GuildClient, channel_id: int, channel_name: str) -> Any:
    """Reuse the channel's webhook named WEBHOOK_NAME, or create it. Other webhooks are left alone."""
    for wh in await client.list_webhooks(channel_id):
        if wh.name == WEBHOOK_NAME:
            logger.info("Found existing webhook for channel {} ({}).", channel_name, channel_id)
            return wh.handle
    wh = await client.create_webhook(channel_id, WEBHOOK_NAME)
    logger.info("Created webhook for channel {} ({}).", channel_name, channel_id)
    return wh.handle


async def provision_webhooks(client: GuildClient, mapping: ChannelMapping) -> WebhookMap:
    """Ensure every mapped channel has exactly one relay webhook.

    The first failure raises UpstreamError and abandons the whole batch.
    """
    webhooks: WebhookMap = {}
    for channel_id, name in mapping:
        webhooks[name] = await get_or_create_webhook(client, channel_id, name)
    return webhooks


async def webhook_send(client: GuildClient, webhook: Any, nick: str | None, content: str) -> None:
    """Post `content` verbatim as `nick` with the nick's color avatar."""
    username = nick or UNKNOWN_NICK
    await client.post_via_webhook(
        webhook,
        username=username,
        content=content,
        avatar_url=avatar_url(username),
    )
