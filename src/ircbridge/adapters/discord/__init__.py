"""Discord adapter package.

`adapter.DiscordAdapter` is imported from its module directly; it depends on
the gateway, which in turn depends on the helpers exported here.
"""

from ircbridge.adapters.discord.client import ChannelWebhook, DiscordGuildClient, GuildChannel, GuildClient
from ircbridge.adapters.discord.webhook import WebhookMap, get_or_create_webhook, provision_webhooks, webhook_send

__all__ = [
    "ChannelWebhook",
    "DiscordGuildClient",
    "GuildChannel",
    "GuildClient",
    "WebhookMap",
    "get_or_create_webhook",
    "provision_webhooks",
    "webhook_send",
]
