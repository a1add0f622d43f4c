"""Gateway: channel router, guild -> IRC broadcast, relay loop, session supervisor."""

from ircbridge.gateway.broadcast import Broadcast, Receiver, submit_bridge_message
from ircbridge.gateway.relay import Relay
from ircbridge.gateway.router import ChannelMapping, resolve_channel_mapping
from ircbridge.gateway.session import BridgeSession, supervise

__all__ = [
    "BridgeSession",
    "Broadcast",
    "ChannelMapping",
    "Receiver",
    "Relay",
    "resolve_channel_mapping",
    "submit_bridge_message",
    "supervise",
]
