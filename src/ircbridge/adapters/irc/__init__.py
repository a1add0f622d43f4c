"""IRC adapter package."""

from ircbridge.adapters.irc.client import IRCClient

__all__ = ["IRCClient"]
