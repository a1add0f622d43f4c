"""IRC speaker identity on the Discord side: stable per-nick avatar colors."""

from ircbridge.identity.avatar import avatar_url, color_for

__all__ = ["avatar_url", "color_for"]
