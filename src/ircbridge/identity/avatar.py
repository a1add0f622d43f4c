"""Per-nick avatar colors: CRC-32 of the name, top 24 bits."""

from __future__ import annotations

import zlib

from ircbridge.core.constants import AVATAR_URL_TEMPLATE


def color_for(name: str) -> int:
    """24-bit RGB color for a display name. Stable across runs; collisions allowed."""
    return zlib.crc32(name.encode("utf-8")) >> 8


def avatar_url(name: str) -> str:
    """Single-color image URL used as the webhook avatar for `name`."""
    return AVATAR_URL_TEMPLATE.format(color=color_for(name))
