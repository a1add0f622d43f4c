"""Channel router: which guild channels are bridged, and under which IRC name."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from loguru import logger

from ircbridge.core.constants import BRIDGE_CATEGORY_NAME

if TYPE_CHECKING:
    from ircbridge.adapters.discord.client import GuildChannel, GuildClient


def strip_channel_prefix(irc_channel: str) -> str:
    """'#general' -> 'general'. Leaves names without the prefix alone."""
    return irc_channel[1:] if irc_channel.startswith("#") else irc_channel


class ChannelMapping:
    """Bidirectional guild channel id <-> channel name map for one session.

    Names are the guild channel display names without the IRC '#' prefix.
    Built once, then read-only. A repeated name keeps the last channel.
    """

    def __init__(self, pairs: Iterable[tuple[int, str]] = ()) -> None:
        self._names: dict[int, str] = {}
        self._ids: dict[str, int] = {}
        for channel_id, name in pairs:
            previous = self._ids.get(name)
            if previous is not None and previous != channel_id:
                logger.warning("Router: channel name {!r} used by {} and {}; keeping {}", name, previous, channel_id, channel_id)
                self._names.pop(previous, None)
            self._names[channel_id] = name
            self._ids[name] = channel_id

    def name_for(self, channel_id: int) -> str | None:
        """Forward lookup: guild channel id -> name."""
        return self._names.get(channel_id)

    def channel_for(self, name: str) -> int | None:
        """Reverse lookup: name (no '#') -> guild channel id."""
        return self._ids.get(name)

    def channel_for_irc(self, irc_channel: str) -> int | None:
        """Reverse lookup from an IRC channel ('#general')."""
        return self.channel_for(strip_channel_prefix(irc_channel))

    def names(self) -> list[str]:
        return list(self._ids)

    def __iter__(self) -> Iterator[tuple[int, str]]:
        return iter(self._names.items())

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._names

    def __repr__(self) -> str:
        return f"ChannelMapping({dict(self._names)!r})"


def select_bridge_category(channels: Iterable[GuildChannel]) -> GuildChannel | None:
    """Pick the category named exactly 'irc'. When several exist, the last listed wins."""
    categories = [ch for ch in channels if ch.is_category and ch.name == BRIDGE_CATEGORY_NAME]
    if len(categories) > 1:
        logger.warning(
            "Router: {} categories named {!r} ({}); using the last one ({})",
            len(categories),
            BRIDGE_CATEGORY_NAME,
            ", ".join(str(c.id) for c in categories),
            categories[-1].id,
        )
    return categories[-1] if categories else None


def build_channel_mapping(channels: Iterable[GuildChannel]) -> ChannelMapping:
    """Map every channel parented to the bridge category by its display name."""
    channels = list(channels)
    category = select_bridge_category(channels)
    if category is None:
        logger.warning("Router: no {!r} category in guild; nothing will be bridged", BRIDGE_CATEGORY_NAME)
        return ChannelMapping()
    return ChannelMapping((ch.id, ch.name) for ch in channels if ch.parent_id is not None and ch.parent_id == category.id)


async def resolve_channel_mapping(client: GuildClient, guild_id: int) -> ChannelMapping:
    """List guild channels and build the session's ChannelMapping. Raises UpstreamError."""
    channels = await client.list_channels(guild_id)
    mapping = build_channel_mapping(channels)
    logger.info(
        "Router: {} bridged channels in guild {}{}",
        len(mapping),
        guild_id,
        f" ({', '.join(mapping.names())})" if len(mapping) else "",
    )
    return mapping
