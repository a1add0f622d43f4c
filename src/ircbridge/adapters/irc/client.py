"""IRC client: pydle connection exposed as an async stream of InboundIrcEvents."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pydle
from loguru import logger

from ircbridge.config import IrcConfig
from ircbridge.core.constants import DEFAULT_IDENTIFY_TIMEOUT
from ircbridge.core.errors import UpstreamError
from ircbridge.events import InboundIrcEvent, irc_chat_line, irc_other, irc_topic_change

# Not surfaced as IrcOther: PRIVMSG and TOPIC have their own callbacks, PING and PONG are keepalive
_SKIPPED_COMMANDS = frozenset({"PRIVMSG", "TOPIC", "PING", "PONG"})


class IRCClient(pydle.Client):
    """Pydle client that queues inbound channel traffic for the relay loop.

    The stream ends on disconnect; nothing here reconnects.
    """

    # The session ends with the connection; a fresh session reconnects
    RECONNECT_ON_ERROR = False

    def __init__(self, config: IrcConfig, **kwargs) -> None:
        super().__init__(
            config.nickname,
            username=config.username,
            realname=config.realname,
            **kwargs,
        )
        self._config = config
        self._events: asyncio.Queue[InboundIrcEvent | None] = asyncio.Queue()
        self._registered = asyncio.Event()
        self._identified = False

    @property
    def identified(self) -> bool:
        return self._identified

    async def open(self, timeout: float = DEFAULT_IDENTIFY_TIMEOUT) -> None:
        """Connect and wait for registration. Raises UpstreamError on failure."""
        cfg = self._config
        logger.info("IRC connecting to {}:{} as {}", cfg.server, cfg.port, cfg.nickname)
        try:
            await self.connect(
                hostname=cfg.server,
                port=cfg.port,
                tls=cfg.tls,
                tls_verify=cfg.tls_verify,
                password=cfg.password,
            )
        except (pydle.Error, OSError) as exc:
            raise UpstreamError(
                f"IRC connect to {cfg.server}:{cfg.port} failed: {exc}",
                code="irc_connect",
                details={"server": cfg.server, "port": cfg.port},
                original_error=exc,
            ) from exc
        try:
            await asyncio.wait_for(self._registered.wait(), timeout)
        except TimeoutError as exc:
            raise UpstreamError(
                f"IRC client failed to identify within {timeout}s",
                code="irc_identify",
                details={"server": cfg.server},
                original_error=exc,
            ) from exc
        if not self._identified:
            raise UpstreamError(
                "IRC client disconnected before identifying",
                code="irc_identify",
                details={"server": cfg.server},
            )

    async def on_connect(self) -> None:
        """Registration complete: join configured channels."""
        await super().on_connect()
        self._identified = True
        self._registered.set()
        logger.info("IRC connected to {}", self._config.server)
        for channel in self._config.channels:
            await self.join(channel)

    async def on_disconnect(self, expected: bool) -> None:
        try:
            await super().on_disconnect(expected)
        finally:
            logger.info("IRC disconnected from {} (expected={})", self._config.server, expected)
            # Unblock open() if registration never finished
            self._registered.set()
            self._events.put_nowait(None)

    def _is_own_line(self, by: str | None) -> bool:
        return by is not None and self.is_same_nick(by, self.nickname)

    async def on_channel_message(self, target: str, by: str | None, message: str) -> None:
        await super().on_channel_message(target, by, message)
        # Local echo or server echo-message of our own PRIVMSG
        if self._is_own_line(by):
            return
        _, evt = irc_chat_line(channel=target, nick=by, body=message)
        self._events.put_nowait(evt)

    async def on_ctcp_action(self, by: str | None, target: str, contents: str | None) -> None:
        """/me lines: relayed with the CTCP framing the PRIVMSG carried."""
        if not self.is_channel(target) or self._is_own_line(by):
            return
        body = f"\x01ACTION {contents}\x01" if contents else "\x01ACTION\x01"
        _, evt = irc_chat_line(channel=target, nick=by, body=body)
        self._events.put_nowait(evt)

    async def on_topic_change(self, channel: str, message: str | None, by: str | None) -> None:
        await super().on_topic_change(channel, message, by)
        _, evt = irc_topic_change(channel=channel, topic=message)
        self._events.put_nowait(evt)

    async def on_raw(self, message) -> None:
        await super().on_raw(message)
        command = str(getattr(message, "command", "")).upper()
        if not command or command.isdigit() or command in _SKIPPED_COMMANDS:
            return
        _, evt = irc_other(command=command)
        self._events.put_nowait(evt)

    async def events(self) -> AsyncIterator[InboundIrcEvent]:
        """Inbound events in arrival order; ends when the connection closes."""
        while True:
            evt = await self._events.get()
            if evt is None:
                return
            yield evt

    async def send_privmsg(self, channel: str, text: str) -> None:
        """PRIVMSG to a channel. Raises UpstreamError on failure."""
        try:
            await self.message(channel, text)
        except (pydle.Error, OSError) as exc:
            raise UpstreamError(
                f"IRC send to {channel} failed: {exc}",
                code="irc_send",
                details={"channel": channel},
                original_error=exc,
            ) from exc
