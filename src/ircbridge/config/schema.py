"""Config schema and accessor."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from ircbridge.core.constants import (
    DEFAULT_BROADCAST_CAPACITY,
    DEFAULT_IDENTIFY_TIMEOUT,
    DEFAULT_IRC_PORT,
    ERROR_POLICIES,
    OVERFLOW_POLICIES,
    ErrorPolicy,
    OverflowPolicy,
)
from ircbridge.core.errors import BridgeConfigurationError

# Env keys that override config file values
_TOKEN_ENV = "BRIDGE_DISCORD_TOKEN"


def _parse_bool(val: Any, default: bool) -> bool:
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    v = str(val).lower()
    if v in ("1", "true", "yes"):
        return True
    if v in ("0", "false", "no"):
        return False
    return default


@dataclass
class IrcConfig:
    """IRC connection parameters (from the separate IRC config file)."""

    server: str
    nickname: str
    port: int = DEFAULT_IRC_PORT
    tls: bool = False
    tls_verify: bool = True
    username: str | None = None
    realname: str | None = None
    password: str | None = None
    channels: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IrcConfig:
        """Build from raw YAML dict; raise BridgeConfigurationError on missing/invalid fields."""
        server = data.get("server")
        if not server or not isinstance(server, str):
            raise BridgeConfigurationError("irc config missing server", code="missing_irc_server")
        nickname = data.get("nickname") or data.get("nick")
        if not nickname or not isinstance(nickname, str):
            raise BridgeConfigurationError("irc config missing nickname", code="missing_irc_nickname")
        channels = data.get("channels") or []
        if not isinstance(channels, list):
            raise BridgeConfigurationError(
                "irc channels must be a list",
                code="invalid_irc_channels",
                details={"type": type(channels).__name__},
            )
        try:
            port = int(data.get("port", DEFAULT_IRC_PORT))
        except (TypeError, ValueError) as exc:
            raise BridgeConfigurationError(
                "irc port must be an integer", code="invalid_irc_port", original_error=exc
            ) from exc
        return cls(
            server=server,
            nickname=nickname,
            port=port,
            tls=_parse_bool(data.get("tls"), False),
            tls_verify=_parse_bool(data.get("tls_verify"), True),
            username=data.get("username"),
            realname=data.get("realname"),
            password=data.get("password"),
            channels=[str(c) if str(c).startswith("#") else f"#{c}" for c in channels],
        )


class Config:
    """Config accessor over the bridge config dict plus the IRC config dict.

    Constructed once at startup and passed explicitly to the adapter and
    sessions; there is no module-level instance.
    """

    def __init__(self, data: dict[str, Any] | None = None, irc_data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._irc_data = irc_data or {}

    @property
    def raw(self) -> dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dot-separated path (e.g. 'broadcast.capacity')."""
        parts = key.split(".")
        obj: Any = self._data
        for part in parts:
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            else:
                return default
        return obj

    def validate(self) -> Config:
        """Validate every field; raise BridgeConfigurationError on the first failure."""
        if not self.token:
            raise BridgeConfigurationError(
                f"token missing (set it in config or {_TOKEN_ENV})",
                code="missing_token",
            )
        raw_guild = self._data.get("guild_id")
        if raw_guild is None or isinstance(raw_guild, bool):
            raise BridgeConfigurationError("guild_id missing", code="missing_guild_id")
        try:
            int(raw_guild)
        except (TypeError, ValueError) as exc:
            raise BridgeConfigurationError(
                "guild_id must be an integer",
                code="invalid_guild_id",
                details={"value": raw_guild},
                original_error=exc,
            ) from exc
        if self.relay_error_policy not in ERROR_POLICIES:
            raise BridgeConfigurationError(
                f"relay_error_policy must be one of {', '.join(ERROR_POLICIES)}",
                code="invalid_error_policy",
                details={"value": self.relay_error_policy},
            )
        if self.broadcast_overflow not in OVERFLOW_POLICIES:
            raise BridgeConfigurationError(
                f"broadcast.overflow must be one of {', '.join(OVERFLOW_POLICIES)}",
                code="invalid_overflow_policy",
                details={"value": self.broadcast_overflow},
            )
        if self.broadcast_capacity < 1:
            raise BridgeConfigurationError(
                "broadcast.capacity must be positive",
                code="invalid_capacity",
                details={"value": self.broadcast_capacity},
            )
        raw_timeout = self._data.get("irc_identify_timeout", DEFAULT_IDENTIFY_TIMEOUT)
        try:
            timeout = float(raw_timeout)
        except (TypeError, ValueError) as exc:
            raise BridgeConfigurationError(
                "irc_identify_timeout must be a number of seconds",
                code="invalid_identify_timeout",
                details={"value": raw_timeout},
                original_error=exc,
            ) from exc
        if isinstance(raw_timeout, bool) or not timeout > 0:
            raise BridgeConfigurationError(
                "irc_identify_timeout must be positive",
                code="invalid_identify_timeout",
                details={"value": raw_timeout},
            )
        irc = self.irc
        logger.debug(
            "Config valid: guild {}, IRC {}:{} ({} channels)",
            self.guild_id,
            irc.server,
            irc.port,
            len(irc.channels),
        )
        return self

    @property
    def token(self) -> str:
        """Discord bot token; BRIDGE_DISCORD_TOKEN wins over the file."""
        return os.environ.get(_TOKEN_ENV) or str(self._data.get("token") or "")

    @property
    def guild_id(self) -> int:
        return int(self._data["guild_id"])

    @property
    def relay_error_policy(self) -> ErrorPolicy:
        """'isolate' logs a failed relay call and keeps going; 'terminate' ends the session."""
        return str(self._data.get("relay_error_policy", "isolate"))  # type: ignore[return-value]

    @property
    def broadcast_capacity(self) -> int:
        """Per-receiver backlog of the guild -> IRC broadcast."""
        try:
            return int(self.get("broadcast.capacity", DEFAULT_BROADCAST_CAPACITY))
        except (TypeError, ValueError):
            return 0

    @property
    def broadcast_overflow(self) -> OverflowPolicy:
        return str(self.get("broadcast.overflow", "drop_oldest"))  # type: ignore[return-value]

    @property
    def irc_identify_timeout(self) -> float:
        """Seconds to wait for IRC registration before giving up on the session."""
        return float(self._data.get("irc_identify_timeout", DEFAULT_IDENTIFY_TIMEOUT))

    @property
    def irc(self) -> IrcConfig:
        return IrcConfig.from_dict(self._irc_data)
