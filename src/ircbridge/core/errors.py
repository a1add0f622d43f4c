"""Bridge domain exceptions."""

from __future__ import annotations


class BridgeError(Exception):
    """Base for bridge domain errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class BridgeConfigurationError(BridgeError):
    """Config validation or load failure. Fatal at startup."""


class UpstreamError(BridgeError):
    """A Discord or IRC call failed (network, API or protocol error)."""


class NoSubscribersError(BridgeError):
    """Broadcast publish with no live receiver (IRC side not connected yet)."""


class BroadcastClosed(BridgeError):
    """The broadcast was closed; no further messages will arrive."""


class ReceiverLagged(BridgeError):
    """Receiver fell behind and `skipped` messages were dropped from its backlog."""

    def __init__(self, skipped: int) -> None:
        super().__init__(f"receiver lagged by {skipped} messages", code="lagged", details={"skipped": skipped})
        self.skipped = skipped
