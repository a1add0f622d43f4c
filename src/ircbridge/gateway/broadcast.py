"""Guild -> IRC relay channel: bounded in-process broadcast.

Many producers (one per /write invocation), usually a single consumer (the
session's relay loop). Each receiver owns a bounded backlog; on overflow the
configured policy drops a message and the receiver sees ReceiverLagged on its
next recv() instead of the producer blocking.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Generic, TypeVar

from loguru import logger

from ircbridge.core.constants import DEFAULT_BROADCAST_CAPACITY, OVERFLOW_POLICIES, OverflowPolicy
from ircbridge.core.errors import BroadcastClosed, NoSubscribersError, ReceiverLagged
from ircbridge.events import BridgeMessage, bridge_message

T = TypeVar("T")


class Receiver(Generic[T]):
    """One subscriber's view of a Broadcast."""

    def __init__(self, broadcast: Broadcast[T], capacity: int, overflow: OverflowPolicy) -> None:
        self._broadcast = broadcast
        self._backlog: deque[T] = deque()
        self._capacity = capacity
        self._overflow = overflow
        self._lagged = 0
        self._wakeup = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._backlog)

    def _deliver(self, item: T) -> None:
        if len(self._backlog) >= self._capacity:
            self._lagged += 1
            if self._overflow == "drop_newest":
                self._wakeup.set()
                return
            self._backlog.popleft()
        self._backlog.append(item)
        self._wakeup.set()

    def _close(self) -> None:
        self._closed = True
        self._wakeup.set()

    async def recv(self) -> T:
        """Next message. Raises ReceiverLagged once after drops, BroadcastClosed when drained and closed."""
        while True:
            if self._lagged:
                skipped, self._lagged = self._lagged, 0
                raise ReceiverLagged(skipped)
            if self._backlog:
                return self._backlog.popleft()
            if self._closed:
                raise BroadcastClosed("broadcast closed", code="closed")
            self._wakeup.clear()
            await self._wakeup.wait()

    def close(self) -> None:
        """Unsubscribe; later publishes no longer reach this receiver."""
        self._broadcast._unsubscribe(self)
        self._close()


class Broadcast(Generic[T]):
    """Bounded multi-producer broadcast with explicit capacity and overflow policy."""

    def __init__(self, capacity: int = DEFAULT_BROADCAST_CAPACITY, overflow: OverflowPolicy = "drop_oldest") -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        if overflow not in OVERFLOW_POLICIES:
            raise ValueError(f"unknown overflow policy {overflow!r}")
        self._capacity = capacity
        self._overflow = overflow
        self._receivers: list[Receiver[T]] = []
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def receiver_count(self) -> int:
        return len(self._receivers)

    def subscribe(self) -> Receiver[T]:
        """New receiver that sees messages published from now on."""
        receiver = Receiver(self, self._capacity, self._overflow)
        if self._closed:
            receiver._close()
        else:
            self._receivers.append(receiver)
        return receiver

    def _unsubscribe(self, receiver: Receiver[T]) -> None:
        if receiver in self._receivers:
            self._receivers.remove(receiver)

    def publish(self, item: T) -> int:
        """Deliver to every receiver; return how many. Raises NoSubscribersError when there are none."""
        if not self._receivers:
            raise NoSubscribersError("no active receivers", code="no_subscribers")
        for receiver in self._receivers:
            receiver._deliver(item)
        logger.debug("Broadcast: published to {} receiver(s)", len(self._receivers))
        return len(self._receivers)

    def close(self) -> None:
        """Close all receivers; they drain their backlog then raise BroadcastClosed."""
        self._closed = True
        for receiver in self._receivers:
            receiver._close()
        self._receivers.clear()


def submit_bridge_message(broadcast: Broadcast[BridgeMessage], channel_id: int, body: str) -> int:
    """Queue a guild-originated line for IRC. Raises NoSubscribersError when no session is listening."""
    _, msg = bridge_message(channel_id=channel_id, body=body)
    return broadcast.publish(msg)
