"""Event types: closed unions for IRC inbound, guild lifecycle and session results."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Literal


@dataclass(frozen=True)
class BridgeMessage:
    """Guild-originated chat line waiting to be relayed to IRC."""

    channel_id: int
    body: str


@dataclass(frozen=True)
class IrcChatLine:
    """PRIVMSG to a channel. `channel` keeps its leading '#'."""

    channel: str
    nick: str | None
    body: str


@dataclass(frozen=True)
class IrcTopicChange:
    """TOPIC change. `topic` is None or empty when the topic was cleared."""

    channel: str
    topic: str | None


@dataclass(frozen=True)
class IrcOther:
    """Any other IRC command; ignored by the relay."""

    command: str


InboundIrcEvent = IrcChatLine | IrcTopicChange | IrcOther


@dataclass(frozen=True)
class Ready:
    """Guild connection is ready (fires again after a gateway reconnect)."""

    guild_id: int


@dataclass(frozen=True)
class InteractionSubmitted:
    """Slash command invocation received from the guild."""

    command: str
    channel_id: int
    options: dict[str, Any]


GuildEvent = Ready | InteractionSubmitted

SessionOutcome = Literal["exited", "errored", "cancelled"]


@dataclass(frozen=True)
class SessionEnded:
    """Terminal result of one bridge session."""

    outcome: SessionOutcome
    error: BaseException | None = None


def event(type_name: str):
    """Decorator to mark a factory as producing an event with a given type."""

    def decorator(f: Any) -> Any:
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> tuple[str, object]:
            evt = f(*args, **kwargs)
            return (type_name, evt)

        wrapper.TYPE = type_name
        return wrapper

    return decorator


@event("bridge_message")
def bridge_message(channel_id: int, body: str) -> BridgeMessage:
    return BridgeMessage(channel_id=int(channel_id), body=body)


@event("irc_chat_line")
def irc_chat_line(channel: str, nick: str | None, body: str) -> IrcChatLine:
    return IrcChatLine(channel=channel, nick=nick, body=body)


@event("irc_topic_change")
def irc_topic_change(channel: str, topic: str | None) -> IrcTopicChange:
    return IrcTopicChange(channel=channel, topic=topic)


@event("irc_other")
def irc_other(command: str) -> IrcOther:
    return IrcOther(command=command)


@event("session_ended")
def session_ended(outcome: SessionOutcome, error: BaseException | None = None) -> SessionEnded:
    return SessionEnded(outcome=outcome, error=error)
