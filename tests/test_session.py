"""Tests for BridgeSession and its supervisor."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from ircbridge.core.errors import BroadcastClosed, UpstreamError
from ircbridge.events import BridgeMessage, IrcChatLine
from ircbridge.gateway.broadcast import Broadcast
from ircbridge.gateway.session import BridgeSession, supervise
from ircbridge.identity import avatar_url
from tests.mocks import FakeGuildClient, FakeIrc, category, text_channel

GUILD_ID = 42


async def _until(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    async def poll() -> None:
        while not condition():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


def _guild() -> FakeGuildClient:
    return FakeGuildClient([category(10), text_channel(100, "general", parent_id=10)])


def _session(client: FakeGuildClient, irc: FakeIrc, bc: Broadcast[BridgeMessage], **kwargs) -> BridgeSession:
    return BridgeSession(client, GUILD_ID, lambda: irc, bc.subscribe(), **kwargs)


@pytest.mark.asyncio
async def test_end_to_end_irc_to_discord_and_back() -> None:
    client = _guild()
    irc = FakeIrc()
    bc: Broadcast[BridgeMessage] = Broadcast()
    task = asyncio.create_task(supervise(_session(client, irc, bc)))

    await _until(lambda: irc.opened)
    assert client.created == [(100, "irc")]

    irc.feed(IrcChatLine("#general", "alice", "hello world"))
    await _until(lambda: len(client.posts) == 1)
    bc.publish(BridgeMessage(100, "hi alice"))
    await _until(lambda: len(irc.sent) == 1)
    irc.end()
    result = await asyncio.wait_for(task, 1)

    post = client.posts[0]
    assert post["username"] == "alice"
    assert post["content"] == "hello world"
    assert post["avatar_url"] == avatar_url("alice")
    assert irc.sent == [("#general", "hi alice")]
    assert result.outcome == "exited"
    assert result.error is None
    assert irc.disconnected


@pytest.mark.asyncio
async def test_existing_webhook_is_reused() -> None:
    client = _guild()
    await client.create_webhook(100, "irc")
    client.created.clear()
    irc = FakeIrc()
    irc.end()

    result = await supervise(_session(client, irc, Broadcast()))

    assert result.outcome == "exited"
    assert client.created == []


@pytest.mark.asyncio
async def test_startup_failure_is_errored_and_irc_never_opened() -> None:
    client = _guild()
    client.fail_on.add("list_channels")
    irc = FakeIrc()

    result = await supervise(_session(client, irc, Broadcast()))

    assert result.outcome == "errored"
    assert isinstance(result.error, UpstreamError)
    assert not irc.opened


@pytest.mark.asyncio
async def test_identify_failure_is_errored_and_disconnects() -> None:
    irc = FakeIrc(fail_open=True)

    result = await supervise(_session(_guild(), irc, Broadcast()))

    assert result.outcome == "errored"
    assert result.error.code == "irc_identify"
    assert irc.disconnected


@pytest.mark.asyncio
async def test_receiver_closed_when_session_ends() -> None:
    bc: Broadcast[BridgeMessage] = Broadcast()
    irc = FakeIrc()
    irc.end()
    session = _session(_guild(), irc, bc)

    await supervise(session)

    assert bc.receiver_count == 0
    with pytest.raises(BroadcastClosed):
        await session._receiver.recv()


@pytest.mark.asyncio
async def test_terminate_policy_ends_session_as_errored() -> None:
    client = _guild()
    client.fail_on.add("post_via_webhook")
    irc = FakeIrc()
    irc.feed(IrcChatLine("#general", "alice", "boom"))

    result = await asyncio.wait_for(
        supervise(_session(client, irc, Broadcast(), error_policy="terminate")),
        1,
    )

    assert result.outcome == "errored"
    assert isinstance(result.error, UpstreamError)


@pytest.mark.asyncio
async def test_cancellation_propagates() -> None:
    irc = FakeIrc()
    task = asyncio.create_task(supervise(_session(_guild(), irc, Broadcast())))
    await _until(lambda: irc.opened)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert irc.disconnected


@pytest.mark.asyncio
async def test_no_category_still_connects_irc() -> None:
    client = FakeGuildClient([text_channel(100, "general")])
    irc = FakeIrc()
    irc.feed(IrcChatLine("#general", "alice", "nowhere to go"))
    irc.end()

    result = await supervise(_session(client, irc, Broadcast()))

    assert result.outcome == "exited"
    assert irc.opened
    assert client.posts == []
