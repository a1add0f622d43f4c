"""Tests for the relay loop: routing in both directions, topics, multiplexing, error policy."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from ircbridge.core.errors import UpstreamError
from ircbridge.events import BridgeMessage, IrcChatLine, IrcOther, IrcTopicChange
from ircbridge.gateway.broadcast import Broadcast
from ircbridge.gateway.relay import Relay
from ircbridge.gateway.router import ChannelMapping
from ircbridge.identity import avatar_url
from tests.mocks import FakeGuildClient, FakeIrc


async def _until(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    async def poll() -> None:
        while not condition():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


@pytest.fixture
def client() -> FakeGuildClient:
    return FakeGuildClient()


@pytest.fixture
def irc() -> FakeIrc:
    return FakeIrc()


@pytest.fixture
def relay(client: FakeGuildClient, irc: FakeIrc) -> Relay:
    mapping = ChannelMapping([(100, "general"), (200, "random")])
    webhooks = {"general": "hook-general", "random": "hook-random"}
    return Relay(client, irc, mapping, webhooks)


# ---------------------------------------------------------------------------
# IRC -> Discord
# ---------------------------------------------------------------------------


class TestChatLine:
    @pytest.mark.asyncio
    async def test_mapped_channel_posts_once(self, relay: Relay, client: FakeGuildClient) -> None:
        await relay.handle_irc_event(IrcChatLine("#general", "alice", "hello world"))

        assert client.posts == [
            {
                "webhook": "hook-general",
                "username": "alice",
                "content": "hello world",
                "avatar_url": avatar_url("alice"),
            }
        ]

    @pytest.mark.asyncio
    async def test_unmapped_channel_is_dropped(self, relay: Relay, client: FakeGuildClient) -> None:
        await relay.handle_irc_event(IrcChatLine("#offtopic", "alice", "hi"))

        assert client.posts == []
        assert client.topics == []

    @pytest.mark.asyncio
    async def test_content_is_verbatim(self, relay: Relay, client: FakeGuildClient) -> None:
        body = "  **not markdown-escaped** @everyone <#1> \x02bold\x02  "
        await relay.handle_irc_event(IrcChatLine("#random", "bob", body))

        assert client.posts[0]["content"] == body
        assert client.posts[0]["webhook"] == "hook-random"

    @pytest.mark.asyncio
    async def test_missing_nick_posts_as_null(self, relay: Relay, client: FakeGuildClient) -> None:
        await relay.handle_irc_event(IrcChatLine("#general", None, "anon"))

        assert client.posts[0]["username"] == "null"


class TestTopicChange:
    @pytest.mark.asyncio
    async def test_topic_is_set_on_mapped_channel(self, relay: Relay, client: FakeGuildClient) -> None:
        await relay.handle_irc_event(IrcTopicChange("#random", "new topic"))

        assert client.topics == [(200, "new topic")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("topic", [None, ""])
    async def test_cleared_topic_sets_empty_string(
        self, relay: Relay, client: FakeGuildClient, topic: str | None
    ) -> None:
        await relay.handle_irc_event(IrcTopicChange("#general", topic))

        assert client.topics == [(100, "")]

    @pytest.mark.asyncio
    async def test_unmapped_channel_topic_ignored(self, relay: Relay, client: FakeGuildClient) -> None:
        await relay.handle_irc_event(IrcTopicChange("#offtopic", "x"))

        assert client.topics == []


@pytest.mark.asyncio
async def test_other_commands_are_ignored(relay: Relay, client: FakeGuildClient, irc: FakeIrc) -> None:
    await relay.handle_irc_event(IrcOther("JOIN"))

    assert client.posts == []
    assert client.topics == []
    assert irc.sent == []


# ---------------------------------------------------------------------------
# Discord -> IRC
# ---------------------------------------------------------------------------


class TestBridgeMessage:
    @pytest.mark.asyncio
    async def test_mapped_channel_sends_to_prefixed_irc_channel(self, relay: Relay, irc: FakeIrc) -> None:
        await relay.handle_bridge_message(BridgeMessage(channel_id=100, body="hi from discord"))

        assert irc.sent == [("#general", "hi from discord")]

    @pytest.mark.asyncio
    async def test_unmapped_channel_sends_nothing(self, relay: Relay, irc: FakeIrc) -> None:
        await relay.handle_bridge_message(BridgeMessage(channel_id=999, body="outside"))

        assert irc.sent == []


# ---------------------------------------------------------------------------
# run(): multiplexing and termination
# ---------------------------------------------------------------------------


class TestRun:
    @pytest.mark.asyncio
    async def test_relays_both_directions_until_stream_ends(
        self, relay: Relay, client: FakeGuildClient, irc: FakeIrc
    ) -> None:
        bc: Broadcast[BridgeMessage] = Broadcast()
        rx = bc.subscribe()
        task = asyncio.create_task(relay.run(irc.events(), rx))

        irc.feed(IrcChatLine("#general", "alice", "one"))
        await _until(lambda: len(client.posts) == 1)
        bc.publish(BridgeMessage(100, "two"))
        await _until(lambda: len(irc.sent) == 1)
        irc.feed(IrcTopicChange("#random", "three"))
        await _until(lambda: len(client.topics) == 1)

        irc.end()
        await asyncio.wait_for(task, 1)

        assert client.posts[0]["content"] == "one"
        assert irc.sent == [("#general", "two")]
        assert client.topics == [(200, "three")]

    @pytest.mark.asyncio
    async def test_guild_message_not_blocked_by_idle_irc(self, relay: Relay, irc: FakeIrc) -> None:
        bc: Broadcast[BridgeMessage] = Broadcast()
        rx = bc.subscribe()
        task = asyncio.create_task(relay.run(irc.events(), rx))

        bc.publish(BridgeMessage(200, "while irc is quiet"))
        await _until(lambda: len(irc.sent) == 1)

        assert irc.sent == [("#random", "while irc is quiet")]
        irc.end()
        await asyncio.wait_for(task, 1)

    @pytest.mark.asyncio
    async def test_lag_is_survived(self, client: FakeGuildClient, irc: FakeIrc) -> None:
        relay = Relay(client, irc, ChannelMapping([(100, "general")]), {})
        bc: Broadcast[BridgeMessage] = Broadcast(capacity=1)
        rx = bc.subscribe()
        bc.publish(BridgeMessage(100, "dropped"))
        bc.publish(BridgeMessage(100, "kept"))

        task = asyncio.create_task(relay.run(irc.events(), rx))
        await _until(lambda: len(irc.sent) == 1)
        irc.end()
        await asyncio.wait_for(task, 1)

        assert irc.sent == [("#general", "kept")]

    @pytest.mark.asyncio
    async def test_closed_broadcast_keeps_irc_side_running(
        self, relay: Relay, client: FakeGuildClient, irc: FakeIrc
    ) -> None:
        bc: Broadcast[BridgeMessage] = Broadcast()
        rx = bc.subscribe()
        task = asyncio.create_task(relay.run(irc.events(), rx))

        bc.close()
        irc.feed(IrcChatLine("#general", "alice", "still here"))
        await _until(lambda: len(client.posts) == 1)
        irc.end()
        await asyncio.wait_for(task, 1)

    @pytest.mark.asyncio
    async def test_stream_error_propagates(self, relay: Relay) -> None:
        async def broken():
            yield IrcOther("PING")
            raise ConnectionResetError("gone")

        with pytest.raises(ConnectionResetError):
            await asyncio.wait_for(relay.run(broken(), None), 1)


class TestErrorPolicy:
    @pytest.mark.asyncio
    async def test_isolate_continues_after_failed_post(self, client: FakeGuildClient, irc: FakeIrc) -> None:
        relay = Relay(client, irc, ChannelMapping([(100, "general")]), {"general": "hook"}, error_policy="isolate")
        client.fail_on.add("post_via_webhook")
        irc.feed(IrcChatLine("#general", "alice", "fails"), IrcTopicChange("#general", "works"))
        irc.end()

        await asyncio.wait_for(relay.run(irc.events(), None), 1)

        assert client.posts == []
        assert client.topics == [(100, "works")]

    @pytest.mark.asyncio
    async def test_terminate_ends_loop_on_failed_post(self, client: FakeGuildClient, irc: FakeIrc) -> None:
        relay = Relay(
            client, irc, ChannelMapping([(100, "general")]), {"general": "hook"}, error_policy="terminate"
        )
        client.fail_on.add("post_via_webhook")
        irc.feed(IrcChatLine("#general", "alice", "fails"), IrcTopicChange("#general", "never"))

        with pytest.raises(UpstreamError):
            await asyncio.wait_for(relay.run(irc.events(), None), 1)
        assert client.topics == []

    @pytest.mark.asyncio
    async def test_isolate_continues_after_failed_irc_send(self, client: FakeGuildClient) -> None:
        irc = FakeIrc(fail_send=True)
        relay = Relay(client, irc, ChannelMapping([(100, "general")]), {"general": "hook"})
        bc: Broadcast[BridgeMessage] = Broadcast()
        rx = bc.subscribe()
        task = asyncio.create_task(relay.run(irc.events(), rx))

        bc.publish(BridgeMessage(100, "lost"))
        await asyncio.sleep(0.01)
        irc.fail_send = False
        bc.publish(BridgeMessage(100, "delivered"))
        await _until(lambda: len(irc.sent) == 1)
        irc.end()
        await asyncio.wait_for(task, 1)

        assert irc.sent == [("#general", "delivered")]
