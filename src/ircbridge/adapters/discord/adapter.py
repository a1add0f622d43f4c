"""Discord adapter: bot lifecycle, /write command, one bridge session per Ready."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Any

import discord
from discord import Intents, Interaction, app_commands
from discord.ext import commands
from loguru import logger

from ircbridge.adapters.base import AdapterBase
from ircbridge.adapters.discord.client import DiscordGuildClient, GuildClient
from ircbridge.adapters.irc.client import IRCClient
from ircbridge.config import Config
from ircbridge.core.errors import NoSubscribersError
from ircbridge.events import BridgeMessage, GuildEvent, InteractionSubmitted, Ready, SessionEnded, session_ended
from ircbridge.gateway.broadcast import Broadcast, submit_bridge_message
from ircbridge.gateway.session import BridgeSession, IrcSession, supervise

WRITE_COMMAND = "write"


class DiscordAdapter(AdapterBase):
    """Owns the discord.py bot and the current bridge session.

    A Ready event (first connect or gateway reconnect) tears down any running
    session and starts a fresh one.
    """

    def __init__(
        self,
        config: Config,
        *,
        broadcast: Broadcast[BridgeMessage] | None = None,
        irc_factory: Callable[[], IrcSession] | None = None,
        guild_client_factory: Callable[[discord.Client], GuildClient] = DiscordGuildClient,
    ) -> None:
        self._config = config
        self._broadcast: Broadcast[BridgeMessage] = broadcast or Broadcast(
            capacity=config.broadcast_capacity,
            overflow=config.broadcast_overflow,
        )
        self._irc_factory = irc_factory or (lambda: IRCClient(config.irc))
        self._guild_client_factory = guild_client_factory
        self._bot: commands.Bot | None = None
        self._bot_task: asyncio.Task | None = None
        self._session_task: asyncio.Task | None = None
        self.last_session: SessionEnded | None = None
        self._handlers: dict[type, Callable[[Any], Awaitable[None]]] = {
            Ready: self._on_ready,
            InteractionSubmitted: self._on_interaction_submitted,
        }

    @property
    def name(self) -> str:
        return "discord"

    @property
    def broadcast(self) -> Broadcast[BridgeMessage]:
        return self._broadcast

    async def dispatch(self, evt: GuildEvent) -> None:
        """Route a guild event to its handler."""
        handler = self._handlers.get(type(evt))
        if handler is not None:
            await handler(evt)

    async def _on_ready(self, evt: Ready) -> None:
        logger.info("Discord connection ready")
        await self._restart_session(evt.guild_id)
        await self._register_commands(evt.guild_id)

    async def _on_interaction_submitted(self, evt: InteractionSubmitted) -> None:
        """Log the invocation only; discord.py's command tree runs `/write` via `handle_write`."""
        logger.debug("Interaction /{} in channel {}", evt.command, evt.channel_id)

    async def _register_commands(self, guild_id: int) -> None:
        if not self._bot:
            return
        try:
            synced = await self._bot.tree.sync(guild=discord.Object(id=guild_id))
            logger.info("Registered {} command(s) in guild {}", len(synced), guild_id)
        except discord.HTTPException as exc:
            logger.error("Failed to register commands in guild {}: {}", guild_id, exc)

    async def _restart_session(self, guild_id: int) -> None:
        await self._cancel_session()
        if not self._bot:
            return
        session = BridgeSession(
            self._guild_client_factory(self._bot),
            guild_id,
            self._irc_factory,
            self._broadcast.subscribe(),
            error_policy=self._config.relay_error_policy,
            identify_timeout=self._config.irc_identify_timeout,
        )
        self._session_task = asyncio.create_task(supervise(session))
        self._session_task.add_done_callback(self._on_session_done)

    async def _cancel_session(self) -> None:
        task = self._session_task
        self._session_task = None
        if task and not task.done():
            logger.info("Tearing down previous bridge session")
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _on_session_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            _, evt = session_ended("cancelled")
        else:
            evt = task.result()
        self.last_session = evt
        logger.bind(outcome=evt.outcome).info(
            "Bridge session ended: {}{}",
            evt.outcome,
            f" ({evt.error})" if evt.error else "",
        )

    async def handle_write(self, interaction: Interaction, msg: str) -> None:
        """Echo `msg` into the invoking channel, then queue it for IRC."""
        await interaction.response.send_message(msg)
        try:
            submit_bridge_message(self._broadcast, interaction.channel_id, msg)
        except NoSubscribersError as exc:
            logger.warning("/write from channel {} not relayed: {}", interaction.channel_id, exc)
            await interaction.followup.send(
                "Could not relay to IRC: the IRC side is not connected.",
                ephemeral=True,
            )

    async def _on_command_error(self, interaction: Interaction, error: app_commands.AppCommandError) -> None:
        logger.error("/{} failed: {}", getattr(interaction.command, "name", "?"), error)
        text = f"Command failed: {error}"
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=True)
        else:
            await interaction.response.send_message(text, ephemeral=True)

    def _build_bot(self) -> commands.Bot:
        intents = Intents.none()
        intents.guilds = True
        intents.webhooks = True

        bot = commands.Bot(command_prefix=commands.when_mentioned, intents=intents)
        guild = discord.Object(id=self._config.guild_id)

        @bot.tree.command(name=WRITE_COMMAND, description="Send a message to the bridged IRC channel", guild=guild)
        @app_commands.describe(msg="Message")
        async def write(interaction: Interaction, msg: str) -> None:
            await self.handle_write(interaction, msg)

        bot.tree.error(self._on_command_error)

        @bot.event
        async def on_ready() -> None:
            await self.dispatch(Ready(guild_id=self._config.guild_id))

        @bot.event
        async def on_interaction(interaction: Interaction) -> None:
            if interaction.type is discord.InteractionType.application_command:
                data = interaction.data or {}
                await self.dispatch(
                    InteractionSubmitted(
                        command=str(data.get("name", "")),
                        channel_id=int(interaction.channel_id or 0),
                        options={o.get("name"): o.get("value") for o in data.get("options", [])},
                    )
                )

        return bot

    async def start(self) -> None:
        """Build the bot and start it in the background."""
        self._bot = self._build_bot()
        self._bot_task = asyncio.create_task(self._bot.start(self._config.token))

    async def wait_closed(self) -> None:
        """Block until the bot task finishes (logout, fatal gateway error)."""
        if self._bot_task:
            await self._bot_task

    async def stop(self) -> None:
        """Stop the session, the bot and the broadcast."""
        await self._cancel_session()
        if self._bot:
            await self._bot.close()
        if self._bot_task:
            self._bot_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._bot_task
        self._broadcast.close()
        self._bot = None
        self._bot_task = None
