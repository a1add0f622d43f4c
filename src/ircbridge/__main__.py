"""Bridge entrypoint. Loads config, starts the Discord bot; sessions start on Ready."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from ircbridge import __version__
from ircbridge.adapters.discord.adapter import DiscordAdapter
from ircbridge.config import Config, load_config, load_config_with_env
from ircbridge.core.errors import BridgeConfigurationError

# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["discord", "discord.client", "discord.gateway", "discord.http", "pydle"]


def _intercept_logging(level: str) -> None:
    """Route discord.py and pydle stdlib logs to loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                log_level: str | int = logger.level(record.levelname).name
            except ValueError:
                log_level = record.levelno
            msg = record.getMessage().replace("{", "{{").replace("}", "}}")
            logger.patch(
                lambda r: r.update(
                    name=record.name,
                    function=record.funcName,
                    line=record.lineno,
                ),
            ).opt(exception=record.exc_info).log(log_level, msg)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def _safe_message_filter(record: Any) -> bool:
    """Escape angle brackets so colorized output does not parse message text as tags."""
    if isinstance(record.get("message"), str):
        record["message"] = record["message"].replace("<", "\\<")
    return True


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru. Replace default logging.
    Level: verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise INFO."""
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"),
        filter=_safe_message_filter,
    )
    _intercept_logging(level)


def build_config(config_path: Path, irc_config_path: Path) -> Config:
    """Load both config files and validate. Raises BridgeConfigurationError."""
    data = load_config_with_env(config_path)
    irc_data = load_config(irc_config_path)
    return Config(data, irc_data).validate()


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="Discord <-> IRC bridge")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to bridge config file (default: config.yaml)",
    )
    parser.add_argument(
        "--irc-config",
        type=Path,
        default=Path("irc-config.yaml"),
        help="Path to IRC connection config file (default: irc-config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)
    logger.info("Starting up Discord <-> IRC bridge...")

    try:
        config = build_config(args.config, args.irc_config)
    except BridgeConfigurationError as exc:
        logger.error("Invalid configuration ({}): {}", exc.code, exc)
        sys.exit(1)
    logger.info("Config loaded from {} and {}", args.config, args.irc_config)

    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        logger.opt(exception=exc).error("{}", exc)
    logger.info("Shutting down Discord <-> IRC bridge...")


async def _run(config: Config) -> None:
    """Start the Discord adapter and wait until the bot stops."""
    adapter = DiscordAdapter(config)
    await adapter.start()
    try:
        await adapter.wait_closed()
    finally:
        logger.info("Stopping {} adapter", adapter.name)
        await adapter.stop()


if __name__ == "__main__":
    main()
