"""Protocol constants."""

from __future__ import annotations

from typing import Literal

# Guild category whose children are bridged
BRIDGE_CATEGORY_NAME = "irc"
# Name that marks a channel webhook as ours
WEBHOOK_NAME = "irc"
# Username used when an IRC line has no source nick
UNKNOWN_NICK = "null"
AVATAR_URL_TEMPLATE = "https://singlecolorimage.com/get/{color:06x}/1x1"

OverflowPolicy = Literal["drop_oldest", "drop_newest"]
OVERFLOW_POLICIES: tuple[OverflowPolicy, ...] = ("drop_oldest", "drop_newest")
DEFAULT_BROADCAST_CAPACITY = 64

ErrorPolicy = Literal["isolate", "terminate"]
ERROR_POLICIES: tuple[ErrorPolicy, ...] = ("isolate", "terminate")

DEFAULT_IRC_PORT = 6667
DEFAULT_IDENTIFY_TIMEOUT = 30.0
