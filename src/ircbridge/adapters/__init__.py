"""Protocol adapters. Each implements base.AdapterBase."""

from ircbridge.adapters.base import AdapterBase

__all__ = ["AdapterBase"]
