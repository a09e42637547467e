"""Protocol handler interfaces."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from capturectl.core.model import ServerAddress, ServerInfo


@runtime_checkable
class ProtocolHandler(Protocol):
    def query(self, address: ServerAddress) -> ServerInfo:
        """Query a server and return its current snapshot."""

    def get_protocol_name(self) -> str:
        """Return the protocol name used as the fixture key."""

    def get_version(self, info: ServerInfo) -> str:
        """Return the raw version string for a snapshot."""


HandlerFactory = Callable[[], ProtocolHandler]


class BaseProtocolHandler:
    """Convenience base for handlers run by the capture worker.

    Subclasses implement :meth:`query`, :meth:`get_protocol_name` and
    :meth:`get_version`. The worker additionally uses :meth:`set_timeout`,
    :meth:`query_players` and :meth:`drain_debug` when a handler has them.
    """

    protocol_name = "unknown"

    def __init__(self, *, timeout_s: float = 5.0) -> None:
        self.timeout_s = timeout_s
        self.debug: list[str] = []

    def query(self, address: ServerAddress) -> ServerInfo:
        raise NotImplementedError

    def get_protocol_name(self) -> str:
        return self.protocol_name

    def get_version(self, info: ServerInfo) -> str:
        return info.gameversion or info.version or "unknown"

    def set_timeout(self, seconds: float) -> None:
        self.timeout_s = seconds

    def query_players(self, address: ServerAddress) -> Sequence[dict[str, Any]]:
        """Players-only query; handlers with a cheaper request override this."""
        return self.query(address).players

    def drain_debug(self) -> list[str]:
        entries, self.debug = self.debug, []
        return entries
