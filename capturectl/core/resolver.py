"""Protocol name to handler resolution."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from capturectl.core.errors import UnknownProtocolError
from capturectl.protocols.base import HandlerFactory, ProtocolHandler

AUTO_PROTOCOL = "auto"
DEFAULT_PROTOCOL = "source"
LOGGER = logging.getLogger(__name__)


class ProtocolResolver:
    """Look up handler factories in a registry supplied by the caller.

    ``"auto"`` does not sniff traffic: it always resolves to
    ``default_protocol``.
    """

    def __init__(
        self,
        protocols: Mapping[str, HandlerFactory],
        *,
        default_protocol: str = DEFAULT_PROTOCOL,
    ) -> None:
        self._protocols = dict(protocols)
        self.default_protocol = default_protocol

    def protocol_names(self) -> list[str]:
        return sorted(self._protocols)

    def resolve(self, protocol_name: str, ip: str, port: int) -> ProtocolHandler:
        if protocol_name == AUTO_PROTOCOL:
            protocol_name = self._detect_protocol(ip, port)

        factory = self._protocols.get(protocol_name)
        if factory is None:
            raise UnknownProtocolError(protocol_name)
        if not callable(factory):
            raise UnknownProtocolError(protocol_name, "registry entry is not callable")

        handler = factory()
        if not isinstance(handler, ProtocolHandler):
            raise UnknownProtocolError(
                protocol_name,
                f"{type(handler).__name__} does not implement query/get_protocol_name/get_version",
            )
        LOGGER.debug("Resolved protocol '%s' to %s", protocol_name, type(handler).__name__)
        return handler

    def _detect_protocol(self, ip: str, port: int) -> str:
        return self.default_protocol
