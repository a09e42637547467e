"""Protocol handler that answers queries from stored fixtures."""

from __future__ import annotations

from capturectl.core.model import ServerAddress, ServerInfo
from capturectl.core.storage import FixtureStorage
from capturectl.protocols.base import BaseProtocolHandler


class FixtureReplayHandler(BaseProtocolHandler):
    """Serve the ServerInfo stored for ``(protocol, version, ip, port)``.

    Lets tests run capture flows without network access. A missing fixture
    produces an offline snapshot carrying an error string.
    """

    def __init__(
        self,
        storage: FixtureStorage,
        protocol: str,
        version: str,
        *,
        timeout_s: float = 5.0,
    ) -> None:
        super().__init__(timeout_s=timeout_s)
        self.storage = storage
        self.protocol_name = protocol
        self.version = version

    def query(self, address: ServerAddress) -> ServerInfo:
        result = self.storage.load(self.protocol_name, self.version, address.ip, address.port)
        if result is None:
            self.debug.append(f"no fixture for {self.protocol_name}/{self.version} {address.ip}:{address.port}")
            return ServerInfo(
                address=address.ip,
                queryport=address.port,
                online=False,
                errstr="No fixture stored for this server",
            )
        self.debug.append(f"replayed {len(result.raw_packets)} packet(s) for {address.ip}:{address.port}")
        return result.server_info

    def get_version(self, info: ServerInfo) -> str:
        return self.version
