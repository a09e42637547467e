"""JSON fixture storage keyed by protocol, version, and server address."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from capturectl.core.codec import decode_packets, encode_packets, schema_validator, server_info_from_dict
from capturectl.core.errors import FixtureDecodeError
from capturectl.core.model import CaptureResult

LOGGER = logging.getLogger(__name__)


class FixtureStorage(Protocol):
    def save(self, protocol: str, version: str, ip: str, port: int, result: CaptureResult) -> str:
        """Persist ``result`` and return the path it was written to."""

    def load(self, protocol: str, version: str, ip: str, port: int) -> CaptureResult | None:
        """Return the stored result, or ``None`` when absent or unreadable."""

    def list_all(self) -> list[dict[str, Any]]:
        """Return every decodable fixture record."""


class JsonFixtureStorage:
    """Fixture files laid out as ``<root>/<protocol>/<version>/capture_<ip>_<port>.json``.

    Writes are last-writer-wins with no locking. Reads are tolerant: a missing
    or corrupt file behaves as if no fixture were stored.
    """

    def __init__(self, fixtures_dir: str | Path) -> None:
        self.fixtures_dir = Path(fixtures_dir)

    def path_for(self, protocol: str, version: str, ip: str, port: int) -> Path:
        filename = f"capture_{ip.replace('.', '_')}_{port}.json"
        return self.fixtures_dir / protocol.lower() / version / filename

    def save(self, protocol: str, version: str, ip: str, port: int, result: CaptureResult) -> str:
        path = self.path_for(protocol, version, ip, port)
        path.parent.mkdir(parents=True, exist_ok=True)
        record = {
            "metadata": result.metadata,
            "packets": encode_packets(result.raw_packets),
            "server_info": result.server_info.to_dict(),
        }
        path.write_text(json.dumps(record, indent=4) + "\n", encoding="utf-8")
        LOGGER.debug("Saved fixture %s", path)
        return str(path)

    def load(self, protocol: str, version: str, ip: str, port: int) -> CaptureResult | None:
        path = self.path_for(protocol, version, ip, port)
        if not path.is_file():
            return None
        try:
            return _decode_record(_read_json(path))
        except FixtureDecodeError as exc:
            LOGGER.debug("Ignoring unreadable fixture %s: %s", path, exc)
            return None

    def list_all(self) -> list[dict[str, Any]]:
        captures: list[dict[str, Any]] = []
        if not self.fixtures_dir.is_dir():
            return captures
        for path in sorted(self.fixtures_dir.glob("*/*/*.json")):
            if not path.is_file():
                continue
            try:
                data = _read_json(path)
            except FixtureDecodeError as exc:
                LOGGER.debug("Skipping unreadable fixture %s: %s", path, exc)
                continue
            if isinstance(data, dict):
                captures.append(data)
        return captures


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FixtureDecodeError(f"Could not decode {path}: {exc}") from exc


def _decode_record(data: Any) -> CaptureResult:
    validator = schema_validator("fixture.schema.json")
    if not validator.is_valid(data):
        raise FixtureDecodeError("Fixture record does not match the expected shape")
    return CaptureResult(
        raw_packets=decode_packets(data["packets"]),
        server_info=server_info_from_dict(data["server_info"]),
        metadata=dict(data["metadata"]),
    )
