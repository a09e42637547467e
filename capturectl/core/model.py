"""Core data models shared by strategies, storage, and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any


@dataclass(frozen=True)
class ServerAddress:
    ip: str
    port: int


@dataclass(frozen=True)
class ServerInfo:
    """Snapshot of a queried server's observable state.

    Unset values are ``None`` (or the field's empty default), so every field is
    always present in :meth:`to_dict`. The trailing alias fields mirror names
    used by older fixture consumers.
    """

    address: str | None = None
    queryport: int | None = None
    online: bool = False
    gamename: str | None = None
    gameversion: str | None = None
    servertitle: str | None = None
    mapname: str | None = None
    gametype: str | None = None
    numplayers: int = 0
    maxplayers: int = 0
    rules: dict[str, Any] = field(default_factory=dict)
    players: tuple[dict[str, Any], ...] = ()
    channels: tuple[Any, ...] = ()
    errstr: str | None = None
    password: bool | None = None
    name: str | None = None
    map: str | None = None
    players_current: int | None = None
    players_max: int | None = None
    version: str | None = None
    motd: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, dict):
                value = dict(value)
            data[item.name] = value
        return data


@dataclass(frozen=True)
class CaptureResult:
    raw_packets: tuple[bytes, ...]
    server_info: ServerInfo
    metadata: dict[str, Any]
