"""Bounded query-with-retry cycle executed inside a capture worker process."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import replace
from multiprocessing.connection import Connection
from typing import Any

from capturectl.core.errors import UnknownProtocolError
from capturectl.core.model import ServerAddress
from capturectl.protocols.base import HandlerFactory, ProtocolHandler

SNAPSHOT_FIELDS = (
    "address",
    "queryport",
    "online",
    "gamename",
    "gameversion",
    "servertitle",
    "mapname",
    "gametype",
    "numplayers",
    "maxplayers",
    "rules",
    "players",
    "errstr",
)


class CaptureWorker:
    """Run one query plus bounded players-only retries against a handler.

    The worker never bounds its own lifetime; the parent process owns the
    deadline. Transport failures raised by the handler are not retried.
    """

    def __init__(
        self,
        protocols: Mapping[str, HandlerFactory],
        *,
        timeout: float = 5.0,
        max_retries: int = 2,
        backoff_s: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.protocols = protocols
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_s = backoff_s
        self._sleep = sleep

    def query(self, protocol_name: str, ip: str, port: int) -> dict[str, Any]:
        factory = self.protocols.get(protocol_name)
        if factory is None:
            raise UnknownProtocolError(protocol_name)
        handler = factory()

        set_timeout = getattr(handler, "set_timeout", None)
        if callable(set_timeout):
            set_timeout(self.timeout)

        address = ServerAddress(ip=ip, port=port)
        debug: list[Any] = []

        info = handler.query(address)
        debug.extend(_drain_debug(handler))

        if not info.players:
            # Static info and rules come from the full query; the last players-only
            # attempt supplies the player list.
            first = info
            for _ in range(self.max_retries):
                self._sleep(self.backoff_s)
                players = tuple(_query_players(handler, address))
                info = replace(first, players=players, numplayers=max(first.numplayers, len(players)))
                debug.extend(_drain_debug(handler))

        snapshot = info.to_dict()
        return {
            "debug": debug,
            "server_info": {name: snapshot[name] for name in SNAPSHOT_FIELDS},
        }


def run_worker(
    conn: Connection,
    worker: CaptureWorker,
    protocol_name: str,
    ip: str,
    port: int,
) -> None:
    """Process entry point: send ``("ok", payload)`` or ``("error", type, message)``."""
    try:
        try:
            payload = worker.query(protocol_name, ip, port)
        except Exception as exc:
            conn.send(("error", type(exc).__name__, str(exc)))
        else:
            conn.send(("ok", payload))
    finally:
        conn.close()


def _query_players(handler: ProtocolHandler, address: ServerAddress) -> Any:
    query_players = getattr(handler, "query_players", None)
    if callable(query_players):
        return query_players(address)
    return handler.query(address).players


def _drain_debug(handler: ProtocolHandler) -> list[Any]:
    drain = getattr(handler, "drain_debug", None)
    if callable(drain):
        return list(drain())
    return []

