"""Stable public API for building tooling on top of capturectl.

This module is the supported integration surface for third-party callers such
as test suites that replay fixtures. Avoid importing from ``capturectl.core``
unless intentionally depending on non-stable internals.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from capturectl.core.config import CaptureConfig, load_config
from capturectl.core.errors import (
    CapturectlError,
    ConfigLoadError,
    ConfigValidationError,
    HandlerQueryError,
    UnknownProtocolError,
    WorkerCrashError,
    WorkerError,
    WorkerTimeoutError,
)
from capturectl.core.model import CaptureResult, ServerAddress, ServerInfo
from capturectl.core.normalize import normalize_version
from capturectl.core.service import CaptureService, build_capture_service
from capturectl.core.storage import JsonFixtureStorage
from capturectl.protocols.base import BaseProtocolHandler, HandlerFactory, ProtocolHandler
from capturectl.protocols.replay import FixtureReplayHandler

__all__ = [
    "CapturectlError",
    "ConfigLoadError",
    "ConfigValidationError",
    "HandlerQueryError",
    "UnknownProtocolError",
    "WorkerCrashError",
    "WorkerError",
    "WorkerTimeoutError",
    "CaptureConfig",
    "CaptureResult",
    "ServerAddress",
    "ServerInfo",
    "BaseProtocolHandler",
    "FixtureReplayHandler",
    "ProtocolHandler",
    "normalize_version",
    "Client",
]


class Client:
    """Public client wrapping configuration, capture, and fixture lookup.

    ``protocols`` overrides the registry from configuration, which is handy
    for tests that register stub handlers directly.
    """

    def __init__(
        self,
        *,
        config: CaptureConfig | None = None,
        config_path: str | Path | None = None,
        protocols: Mapping[str, HandlerFactory] | None = None,
        use_worker: bool | None = None,
    ) -> None:
        self.config = config or load_config(config_path)
        self._service: CaptureService = build_capture_service(
            self.config,
            protocols=protocols,
            use_worker=use_worker,
        )
        self._storage = JsonFixtureStorage(self.config.fixtures_dir)

    @property
    def warnings(self) -> tuple[str, ...]:
        return self.config.warnings

    def list_protocols(self) -> list[str]:
        return self._service.resolver.protocol_names()

    def capture(
        self,
        ip: str,
        port: int,
        protocol_name: str = "auto",
        options: Mapping[str, Any] | None = None,
    ) -> str:
        return self._service.capture(ip, port, protocol_name, options)

    def load_fixture(self, protocol: str, version: str, ip: str, port: int) -> CaptureResult | None:
        return self._storage.load(protocol, normalize_version(version), ip, port)

    def list_fixtures(self, protocol: str | None = None) -> list[dict[str, Any]]:
        return filter_by_protocol(self._storage.list_all(), protocol)


def filter_by_protocol(captures: list[dict[str, Any]], protocol: str | None) -> list[dict[str, Any]]:
    if not protocol:
        return captures
    wanted = protocol.lower()
    selected: list[dict[str, Any]] = []
    for capture in captures:
        metadata = capture.get("metadata")
        proto = metadata.get("protocol") if isinstance(metadata, dict) else None
        if isinstance(proto, str) and proto.lower() == wanted:
            selected.append(capture)
    return selected
