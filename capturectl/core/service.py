"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from capturectl.core.config import CaptureConfig, load_protocol_factories
from capturectl.core.model import ServerAddress
from capturectl.core.normalize import normalize_version
from capturectl.core.resolver import AUTO_PROTOCOL, ProtocolResolver
from capturectl.core.storage import FixtureStorage, JsonFixtureStorage
from capturectl.core.strategy import CaptureStrategy, DirectCaptureStrategy, WorkerCaptureStrategy
from capturectl.protocols.base import HandlerFactory

LOGGER = logging.getLogger(__name__)


class CaptureService:
    def __init__(
        self,
        resolver: ProtocolResolver,
        strategy: CaptureStrategy,
        storage: FixtureStorage,
        normalizer: Callable[[str], str] = normalize_version,
    ) -> None:
        self.resolver = resolver
        self.strategy = strategy
        self.storage = storage
        self.normalizer = normalizer

    def capture(
        self,
        ip: str,
        port: int,
        protocol_name: str = AUTO_PROTOCOL,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        """Query a server, store the snapshot as a fixture and return its path.

        Resolution and strategy errors propagate unchanged.
        """
        handler = self.resolver.resolve(protocol_name, ip, port)
        address = ServerAddress(ip=ip, port=port)
        result = self.strategy.capture(handler, address, {"protocol_name": protocol_name, **(options or {})})
        version = self.normalizer(handler.get_version(result.server_info))
        path = self.storage.save(handler.get_protocol_name(), version, ip, port, result)
        LOGGER.info("Captured %s:%s as %s", ip, port, path)
        return path


def build_capture_service(
    config: CaptureConfig,
    *,
    protocols: Mapping[str, HandlerFactory] | None = None,
    use_worker: bool | None = None,
) -> CaptureService:
    """Wire resolver, strategy, and storage from configuration."""
    if protocols is None:
        protocols = load_protocol_factories(config)
    if use_worker is None:
        use_worker = config.use_worker

    strategy: CaptureStrategy
    if use_worker:
        strategy = WorkerCaptureStrategy(
            config.worker_timeout,
            attempt_timeout=config.default_timeout,
            max_retries=config.max_retries,
        )
    else:
        strategy = DirectCaptureStrategy()

    return CaptureService(
        ProtocolResolver(protocols, default_protocol=config.default_protocol),
        strategy,
        JsonFixtureStorage(config.fixtures_dir),
    )
