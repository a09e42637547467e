"""Capture strategies: in-process or inside a time-bounded worker process."""

from __future__ import annotations

import logging
import multiprocessing
import time
from collections.abc import Mapping
from multiprocessing.process import BaseProcess
from typing import Any, Protocol

from capturectl.core.codec import server_info_from_dict
from capturectl.core.errors import (
    HandlerQueryError,
    UnknownProtocolError,
    WorkerCrashError,
    WorkerTimeoutError,
)
from capturectl.core.model import CaptureResult, ServerAddress
from capturectl.core.worker import CaptureWorker, run_worker
from capturectl.protocols.base import ProtocolHandler

WORKER_DEFAULT_PROTOCOL = "source"
_REAP_GRACE_S = 1.0
LOGGER = logging.getLogger(__name__)


class CaptureStrategy(Protocol):
    def capture(
        self,
        handler: ProtocolHandler,
        address: ServerAddress,
        options: Mapping[str, Any],
    ) -> CaptureResult:
        """Query ``address`` with ``handler`` and return the captured result."""


class DirectCaptureStrategy:
    """Run the query synchronously in the calling process.

    No retry and no timeout beyond what the handler enforces itself.
    """

    def capture(
        self,
        handler: ProtocolHandler,
        address: ServerAddress,
        options: Mapping[str, Any],
    ) -> CaptureResult:
        server_info = handler.query(address)
        protocol_name = options.get("protocol_name")
        if not isinstance(protocol_name, str):
            protocol_name = handler.get_protocol_name()
        metadata = {
            "ip": address.ip,
            "port": address.port,
            "protocol": protocol_name,
            "timestamp": int(time.time()),
        }
        return CaptureResult(raw_packets=(), server_info=server_info, metadata=metadata)


class _ResolvedHandler:
    """Zero-argument factory handing an already-resolved handler to the worker."""

    def __init__(self, handler: ProtocolHandler) -> None:
        self.handler = handler

    def __call__(self) -> ProtocolHandler:
        return self.handler


class WorkerCaptureStrategy:
    """Run :class:`CaptureWorker` in a separate process under a hard deadline.

    ``timeout`` bounds the whole worker from the parent side; the worker's own
    retry loop is never trusted to stop in time. Only plain data crosses the
    process boundary.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        *,
        attempt_timeout: float = 5.0,
        max_retries: int = 2,
        backoff_s: float = 0.2,
        start_method: str | None = None,
    ) -> None:
        self.timeout = timeout
        self.attempt_timeout = attempt_timeout
        self.max_retries = max_retries
        self.backoff_s = backoff_s
        if start_method is None:
            start_method = "fork" if "fork" in multiprocessing.get_all_start_methods() else "spawn"
        self.start_method = start_method

        worst_case = (max_retries + 1) * attempt_timeout + max_retries * backoff_s
        if timeout <= worst_case:
            LOGGER.warning(
                "Worker timeout %.1fs does not exceed worst-case retry time %.1fs; "
                "legitimate retries may be cut short",
                timeout,
                worst_case,
            )

    def capture(
        self,
        handler: ProtocolHandler,
        address: ServerAddress,
        options: Mapping[str, Any],
    ) -> CaptureResult:
        protocol_name = options.get("protocol_name")
        if not isinstance(protocol_name, str):
            protocol_name = WORKER_DEFAULT_PROTOCOL

        worker = CaptureWorker(
            {protocol_name: _ResolvedHandler(handler)},
            timeout=self.attempt_timeout,
            max_retries=self.max_retries,
            backoff_s=self.backoff_s,
        )
        payload = self._run(worker, protocol_name, address)

        debug = payload.get("debug")
        for entry in debug if isinstance(debug, list) else ():
            LOGGER.debug("worker[%s:%s] %s", address.ip, address.port, entry)

        metadata = {
            "ip": address.ip,
            "port": address.port,
            "protocol": protocol_name,
            "timestamp": int(time.time()),
            "worker_used": True,
        }
        return CaptureResult(
            raw_packets=(),
            server_info=server_info_from_dict(payload.get("server_info")),
            metadata=metadata,
        )

    def _run(self, worker: CaptureWorker, protocol_name: str, address: ServerAddress) -> dict[str, Any]:
        ctx = multiprocessing.get_context(self.start_method)
        reader, writer = ctx.Pipe(duplex=False)
        process = ctx.Process(
            target=run_worker,
            args=(writer, worker, protocol_name, address.ip, address.port),
            name=f"capture-{address.ip}:{address.port}",
            daemon=True,
        )
        process.start()
        writer.close()

        try:
            if not reader.poll(self.timeout):
                _stop(process)
                raise WorkerTimeoutError(
                    f"Capture worker for {address.ip}:{address.port} exceeded {self.timeout}s"
                )
            try:
                message = reader.recv()
            except EOFError:
                process.join(_REAP_GRACE_S)
                raise WorkerCrashError(
                    f"Capture worker for {address.ip}:{address.port} exited without a result "
                    f"(exit code {process.exitcode})"
                ) from None
        finally:
            reader.close()
            _reap(process)

        return _unpack(message, protocol_name)


def _unpack(message: object, protocol_name: str) -> dict[str, Any]:
    if not isinstance(message, tuple) or not message:
        raise WorkerCrashError(f"Capture worker sent a malformed message: {message!r}")

    status = message[0]
    if status == "ok" and len(message) == 2 and isinstance(message[1], dict):
        return message[1]
    if status == "error" and len(message) == 3:
        _, error_type, error_message = message
        if error_type == UnknownProtocolError.__name__:
            raise UnknownProtocolError(protocol_name)
        raise HandlerQueryError(f"{error_type}: {error_message}")
    raise WorkerCrashError(f"Capture worker sent a malformed message: {message!r}")


def _stop(process: BaseProcess) -> None:
    process.terminate()
    process.join(_REAP_GRACE_S)
    if process.is_alive():
        process.kill()
        process.join()


def _reap(process: BaseProcess) -> None:
    process.join(_REAP_GRACE_S)
    if process.is_alive():
        _stop(process)
