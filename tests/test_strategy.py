from __future__ import annotations

import time
from collections.abc import Sequence
from typing import Any

import pytest

from capturectl.core.errors import HandlerQueryError, WorkerCrashError, WorkerTimeoutError
from capturectl.core.model import ServerAddress, ServerInfo
from capturectl.core.strategy import DirectCaptureStrategy, WorkerCaptureStrategy
from capturectl.protocols.base import BaseProtocolHandler

ADDRESS = ServerAddress(ip="192.0.2.10", port=27015)


class OnlineHandler(BaseProtocolHandler):
    protocol_name = "source"

    def query(self, address: ServerAddress) -> ServerInfo:
        self.debug.append("A2S_INFO sent")
        return ServerInfo(
            address=address.ip,
            queryport=address.port,
            online=True,
            servertitle="Test Server",
            gameversion="1.38.7.1",
            numplayers=1,
            maxplayers=24,
            rules={"mp_timelimit": "30"},
            players=({"name": "alice", "score": 3},),
        )


class HangingHandler(OnlineHandler):
    def query(self, address: ServerAddress) -> ServerInfo:
        time.sleep(30)
        return super().query(address)


class SlowPlayersHandler(OnlineHandler):
    def query(self, address: ServerAddress) -> ServerInfo:
        return ServerInfo(address=address.ip, online=True)

    def query_players(self, address: ServerAddress) -> Sequence[dict[str, Any]]:
        time.sleep(30)
        return ()


class UnreachableHandler(OnlineHandler):
    def query(self, address: ServerAddress) -> ServerInfo:
        raise ConnectionRefusedError("host unreachable")


class CrashingHandler(OnlineHandler):
    def query(self, address: ServerAddress) -> ServerInfo:
        import os

        os._exit(3)


def test_direct_strategy_metadata_uses_option_label() -> None:
    result = DirectCaptureStrategy().capture(OnlineHandler(), ADDRESS, {"protocol_name": "cs2"})
    assert result.raw_packets == ()
    assert result.server_info.servertitle == "Test Server"
    assert result.metadata["ip"] == "192.0.2.10"
    assert result.metadata["port"] == 27015
    assert result.metadata["protocol"] == "cs2"
    assert isinstance(result.metadata["timestamp"], int)
    assert "worker_used" not in result.metadata


def test_direct_strategy_falls_back_to_handler_name() -> None:
    result = DirectCaptureStrategy().capture(OnlineHandler(), ADDRESS, {})
    assert result.metadata["protocol"] == "source"


def test_direct_strategy_propagates_handler_errors_unmodified() -> None:
    with pytest.raises(ConnectionRefusedError):
        DirectCaptureStrategy().capture(UnreachableHandler(), ADDRESS, {})


def test_worker_strategy_round_trips_snapshot() -> None:
    strategy = WorkerCaptureStrategy(10.0, attempt_timeout=1.0, max_retries=0)
    result = strategy.capture(OnlineHandler(), ADDRESS, {"protocol_name": "cs2"})

    assert result.raw_packets == ()
    assert result.server_info.online is True
    assert result.server_info.servertitle == "Test Server"
    assert result.server_info.rules == {"mp_timelimit": "30"}
    assert result.server_info.players == ({"name": "alice", "score": 3},)
    assert result.metadata["worker_used"] is True
    assert result.metadata["protocol"] == "cs2"


def test_worker_strategy_defaults_protocol_label_to_source() -> None:
    strategy = WorkerCaptureStrategy(10.0, attempt_timeout=1.0, max_retries=0)
    result = strategy.capture(OnlineHandler(), ADDRESS, {})
    assert result.metadata["protocol"] == "source"


def test_worker_timeout_terminates_hung_query() -> None:
    strategy = WorkerCaptureStrategy(0.5, attempt_timeout=0.1, max_retries=0)
    started = time.monotonic()
    with pytest.raises(WorkerTimeoutError):
        strategy.capture(HangingHandler(), ADDRESS, {})
    assert time.monotonic() - started < 10


def test_parent_deadline_bounds_retry_loop() -> None:
    strategy = WorkerCaptureStrategy(0.5, attempt_timeout=0.1, max_retries=5, backoff_s=0.0)
    with pytest.raises(WorkerTimeoutError):
        strategy.capture(SlowPlayersHandler(), ADDRESS, {})


def test_worker_handler_failure_surfaces_as_handler_query_error() -> None:
    strategy = WorkerCaptureStrategy(10.0, attempt_timeout=1.0, max_retries=0)
    with pytest.raises(HandlerQueryError) as exc:
        strategy.capture(UnreachableHandler(), ADDRESS, {})
    assert "host unreachable" in str(exc.value)


def test_worker_exit_without_result_is_crash() -> None:
    strategy = WorkerCaptureStrategy(10.0, attempt_timeout=1.0, max_retries=0)
    with pytest.raises(WorkerCrashError):
        strategy.capture(CrashingHandler(), ADDRESS, {})


def test_short_parent_timeout_logs_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING", logger="capturectl.core.strategy"):
        WorkerCaptureStrategy(1.0, attempt_timeout=5.0, max_retries=2)
    assert "worst-case" in caplog.text
