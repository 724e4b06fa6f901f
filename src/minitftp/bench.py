from __future__ import annotations

import io
from dataclasses import dataclass

from .client import download
from .constants import CLIENT_TIMEOUT_S, SERVER_TIMEOUT_S
from .net import Impairment
from .server import ServerDispatcher


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    duration_s: float
    throughput_mbps: float
    retransmitted_acks: int
    outcome: str


def run_benchmark(
    *,
    size_bytes: int,
    loss_rate: float = 0.0,
    delay_ms: int = 0,
    client_timeout_s: float = CLIENT_TIMEOUT_S,
    server_timeout_s: float = SERVER_TIMEOUT_S,
) -> BenchmarkResult:
    payload = b"A" * size_bytes
    impair = Impairment(loss_rate=loss_rate, delay_ms=delay_ms)

    def open_payload(filename: str) -> io.BytesIO:
        return io.BytesIO(payload)

    dispatcher = ServerDispatcher(
        open_payload,
        host="127.0.0.1",
        timeout_s=server_timeout_s,
        impairment=impair,
        poll_interval_s=0.1,
    )
    with dispatcher:
        out = io.BytesIO()
        result = download(
            "127.0.0.1",
            dispatcher.port,
            "bench.bin",
            out,
            timeout_s=client_timeout_s,
            impairment=impair,
        )

    if result.ok and len(out.getvalue()) != size_bytes:
        raise RuntimeError(f"size mismatch: expected {size_bytes}, got {len(out.getvalue())}")

    duration_s = max(0.001, result.duration_s)
    return BenchmarkResult(
        bytes_transferred=result.bytes_received,
        duration_s=duration_s,
        throughput_mbps=(result.bytes_received * 8 / 1_000_000) / duration_s,
        retransmitted_acks=result.duplicates,
        outcome=result.outcome.value,
    )
