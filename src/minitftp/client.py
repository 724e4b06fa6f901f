from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import BinaryIO

from .blocks import next_block
from .constants import CLIENT_TIMEOUT_S, FIRST_BLOCK, MAX_DATAGRAM
from .net import Address, Impairment, UdpEndpoint
from .packet import Ack, Data, Error, Rrq, decode, encode

log = logging.getLogger(__name__)


class Outcome(enum.Enum):
    COMPLETE = "complete"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"
    PEER_ERROR = "peer_error"


@dataclass(slots=True)
class TransferResult:
    outcome: Outcome = Outcome.COMPLETE
    message: str = ""
    bytes_received: int = 0
    blocks_written: int = 0
    acks_sent: int = 0
    duplicates: int = 0
    peer: Address | None = None
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.COMPLETE

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_received * 8 / 1_000_000) / self.duration_s


@dataclass(slots=True)
class ClientSession:
    """Downloads one file from a server into ``sink``.

    The request is sent once and never retransmitted. Each receive waits at
    most ``timeout_s``; a timeout ends the session. The sink is written in
    block order and is left open for the caller.
    """

    udp: UdpEndpoint
    server: Address
    filename: str | bytes
    sink: BinaryIO
    timeout_s: float = CLIENT_TIMEOUT_S

    def run(self) -> TransferResult:
        result = TransferResult()
        try:
            self._transfer(result)
        except TimeoutError:
            result.outcome = Outcome.TIMEOUT
            result.message = f"no reply within {self.timeout_s:g}s"
        except OSError as e:
            result.outcome = Outcome.TRANSPORT_ERROR
            result.message = str(e)
        result.end_ts = time.monotonic()

        if result.ok:
            log.info("received %d bytes in %d blocks from %s", result.bytes_received, result.blocks_written, result.peer)
        else:
            log.warning("transfer aborted (%s): %s", result.outcome.value, result.message)
        return result

    def _transfer(self, result: TransferResult) -> None:
        name = self.filename.encode("utf-8") if isinstance(self.filename, str) else self.filename
        self.udp.settimeout(self.timeout_s)
        self.udp.sendto(encode(Rrq(filename=name)), self.server)
        log.info("requested %r from %s:%d", name, *self.server)

        expected = FIRST_BLOCK
        while True:
            raw, addr = self.udp.recvfrom(MAX_DATAGRAM)
            pkt = decode(raw)
            if pkt is None:
                log.debug("discarding undecodable datagram from %s", addr)
                continue

            if isinstance(pkt, Error):
                result.outcome = Outcome.PEER_ERROR
                result.message = pkt.text
                result.peer = addr
                return

            if not isinstance(pkt, Data):
                log.debug("discarding %s from %s", pkt.kind.name, addr)
                continue

            if pkt.block != expected:
                # server missed our ack and resent; re-ack without writing
                result.duplicates += 1
                log.debug("duplicate block %d (expecting %d); re-ack", pkt.block, expected)
                self.udp.sendto(encode(Ack(block=pkt.block)), addr)
                result.acks_sent += 1
                continue

            self.sink.write(pkt.data)
            result.bytes_received += len(pkt.data)
            result.blocks_written += 1
            result.peer = addr

            self.udp.sendto(encode(Ack(block=expected)), addr)
            result.acks_sent += 1

            if pkt.last:
                self.sink.flush()
                return
            expected = next_block(expected)


def download(
    host: str,
    port: int,
    filename: str | bytes,
    sink: BinaryIO,
    timeout_s: float = CLIENT_TIMEOUT_S,
    impairment: Impairment | None = None,
) -> TransferResult:
    with UdpEndpoint.sending(timeout_s=timeout_s, impairment=impairment) as udp:
        return ClientSession(udp, (host, port), filename, sink, timeout_s=timeout_s).run()
