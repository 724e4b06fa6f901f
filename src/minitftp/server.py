from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import BinaryIO, Callable

from .blocks import next_block
from .constants import BLOCK_SIZE, FIRST_BLOCK, MAX_DATAGRAM, MAX_SEND_ATTEMPTS, SERVER_TIMEOUT_S
from .net import Address, Impairment, UdpEndpoint
from .packet import Ack, Data, Error, Rrq, decode, encode

log = logging.getLogger(__name__)

Opener = Callable[[str], BinaryIO]

COMPLETE = "complete"
NOT_FOUND = "not_found"
EXHAUSTED = "exhausted"
IGNORED = "ignored"
SEND_FAILED = "send_failed"


def directory_opener(root: str) -> Opener:
    """Return an opener serving files beneath ``root``."""
    base = os.path.realpath(root)

    def open_source(filename: str) -> BinaryIO:
        path = os.path.join(base, filename)
        try:
            path = os.path.realpath(path)
            if os.path.commonpath([base, path]) != base:
                raise PermissionError(f"outside of served directory: {filename}")
            return open(path, "rb")
        except ValueError as e:
            # embedded NUL, e.g. a "name\0mode\0" request
            raise FileNotFoundError(filename) from e

    return open_source


@dataclass(slots=True)
class WorkerResult:
    outcome: str
    filename: str = ""
    blocks_sent: int = 0
    bytes_sent: int = 0
    retransmits: int = 0


class ServerWorker:
    """Serves one read request.

    Each block is transmitted at most ``max_attempts`` times. A timeout and a
    reply that is not an ACK for the current block both count as a failed
    attempt and trigger retransmission of the same DATA packet.
    """

    def __init__(
        self,
        request: bytes,
        client: Address,
        opener: Opener,
        timeout_s: float = SERVER_TIMEOUT_S,
        max_attempts: int = MAX_SEND_ATTEMPTS,
        impairment: Impairment | None = None,
    ):
        self.request = request
        self.client = client
        self.opener = opener
        self.timeout_s = timeout_s
        self.max_attempts = max(1, max_attempts)
        self.impairment = impairment

    def run(self) -> WorkerResult:
        pkt = decode(self.request)
        if pkt is None:
            log.debug("ignoring undecodable request from %s", self.client)
            return WorkerResult(IGNORED)
        if not isinstance(pkt, Rrq):
            log.debug("ignoring %s from %s", pkt.kind.name, self.client)
            return WorkerResult(IGNORED)

        filename = pkt.name
        log.info("RRQ %r from %s:%d", filename, *self.client)
        try:
            udp = UdpEndpoint.sending(timeout_s=self.timeout_s, impairment=self.impairment)
        except OSError as e:
            log.error("cannot allocate socket for %s: %s", self.client, e)
            return WorkerResult(SEND_FAILED, filename)

        with udp:
            try:
                source = self.opener(filename)
            except OSError as e:
                return self._refuse(udp, filename, e)
            with source:
                return self._send_file(udp, filename, source)

    def _refuse(self, udp: UdpEndpoint, filename: str, exc: OSError) -> WorkerResult:
        if isinstance(exc, FileNotFoundError):
            message = f"{filename} was not found."
        else:
            message = f"{filename}: {exc.strerror or exc}"
        log.info("refusing %r: %s", filename, message)
        try:
            udp.sendto(encode(Error(message=message.encode("utf-8"))), self.client)
        except OSError as e:
            log.warning("could not send error to %s: %s", self.client, e)
            return WorkerResult(SEND_FAILED, filename)
        return WorkerResult(NOT_FOUND, filename)

    def _send_file(self, udp: UdpEndpoint, filename: str, source: BinaryIO) -> WorkerResult:
        result = WorkerResult(COMPLETE, filename)
        block = FIRST_BLOCK

        while True:
            try:
                chunk = source.read(BLOCK_SIZE) or b""
            except OSError as e:
                log.error("read failed on %r: %s", filename, e)
                result.outcome = SEND_FAILED
                return result

            frame = encode(Data(block=block, data=chunk))
            try:
                acked = self._send_block(udp, block, frame, result)
            except OSError as e:
                log.warning("send to %s failed at block %d: %s", self.client, block, e)
                result.outcome = SEND_FAILED
                return result

            if not acked:
                log.warning(
                    "giving up on %r for %s after %d attempts at block %d",
                    filename, self.client, self.max_attempts, block,
                )
                result.outcome = EXHAUSTED
                return result

            result.blocks_sent += 1
            result.bytes_sent += len(chunk)
            if len(chunk) < BLOCK_SIZE:
                log.info("sent %r to %s: %d bytes", filename, self.client, result.bytes_sent)
                return result
            block = next_block(block)

    def _send_block(self, udp: UdpEndpoint, block: int, frame: bytes, result: WorkerResult) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                result.retransmits += 1
                log.debug("retransmit block %d to %s (attempt %d)", block, self.client, attempt)
            udp.sendto(frame, self.client)

            try:
                raw, _ = udp.recvfrom(MAX_DATAGRAM)
            except TimeoutError:
                continue

            reply = decode(raw)
            if isinstance(reply, Ack) and reply.block == block:
                return True
            log.debug("unexpected reply %r while waiting for ack %d", reply, block)
        return False


class ServerDispatcher:
    """Listens for requests and hands each datagram to its own worker thread."""

    def __init__(
        self,
        opener: Opener,
        host: str = "0.0.0.0",
        port: int = 0,
        timeout_s: float = SERVER_TIMEOUT_S,
        max_attempts: int = MAX_SEND_ATTEMPTS,
        impairment: Impairment | None = None,
        poll_interval_s: float = 0.5,
    ):
        self.opener = opener
        self.timeout_s = timeout_s
        self.max_attempts = max_attempts
        self.impairment = impairment
        self.udp = UdpEndpoint.listening(host, port, timeout_s=poll_interval_s)
        self._address = self.udp.address
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None
        self._workers: list[threading.Thread] = []

    @property
    def address(self) -> Address:
        return self._address

    @property
    def port(self) -> int:
        return self.address[1]

    def serve_forever(self) -> None:
        log.info("listening on %s:%d", *self.address)
        try:
            while not self._stopping.is_set():
                try:
                    raw, addr = self.udp.recvfrom(MAX_DATAGRAM)
                except TimeoutError:
                    continue
                except OSError:
                    if self._stopping.is_set():
                        break
                    raise
                self._spawn(raw, addr)
        finally:
            self.udp.close()
            log.info("dispatcher stopped")

    def _spawn(self, raw: bytes, addr: Address) -> None:
        worker = ServerWorker(
            raw,
            addr,
            self.opener,
            timeout_s=self.timeout_s,
            max_attempts=self.max_attempts,
            impairment=self.impairment,
        )
        t = threading.Thread(target=worker.run, name=f"tftp-worker-{addr[0]}:{addr[1]}", daemon=True)
        t.start()
        self._workers = [w for w in self._workers if w.is_alive()]
        self._workers.append(t)

    def active_workers(self) -> int:
        return sum(1 for w in self._workers if w.is_alive())

    def start(self) -> "ServerDispatcher":
        self._thread = threading.Thread(target=self.serve_forever, name="tftp-dispatcher", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout_s: float = 5.0) -> None:
        self._stopping.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout_s)
            self._thread = None
        else:
            self.udp.close()

    def __enter__(self) -> "ServerDispatcher":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
