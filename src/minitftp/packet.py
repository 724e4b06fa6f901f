from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import ClassVar, Union

from .constants import ACK, BLOCK_SIZE, DATA, DATA_HEADER_LEN, ERROR, RRQ

BLOCK_HEADER = struct.Struct("!BB")  # opcode, block (unsigned)


class PacketKind(enum.IntEnum):
    RRQ = RRQ
    DATA = DATA
    ACK = ACK
    ERROR = ERROR


@dataclass(frozen=True, slots=True)
class Rrq:
    kind: ClassVar[PacketKind] = PacketKind.RRQ
    filename: bytes

    @property
    def name(self) -> str:
        return self.filename.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class Data:
    kind: ClassVar[PacketKind] = PacketKind.DATA
    block: int
    data: bytes = b""

    @property
    def last(self) -> bool:
        return len(self.data) < BLOCK_SIZE


@dataclass(frozen=True, slots=True)
class Ack:
    kind: ClassVar[PacketKind] = PacketKind.ACK
    block: int


@dataclass(frozen=True, slots=True)
class Error:
    kind: ClassVar[PacketKind] = PacketKind.ERROR
    message: bytes

    @property
    def text(self) -> str:
        return self.message.decode("utf-8", errors="replace")


Packet = Union[Rrq, Data, Ack, Error]


def encode(packet: Packet) -> bytes:
    """Serialize a packet to datagram bytes.

    Raises ValueError for payloads that cannot be framed (a DATA payload over
    512 bytes, or a block number that does not fit in one unsigned byte).
    """
    if isinstance(packet, Data):
        if len(packet.data) > BLOCK_SIZE:
            raise ValueError(f"payload too large: {len(packet.data)}")
        return _block_header(packet.kind, packet.block) + packet.data
    if isinstance(packet, Ack):
        return _block_header(packet.kind, packet.block)
    if isinstance(packet, Rrq):
        return bytes([packet.kind]) + packet.filename
    if isinstance(packet, Error):
        return bytes([packet.kind]) + packet.message
    raise TypeError(f"not a packet: {packet!r}")


def _block_header(kind: PacketKind, block: int) -> bytes:
    try:
        return BLOCK_HEADER.pack(int(kind), block)
    except struct.error as e:
        raise ValueError(f"block out of range: {block}") from e


def decode(raw: bytes) -> Packet | None:
    """Parse a datagram, returning None if it is not a recognizable packet."""
    if not raw:
        return None

    opcode = raw[0]
    if opcode == RRQ:
        return Rrq(filename=bytes(raw[1:]))
    if opcode == ERROR:
        return Error(message=bytes(raw[1:]))
    if len(raw) < DATA_HEADER_LEN:
        return None

    # struct "B" reads the block unsigned, so 128..255 survive intact
    _, block = BLOCK_HEADER.unpack_from(raw)
    if opcode == DATA:
        payload = bytes(raw[DATA_HEADER_LEN:])
        if len(payload) > BLOCK_SIZE:
            return None
        return Data(block=block, data=payload)
    if opcode == ACK:
        return Ack(block=block)
    return None
