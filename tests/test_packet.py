from __future__ import annotations

import pytest

from minitftp.packet import Ack, Data, Error, PacketKind, Rrq, decode, encode


@pytest.mark.parametrize(
    "pkt",
    [
        Rrq(filename=b"foo"),
        Rrq(filename=b""),
        Data(block=1, data=b"hello"),
        Data(block=7, data=b""),
        Data(block=3, data=bytes(512)),
        Ack(block=42),
        Error(message=b"foo was not found."),
        Error(message=b""),
    ],
)
def test_roundtrip(pkt):
    assert decode(encode(pkt)) == pkt


def test_high_block_numbers_stay_unsigned():
    for block in (128, 190, 200, 255):
        assert decode(encode(Ack(block=block))).block == block
        assert decode(encode(Data(block=block, data=b"\x37\x42\x4d"))).block == block


def test_wire_layout():
    assert encode(Rrq(filename=b"foo")) == b"\x01foo"
    assert encode(Data(block=200, data=b"ab")) == b"\x03\xc8ab"
    assert encode(Ack(block=255)) == b"\x04\xff"
    assert encode(Error(message=b"nope")) == b"\x05nope"


def test_data_payload_limit():
    assert len(encode(Data(block=1, data=bytes(512)))) == 514
    with pytest.raises(ValueError):
        encode(Data(block=1, data=bytes(513)))


def test_block_must_fit_in_a_byte():
    with pytest.raises(ValueError):
        encode(Ack(block=256))


@pytest.mark.parametrize("raw", [b"", b"\x00", b"\x02foo", b"\x06\x01", b"\xffjunk", b"\x04", b"\x03"])
def test_invalid_datagrams(raw):
    assert decode(raw) is None


def test_oversized_data_is_invalid():
    assert decode(b"\x03\x01" + bytes(513)) is None


def test_empty_data_marks_last_block():
    pkt = decode(b"\x03\x02")
    assert pkt == Data(block=2, data=b"")
    assert pkt.last
    assert not Data(block=1, data=bytes(512)).last


def test_ack_ignores_trailing_bytes():
    assert decode(b"\x04\x09extra") == Ack(block=9)


def test_kinds_and_text():
    assert Rrq(filename=b"foo").kind is PacketKind.RRQ
    assert decode(b"\x05bad \xff").text == "bad \ufffd"
    assert decode(b"\x01caf\xc3\xa9").name == "café"
