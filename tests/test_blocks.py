from __future__ import annotations

from minitftp.blocks import next_block, prev_block


def test_wraparound():
    assert next_block(255) == 1
    assert prev_block(1) == 255
    assert next_block(1) == 2
    assert prev_block(200) == 199


def test_inverse_over_domain():
    for n in range(1, 256):
        assert prev_block(next_block(n)) == n
        assert next_block(prev_block(n)) == n


def test_never_yields_zero():
    seen = set()
    n = 1
    for _ in range(600):
        seen.add(n)
        n = next_block(n)
    assert seen == set(range(1, 256))
