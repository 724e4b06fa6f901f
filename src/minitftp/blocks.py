"""Block numbering.

Block numbers cycle over 1..255; zero is never produced.
"""
from __future__ import annotations

from .constants import FIRST_BLOCK, LAST_BLOCK


def next_block(n: int) -> int:
    if n == LAST_BLOCK:
        return FIRST_BLOCK
    return n + 1


def prev_block(n: int) -> int:
    if n == FIRST_BLOCK:
        return LAST_BLOCK
    return n - 1
