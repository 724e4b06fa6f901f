"""Minimal TFTP (read requests only) over UDP.

- ``packet``: wire codec for RRQ/DATA/ACK/ERROR
- ``blocks``: 1..255 block numbering
- ``client``/``server``: stop-and-wait transfer state machines
"""

from .client import ClientSession, Outcome, TransferResult, download
from .server import ServerDispatcher, ServerWorker, directory_opener

__all__ = [
    "ClientSession",
    "Outcome",
    "ServerDispatcher",
    "ServerWorker",
    "TransferResult",
    "directory_opener",
    "download",
]
