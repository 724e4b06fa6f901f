from __future__ import annotations

import io
import socket

import pytest

from minitftp.server import ServerDispatcher


def memory_opener(files):
    def open_source(filename):
        try:
            return io.BytesIO(files[filename])
        except KeyError:
            raise FileNotFoundError(filename) from None

    return open_source


@pytest.fixture
def serve():
    started = []

    def _serve(files, **kwargs):
        kwargs.setdefault("timeout_s", 0.2)
        d = ServerDispatcher(memory_opener(files), host="127.0.0.1", poll_interval_s=0.05, **kwargs)
        started.append(d.start())
        return d

    yield _serve
    for d in started:
        d.stop()


@pytest.fixture
def peer():
    """A bare UDP socket on loopback, driven by the test as a scripted peer."""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    s.bind(("127.0.0.1", 0))
    s.settimeout(2.0)
    yield s
    s.close()


@pytest.fixture(name="memory_opener")
def memory_opener_fixture():
    return memory_opener
