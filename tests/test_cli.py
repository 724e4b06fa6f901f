from __future__ import annotations

import json

from minitftp.bench import run_benchmark
from minitftp.cli import main
from minitftp.server import ServerDispatcher, directory_opener


def test_get_writes_rx_prefixed_copy(tmp_path, monkeypatch):
    served = tmp_path / "served"
    served.mkdir()
    (served / "foo").write_bytes(b"q" * 1000)
    monkeypatch.chdir(tmp_path)

    with ServerDispatcher(directory_opener(str(served)), host="127.0.0.1", poll_interval_s=0.05) as d:
        rc = main(["get", "127.0.0.1", str(d.port), "foo", "--timeout", "2"])

    assert rc == 0
    assert (tmp_path / "rx-foo").read_bytes() == b"q" * 1000


def test_get_missing_file_fails(tmp_path, capsys):
    out = tmp_path / "out.bin"
    with ServerDispatcher(directory_opener(str(tmp_path)), host="127.0.0.1", poll_interval_s=0.05) as d:
        rc = main(["get", "127.0.0.1", str(d.port), "absent", "--out", str(out), "--timeout", "2", "--json"])

    assert rc == 1
    assert out.read_bytes() == b""
    stdout = capsys.readouterr().out
    assert "absent was not found." in stdout
    summary = json.loads(stdout[stdout.index("{"):])
    assert summary["outcome"] == "peer_error"


def test_bench_loopback():
    r = run_benchmark(size_bytes=5000, client_timeout_s=2.0, server_timeout_s=0.2)
    assert r.outcome == "complete"
    assert r.bytes_transferred == 5000


def test_bench_subcommand_accepts_log_level(capsys):
    rc = main(["bench", "--size-bytes", "2048", "--log-level", "DEBUG", "--json"])

    assert rc == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["role"] == "bench"
    assert summary["bytes_transferred"] == 2048
