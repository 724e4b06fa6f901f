from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict

from .bench import run_benchmark
from .client import download
from .constants import CLIENT_TIMEOUT_S, MAX_SEND_ATTEMPTS, SERVER_TIMEOUT_S
from .net import Impairment
from .server import ServerDispatcher, directory_opener


def _emit(payload: dict, as_json: bool) -> None:
    print(json.dumps(payload, indent=2) if as_json else payload)


def cmd_get(args: argparse.Namespace) -> int:
    out_path = args.out or "rx-" + os.path.basename(args.file)
    impair = Impairment(args.loss_rate, args.delay_ms)
    with open(out_path, "wb") as out:
        result = download(args.host, args.port, args.file, out, timeout_s=args.timeout, impairment=impair)

    if not result.ok:
        print(result.message)

    _emit(
        {
            "role": "client",
            "outcome": result.outcome.value,
            "out": out_path,
            "bytes": result.bytes_received,
            "seconds": result.duration_s,
            "mbps": result.throughput_mbps,
        },
        args.json,
    )
    return 0 if result.ok else 1


def cmd_serve(args: argparse.Namespace) -> int:
    dispatcher = ServerDispatcher(
        directory_opener(args.root),
        host=args.host,
        port=args.port,
        timeout_s=args.timeout,
        max_attempts=args.max_attempts,
        impairment=Impairment(args.loss_rate, args.delay_ms),
    )
    print(f"TftpServer on port {dispatcher.port}", flush=True)
    try:
        dispatcher.serve_forever()
    except KeyboardInterrupt:
        pass
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        loss_rate=args.loss_rate,
        delay_ms=args.delay_ms,
    )
    _emit({"role": "bench", **asdict(r)}, args.json)
    return 0 if r.outcome == "complete" else 1


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="minitftp", description="Minimal read-only TFTP over UDP.")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
        x.add_argument("--loss-rate", type=float, default=0.0, help="simulate packet loss")
        x.add_argument("--delay-ms", type=int, default=0, help="simulate per-packet delay")
        x.add_argument("--json", action="store_true")

    get = sub.add_parser("get", help="download a file from a server")
    add_common(get)
    get.add_argument("host")
    get.add_argument("port", type=int)
    get.add_argument("file")
    get.add_argument("--out", help="output path (default: rx-<file>)")
    get.add_argument("--timeout", type=float, default=CLIENT_TIMEOUT_S)
    get.set_defaults(func=cmd_get)

    serve = sub.add_parser("serve", help="serve files from a directory")
    add_common(serve)
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=0, help="0 picks an ephemeral port")
    serve.add_argument("--root", default=".")
    serve.add_argument("--timeout", type=float, default=SERVER_TIMEOUT_S)
    serve.add_argument("--max-attempts", type=int, default=MAX_SEND_ATTEMPTS)
    serve.set_defaults(func=cmd_serve)

    bench = sub.add_parser("bench", help="loopback transfer benchmark")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=1_000_000)
    bench.set_defaults(func=cmd_bench)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
