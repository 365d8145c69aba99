from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from pacer.config import ConfigError, RunConfig, parse_address, resolve_target
from pacer.loadgen.runner import run_experiment
from pacer.storage import DEFAULT_DB_PATH, Storage, default_storage

logger = logging.getLogger("pacer")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pacer", description="Open-loop HTTP load generator")
    parser.add_argument("address", help="Server address as host:port, optionally with a scheme")
    parser.add_argument("-r", "--rate", type=float, default=1.0, help="Target request rate (requests per second)")
    parser.add_argument("-t", "--total", type=int, default=1, help="Total number of requests to execute")
    parser.add_argument("--http2", action="store_true", help="Negotiate HTTP/2 where the server supports it")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request deadline in seconds")
    parser.add_argument("--save", action="store_true", help="Persist the run to the local DuckDB store")
    parser.add_argument("--db", type=Path, default=None, help=f"DuckDB file used with --save (default: {DEFAULT_DB_PATH})")
    parser.add_argument("--notes", default="", help="Free-form notes stored with a saved run")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    return parser


def _build_config(args: argparse.Namespace) -> RunConfig:
    target = parse_address(args.address, timeout_sec=args.timeout, http2=args.http2)
    resolve_target(target)
    return RunConfig(target=target, rate=args.rate, total=args.total, notes=args.notes)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _build_config(args)
    except ConfigError as exc:
        parser.exit(2, f"{parser.prog}: error: {exc}\n")

    storage = None
    if args.save:
        storage = Storage(args.db) if args.db is not None else default_storage()
    result = asyncio.run(run_experiment(config, storage))
    for line in result.statistics.report_lines():
        print(line)
    if storage is not None:
        logger.info("saved run %s to %s", result.run_id, storage.db_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
