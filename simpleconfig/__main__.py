"""
Command line access to a simpleconfig store.

    python -m simpleconfig get billing currency
    python -m simpleconfig set billing currency EUR
    python -m simpleconfig snapshot billing

Connection settings come from simpleconfig.config (environment / .env).
"""

import argparse
import sys
from typing import List, Optional

from . import config
from .cache.snapshot_store import SnapshotStore
from .cache.tiered_cache import create_cache
from .errors import SimpleConfigError, SnapshotUnavailable


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simpleconfig",
        description="Read and write configuration values with a local fallback copy",
    )
    parser.add_argument("--domain", help="remote domain (default: $env or default_config)")
    parser.add_argument("--snapshot-dir", help="directory of local snapshots (default: $SNAPSHOT_DIR or .)")

    sub = parser.add_subparsers(dest="command", required=True)

    get_cmd = sub.add_parser("get", help="print a value")
    get_cmd.add_argument("namespace")
    get_cmd.add_argument("key")

    set_cmd = sub.add_parser("set", help="write a value")
    set_cmd.add_argument("namespace")
    set_cmd.add_argument("key")
    set_cmd.add_argument("value")

    snap_cmd = sub.add_parser("snapshot", help="print the local snapshot of a namespace")
    snap_cmd.add_argument("namespace")

    return parser


def _print_snapshot(snapshot_dir: str, namespace: str) -> int:
    try:
        entries = SnapshotStore(snapshot_dir).load(namespace)
    except SnapshotUnavailable as e:
        print(str(e), file=sys.stderr)
        return 1
    for key in sorted(entries):
        print(f"{key}={entries[key]}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    snapshot_dir = args.snapshot_dir or config.get_snapshot_dir()

    if args.command == "snapshot":
        return _print_snapshot(snapshot_dir, args.namespace)

    try:
        cache = create_cache(domain=args.domain, snapshot_dir=snapshot_dir)
    except SimpleConfigError as e:
        print(f"cannot reach remote store: {e}", file=sys.stderr)
        return 1

    with cache:
        if args.command == "get":
            value = cache.get(args.namespace, args.key)
            if value is None:
                return 1
            print(value)
            return 0

        try:
            cache.set(args.namespace, args.key, args.value)
        except (SimpleConfigError, ValueError) as e:
            print(f"write failed: {e}", file=sys.stderr)
            return 1
        return 0


if __name__ == "__main__":
    sys.exit(main())
