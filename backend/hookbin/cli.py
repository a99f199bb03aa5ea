#!/usr/bin/env python3
"""
hookbin command line interface.
Runs the recorder and inspects namespace logs straight from the data directory.
"""
import argparse
import json
import sys
from typing import List, Optional

from hookbin.config import get_settings
from hookbin.errors import CorruptLog
from hookbin.namespaces import NamespaceRegistry
from hookbin.storage import NamespaceStore


def _store(data_dir: Optional[str]) -> NamespaceStore:
    settings = get_settings()
    registry = NamespaceRegistry(settings.namespace_list)
    return NamespaceStore(registry, data_dir or settings.DATA_DIR)


def dump_events(store: NamespaceStore, namespace: str, limit: Optional[int] = None) -> int:
    """Print a namespace's events as JSON lines, most recent ``limit`` only if given."""
    if not store.registry.is_valid(namespace):
        print(f"Unknown namespace: {namespace}", file=sys.stderr)
        return 2
    try:
        store.load(namespace)
    except CorruptLog as e:
        print(f"Corrupt log: {e}", file=sys.stderr)
        return 1

    events = store.list(namespace)
    if limit is not None:
        events = events[-limit:] if limit > 0 else []
    for event in events:
        print(json.dumps(event.to_wire()))
    return 0


def show_stats(store: NamespaceStore) -> int:
    status = 0
    print(f"Data directory: {store.data_dir}")
    for ns in store.registry:
        try:
            count = store.load(ns)
        except CorruptLog as e:
            print(f"  {ns}: CORRUPT ({e})")
            status = 1
            continue
        print(f"  {ns}: {count} events")
    return status


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="hookbin - HTTP request recorder")
    parser.add_argument("--data-dir", help="Data directory (default: $DATA_DIR)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", help="Bind address (default: $HOST)")
    serve_parser.add_argument("--port", type=int, help="Listening port (default: $PORT)")

    subparsers.add_parser("namespaces", help="List configured namespaces")

    dump_parser = subparsers.add_parser("dump", help="Print stored events of a namespace")
    dump_parser.add_argument("namespace", help="Namespace to dump")
    dump_parser.add_argument("--limit", type=int, help="Only the most recent N events")

    subparsers.add_parser("stats", help="Show event counts per namespace")

    args = parser.parse_args(argv)

    if args.command == "serve":
        from hookbin.main import run
        run(host=args.host, port=args.port, data_dir=args.data_dir)
        return 0
    elif args.command == "namespaces":
        for ns in get_settings().namespace_list:
            print(ns)
        return 0
    elif args.command == "dump":
        return dump_events(_store(args.data_dir), args.namespace, args.limit)
    elif args.command == "stats":
        return show_stats(_store(args.data_dir))
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
