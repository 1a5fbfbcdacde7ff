#!/usr/bin/env python3
"""
Sync control CLI - inspect and drive the local sync queue.

Usage:
    python scripts/sync_ctl.py status            # Queue size, online flag, last sync
    python scripts/sync_ctl.py queue             # List pending operations
    python scripts/sync_ctl.py flush             # Run one flush cycle now
    python scripts/sync_ctl.py cleanup --days 7  # Drop operations older than N days
    python scripts/sync_ctl.py clear --yes       # Drop every pending operation
    python scripts/sync_ctl.py failures          # Show permanently failed operations
    python scripts/sync_ctl.py config            # Print configuration
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from smartcrm import config
from smartcrm.logging_config import setup_logging


def _print(data):
    print(json.dumps(data, indent=2, default=str))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Inspect and drive the SmartCRM sync queue.")
    parser.add_argument("--db", default=None, help=f"Database path (default: {config.DB_PATH})")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show sync status")
    sub.add_parser("queue", help="List pending operations")
    sub.add_parser("flush", help="Run one flush cycle")
    cleanup = sub.add_parser("cleanup", help="Remove old operations")
    cleanup.add_argument("--days", type=float, default=config.SYNC_MAX_AGE_DAYS,
                         help=f"Max age in days (default: {config.SYNC_MAX_AGE_DAYS})")
    clear = sub.add_parser("clear", help="Remove every pending operation")
    clear.add_argument("--yes", action="store_true", help="Confirm the destructive clear")
    sub.add_parser("failures", help="List unresolved permanent failures")
    sub.add_parser("config", help="Print configuration")

    args = parser.parse_args(argv)

    if args.command == "config":
        config.print_config()
        errors = config.validate()
        return 1 if errors else 0

    setup_logging(config.LOG_LEVEL, config.LOG_FORMAT, config.LOG_FILE)

    from smartcrm.sync.engine import DAY_MS
    from smartcrm.sync.factory import build_engine

    engine = build_engine(db_path=args.db, start_timer=False)
    try:
        if args.command == "status":
            status = engine.get_sync_status().to_dict()
            status["failed_count"] = engine.failure_log.count_unresolved()
            _print(status)
        elif args.command == "queue":
            _print([op.to_dict() for op in engine.pending_operations()])
        elif args.command == "flush":
            result = engine.force_sync()
            _print(result.to_dict())
            return 0 if result.success and not result.failed else 1
        elif args.command == "cleanup":
            removed = engine.cleanup_old_operations(int(args.days * DAY_MS))
            _print({"removed": removed})
        elif args.command == "clear":
            if not args.yes:
                print("Refusing to clear the queue without --yes", file=sys.stderr)
                return 2
            engine.clear_sync_queue()
            _print({"cleared": True})
        elif args.command == "failures":
            _print(engine.failure_log.list_failures())
    finally:
        engine.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
