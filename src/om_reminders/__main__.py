"""Entry point: python -m om_reminders"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys

from om_reminders.cache.types import COLLECTION_KINDS, SyncFailed
from om_reminders.infrastructure.config import DISPATCH_POLL_INTERVAL
from om_reminders.infrastructure.logger import logger


async def serve(interval_s: float) -> None:
    from om_reminders.app import ReminderApp

    app = ReminderApp()

    # Handle graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await app.start(interval_s)

        # Wait for shutdown signal
        await shutdown_event.wait()
    finally:
        await app.shutdown()


async def run_once(dry_run: bool) -> int:
    from om_reminders.app import ReminderApp
    from om_reminders.dispatch.email import RecordingEmailSender

    app = ReminderApp(sender=RecordingEmailSender() if dry_run else None)
    app.init()
    try:
        result = await app.run_once()
    except SyncFailed as err:
        print(json.dumps({"success": False, "error": "unavailable", "message": err.message}))
        return 1
    finally:
        await app.shutdown()
    print(json.dumps({"success": True, "data": result.model_dump()}, indent=2))
    return 0


def sync(kind: str) -> int:
    from om_reminders.app import ReminderApp

    app = ReminderApp()
    app.init()
    try:
        kinds = COLLECTION_KINDS if kind == "all" else (kind,)
        exit_code = 0
        for k in kinds:
            try:
                result = app.cache.sync(k)  # type: ignore[arg-type]
                print(f"{k}: {result.count} entries (synced {result.synced_at})")
            except SyncFailed as err:
                print(f"{k}: {err.message}", file=sys.stderr)
                exit_code = 1
        return exit_code
    finally:
        app.close()


def status() -> int:
    from om_reminders.app import ReminderApp

    app = ReminderApp()
    app.init()
    try:
        report: dict[str, object] = {"timezone": app.config.timezone, "caches": {}}
        for kind in COLLECTION_KINDS:
            view = app.cache.view(kind)
            report["caches"][kind] = {  # type: ignore[index]
                "cache_exists": view.cache_exists,
                "last_synced": view.last_synced,
                "count": view.count,
            }
        latest = app.run_logs.get_latest()
        report["last_run"] = latest.model_dump() if latest else None
        print(json.dumps(report, indent=2))
        return 0
    finally:
        app.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="om-reminders", description="Recurring task reminder service")
    sub = parser.add_subparsers(dest="command")

    serve_parser = sub.add_parser("serve", help="Run the periodic dispatch loop and command watcher")
    serve_parser.add_argument("--interval", type=float, default=DISPATCH_POLL_INTERVAL, help="Seconds between runs")

    once_parser = sub.add_parser("run-once", help="Run one dispatch pass and print the summary")
    once_parser.add_argument("--dry-run", action="store_true", help="Record emails instead of sending them")

    sync_parser = sub.add_parser("sync", help="Rebuild cache snapshots")
    sync_parser.add_argument("kind", nargs="?", default="all", choices=[*COLLECTION_KINDS, "all"])

    sub.add_parser("status", help="Show cache and last run status")
    return parser


def run() -> None:
    args = build_parser().parse_args()

    if args.command == "run-once":
        sys.exit(asyncio.run(run_once(args.dry_run)))
    if args.command == "sync":
        sys.exit(sync(args.kind))
    if args.command == "status":
        sys.exit(status())

    try:
        asyncio.run(serve(getattr(args, "interval", DISPATCH_POLL_INTERVAL)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
