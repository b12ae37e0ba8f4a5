"""Command line entry point for maintenance tasks.

Usage:
    pulsewatch serve                      # API + scheduler
    pulsewatch schedule-checks            # Run one scheduler tick and wait for it
    pulsewatch heartbeat                  # Write the scheduler heartbeat once
    pulsewatch prune [--days N] [--dry-run]
    pulsewatch test-notification --user N --channel email|push
"""
import argparse
import asyncio
import logging

from .config import settings
from .database import async_session, init_db, close_db

logger = logging.getLogger(__name__)


async def _prune(days, dry_run: bool) -> int:
    from .services.pruner import retention_pruner

    count = await retention_pruner.prune(retention_days=days, dry_run=dry_run)
    if dry_run:
        print(f"DRY RUN: would delete {count} check record(s)")
    else:
        print(f"Deleted {count} check record(s)")
    return 0


async def _schedule_checks() -> int:
    from .services.scheduler import scheduler_service

    scheduled = await scheduler_service.tick()
    print(f"Dispatched {len(scheduled)} check job(s)")
    await scheduler_service.wait_for_checks()
    return 0


async def _heartbeat() -> int:
    from .services.heartbeat import heartbeat_recorder

    return 0 if await heartbeat_recorder.beat() else 1


async def _test_notification(user_id: int, channel: str, dispatcher=None) -> int:
    from .services.dispatcher import notification_dispatcher, NotificationNotConfiguredError

    dispatcher = dispatcher or notification_dispatcher
    async with async_session() as session:
        try:
            sent = await dispatcher.send_test(session, user_id, channel)
        except NotificationNotConfiguredError as e:
            print(f"Cannot send test {channel} notification: {e}")
            return 2

    print(f"Test {channel} notification {'sent' if sent else 'failed'} for user {user_id}")
    return 0 if sent else 1


async def _run(command: str, args) -> int:
    await init_db()
    try:
        if command == "prune":
            return await _prune(args.days, args.dry_run)
        if command == "schedule-checks":
            return await _schedule_checks()
        if command == "heartbeat":
            return await _heartbeat()
        if command == "test-notification":
            return await _test_notification(args.user, args.channel)
        raise ValueError(f"Unknown command: {command}")
    finally:
        await close_db()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pulsewatch", description="PulseWatch uptime monitor")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the API server and scheduler")
    sub.add_parser("schedule-checks", help="Check all due monitors once")
    sub.add_parser("heartbeat", help="Write the scheduler heartbeat")

    test = sub.add_parser("test-notification", help="Send a test alert using a user's saved settings")
    test.add_argument("--user", type=int, required=True, help="User ID")
    test.add_argument("--channel", choices=["email", "push"], required=True)

    prune = sub.add_parser("prune", help="Delete check history older than the retention period")
    prune.add_argument("--days", type=int, default=None, help="Days to retain (overrides CHECK_RETENTION_DAYS)")
    prune.add_argument("--dry-run", action="store_true", help="Count what would be deleted without deleting")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run("pulsewatch.main:app", host="0.0.0.0", port=settings.web_port)
        return 0

    return asyncio.run(_run(args.command, args))


if __name__ == "__main__":
    raise SystemExit(main())
