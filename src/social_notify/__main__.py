#!/usr/bin/env python3
"""
Social Notify CLI Entry Point

Operational commands against the SQLite reference store.
Run with: python -m social_notify <command> [args]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone

from . import __version__


def get_utc_timestamp() -> str:
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def output_json(data: dict, indent: int = 2) -> None:
    """Print JSON output to stdout."""
    print(json.dumps(data, indent=indent, ensure_ascii=False, default=str))


def output_error(message: str, exit_code: int = 1, **kwargs) -> None:
    """Print error JSON and exit."""
    error_data = {
        "error": kwargs.pop("error_type", "error"),
        "message": message,
        "query_timestamp": get_utc_timestamp(),
    }
    error_data.update(kwargs)
    output_json(error_data)
    sys.exit(exit_code)


async def _with_dispatcher(action):
    """Run ``action(dispatcher)`` against an initialized SQLite-backed dispatcher."""
    from .services.notifications import NotificationDispatcher
    from .services.store import SQLiteNotificationStore

    dispatcher = NotificationDispatcher(store=SQLiteNotificationStore())
    await dispatcher.initialize()
    try:
        return await action(dispatcher)
    finally:
        await dispatcher.close()


# =============================================================================
# Commands
# =============================================================================


def cmd_scan(args: argparse.Namespace) -> dict:
    """Run every periodic job once and report the results."""

    async def run(dispatcher) -> dict:
        results = await dispatcher.scheduler.run_all()
        delivered = await dispatcher.outbound.process_due()
        return {
            "jobs": {
                name: result.to_dict() if hasattr(result, "to_dict") else result
                for name, result in results.items()
            },
            "deliveries": delivered,
            "outbound": dispatcher.outbound.get_health().to_dict(),
        }

    result = asyncio.run(_with_dispatcher(run))
    result["query_timestamp"] = get_utc_timestamp()
    return result


def cmd_classify(args: argparse.Namespace) -> dict:
    """Classify a notification type."""
    from .services.notifications import ClassificationContext, classify

    context = ClassificationContext(
        sender_is_friend=args.friend,
        user_has_high_engagement=args.engaged,
    )
    return classify(args.type, context).to_dict()


def cmd_rate_status(args: argparse.Namespace) -> dict:
    """Rate-limit status as seen by a fresh process."""
    from .core import get_settings
    from .services.notifications import RateLimiter

    settings = get_settings()
    limiter = RateLimiter(
        max_per_day=settings.max_notifications_per_day,
        max_push_per_hour=settings.max_push_per_hour,
    )
    return limiter.get_status(args.user_id)


def cmd_streak(args: argparse.Namespace) -> dict:
    """Show a user's posting streak."""

    async def run(dispatcher) -> dict:
        status = await dispatcher.streaks.get_status(args.user_id)
        if status is None:
            return {
                "error": "not_found",
                "message": f"Unknown user: {args.user_id}",
            }
        return {"user_id": args.user_id, **status.to_dict()}

    return asyncio.run(_with_dispatcher(run))


def cmd_reengagement_stats(args: argparse.Namespace) -> dict:
    """Inactive-user counts by re-engagement tier."""

    async def run(dispatcher) -> dict:
        stats = await dispatcher.reengagement.get_stats()
        return stats.to_dict()

    result = asyncio.run(_with_dispatcher(run))
    result["query_timestamp"] = get_utc_timestamp()
    return result


# =============================================================================
# Main Entry Point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="social-notify",
        description="Social Notify - notification orchestration engine",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    scan_parser = subparsers.add_parser("scan", help="Run all periodic jobs once")
    scan_parser.set_defaults(func=cmd_scan)

    classify_parser = subparsers.add_parser("classify", help="Classify a notification type")
    classify_parser.add_argument("type", help="Notification type (e.g. POST_LIKE)")
    classify_parser.add_argument(
        "--friend", action="store_true", help="Sender is a friend of the recipient"
    )
    classify_parser.add_argument(
        "--engaged", action="store_true", help="Recipient is highly engaged"
    )
    classify_parser.set_defaults(func=cmd_classify)

    rate_parser = subparsers.add_parser("rate-status", help="Show rate-limit status for a user")
    rate_parser.add_argument("user_id")
    rate_parser.set_defaults(func=cmd_rate_status)

    streak_parser = subparsers.add_parser("streak", help="Show a user's posting streak")
    streak_parser.add_argument("user_id")
    streak_parser.set_defaults(func=cmd_streak)

    stats_parser = subparsers.add_parser(
        "reengagement-stats", help="Show inactive-user counts by tier"
    )
    stats_parser.set_defaults(func=cmd_reengagement_stats)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        result = args.func(args)

        if isinstance(result, dict) and result:
            output_json(result)

            # Return non-zero exit code if result contains error
            if "error" in result:
                return 1

        return 0

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        output_error(str(e), error_type="command_error", command=args.command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
