# app/cli.py
"""
Command-line entry point.

Usage:
    python -m app.cli sync [--dry-run] [--days N]
    python -m app.cli inspect [--days N]
    python -m app.cli cleanup [--days N] [--yes]
    python -m app.cli logout
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable, List, Optional

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.session import AsyncSessionLocal, init_db
from app.schemas.sync import SyncRunResult, SyncWindow
from app.schemas.time_entry import ExistingEntry
from app.services.clockify_client import ClockifyClient, ClockifyClientError
from app.services.duplicate_detector import find_duplicate_tags, group_by_meeting
from app.services.fingerprint import TAG_PREFIX
from app.services.google_meet_client import GoogleMeetClientError
from app.services.google_oauth import GoogleOAuthError
from app.services.sync_job import SyncConfigurationError, build_clockify_client, run_sync_job
from app.services.token_storage import delete_tokens, load_tokens

logger = logging.getLogger(__name__)

CONFIRM_PHRASE = "DELETE GOOGLE MEET ENTRIES"
MAX_DAYS = 365


def _days(value: str) -> int:
    try:
        days = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of days: {value!r}")
    if not 1 <= days <= MAX_DAYS:
        raise argparse.ArgumentTypeError(f"days must be between 1 and {MAX_DAYS}, got {days}")
    return days


def format_summary(result: SyncRunResult) -> str:
    stats = result.stats
    if result.dry_run:
        lines = [
            "DRY RUN complete - no changes were made",
            f"  Google Meet meetings found: {stats.meetings_found}",
            f"  Would be created:           {stats.synced}",
            f"  Already exist:              {stats.skipped}",
            f"  Would fail:                 {stats.failed}",
            f"  Current total in Clockify:  {stats.total_in_target - stats.synced}",
        ]
    else:
        lines = [
            "Sync complete",
            f"  Google Meet meetings found: {stats.meetings_found}",
            f"  Newly synced:               {stats.synced}",
            f"  Already existed:            {stats.skipped}",
            f"  Failed:                     {stats.failed}",
            f"  Total in Clockify now:      {stats.total_in_target}",
        ]
    return "\n".join(lines)


async def _sync(args: argparse.Namespace) -> int:
    await init_db()
    result = await run_sync_job(
        triggered_by="cli",
        dry_run=True if args.dry_run else None,
        days=args.days,
    )
    print(format_summary(result))
    return 0


async def _tagged_entries(clockify: ClockifyClient, days: int) -> tuple[list, list]:
    await clockify.initialize()
    window = SyncWindow.last_days(days)
    entries = await clockify.fetch_existing_entries(window.start_date, window.end_date)
    tagged = [e for e in entries if TAG_PREFIX in e.description]
    return entries, tagged


async def _inspect(args: argparse.Namespace) -> int:
    settings = get_settings()
    clockify = build_clockify_client(settings)
    days = settings.SYNC_DAYS if args.days is None else args.days
    entries, tagged = await _tagged_entries(clockify, days)

    print(f"Total time entries: {len(entries)}")
    print(f"Google Meet entries: {len(tagged)}")

    for meeting_id, group in sorted(group_by_meeting(tagged).items()):
        print(f"\n{meeting_id} ({len(group)} entr{'y' if len(group) == 1 else 'ies'})")
        for entry in group:
            print(f"  {entry.start}  {entry.description}")

    duplicates = find_duplicate_tags(tagged)
    if duplicates:
        print(f"\nMeetings with duplicate entries: {len(duplicates)}")
        for meeting_id, group in duplicates.items():
            print(f"  {meeting_id}: {len(group)} entries")
    else:
        print("\nNo duplicate meeting entries found.")
    return 0


async def _cleanup(
    args: argparse.Namespace,
    prompt: Callable[[str], str] = input,
) -> int:
    settings = get_settings()
    clockify = build_clockify_client(settings)
    days = settings.SYNC_DAYS if args.days is None else args.days
    entries, tagged = await _tagged_entries(clockify, days)

    print(f"Total time entries in range: {len(entries)}")
    print(f"Google Meet entries found:   {len(tagged)}")
    print(f"Other entries (untouched):   {len(entries) - len(tagged)}")

    if not tagged:
        print("No Google Meet entries found. Nothing to delete.")
        return 0

    if not args.yes:
        if prompt(f"Type the number of entries to delete ({len(tagged)}) to continue: ").strip() != str(len(tagged)):
            print("Confirmation failed. Aborting cleanup.")
            return 1
        if prompt(f'Type "{CONFIRM_PHRASE}" to proceed: ').strip() != CONFIRM_PHRASE:
            print("Confirmation failed. Aborting cleanup.")
            return 1

    deleted, failed = await delete_entries(
        clockify, tagged, delay_seconds=settings.CLOCKIFY_API_DELAY_MS / 1000.0
    )
    print(f"Deleted: {deleted}, failed: {failed}")
    return 0 if failed == 0 else 1


async def _logout(args: argparse.Namespace) -> int:
    await init_db()
    async with AsyncSessionLocal() as db:
        if await load_tokens(db) is None:
            print("No stored Google credentials.")
            return 0
        await delete_tokens(db)
    print("Stored Google credentials removed. Visit /auth to authenticate again.")
    return 0


async def delete_entries(
    clockify: ClockifyClient,
    entries: List[ExistingEntry],
    delay_seconds: float = 0.0,
    sleep=asyncio.sleep,
) -> tuple[int, int]:
    """
    Delete entries one by one, pausing between calls. Returns (deleted, failed).
    """
    deleted = failed = 0
    for index, entry in enumerate(entries):
        try:
            await clockify.delete_entry(entry.id)
            deleted += 1
        except ClockifyClientError as exc:
            failed += 1
            logger.warning("Failed to delete entry %s: %s", entry.id, exc)
        if index < len(entries) - 1:
            await sleep(delay_seconds)
    return deleted, failed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meet-clockify-sync",
        description="Sync Google Meet attendance history to Clockify time entries.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Run one sync pass")
    sync.add_argument("--dry-run", action="store_true", help="Do not create entries")
    sync.add_argument("--days", type=_days, default=None, help="Days back from now (1-365)")
    sync.set_defaults(handler=_sync)

    inspect = sub.add_parser("inspect", help="List synced meeting entries and duplicates")
    inspect.add_argument("--days", type=_days, default=None, help="Days back from now (1-365)")
    inspect.set_defaults(handler=_inspect)

    cleanup = sub.add_parser("cleanup", help="Delete synced meeting entries")
    cleanup.add_argument("--days", type=_days, default=None, help="Days back from now (1-365)")
    cleanup.add_argument("--yes", action="store_true", help="Skip confirmation prompts")
    cleanup.set_defaults(handler=_cleanup)

    logout = sub.add_parser("logout", help="Forget the stored Google credentials")
    logout.set_defaults(handler=_logout)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().LOG_LEVEL)

    try:
        return asyncio.run(args.handler(args))
    except SyncConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
    except GoogleOAuthError as exc:
        print(f"Google authentication required: {exc}", file=sys.stderr)
    except (GoogleMeetClientError, ClockifyClientError) as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
