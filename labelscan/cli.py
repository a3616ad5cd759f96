"""CLI commands for Label Scan."""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from labelscan.config import settings
from labelscan.services.allergen_matcher import UserAllergyProfile
from labelscan.services.errors import LocalStorageError, ScanFailedError
from labelscan.services.remote_store import SqlScanStore
from labelscan.services.scan_pipeline import ScanServices, build_scan_services


def _services(user_id: Optional[str] = None) -> ScanServices:
    # Anonymous runs never touch the database
    remote_store = SqlScanStore() if user_id else None
    return build_scan_services(remote_store=remote_store)


def scan(image_path: str, user_id: Optional[str] = None, allergies: Optional[str] = None) -> None:
    """Scan a label image and print the allergen check."""
    services = _services(user_id)
    if allergies is not None:
        profile = UserAllergyProfile.from_raw(user_id, allergies)
    else:
        profile = services.session.load_profile(user_id)

    try:
        outcome = asyncio.run(services.pipeline.scan(image_path, profile))
    except ScanFailedError as e:
        print(f"Error: {e}")
        sys.exit(1)

    alert = outcome.alert
    print(alert.title)
    print(alert.message)
    if alert.details:
        print(alert.details)

    payload = getattr(outcome.insight, "payload", None)
    if payload is not None and payload.health_summary:
        print()
        print(payload.health_summary)

    where = "saved" if outcome.saved_remotely else "saved on this device only"
    progress = outcome.daily_progress
    print()
    print(f"Scan {outcome.record.id} {where}. Today: {progress.count}/{progress.goal}")


def history(user_id: Optional[str] = None) -> None:
    """Print the detailed scan history, newest first."""
    services = _services(user_id)
    records = services.session.sync_history(user_id)
    if not records:
        print("No scans yet.")
        return

    for record in records:
        allergens = ", ".join(record.allergens) if record.allergens else "none"
        first_line = record.text.strip().splitlines()[0] if record.text.strip() else ""
        print(f"{record.timestamp:%Y-%m-%d %H:%M}  {record.id}  [{allergens}]  {first_line}")


def notifications(mark_seen: bool = False, clear: bool = False) -> None:
    """Print the notification feed, optionally marking it seen or clearing it."""
    counter = _services().notifications
    try:
        if clear:
            counter.clear()
            print("Notifications cleared.")
            return
        if mark_seen:
            counter.mark_seen()
    except LocalStorageError as e:
        print(f"Error: {e}")
        sys.exit(1)

    entries = counter.feed.load()
    print(f"{counter.unseen_count} unseen of {len(entries)}")
    for entry in entries:
        print(f"{entry.scanned_at:%Y-%m-%d %H:%M}  {entry.name}")


def main():
    parser = argparse.ArgumentParser(description="Label Scan CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="Scan a food label image")
    scan_parser.add_argument("image", help="Path to the label image")
    scan_parser.add_argument("--user-id", help="Signed-in user id (omit for anonymous)")
    scan_parser.add_argument(
        "--allergies", help="Comma-separated allergens (defaults to the user's profile)"
    )

    # history command
    history_parser = subparsers.add_parser("history", help="Show recent scans")
    history_parser.add_argument("--user-id", help="Sync history for this user first")

    # notifications command
    notifications_parser = subparsers.add_parser(
        "notifications", help="Show the notification feed"
    )
    group = notifications_parser.add_mutually_exclusive_group()
    group.add_argument("--mark-seen", action="store_true", help="Mark every entry as seen")
    group.add_argument("--clear", action="store_true", help="Empty the feed")

    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "scan":
        scan(args.image, args.user_id, args.allergies)
    elif args.command == "history":
        history(args.user_id)
    elif args.command == "notifications":
        notifications(mark_seen=args.mark_seen, clear=args.clear)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
