"""Console variant of the alert flow.

Builds one alert from command-line arguments, dispatches it through the
same coordinator the API uses (Authority simulated, no database), prints
each channel outcome and appends a text block to a log file.

    python -m backend.app.console_demo --category fire --message "Kitchen fire" \\
        --contact "Priya,+919876543210,priya@example.com" --address "12 Beach Rd"

    python -m backend.app.console_demo --read-log
    python -m backend.app.console_demo --clear-log
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from backend.app.alerts.alert_service import NotificationCoordinator, StatusPolicy
from backend.app.alerts.models import AlertRecord, Contact, DispatchResult
from backend.app.alerts.validation import build_alert
from backend.app.core.config import settings
from backend.app.core.errors import EmergencyAPIError
from backend.app.core.logging_config import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILE = "emergency_logs.txt"
_RULE = "=" * 55


class TextLogFile:
    """Human-readable, append-only emergency log."""

    def __init__(self, path: str | Path = DEFAULT_LOG_FILE):
        self.path = Path(path)

    def append(self, alert: AlertRecord, result: DispatchResult) -> bool:
        lines = [
            "==================== EMERGENCY LOG ====================",
            f"Alert ID: {alert.id}",
            f"Type: {alert.category.value}",
            f"Status: {alert.status.value}",
            f"Message: {alert.message}",
            f"Address: {alert.address}",
            f"Timestamp: {datetime.now(timezone.utc).isoformat()}",
        ]
        lines += [
            f"  [{'OK' if o.success else 'FAIL'}] {o.channel.value}: {o.detail}"
            for o in result.outcomes
        ]
        lines += [_RULE, ""]
        try:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write("\n".join(lines) + "\n")
        except OSError as exc:
            logger.error("Could not open %s for writing: %s", self.path, exc)
            return False
        return True

    def read(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Could not open %s for reading: %s", self.path, exc)
            return None

    def clear(self) -> bool:
        try:
            self.path.write_text("", encoding="utf-8")
        except OSError as exc:
            logger.error("Could not clear %s: %s", self.path, exc)
            return False
        return True


def parse_contact(raw: str, index: int) -> Contact:
    """``"name,phone,email"``; phone and email may be left empty."""
    parts = [p.strip() for p in raw.split(",")]
    parts += [""] * (3 - len(parts))
    name, phone, email = parts[:3]
    return Contact(
        contact_id=f"cli-{index}",
        name=name or f"Contact {index}",
        phone=phone or None,
        email=email or None,
    )


def run_alert(
    alert: AlertRecord,
    contacts: Sequence[Contact],
    device_tokens: Sequence[str] = (),
    *,
    policy: StatusPolicy = StatusPolicy.STRICT,
) -> DispatchResult:
    coordinator = NotificationCoordinator(
        channel_timeout_seconds=settings.CHANNEL_TIMEOUT_SECONDS,
        policy=policy,
    )
    return asyncio.run(
        coordinator.dispatch(alert, contacts, device_tokens=device_tokens)
    )


def print_result(alert: AlertRecord, result: DispatchResult) -> None:
    print("\n=== Alert Summary ===")
    print(f"ID: {alert.id}")
    print(f"Type: {alert.category.value}")
    print(f"Message: {alert.message}")
    if alert.location:
        print(
            f"Location: {alert.address} "
            f"({alert.location.latitude}, {alert.location.longitude})"
        )
    for outcome in result.outcomes:
        mark = "✓" if outcome.success else "✗"
        print(f"  {mark} {outcome.channel.value}: {outcome.detail}")
    print(f"Status: {alert.status.value}")
    print(f"Overall success: {result.overall_success}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Raise an emergency alert from the console and log it.",
    )
    parser.add_argument("--category", default="general",
                        help="medical | fire | police | general")
    parser.add_argument("--message", default="", help="Alert message")
    parser.add_argument("--user", default="console", help="Originator id")
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lng", type=float, default=None)
    parser.add_argument("--address", default="")
    parser.add_argument(
        "--contact", action="append", default=[],
        help='Contact as "name,phone,email" (repeatable)',
    )
    parser.add_argument(
        "--device-token", action="append", default=[],
        help="Push device token (repeatable)",
    )
    parser.add_argument(
        "--policy", choices=[p.value for p in StatusPolicy],
        default=settings.STATUS_POLICY,
    )
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE)
    parser.add_argument("--read-log", action="store_true",
                        help="Print the log file and exit")
    parser.add_argument("--clear-log", action="store_true",
                        help="Truncate the log file and exit")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug-level logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)

    log_file = TextLogFile(args.log_file)

    if args.read_log:
        content = log_file.read()
        if content is None:
            return 1
        print("\n========== READING EMERGENCY LOGS FROM FILE ==========")
        print(content, end="")
        print(_RULE)
        return 0

    if args.clear_log:
        if not log_file.clear():
            return 1
        print(f"All logs cleared from: {log_file.path}")
        return 0

    try:
        alert = build_alert(
            args.user,
            args.category,
            args.message,
            latitude=args.lat,
            longitude=args.lng,
            address=args.address,
        )
    except EmergencyAPIError as exc:
        print(f"Invalid alert: {exc.message}", file=sys.stderr)
        return 2

    contacts = [parse_contact(raw, i) for i, raw in enumerate(args.contact, start=1)]
    result = run_alert(
        alert, contacts, args.device_token, policy=StatusPolicy(args.policy),
    )
    print_result(alert, result)

    if log_file.append(alert, result):
        print(f"\nEmergency log saved to file: {log_file.path}")
    return 0 if result.overall_success else 1


if __name__ == "__main__":
    sys.exit(main())
