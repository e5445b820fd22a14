#!/usr/bin/env python
# backend/slotbook/commands/reminders.py
"""
Reminder management commands for Slotbook.

Usage:
    python -m slotbook.commands.reminders process          # Deliver due reminders now
    python -m slotbook.commands.reminders process --async  # Queue the scan on Celery
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from ..core.config import settings
from ..core.request_context import configure_logging

logger = logging.getLogger(__name__)


def process(async_mode: bool = False) -> int:
    if async_mode:
        from ..tasks.reminders import process_due_reminders

        result = process_due_reminders.delay()
        logger.info(f"Queued reminder scan as task {result.id}")
        print(json.dumps({"task_id": result.id, "mode": "async"}))
        return 0

    from ..tasks.reminders import run_reminder_scan

    outcome = run_reminder_scan(settings)
    print(json.dumps(outcome.model_dump(), indent=2))
    return 1 if outcome.failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Reminder management commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    process_parser = subparsers.add_parser("process", help="Deliver every due reminder")
    process_parser.add_argument(
        "--async",
        dest="async_mode",
        action="store_true",
        help="Submit the scan to the Celery queue instead of running inline",
    )

    args = parser.parse_args(argv)
    configure_logging(settings.log_level)

    if args.command == "process":
        return process(async_mode=args.async_mode)
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
