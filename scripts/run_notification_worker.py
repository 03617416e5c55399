#!/usr/bin/env python3
"""Run the Kafka notification worker.

One consumer handles every organization/event topic. Unless disabled with
REMINDER_INTERVAL_SECONDS=0, a background thread sends day-ahead event
reminders on a fixed interval.
"""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from notification_core.adapters.kafka_runtime import run_notification_worker_forever  # noqa: E402
from notification_core.config import load_env_file, setup_logging  # noqa: E402
from notification_core.wiring import build_runtime  # noqa: E402


def main() -> int:
    args = parse_args()
    load_env_file(REPO_ROOT / ".env")
    setup_logging()

    runtime = build_runtime()
    stop = threading.Event()
    interval = runtime.settings.reminder_interval_seconds
    reminder_thread = None
    if interval > 0 and not args.no_reminders:
        reminder_thread = threading.Thread(
            target=runtime.scheduler.run_forever,
            args=(interval, stop),
            name="event-reminders",
            daemon=True,
        )
        reminder_thread.start()

    try:
        return run_notification_worker_forever(runtime.bindings, stop=stop)
    finally:
        stop.set()
        if reminder_thread is not None:
            reminder_thread.join(timeout=5)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run Kafka consumer loop for organization and event notifications."
    )
    parser.add_argument(
        "--no-reminders",
        action="store_true",
        help="Do not start the periodic event-reminder thread.",
    )
    return parser.parse_args()


if __name__ == "__main__":
    sys.exit(main())
