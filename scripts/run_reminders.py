#!/usr/bin/env python3
"""Send tomorrow's event reminders once and print how many went out."""

from __future__ import annotations

import sys
from pathlib import Path

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from notification_core.config import load_env_file, setup_logging  # noqa: E402
from notification_core.wiring import build_runtime  # noqa: E402


def main() -> int:
    load_env_file(REPO_ROOT / ".env")
    setup_logging()

    runtime = build_runtime()
    sent = runtime.scheduler.run_due()

    print("[REMINDERS]")
    print(f"sent={sent}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
