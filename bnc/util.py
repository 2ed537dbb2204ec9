"""
Utility functions for console output and timestamps.
"""

import time
from datetime import datetime, timezone


def info(msg: str) -> None:
    """Print an info message."""
    print(f"[info] {msg}")


def warn(msg: str) -> None:
    """Print a warning message."""
    print(f"[warn] {msg}")


def ok(msg: str) -> None:
    """Print a success message."""
    print(f"[ok] {msg}")


def now_ms() -> int:
    """Milliseconds since the Unix epoch."""
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T12:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def today_stamp() -> str:
    """UTC date as YYYY-MM-DD, used in export file names."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")
