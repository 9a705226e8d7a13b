from __future__ import annotations

from datetime import datetime, timezone


def utc_now_aware() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:
    return utc_now_aware().astimezone(timezone.utc).replace(tzinfo=None)


def utc_now_iso() -> str:
    """Timestamp format used for history entries and memory records."""
    return utc_now_aware().isoformat(timespec="milliseconds")
