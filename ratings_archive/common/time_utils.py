"""UTC-focused helpers for run metadata."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def generate_run_id() -> str:
    # Lexically sortable so run_meta files list in run order.
    return datetime.now(tz=timezone.utc).strftime("run-%Y%m%dT%H%M%S%fZ")
