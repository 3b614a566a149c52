"""
Pytest configuration and fixtures for drift signal tests.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List

import pytest

FIXED_NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


def iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def drift_line(ts: datetime, module: str = "alpha", **extra: Any) -> Dict[str, Any]:
    line = {"kind": "drift_event", "v": 2, "ts": iso(ts), "surface_id": "cli", "module": module}
    line.update(extra)
    return line


@pytest.fixture
def now() -> datetime:
    """A fixed reference time (midday UTC) so window math is reproducible."""
    return FIXED_NOW


@pytest.fixture
def write_jsonl(tmp_path: Path) -> Callable[[str, Iterable[Any]], Path]:
    """Write records (dicts or raw strings) as JSONL under tmp_path."""

    def _write(name: str, records: Iterable[Any]) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        lines: List[str] = []
        for record in records:
            lines.append(record if isinstance(record, str) else json.dumps(record))
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def days_ago(now: datetime) -> Callable[..., datetime]:
    def _days_ago(days: float, hours: float = 0.0) -> datetime:
        return now - timedelta(days=days, hours=hours)

    return _days_ago


@pytest.fixture
def make_event() -> Callable[..., Dict[str, Any]]:
    """Build a raw drift_event (v2) line."""
    return drift_line
