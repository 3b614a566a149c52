"""
Table-driven field extraction for schema-loose audit records.

Timestamps and risk scores are resolved by trying an ordered list of pure
extractor functions and keeping the first one that succeeds. Adding a new
record shape means adding an entry to a table, not another branch.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import math

from drift_signal.core.utils import epoch_to_datetime, is_number, parse_timestamp

Extractor = Callable[[Dict[str, Any]], Optional[Any]]


def _lookup(record: Dict[str, Any], path: tuple) -> Any:
    current: Any = record
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _timestamp_at(*path: str) -> Extractor:
    def extract(record: Dict[str, Any]) -> Optional[datetime]:
        value = _lookup(record, path)
        if isinstance(value, str):
            return parse_timestamp(value)
        if is_number(value):
            return epoch_to_datetime(float(value))
        return None

    extract.__name__ = f"timestamp_at_{'_'.join(path)}"
    return extract


def _numeric_string_timestamp_at(*path: str) -> Extractor:
    def extract(record: Dict[str, Any]) -> Optional[datetime]:
        value = _lookup(record, path)
        if not isinstance(value, str) or not value.strip():
            return None
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return epoch_to_datetime(number)

    extract.__name__ = f"numeric_string_at_{'_'.join(path)}"
    return extract


def _score_at(*path: str) -> Extractor:
    def extract(record: Dict[str, Any]) -> Optional[float]:
        value = _lookup(record, path)
        if is_number(value):
            number = float(value)
        elif isinstance(value, str) and value.strip():
            try:
                number = float(value.strip())
            except ValueError:
                return None
        else:
            return None
        return number if math.isfinite(number) else None

    extract.__name__ = f"score_at_{'_'.join(path)}"
    return extract


TIMESTAMP_EXTRACTORS: List[Extractor] = [
    # flat
    _timestamp_at("ts"),
    _timestamp_at("time"),
    _timestamp_at("timestamp"),
    _timestamp_at("at"),
    _timestamp_at("generated_at"),
    _timestamp_at("created_at"),
    _timestamp_at("createdAt"),
    _timestamp_at("updated_at"),
    _timestamp_at("updatedAt"),
    # event / meta envelopes
    _timestamp_at("event", "ts"),
    _timestamp_at("event", "time"),
    _timestamp_at("event", "timestamp"),
    _timestamp_at("meta", "ts"),
    _timestamp_at("meta", "time"),
    _timestamp_at("meta", "timestamp"),
    # snapshot
    _timestamp_at("snapshot", "ts"),
    _timestamp_at("snapshot", "time"),
    _timestamp_at("snapshot", "timestamp"),
    _timestamp_at("snapshot", "generated_at"),
    _timestamp_at("snapshot", "created_at"),
    _timestamp_at("snapshot", "createdAt"),
    _timestamp_at("snapshot", "updated_at"),
    _timestamp_at("snapshot", "updatedAt"),
    # receipt / audit / result
    _timestamp_at("receipt", "ts"),
    _timestamp_at("audit", "ts"),
    _timestamp_at("result", "ts"),
    # numeric epochs
    _timestamp_at("ts_ms"),
    _timestamp_at("time_ms"),
    _timestamp_at("timestamp_ms"),
    _timestamp_at("ts_s"),
    _timestamp_at("time_s"),
    _timestamp_at("timestamp_s"),
    # epoch written as a string
    _numeric_string_timestamp_at("ts"),
    _numeric_string_timestamp_at("time"),
    _numeric_string_timestamp_at("timestamp"),
]

SCORE_EXTRACTORS: List[Extractor] = [
    _score_at("risk_score"),
    _score_at("snapshot", "risk_score"),
    _score_at("snapshot", "risk", "score"),
    _score_at("risk", "score"),
]


def first_success(record: Dict[str, Any], extractors: List[Extractor]) -> Optional[Any]:
    for extractor in extractors:
        value = extractor(record)
        if value is not None:
            return value
    return None


def extract_timestamp(record: Dict[str, Any]) -> Optional[datetime]:
    return first_success(record, TIMESTAMP_EXTRACTORS)


def extract_risk_score(record: Dict[str, Any]) -> Optional[float]:
    return first_success(record, SCORE_EXTRACTORS)
