"""Tolerant field parsing for records coming from the content API."""
import math
from datetime import date, datetime, UTC
from typing import Any, Iterable, Optional

import pandas as pd


def parse_int_id(value: Any) -> int:
    """
    Parse a record id.

    Raises:
        ValueError: If the value cannot be used as an integer id
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Invalid id: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid id: {value!r}") from None
    if math.isnan(number) or not number.is_integer():
        raise ValueError(f"Invalid id: {value!r}")
    return int(number)


def parse_float(value: Any, default: float = 0.0) -> float:
    """Parse a number, returning the default for missing, NaN or junk values."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    if value is None:
        return False
    try:
        if pd.isna(value):
            return False
    except (TypeError, ValueError):
        pass
    return bool(value)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into an aware UTC datetime.

    Naive values are treated as UTC. Unparseable values yield None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    try:
        timestamp = pd.to_datetime(value, utc=True, errors="coerce")
    except (TypeError, ValueError):
        return None
    if pd.isna(timestamp):
        return None
    return timestamp.to_pydatetime()


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_datetime(value)
    return parsed.date() if parsed is not None else None


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def collect_tags(*sources: Any) -> tuple[str, ...]:
    """
    Merge tag sources (strings or lists of strings) into one ordered tuple.

    Blank and non-string entries are dropped, duplicates keep their first position.
    """
    tags: list[str] = []
    for source in sources:
        if source is None:
            continue
        values: Iterable[Any] = [source] if isinstance(source, str) else source
        if not isinstance(values, (list, tuple)):
            continue
        for value in values:
            if not isinstance(value, str):
                continue
            tag = value.strip()
            if tag and tag not in tags:
                tags.append(tag)
    return tuple(tags)
