"""
Series helpers shared by the analytics engines.
Pure functions over lists of dated multi-symbol price rows.

A Series row looks like {'date': '2024-01-15T00:00:00.000Z', 'AAPL': 185.9, 'MSFT': None}.
A symbol missing from a row, None, and NaN all mean "no observation".
"""

import math
import numbers
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd


class SeriesError(Exception):
    """Raised when a series row cannot be interpreted."""
    pass


def parse_date(value: Any) -> datetime:
    """
    Coerce a row date into a naive UTC datetime.

    Args:
        value: ISO-8601 string, date, datetime or pandas Timestamp

    Returns:
        Naive datetime (timezone-aware inputs are converted to UTC)

    Raises:
        SeriesError: If the value cannot be parsed as a date
    """
    if value is None:
        raise SeriesError("Row date is missing")

    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError) as e:
        raise SeriesError(f"Invalid row date: {value!r}") from e

    if pd.isna(ts):
        raise SeriesError(f"Invalid row date: {value!r}")

    if ts.tzinfo is not None:
        ts = ts.tz_convert('UTC').tz_localize(None)

    return ts.to_pydatetime()


def price_at(point: Dict[str, Any], symbol: str) -> Optional[float]:
    """
    Usable price for symbol in a row, or None when there is no observation.

    None, NaN, booleans and non-numeric values are all treated as missing.
    """
    value = point.get(symbol)

    if value is None or isinstance(value, bool):
        return None

    if not isinstance(value, numbers.Real):
        return None

    value = float(value)
    if not math.isfinite(value):
        return None

    return value


def date_label(value: Any) -> str:
    """Short display label for a row date, e.g. '1/15/2024'."""
    d = parse_date(value)
    return f"{d.month}/{d.day}/{d.year}"


def sort_series(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return a new list of rows sorted ascending by date (stable)."""
    return sorted(rows, key=lambda row: parse_date(row.get('date')))


def observation_index(series: List[Dict[str, Any]], symbol: str) -> List[int]:
    """
    Ascending row indices that carry a price for symbol.

    Lets the engines replace repeated linear scans with bisect lookups.
    """
    return [i for i, point in enumerate(series) if price_at(point, symbol) is not None]


def data_period(series: List[Dict[str, Any]]) -> Dict[str, Any]:
    """First date, last date and row count of a Series."""
    if not series:
        return {'start_date': None, 'end_date': None, 'points': 0}

    return {
        'start_date': parse_date(series[0].get('date')).isoformat(),
        'end_date': parse_date(series[-1].get('date')).isoformat(),
        'points': len(series)
    }
