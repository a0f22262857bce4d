"""
Returns calculation utilities.
Pure functions for trailing returns over calendar-day windows with a staleness tolerance.
"""

from bisect import bisect_right
from collections import namedtuple
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from analysis.calculations.series import observation_index, parse_date, price_at, sort_series


class ReturnsError(Exception):
    """Raised when returns calculation fails."""
    pass


Timeframe = namedtuple('Timeframe', ['label', 'days'])

TIMEFRAMES = (
    Timeframe('1D', 1),
    Timeframe('1W', 7),
    Timeframe('1M', 30),
    Timeframe('3M', 90),
    Timeframe('6M', 180),
    Timeframe('9M', 270),
    Timeframe('1Y', 365),
    Timeframe('1.5Y', 547),
    Timeframe('2Y', 730),
    Timeframe('3Y', 1095),
    Timeframe('4Y', 1460),
    Timeframe('5Y', 1825),
)

# Max distance between a window's target date and the sample used for it
MAX_GAP_DAYS = 10

DEFAULT_INVESTMENT = 1000

SORT_DIRECTIONS = ('asc', 'desc')


def simple_return(current_price: float, past_price: float) -> Optional[float]:
    """
    Percentage return between two prices.

    Formula: (P_now - P_past) / P_past * 100

    Returns None when past_price is 0.
    """
    if past_price == 0:
        return None

    return (current_price - past_price) / past_price * 100


def symbol_returns(
    series: List[Dict[str, Any]],
    symbol: str,
    timeframes: Sequence[Timeframe] = TIMEFRAMES,
    max_gap_days: int = MAX_GAP_DAYS
) -> Dict[str, Any]:
    """
    Trailing returns for one symbol.

    For each window the past sample is the latest observation dated on or
    before (current date - window). It is rejected when it sits more than
    max_gap_days before the target date.

    Args:
        series: Series rows (sorted ascending by date here, stable for equal dates)
        symbol: Symbol to evaluate
        timeframes: Windows to compute
        max_gap_days: Staleness tolerance in days (inclusive)

    Returns:
        {'symbol', 'current_price', 'current_date', 'returns': {label: pct or None}}

    Example:
        Daily samples for 40 days, 1M window, sample 30 days back missing:
        the sample 31 days back is used (gap = 1 day).
    """
    row = {
        'symbol': symbol,
        'current_price': None,
        'current_date': None,
        'returns': {tf.label: None for tf in timeframes}
    }

    # bisect over observed dates needs ascending rows
    series = sort_series(series)

    observed = observation_index(series, symbol)
    if not observed:
        return row

    current_idx = observed[-1]
    current_price = price_at(series[current_idx], symbol)
    current_date = parse_date(series[current_idx].get('date'))

    row['current_price'] = current_price
    row['current_date'] = current_date.isoformat()

    # A zero latest price is shown but yields no returns
    if not current_price:
        return row

    observed_dates = [parse_date(series[i].get('date')) for i in observed]
    tolerance = timedelta(days=max_gap_days)

    for tf in timeframes:
        target_date = current_date - timedelta(days=tf.days)

        pos = bisect_right(observed_dates, target_date)
        if pos == 0:
            continue

        past_idx = observed[pos - 1]
        gap = abs(target_date - observed_dates[pos - 1])
        if gap > tolerance:
            continue

        row['returns'][tf.label] = simple_return(current_price, price_at(series[past_idx], symbol))

    return row


def trailing_returns(
    series: List[Dict[str, Any]],
    symbols: Sequence[str],
    timeframes: Sequence[Timeframe] = TIMEFRAMES,
    max_gap_days: int = MAX_GAP_DAYS
) -> List[Dict[str, Any]]:
    """
    Trailing returns table, one row per symbol in input order.

    Args:
        series: Series rows in any order
        symbols: Symbols to evaluate
        timeframes: Windows to compute
        max_gap_days: Staleness tolerance in days

    Returns:
        List of return rows (see symbol_returns)
    """
    if max_gap_days < 0:
        raise ReturnsError("max_gap_days must be non-negative")

    for tf in timeframes:
        if tf.days <= 0:
            raise ReturnsError(f"Window {tf.label} must be positive, got {tf.days} days")

    return [
        symbol_returns(series, symbol, timeframes, max_gap_days)
        for symbol in symbols
    ]


def _sort_value(row: Dict[str, Any], key: str) -> Any:
    if key == 'symbol':
        return row['symbol']
    if key == 'current_price':
        return row['current_price']
    return row['returns'].get(key)


def sort_return_rows(
    rows: List[Dict[str, Any]],
    key: str,
    direction: str = 'desc'
) -> List[Dict[str, Any]]:
    """
    Sort return rows by a column; None values go last in both directions.

    Args:
        rows: Output of trailing_returns
        key: 'symbol', 'current_price' or a window label such as '1M'
        direction: 'asc' or 'desc'

    Returns:
        New sorted list (stable for ties)

    Raises:
        ReturnsError: If key or direction is unknown
    """
    if direction not in SORT_DIRECTIONS:
        raise ReturnsError(f"Sort direction must be one of {SORT_DIRECTIONS}, got {direction!r}")

    if not rows:
        return []

    known_keys = {'symbol', 'current_price'}
    for row in rows:
        known_keys.update(row['returns'].keys())

    if key not in known_keys:
        raise ReturnsError(f"Unknown sort key: {key}")

    present = [row for row in rows if _sort_value(row, key) is not None]
    missing = [row for row in rows if _sort_value(row, key) is None]

    present = sorted(present, key=lambda row: _sort_value(row, key), reverse=(direction == 'desc'))

    return present + missing


def next_sort_state(current: Optional[Tuple[str, str]], key: str) -> Tuple[str, str]:
    """
    Sort state after selecting a column.

    Selecting the active column flips its direction; a new column starts
    descending (highest returns first).
    """
    if current is not None and current[0] == key:
        return key, 'asc' if current[1] == 'desc' else 'desc'

    return key, 'desc'


def project_investment(
    amount: float,
    return_pct: Optional[float]
) -> Dict[str, Optional[float]]:
    """
    Value of a hypothetical investment after a given return.

    Formula: value = amount * (1 + return / 100)

    Returns:
        {'invested', 'current_value', 'profit'}; value and profit are None
        when the return is unknown
    """
    if return_pct is None:
        return {'invested': amount, 'current_value': None, 'profit': None}

    current_value = amount * (1 + return_pct / 100)

    return {
        'invested': amount,
        'current_value': current_value,
        'profit': current_value - amount
    }
