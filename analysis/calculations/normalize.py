"""
Performance normalization utilities.
Pure functions that re-base raw price series to percentage change from the first observation.
"""

from typing import Any, Dict, Iterable, List, Optional

from analysis.calculations.series import date_label, price_at


def base_values(series: List[Dict[str, Any]], symbols: Iterable[str]) -> Dict[str, float]:
    """
    Find the base value (first observed price) for each symbol.

    Symbols with no observation in the series are absent from the result.
    A first observation of 0 is still recorded as the base; percentage
    change from it is then undefined for the whole series.

    Args:
        series: Rows sorted ascending by date
        symbols: Symbols to look up

    Returns:
        Dictionary mapping symbol to its base price
    """
    pending = list(dict.fromkeys(symbols))
    bases = {}

    for point in series:
        if not pending:
            break
        for symbol in list(pending):
            price = price_at(point, symbol)
            if price is not None:
                bases[symbol] = price
                pending.remove(symbol)

    return bases


def percent_change(price: Optional[float], base: Optional[float]) -> Optional[float]:
    """
    Percentage change of price relative to base.

    Formula: (price - base) / base * 100

    Returns None when either value is missing or base is 0.
    """
    if price is None or base is None or base == 0:
        return None

    return (price - base) / base * 100


def normalize_series(series: List[Dict[str, Any]], symbols: Iterable[str]) -> List[Dict[str, Any]]:
    """
    Convert raw prices to percentage change from each symbol's base value.

    No interpolation or forward-fill: gaps stay None.

    Args:
        series: Rows like {'date': ..., 'AAPL': 100.0, 'MSFT': None}, ascending by date
        symbols: Symbols to normalize

    Returns:
        One row per input row:
        {'date': ..., 'date_label': '1/15/2024', 'original': {symbol: price}, symbol: pct}

    Example:
        AAPL prices [100, 102, 110] -> values [0.0, 2.0, 10.0]
    """
    symbols = list(dict.fromkeys(symbols))

    if not series:
        return []

    bases = base_values(series, symbols)
    normalized = []

    for point in series:
        original = {symbol: price_at(point, symbol) for symbol in symbols}

        row = {
            'date': point.get('date'),
            'date_label': date_label(point.get('date')),
            'original': original
        }
        for symbol in symbols:
            row[symbol] = percent_change(original[symbol], bases.get(symbol))

        normalized.append(row)

    return normalized


def latest_performance(normalized: List[Dict[str, Any]], symbols: Iterable[str]) -> Dict[str, Optional[float]]:
    """Most recent non-null normalized value per symbol (None if the symbol never has one)."""
    result = {}

    for symbol in symbols:
        result[symbol] = None
        for row in reversed(normalized):
            value = row.get(symbol)
            if value is not None:
                result[symbol] = value
                break

    return result
