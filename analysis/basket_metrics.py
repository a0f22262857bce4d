"""
Basket metrics aggregator - composes performance, correlation and returns for a basket.
Pure function over an already-fetched series; no IO.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from analysis.calculations.correlation import InsufficientDataError, correlation_matrix
from analysis.calculations.normalize import latest_performance, normalize_series
from analysis.calculations.returns import TIMEFRAMES, MAX_GAP_DAYS, Timeframe, trailing_returns
from analysis.calculations.series import data_period, sort_series

CALCULATION_VERSION = '1.0.0'


class BasketMetricsError(Exception):
    """Raised when basket metrics composition fails."""
    pass


def compose_basket_metrics(
    symbols: Sequence[str],
    series: List[Dict[str, Any]],
    as_of_date: Optional[date] = None,
    timeframes: Sequence[Timeframe] = TIMEFRAMES,
    max_gap_days: int = MAX_GAP_DAYS
) -> Dict[str, Any]:
    """
    Run every analytics engine over one series.

    Args:
        symbols: Basket symbols in display order
        series: Raw series rows (sorted here if needed)
        as_of_date: Date the metrics describe (defaults to today)
        timeframes: Trailing-return windows
        max_gap_days: Staleness tolerance for trailing returns

    Returns:
        Dictionary with normalized series, latest performance, correlation
        matrix (None when fewer than 2 symbols), returns table and metadata

    Raises:
        BasketMetricsError: If symbols is empty
    """
    symbols = list(dict.fromkeys(symbols))
    if not symbols:
        raise BasketMetricsError("Basket has no symbols")

    if as_of_date is None:
        as_of_date = date.today()

    series = sort_series(series)
    normalized = normalize_series(series, symbols)

    try:
        correlation = correlation_matrix(series, symbols)
        correlation_status = 'ok'
    except InsufficientDataError:
        correlation = None
        correlation_status = 'insufficient_data'

    return {
        'symbols': symbols,
        'as_of_date': as_of_date.isoformat(),
        'data_period': data_period(series),
        'normalized': normalized,
        'performance': latest_performance(normalized, symbols),
        'correlation': correlation,
        'correlation_status': correlation_status,
        'returns': trailing_returns(series, symbols, timeframes, max_gap_days),
        'metadata': {
            'calculated_at': datetime.now().isoformat(),
            'calculation_version': CALCULATION_VERSION
        }
    }


def summarize_quotes(quotes: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Headline figures for a basket card.

    Args:
        quotes: Normalized quotes (see ingestion.transforms.normalizers.normalize_quote)

    Returns:
        {'count', 'average_change_percent', 'best', 'worst'}; best/worst are
        symbols, None when there are no quotes
    """
    if not quotes:
        return {'count': 0, 'average_change_percent': None, 'best': None, 'worst': None}

    def change(quote):
        return quote.get('regularMarketChangePercent') or 0

    changes = [change(q) for q in quotes]

    return {
        'count': len(quotes),
        'average_change_percent': sum(changes) / len(changes),
        'best': max(quotes, key=change)['symbol'],
        'worst': min(quotes, key=change)['symbol']
    }
