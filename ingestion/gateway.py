"""
Market data gateway - the single entry point the dashboard uses to fetch data.
Validates requests, calls provider adapters and returns normalized shapes.
Upstream failures surface as MarketDataError subclasses; the analytics engines never see them.
"""

import os
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from ingestion.errors import MarketDataError, YFinanceError
from ingestion.providers import massive_adapter, yfinance_adapter
from ingestion.transforms.normalizers import (
    DEFAULT_RANGE,
    DEFAULT_NEWS_COUNT,
    build_chain_params,
    date_param,
    merge_close_series,
    normalize_chain,
    normalize_contract_detail,
    normalize_option_quotes,
    normalize_quote,
    normalize_search_results,
    normalize_stock_details,
    range_start,
)
from ingestion.transforms.validators import (
    ValidationError,
    validate_contract_type,
    validate_interval,
    validate_option_ticker,
    validate_symbols,
    validate_ticker,
)

load_dotenv()

logger = logging.getLogger(__name__)


def _workers(count: int) -> int:
    return max(1, min(count, int(os.getenv('MARKET_DATA_WORKERS', '8'))))


def _as_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, datetime.min.time())


def get_quotes(symbols: List[str]) -> List[Dict[str, Any]]:
    """
    Normalized quotes for symbols, in request order.
    Symbols whose quote cannot be fetched are logged and skipped.

    Raises:
        ValidationError: If no valid symbols are given
    """
    symbols = validate_symbols(symbols)

    def fetch(symbol):
        try:
            return normalize_quote(yfinance_adapter.fetch_quote(symbol), symbol)
        except YFinanceError as e:
            logger.warning(f"Skipping quote for {symbol}: {e}")
            return None

    with ThreadPoolExecutor(max_workers=_workers(len(symbols))) as executor:
        quotes = list(executor.map(fetch, symbols))

    return [q for q in quotes if q is not None]


def get_historical_series(
    symbols: List[str],
    range_key: str = DEFAULT_RANGE,
    interval: str = '1d',
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Close-price series for several symbols merged by date.

    Args:
        symbols: Ticker symbols
        range_key: '1w', '1mo', '3mo', '6mo', '1y' or '5y' (unknown keys mean '1mo')
        interval: Bar interval
        start: Custom range start; overrides range_key together with end
        end: Custom range end (inclusive)
        now: Reference time for range_key (defaults to current UTC time)

    Returns:
        Series rows [{'date': ISO string, symbol: close, ...}] sorted ascending.
        A symbol that fails to fetch simply has no observations.

    Raises:
        ValidationError: If symbols or interval are invalid
    """
    symbols = validate_symbols(symbols)
    interval = validate_interval(interval)

    if now is None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)

    if start is not None:
        window_start = _as_datetime(start)
        # yfinance end is exclusive
        window_end = _as_datetime(end or now.date()) + timedelta(days=1)
        if window_start > window_end:
            raise ValidationError(f"start ({start}) must be <= end ({end})")
    else:
        window_end = now
        window_start = range_start(range_key, now)

    logger.info(f"Fetching {interval} history for {','.join(symbols)}: {window_start} to {window_end}")

    def fetch(symbol):
        try:
            return symbol, yfinance_adapter.fetch_close_history(symbol, window_start, window_end, interval)
        except YFinanceError as e:
            logger.warning(f"Failed to fetch history for {symbol}: {e}")
            return symbol, []

    with ThreadPoolExecutor(max_workers=_workers(len(symbols))) as executor:
        histories = dict(executor.map(fetch, symbols))

    series = merge_close_series(histories)
    logger.info(f"Merged {len(series)} points for {len(symbols)} symbols")
    return series


def search_symbols(query: str) -> List[Dict[str, Any]]:
    """
    Equity and ETF matches for a free-text query; blank queries return [].

    Raises:
        YFinanceError: If the search request fails
    """
    if not query or not query.strip():
        return []

    return normalize_search_results(yfinance_adapter.search_quotes(query.strip()))


def get_stock_details(symbol: str, news_count: int = DEFAULT_NEWS_COUNT) -> Dict[str, Any]:
    """
    Profile, key statistics, earnings, recommendation trend and news for one stock.

    Raises:
        ValidationError: If the symbol is invalid
        YFinanceError: If the summary info cannot be fetched
    """
    symbol = validate_ticker(symbol)
    if news_count < 0:
        raise ValidationError(f"news_count must be non-negative, got {news_count}")

    details = normalize_stock_details(yfinance_adapter.fetch_stock_details(symbol), symbol, news_count)

    logger.info(f"Loaded details for {symbol}: {len(details['earnings'])} earnings periods, "
                f"{len(details['news'])} news items")
    return details

def get_options_chain(ticker: str, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Options chain snapshot for an underlying.

    Args:
        ticker: Underlying symbol
        filters: Optional expiration_date[_gte|_lte], strike_price[_gte|_lte], contract_type

    Returns:
        {'status', 'underlying': {...}, 'contracts': [...]}

    Raises:
        ValidationError: If ticker or contract_type is invalid
        MassiveAPIError: If the provider request fails
    """
    ticker = validate_ticker(ticker)
    filters = dict(filters or {})

    if filters.get('contract_type'):
        validate_contract_type(filters['contract_type'])

    payload = massive_adapter.fetch_chain_snapshot(ticker, build_chain_params(filters))
    chain = normalize_chain(payload, ticker)

    logger.info(f"Loaded {len(chain['contracts'])} contracts for {ticker}")
    return chain


def get_option_contract_detail(option_ticker: str) -> Dict[str, Any]:
    """
    Snapshot of one option contract.

    Raises:
        ValidationError: If the OCC ticker is malformed
        MassiveAPIError: If the provider request fails
    """
    option_ticker = validate_option_ticker(option_ticker)
    payload = massive_adapter.fetch_contract_snapshot(option_ticker)

    # The snapshot endpoint wraps the contract in 'results'
    raw = payload.get('results', payload) if isinstance(payload, dict) else {}
    return normalize_contract_detail(raw or {})


def get_option_history(
    option_ticker: str,
    start: Optional[Any] = None,
    end: Optional[Any] = None
) -> Dict[str, Any]:
    """
    Quote history for one option contract.

    Returns:
        {'contract': {'ticker', 'underlying_ticker'}, 'quotes': [...]}

    Raises:
        ValidationError: If the OCC ticker is malformed
        MassiveAPIError: If the provider request fails
    """
    option_ticker = validate_option_ticker(option_ticker)
    payload = massive_adapter.fetch_contract_quotes(option_ticker, date_param(start), date_param(end))
    results = payload.get('results') or []

    return {
        'contract': {
            'ticker': option_ticker,
            'underlying_ticker': (results[0].get('underlying_ticker') if results else None) or '',
        },
        'quotes': normalize_option_quotes(results),
    }


__all__ = [
    'MarketDataError',
    'get_quotes',
    'get_historical_series',
    'search_symbols',
    'get_stock_details',
    'get_options_chain',
    'get_option_contract_detail',
    'get_option_history',
]
