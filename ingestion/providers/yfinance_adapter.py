"""
yfinance adapter - fetch quotes, close histories, stock details and symbol search from Yahoo Finance.
Network IO allowed here, but minimal business logic.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
import yfinance as yf

from ingestion.errors import YFinanceError

logger = logging.getLogger(__name__)


def fetch_quote(ticker: str) -> Dict[str, Any]:
    """
    Fetch the raw quote for a ticker.
    Returns provider field names - no normalization.

    Raises:
        YFinanceError: If fetch fails or the provider has no quote
    """
    try:
        info = yf.Ticker(ticker).info
    except Exception as e:
        raise YFinanceError(f"Failed to fetch quote for {ticker}: {e}") from e

    if not info:
        raise YFinanceError(f"No quote returned for {ticker}")

    return dict(info)


def fetch_close_history(
    ticker: str,
    start: datetime,
    end: datetime,
    interval: str = '1d'
) -> List[Dict[str, Any]]:
    """
    Fetch close prices for a ticker within a time window.

    Args:
        ticker: Stock ticker symbol (e.g., 'AAPL')
        start: Window start (inclusive)
        end: Window end (exclusive, as yfinance treats it)
        interval: Bar interval ('1d', '1wk', ...)

    Returns:
        [{'Date': Timestamp, 'Close': float}, ...] in provider order

    Raises:
        YFinanceError: If fetch fails
    """
    if start > end:
        raise YFinanceError(f"start ({start}) must be <= end ({end})")

    try:
        data = yf.download(
            ticker,
            start=start,
            end=end,
            interval=interval,
            progress=False,
            auto_adjust=False
        )
    except Exception as e:
        raise YFinanceError(f"Failed to fetch prices for {ticker}: {e}") from e

    if data is None or data.empty:
        return []

    # Flatten multi-level columns (field, ticker)
    if isinstance(data.columns, pd.MultiIndex):
        data.columns = data.columns.get_level_values(0)

    if 'Close' not in data.columns:
        raise YFinanceError(f"No Close column in response for {ticker}")

    rows = []
    for date_idx, close in data['Close'].items():
        if pd.isna(close):
            continue
        rows.append({'Date': date_idx, 'Close': float(close)})

    return rows


def search_quotes(query: str, max_results: int = 10) -> List[Dict[str, Any]]:
    """
    Raw symbol search results (provider field names).

    Raises:
        YFinanceError: If the search fails
    """
    try:
        search = yf.Search(query, max_results=max_results, news_count=0)
        return list(search.quotes or [])
    except Exception as e:
        raise YFinanceError(f"Failed to search for {query!r}: {e}") from e


def _optional(ticker: str, what: str, fetch) -> Any:
    """Secondary detail sections are best effort; a failure leaves the section empty."""
    try:
        return fetch()
    except Exception as e:
        logger.warning(f"No {what} for {ticker}: {e}")
        return None


def _statement_rows(frame: Optional[pd.DataFrame]) -> List[Dict[str, Any]]:
    """Line items x periods frame -> [{'period': Timestamp, <line item>: value}] oldest first."""
    if frame is None or frame.empty:
        return []

    rows = []
    for period in sorted(frame.columns):
        row = {'period': period}
        row.update(frame[period].to_dict())
        rows.append(row)

    return rows


def fetch_stock_details(ticker: str) -> Dict[str, Any]:
    """
    Fetch the raw detail bundle for one stock.

    Returns:
        {'info': {...}, 'income_stmt': [...], 'recommendations': [...], 'news': [...]}
        with provider field names. Only 'info' is required; the other
        sections are empty when the provider has nothing for them.

    Raises:
        YFinanceError: If the summary info cannot be fetched
    """
    try:
        stock = yf.Ticker(ticker)
        info = stock.info
    except Exception as e:
        raise YFinanceError(f"Failed to fetch details for {ticker}: {e}") from e

    if not info:
        raise YFinanceError(f"No quote returned for {ticker}")

    recommendations = _optional(ticker, 'recommendation trend', lambda: stock.recommendations)
    if recommendations is None or recommendations.empty:
        recommendations = []
    else:
        recommendations = recommendations.to_dict('records')

    return {
        'info': dict(info),
        'income_stmt': _statement_rows(_optional(ticker, 'income statement', lambda: stock.income_stmt)),
        'recommendations': recommendations,
        'news': list(_optional(ticker, 'news', lambda: stock.news) or []),
    }
