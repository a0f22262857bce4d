"""
Normalizers for transforming provider data to canonical shape.
Pure functions - no IO, network, or side effects.
Minimal normalization - only when necessary.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from analysis.calculations.series import parse_date

SEARCH_QUOTE_TYPES = ('EQUITY', 'ETF')

# Range key -> lookback offset for the historical series endpoint
RANGE_OFFSETS = {
    '1w': pd.DateOffset(days=7),
    '1mo': pd.DateOffset(months=1),
    '3mo': pd.DateOffset(months=3),
    '6mo': pd.DateOffset(months=6),
    '1y': pd.DateOffset(years=1),
    '5y': pd.DateOffset(years=5),
}

DEFAULT_RANGE = '1mo'

# Options query filter -> provider query parameter
CHAIN_FILTER_PARAMS = {
    'expiration_date': 'expiration_date',
    'expiration_date_gte': 'expiration_date.gte',
    'expiration_date_lte': 'expiration_date.lte',
    'strike_price': 'strike_price',
    'strike_price_gte': 'strike_price.gte',
    'strike_price_lte': 'strike_price.lte',
    'contract_type': 'contract_type',
}


def to_iso_timestamp(value: Any) -> str:
    """Render a date as a UTC ISO-8601 string, e.g. '2024-01-15T00:00:00.000Z'."""
    return parse_date(value).isoformat(timespec='milliseconds') + 'Z'


def range_start(range_key: str, end: datetime) -> datetime:
    """
    Start of a chart range ending at end.
    Unknown range keys fall back to one month.
    """
    offset = RANGE_OFFSETS.get(range_key, RANGE_OFFSETS[DEFAULT_RANGE])
    return (pd.Timestamp(end) - offset).to_pydatetime()


def normalize_quote(raw: Dict[str, Any], symbol: Optional[str] = None) -> Dict[str, Any]:
    """
    Transform a provider quote to the dashboard stock shape.

    Field mapping justified: the provider calls volume 'regularMarketVolume'
    and may omit names and prices for thinly traded symbols.
    """
    symbol = raw.get('symbol') or symbol

    return {
        'symbol': symbol,
        'shortName': raw.get('shortName') or symbol,
        'longName': raw.get('longName'),
        'regularMarketPrice': raw.get('regularMarketPrice') or 0,
        'regularMarketChange': raw.get('regularMarketChange') or 0,
        'regularMarketChangePercent': raw.get('regularMarketChangePercent') or 0,
        'marketCap': raw.get('marketCap'),
        'trailingPE': raw.get('trailingPE'),
        'forwardPE': raw.get('forwardPE'),
        'dividendYield': raw.get('dividendYield'),
        'pegRatio': raw.get('pegRatio', raw.get('trailingPegRatio')),
        'priceToBook': raw.get('priceToBook'),
        'beta': raw.get('beta'),
        'fiftyTwoWeekHigh': raw.get('fiftyTwoWeekHigh'),
        'fiftyTwoWeekLow': raw.get('fiftyTwoWeekLow'),
        'volume': raw.get('regularMarketVolume'),
    }


def normalize_search_results(raw_quotes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Keep Yahoo-listed equities and ETFs and map them to {symbol, shortName, longName, exchange}.
    """
    results = []

    for quote in raw_quotes or []:
        if not quote.get('isYahooFinance'):
            continue
        if quote.get('quoteType') not in SEARCH_QUOTE_TYPES:
            continue

        symbol = quote.get('symbol')
        short_name = quote.get('shortname') or symbol
        results.append({
            'symbol': symbol,
            'shortName': short_name,
            'longName': quote.get('longname') or short_name,
            'exchange': quote.get('exchange'),
        })

    return results


def merge_close_series(histories: Dict[str, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """
    Merge per-symbol close histories into one date-sorted series.

    Args:
        histories: {symbol: [{'Date': ..., 'Close': float}, ...]}

    Returns:
        [{'date': '2024-01-15T00:00:00.000Z', 'AAPL': 185.9, 'MSFT': 390.3}, ...]
        Symbols with no close on a date are absent from that row.
    """
    merged = {}

    for symbol, rows in histories.items():
        for raw in rows:
            close = raw.get('Close')
            if close is None or pd.isna(close):
                continue

            stamp = parse_date(raw.get('Date'))
            entry = merged.setdefault(stamp, {'date': to_iso_timestamp(stamp)})
            entry[symbol] = float(close)

    return [merged[stamp] for stamp in sorted(merged)]


def build_chain_params(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Translate chain filters to provider query parameters, skipping unset ones."""
    params = {}

    for key, value in (filters or {}).items():
        if key not in CHAIN_FILTER_PARAMS:
            continue
        if value is None or value == '':
            continue
        params[CHAIN_FILTER_PARAMS[key]] = str(value)

    return params


def _normalize_greeks(greeks: Optional[Dict[str, Any]], require_primary: bool) -> Optional[Dict[str, Any]]:
    if not greeks:
        return None

    if require_primary and greeks.get('delta') is None and greeks.get('gamma') is None:
        return None

    return {
        'delta': greeks.get('delta') or 0,
        'gamma': greeks.get('gamma') or 0,
        'theta': greeks.get('theta') or 0,
        'vega': greeks.get('vega') or 0,
        'rho': greeks.get('rho'),
    }


def normalize_chain_contract(raw: Dict[str, Any], underlying_ticker: str) -> Dict[str, Any]:
    """
    Transform one chain snapshot result to the canonical contract shape.

    Greeks are kept only when delta or gamma is present (delayed data omits them).
    """
    details = raw.get('details') or {}
    day = raw.get('day') or {}
    last_trade = raw.get('last_trade') or {}

    updated = day.get('last_updated')
    if updated:
        # Provider reports nanoseconds
        updated = updated / 1_000_000
    else:
        updated = datetime.now(timezone.utc).timestamp() * 1000

    return {
        'ticker': details.get('ticker'),
        'underlying_ticker': underlying_ticker.upper(),
        'strike_price': details.get('strike_price'),
        'expiration_date': details.get('expiration_date'),
        'contract_type': details.get('contract_type'),
        'last_price': day.get('close') or last_trade.get('price'),
        'bid_price': day.get('bid_price'),
        'ask_price': day.get('ask_price'),
        'mid_price': day.get('mid_price'),
        'volume': day.get('volume'),
        'open_interest': raw.get('open_interest'),
        'greeks': _normalize_greeks(raw.get('greeks'), require_primary=True),
        'implied_volatility': raw.get('implied_volatility'),
        'break_even_price': raw.get('break_even_price'),
        'updated': updated,
    }


def normalize_underlying(raw: Optional[Dict[str, Any]], ticker: str) -> Dict[str, Any]:
    raw = raw or {}
    return {
        'ticker': ticker.upper(),
        'price': raw.get('price') or 0,
        'change': raw.get('change_to_break_even'),
        'change_percent': raw.get('change_percent'),
        'name': raw.get('name'),
    }


def normalize_chain(payload: Dict[str, Any], ticker: str) -> Dict[str, Any]:
    """Chain snapshot response -> {'status', 'underlying', 'contracts'}."""
    results = payload.get('results') or []
    underlying_asset = payload.get('underlying_asset')

    # Single-contract snapshots nest the underlying per result
    if underlying_asset is None and results:
        underlying_asset = results[0].get('underlying_asset')

    return {
        'status': payload.get('status') or 'OK',
        'underlying': normalize_underlying(underlying_asset, ticker),
        'contracts': [normalize_chain_contract(r, ticker) for r in results],
    }


def normalize_contract_detail(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Single-contract snapshot -> canonical contract shape."""
    details = raw.get('details') or {}
    day = raw.get('day') or {}
    last_quote = raw.get('last_quote') or {}

    return {
        'ticker': raw.get('ticker') or details.get('ticker'),
        'underlying_ticker': raw.get('underlying_ticker') or details.get('underlying_ticker'),
        'strike_price': details.get('strike_price') or raw.get('strike_price'),
        'expiration_date': details.get('expiration_date') or raw.get('expiration_date'),
        'contract_type': details.get('contract_type') or raw.get('contract_type'),
        'last_price': day.get('last_price') or last_quote.get('last_price'),
        'bid_price': day.get('bid_price') or last_quote.get('bid'),
        'ask_price': day.get('ask_price') or last_quote.get('ask'),
        'mid_price': day.get('mid_price'),
        'volume': day.get('volume'),
        'open_interest': raw.get('open_interest'),
        'greeks': _normalize_greeks(raw.get('greeks'), require_primary=False),
        'implied_volatility': raw.get('implied_volatility'),
        'break_even_price': raw.get('break_even_price'),
        'updated': day.get('last_updated') or datetime.now(timezone.utc).timestamp(),
    }


def normalize_option_quotes(raw_results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Provider quote ticks -> [{'timestamp', 'bid', 'ask', 'last', 'volume', 'implied_volatility'}]."""
    quotes = []

    for raw in raw_results or []:
        timestamp = raw.get('sip_timestamp') or raw.get('participant_timestamp')
        if timestamp is None:
            continue
        quotes.append({
            'timestamp': timestamp,
            'bid': raw.get('bid_price'),
            'ask': raw.get('ask_price'),
            'last': raw.get('last_price'),
            'volume': raw.get('volume'),
            'implied_volatility': raw.get('implied_volatility'),
        })

    return quotes


def date_param(value: Any) -> Optional[str]:
    """YYYY-MM-DD string for a date-like value; None passes through."""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.strftime('%Y-%m-%d')
    return str(value)


PROFILE_FIELDS = ('sector', 'industry', 'country', 'website', 'fullTimeEmployees', 'longBusinessSummary')

KEY_STATISTIC_FIELDS = (
    'marketCap', 'trailingPE', 'forwardPE', 'trailingEps', 'beta', 'dividendYield',
    'fiftyTwoWeekHigh', 'fiftyTwoWeekLow', 'priceToBook', 'pegRatio',
)

FINANCIAL_DATA_FIELDS = (
    'totalRevenue', 'revenueGrowth', 'grossMargins', 'operatingMargins', 'profitMargins',
    'returnOnEquity', 'totalCash', 'totalDebt', 'freeCashflow', 'targetMeanPrice',
    'recommendationKey', 'numberOfAnalystOpinions',
)

RECOMMENDATION_FIELDS = ('strongBuy', 'buy', 'hold', 'sell', 'strongSell')

DEFAULT_NEWS_COUNT = 10


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if pd.isna(number) else number


def _epoch_or_iso(value: Any) -> Optional[str]:
    """Provider times come as epoch seconds or ISO strings."""
    if value is None or value == '':
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = datetime.fromtimestamp(value, tz=timezone.utc)
    return to_iso_timestamp(value)


def normalize_news_item(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    One provider news entry -> {'uuid', 'title', 'publisher', 'link', 'published_at', 'thumbnail'}.

    Newer provider responses nest the article under 'content'; older ones are flat.
    Entries without a title return None.
    """
    content = raw.get('content') or raw
    if not content.get('title'):
        return None

    provider = content.get('provider') or {}
    link = (
        (content.get('canonicalUrl') or {}).get('url')
        or (content.get('clickThroughUrl') or {}).get('url')
        or content.get('link')
    )
    resolutions = (content.get('thumbnail') or {}).get('resolutions') or []

    return {
        'uuid': raw.get('id') or raw.get('uuid') or content.get('id'),
        'title': content.get('title'),
        'publisher': provider.get('displayName') or content.get('publisher'),
        'link': link,
        'published_at': _epoch_or_iso(content.get('pubDate') or content.get('providerPublishTime')),
        'thumbnail': resolutions[0].get('url') if resolutions else None,
    }


def normalize_stock_details(
    raw: Dict[str, Any],
    symbol: str,
    news_count: int = DEFAULT_NEWS_COUNT
) -> Dict[str, Any]:
    """
    Transform the provider detail bundle to the stock page shape.

    Args:
        raw: {'info', 'income_stmt', 'recommendations', 'news'} from the yfinance adapter
        symbol: Requested symbol (used when the provider omits it)
        news_count: Maximum news entries kept

    Returns:
        {'symbol', 'price', 'profile', 'key_statistics', 'financial_data',
         'earnings', 'recommendation_trend', 'news'}
    """
    info = raw.get('info') or {}
    quote = normalize_quote(info, symbol)

    key_statistics = {field: info.get(field) for field in KEY_STATISTIC_FIELDS}
    key_statistics['pegRatio'] = quote['pegRatio']

    earnings = []
    for row in raw.get('income_stmt') or []:
        earnings.append({
            'period': parse_date(row['period']).date().isoformat(),
            'revenue': _number(row.get('Total Revenue')),
            'earnings': _number(row.get('Net Income')),
        })

    recommendation_trend = []
    for row in raw.get('recommendations') or []:
        trend = {'period': row.get('period')}
        for field in RECOMMENDATION_FIELDS:
            count = _number(row.get(field))
            trend[field] = int(count) if count is not None else 0
        recommendation_trend.append(trend)

    news = [item for item in map(normalize_news_item, raw.get('news') or []) if item is not None]

    return {
        'symbol': quote['symbol'],
        'price': {
            'shortName': quote['shortName'],
            'longName': quote['longName'],
            'currency': info.get('currency'),
            'regularMarketPrice': quote['regularMarketPrice'],
            'regularMarketChange': quote['regularMarketChange'],
            'regularMarketChangePercent': quote['regularMarketChangePercent'],
            'regularMarketTime': _epoch_or_iso(info.get('regularMarketTime')),
            'marketCap': quote['marketCap'],
        },
        'profile': {field: info.get(field) for field in PROFILE_FIELDS},
        'key_statistics': key_statistics,
        'financial_data': {field: info.get(field) for field in FINANCIAL_DATA_FIELDS},
        'earnings': earnings,
        'recommendation_trend': recommendation_trend,
        'news': news[:news_count],
    }
