"""
Validators for market data requests.
Pure functions - no IO, network, or side effects.
"""

import re
from typing import List

# Chart range keys accepted by the historical series endpoint
RANGES = ('1w', '1mo', '3mo', '6mo', '1y', '5y')

INTERVALS = ('1m', '5m', '15m', '30m', '1h', '1d', '1wk', '1mo')

CONTRACT_TYPES = ('call', 'put')

# OCC option symbol, e.g. O:AAPL251219C00150000
OPTION_TICKER_PATTERN = re.compile(r'^O:[A-Z0-9.]{1,6}\d{6}[CP]\d{8}$')

TICKER_CHARS = set('ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.-^=')


class ValidationError(ValueError):
    """Raised when data validation fails."""
    pass


def validate_ticker(ticker: str) -> str:
    """
    Validate and upper-case an equity ticker.

    Raises:
        ValidationError: If ticker is empty, too long or has invalid characters
    """
    if not ticker or not isinstance(ticker, str):
        raise ValidationError("Ticker must be non-empty string")

    ticker = ticker.strip().upper()
    if not ticker:
        raise ValidationError("Ticker must be non-empty string")

    if len(ticker) > 10:
        raise ValidationError("Ticker too long (max 10 characters)")

    if not set(ticker).issubset(TICKER_CHARS):
        raise ValidationError(f"Ticker contains invalid characters: {ticker}")

    return ticker


def validate_symbols(symbols: List[str]) -> List[str]:
    """Validate a symbol list, dropping blanks and duplicates (order kept)."""
    cleaned = [validate_ticker(s) for s in symbols if s and s.strip()]
    if not cleaned:
        raise ValidationError("Symbols are required")
    return list(dict.fromkeys(cleaned))


def validate_option_ticker(option_ticker: str) -> str:
    """
    Validate an OCC-format option ticker.

    Raises:
        ValidationError: If the ticker is not like O:AAPL251219C00150000
    """
    if not option_ticker or not isinstance(option_ticker, str):
        raise ValidationError("Options ticker is required (OCC format: O:AAPL251219C00150000)")

    option_ticker = option_ticker.strip()
    if not OPTION_TICKER_PATTERN.match(option_ticker):
        raise ValidationError(f"Invalid options ticker: {option_ticker} (OCC format: O:AAPL251219C00150000)")

    return option_ticker


def validate_interval(interval: str) -> str:
    if interval not in INTERVALS:
        raise ValidationError(f"interval must be one of {INTERVALS}, got {interval!r}")
    return interval


def validate_contract_type(contract_type: str) -> str:
    if contract_type not in CONTRACT_TYPES:
        raise ValidationError(f"contract_type must be one of {CONTRACT_TYPES}, got {contract_type!r}")
    return contract_type
