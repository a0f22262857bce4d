"""
Market data error taxonomy shared by the provider adapters.
"""

from typing import Optional


class MarketDataError(Exception):
    """Raised when an upstream market data request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class YFinanceError(MarketDataError):
    """Raised when yfinance operations fail."""
    pass


class MassiveAPIError(MarketDataError):
    """Raised when the options data API returns an error or cannot be reached."""
    pass
