"""
Tests for yfinance adapter - mocked network calls, no live API hits in CI.
"""

import pytest
from unittest.mock import Mock, PropertyMock, patch
from datetime import datetime
import pandas as pd

from ingestion.providers.yfinance_adapter import (
    fetch_close_history,
    fetch_quote,
    fetch_stock_details,
    search_quotes,
)
from ingestion.errors import MarketDataError, YFinanceError


class TestFetchCloseHistory:
    """Tests for fetch_close_history."""

    @patch('ingestion.providers.yfinance_adapter.yf.download')
    def test_success(self, mock_download):
        """Close column is returned row by row with the index as Date."""
        mock_download.return_value = pd.DataFrame({
            'Open': [185.25, 186.10],
            'Close': [185.92, 187.11],
            'Volume': [65284300, 58414500]
        }, index=pd.DatetimeIndex(['2024-01-15', '2024-01-16'], name='Date'))

        start = datetime(2024, 1, 15)
        end = datetime(2024, 1, 17)
        result = fetch_close_history('AAPL', start, end)

        mock_download.assert_called_once_with(
            'AAPL',
            start=start,
            end=end,
            interval='1d',
            progress=False,
            auto_adjust=False
        )
        assert result == [
            {'Date': pd.Timestamp('2024-01-15'), 'Close': 185.92},
            {'Date': pd.Timestamp('2024-01-16'), 'Close': 187.11},
        ]

    @patch('ingestion.providers.yfinance_adapter.yf.download')
    def test_multiindex_columns(self, mock_download):
        """Newer yfinance returns (field, ticker) columns."""
        columns = pd.MultiIndex.from_tuples([('Close', 'AAPL'), ('Volume', 'AAPL')])
        mock_download.return_value = pd.DataFrame(
            [[185.92, 1], [float('nan'), 2]],
            columns=columns,
            index=pd.DatetimeIndex(['2024-01-15', '2024-01-16'])
        )

        result = fetch_close_history('AAPL', datetime(2024, 1, 15), datetime(2024, 1, 17))

        assert result == [{'Date': pd.Timestamp('2024-01-15'), 'Close': 185.92}]

    @patch('ingestion.providers.yfinance_adapter.yf.download')
    def test_empty_response(self, mock_download):
        mock_download.return_value = pd.DataFrame()
        assert fetch_close_history('ZZZZ', datetime(2024, 1, 1), datetime(2024, 1, 2)) == []

    @patch('ingestion.providers.yfinance_adapter.yf.download')
    def test_network_error(self, mock_download):
        mock_download.side_effect = Exception("Network timeout")

        with pytest.raises(YFinanceError, match="Network timeout"):
            fetch_close_history('AAPL', datetime(2024, 1, 1), datetime(2024, 1, 2))

    def test_invalid_window(self):
        with pytest.raises(YFinanceError, match="must be <="):
            fetch_close_history('AAPL', datetime(2024, 1, 2), datetime(2024, 1, 1))

    def test_error_is_market_data_error(self):
        assert issubclass(YFinanceError, MarketDataError)


class TestFetchQuote:
    """Tests for fetch_quote."""

    @patch('ingestion.providers.yfinance_adapter.yf.Ticker')
    def test_success(self, mock_ticker):
        mock_ticker.return_value = Mock(info={'symbol': 'AAPL', 'regularMarketPrice': 185.92})

        assert fetch_quote('AAPL') == {'symbol': 'AAPL', 'regularMarketPrice': 185.92}
        mock_ticker.assert_called_once_with('AAPL')

    @patch('ingestion.providers.yfinance_adapter.yf.Ticker')
    def test_empty_info(self, mock_ticker):
        mock_ticker.return_value = Mock(info={})

        with pytest.raises(YFinanceError, match="No quote"):
            fetch_quote('ZZZZ')


class TestSearchQuotes:
    """Tests for search_quotes."""

    @patch('ingestion.providers.yfinance_adapter.yf.Search')
    def test_success(self, mock_search):
        mock_search.return_value = Mock(quotes=[{'symbol': 'AAPL'}])

        assert search_quotes('apple') == [{'symbol': 'AAPL'}]
        mock_search.assert_called_once_with('apple', max_results=10, news_count=0)

    @patch('ingestion.providers.yfinance_adapter.yf.Search')
    def test_failure(self, mock_search):
        mock_search.side_effect = Exception("rate limited")

        with pytest.raises(YFinanceError, match="rate limited"):
            search_quotes('apple')


class TestFetchStockDetails:
    """Tests for fetch_stock_details."""

    @patch('ingestion.providers.yfinance_adapter.yf.Ticker')
    def test_success(self, mock_ticker):
        income_stmt = pd.DataFrame(
            {
                pd.Timestamp('2024-09-30'): [391.0, 93.7],
                pd.Timestamp('2023-09-30'): [383.3, 97.0],
            },
            index=['Total Revenue', 'Net Income']
        )
        recommendations = pd.DataFrame({
            'period': ['0m', '-1m'],
            'strongBuy': [8, 7],
            'buy': [20, 21],
            'hold': [12, 12],
            'sell': [1, 1],
            'strongSell': [0, 1],
        })
        mock_ticker.return_value = Mock(
            info={'symbol': 'AAPL', 'sector': 'Technology'},
            income_stmt=income_stmt,
            recommendations=recommendations,
            news=[{'id': 'n1', 'content': {'title': 'Apple news'}}]
        )

        raw = fetch_stock_details('AAPL')

        assert raw['info'] == {'symbol': 'AAPL', 'sector': 'Technology'}
        assert [row['period'] for row in raw['income_stmt']] == [
            pd.Timestamp('2023-09-30'), pd.Timestamp('2024-09-30')
        ]
        assert raw['income_stmt'][1]['Total Revenue'] == 391.0
        assert raw['recommendations'][0]['strongBuy'] == 8
        assert raw['news'] == [{'id': 'n1', 'content': {'title': 'Apple news'}}]
        mock_ticker.assert_called_once_with('AAPL')

    @patch('ingestion.providers.yfinance_adapter.yf.Ticker')
    def test_missing_sections_are_empty(self, mock_ticker):
        stock = Mock(info={'symbol': 'XYZ'}, income_stmt=pd.DataFrame(), recommendations=None)
        type(stock).news = PropertyMock(side_effect=Exception("news unavailable"))
        mock_ticker.return_value = stock

        raw = fetch_stock_details('XYZ')

        assert raw['income_stmt'] == []
        assert raw['recommendations'] == []
        assert raw['news'] == []

    @patch('ingestion.providers.yfinance_adapter.yf.Ticker')
    def test_info_failure(self, mock_ticker):
        mock_ticker.side_effect = Exception("404 Not Found")

        with pytest.raises(YFinanceError, match="404"):
            fetch_stock_details('ZZZZ')

    @patch('ingestion.providers.yfinance_adapter.yf.Ticker')
    def test_empty_info(self, mock_ticker):
        mock_ticker.return_value = Mock(info={})

        with pytest.raises(YFinanceError, match="No quote"):
            fetch_stock_details('ZZZZ')
