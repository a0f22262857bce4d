"""
Tests for performance normalization.
Hand-checkable prices re-based to percentage change from the first observation.
"""

import math
import pytest

from analysis.calculations.normalize import (
    base_values,
    percent_change,
    normalize_series,
    latest_performance,
)


@pytest.fixture
def five_day_series():
    """AAPL and MSFT over five trading days."""
    aapl = [100, 102, 101, 105, 110]
    msft = [200, 198, 199, 205, 210]
    return [
        {'date': f'2024-01-0{i + 1}T00:00:00.000Z', 'AAPL': a, 'MSFT': m}
        for i, (a, m) in enumerate(zip(aapl, msft))
    ]


class TestBaseValues:
    """Tests for base value lookup."""

    def test_first_observation(self, five_day_series):
        assert base_values(five_day_series, ['AAPL', 'MSFT']) == {'AAPL': 100, 'MSFT': 200}

    def test_skips_leading_gaps(self):
        series = [
            {'date': '2024-01-01', 'AAPL': None},
            {'date': '2024-01-02'},
            {'date': '2024-01-03', 'AAPL': 50.0},
        ]
        assert base_values(series, ['AAPL']) == {'AAPL': 50.0}

    def test_never_observed(self):
        assert base_values([{'date': '2024-01-01', 'AAPL': None}], ['AAPL']) == {}

    def test_nan_is_missing(self):
        series = [
            {'date': '2024-01-01', 'AAPL': float('nan')},
            {'date': '2024-01-02', 'AAPL': 10.0},
        ]
        assert base_values(series, ['AAPL']) == {'AAPL': 10.0}


class TestPercentChange:
    """Tests for percent_change."""

    def test_formula(self):
        assert percent_change(110.0, 100.0) == pytest.approx(10.0)

    def test_missing_inputs(self):
        assert percent_change(None, 100.0) is None
        assert percent_change(100.0, None) is None

    def test_zero_base(self):
        """A zero base is treated as no base at all."""
        assert percent_change(5.0, 0.0) is None


class TestNormalizeSeries:
    """Tests for normalize_series."""

    def test_end_to_end_five_days(self, five_day_series):
        """Base AAPL 100 / MSFT 200; last point +10% / +5%."""
        result = normalize_series(five_day_series, ['AAPL', 'MSFT'])

        assert len(result) == 5
        assert result[0]['AAPL'] == 0
        assert result[0]['MSFT'] == 0
        assert result[-1]['AAPL'] == pytest.approx(10.0)
        assert result[-1]['MSFT'] == pytest.approx(5.0)
        assert result[1]['MSFT'] == pytest.approx(-1.0)

    def test_original_prices_kept(self, five_day_series):
        result = normalize_series(five_day_series, ['AAPL', 'MSFT'])

        assert result[3]['original'] == {'AAPL': 105, 'MSFT': 205}
        assert result[3]['date'] == five_day_series[3]['date']

    def test_date_label(self, five_day_series):
        result = normalize_series(five_day_series, ['AAPL'])

        assert result[0]['date_label'] == '1/1/2024'

    def test_every_later_point_matches_formula(self):
        prices = [50.0, None, 55.0, 47.5, None, 60.0]
        series = [{'date': f'2024-02-{i + 1:02d}', 'X': p} for i, p in enumerate(prices)]

        result = normalize_series(series, ['X'])

        for row, price in zip(result, prices):
            if price is None:
                assert row['X'] is None
            else:
                assert math.isclose(row['X'], (price - 50.0) / 50.0 * 100, abs_tol=1e-9)

    def test_gaps_stay_null(self):
        """No forward-fill across missing samples."""
        series = [
            {'date': '2024-01-01', 'AAPL': 100.0, 'MSFT': None},
            {'date': '2024-01-02', 'AAPL': None, 'MSFT': 50.0},
            {'date': '2024-01-03', 'AAPL': 120.0, 'MSFT': 55.0},
        ]
        result = normalize_series(series, ['AAPL', 'MSFT'])

        assert result[0]['MSFT'] is None
        assert result[1]['AAPL'] is None
        assert result[1]['MSFT'] == 0
        assert result[2]['AAPL'] == pytest.approx(20.0)
        assert result[2]['MSFT'] == pytest.approx(10.0)
        assert result[1]['original'] == {'AAPL': None, 'MSFT': 50.0}

    def test_all_null_symbol(self):
        series = [{'date': '2024-01-01', 'AAPL': None}, {'date': '2024-01-02'}]
        result = normalize_series(series, ['AAPL'])

        assert [row['AAPL'] for row in result] == [None, None]

    def test_zero_first_price_nulls_symbol(self):
        """A first observation of 0 leaves every value for that symbol null."""
        series = [
            {'date': '2024-01-01', 'X': 0.0},
            {'date': '2024-01-02', 'X': 5.0},
        ]
        result = normalize_series(series, ['X'])

        assert [row['X'] for row in result] == [None, None]

    def test_empty_series(self):
        assert normalize_series([], ['AAPL']) == []

    def test_renormalizing_original_is_stable(self, five_day_series):
        """Normalizing the 'original' field again reproduces the same values."""
        first = normalize_series(five_day_series, ['AAPL', 'MSFT'])
        rebuilt = [dict(row['original'], date=row['date']) for row in first]
        second = normalize_series(rebuilt, ['AAPL', 'MSFT'])

        for a, b in zip(first, second):
            assert a['AAPL'] == b['AAPL']
            assert a['MSFT'] == b['MSFT']

    def test_input_not_mutated(self, five_day_series):
        snapshot = [dict(row) for row in five_day_series]
        normalize_series(five_day_series, ['AAPL', 'MSFT'])
        assert five_day_series == snapshot


class TestLatestPerformance:
    """Tests for latest_performance."""

    def test_last_non_null(self):
        normalized = [
            {'AAPL': 0, 'MSFT': 0},
            {'AAPL': 5.0, 'MSFT': 2.0},
            {'AAPL': None, 'MSFT': 3.0},
        ]
        assert latest_performance(normalized, ['AAPL', 'MSFT', 'TSLA']) == {
            'AAPL': 5.0, 'MSFT': 3.0, 'TSLA': None
        }
