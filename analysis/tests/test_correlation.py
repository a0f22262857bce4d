"""
Tests for correlation utilities.
Synthetic series with known linear relationships.
"""

import pytest

from analysis.calculations.correlation import (
    pearson,
    aligned_prices,
    correlation_matrix,
    correlation_frame,
    classify_correlation,
    CorrelationError,
    InsufficientDataError,
)
from analysis.calculations.normalize import normalize_series


def make_series(**columns):
    length = len(next(iter(columns.values())))
    return [
        dict({'date': f'2024-03-{i + 1:02d}'}, **{sym: values[i] for sym, values in columns.items()})
        for i in range(length)
    ]


class TestPearson:
    """Tests for the Pearson coefficient."""

    def test_perfect_positive(self):
        a = [10.0, 12.0, 11.0, 15.0, 14.0]
        b = [2 * x + 5 for x in a]
        assert pearson(a, b) == pytest.approx(1.0)

    def test_perfect_negative(self):
        a = [10.0, 12.0, 11.0, 15.0, 14.0]
        b = [-x for x in a]
        assert pearson(a, b) == pytest.approx(-1.0)

    def test_zero_variance(self):
        """Constant samples give 0 rather than NaN."""
        assert pearson([100.1] * 6, [3.3, 4.1, 5.0, 2.2, 1.9, 7.7]) == 0.0
        assert pearson([5.0, 5.0, 5.0], [7.0, 7.0, 7.0]) == 0.0

    def test_empty_and_mismatched(self):
        assert pearson([], []) == 0.0
        assert pearson([1.0, 2.0], [1.0]) == 0.0

    def test_known_value(self):
        # x = 1..5, y = [2, 4, 5, 4, 5] -> r = 0.7745966...
        assert pearson([1, 2, 3, 4, 5], [2, 4, 5, 4, 5]) == pytest.approx(0.7745966692, abs=1e-9)

    def test_bounds(self):
        r = pearson([1.0, 3.0, 2.0, 5.0, 4.0, 6.0], [2.0, 1.0, 4.0, 3.0, 6.0, 5.0])
        assert -1.0 <= r <= 1.0


class TestAlignedPrices:
    """Tests for pairwise-complete alignment."""

    def test_only_rows_with_both(self):
        series = make_series(A=[1.0, None, 3.0, 4.0], B=[10.0, 20.0, None, 40.0])
        assert aligned_prices(series, 'A', 'B') == ([1.0, 4.0], [10.0, 40.0])

    def test_reads_original_of_normalized_rows(self):
        series = make_series(A=[100.0, 110.0], B=[50.0, 40.0])
        normalized = normalize_series(series, ['A', 'B'])
        assert aligned_prices(normalized, 'A', 'B') == ([100.0, 110.0], [50.0, 40.0])


class TestCorrelationMatrix:
    """Tests for correlation_matrix."""

    def test_co_moving_and_inverse(self):
        a = [10.0, 12.0, 11.0, 15.0, 14.0, 16.0]
        series = make_series(A=a, B=[2 * x + 5 for x in a], C=[-x for x in a])

        matrix = correlation_matrix(series, ['A', 'B', 'C'])

        assert [row['symbol'] for row in matrix] == ['A', 'B', 'C']
        assert matrix[0]['values'][1] == pytest.approx(1.0)
        assert matrix[0]['values'][2] == pytest.approx(-1.0)
        assert matrix[1]['values'][2] == pytest.approx(-1.0)

    def test_symmetric_with_unit_diagonal(self):
        series = make_series(
            A=[1.0, 2.0, 3.0, 2.5, None, 4.0],
            B=[5.0, None, 4.0, 4.5, 3.0, 2.0],
            C=[9.0, 8.5, 9.5, 10.0, 11.0, None],
        )
        matrix = correlation_matrix(series, ['A', 'B', 'C'])

        for i in range(3):
            assert matrix[i]['values'][i] == 1
            for j in range(3):
                assert matrix[i]['values'][j] == matrix[j]['values'][i]
                assert -1.0 <= matrix[i]['values'][j] <= 1.0

    def test_constant_pair_is_zero(self):
        series = make_series(A=[100.0] * 5, B=[50.0] * 5)
        matrix = correlation_matrix(series, ['A', 'B'])
        assert matrix[0]['values'] == [1.0, 0.0]

    def test_uses_raw_not_normalized_prices(self):
        """Normalizer output and raw series give the same matrix."""
        series = make_series(A=[10.0, 11.0, 13.0, 12.0], B=[20.0, 19.0, 25.0, 21.0])
        raw = correlation_matrix(series, ['A', 'B'])
        normalized = correlation_matrix(normalize_series(series, ['A', 'B']), ['A', 'B'])
        assert raw == normalized

    def test_empty_series(self):
        matrix = correlation_matrix([], ['A', 'B'])
        assert matrix == [
            {'symbol': 'A', 'values': [1.0, 0.0]},
            {'symbol': 'B', 'values': [0.0, 1.0]},
        ]

    def test_fewer_than_two_symbols(self):
        with pytest.raises(InsufficientDataError, match="at least 2 stocks"):
            correlation_matrix(make_series(A=[1.0, 2.0]), ['A'])

        with pytest.raises(CorrelationError):
            correlation_matrix([], [])

    def test_frame_view(self):
        series = make_series(A=[1.0, 2.0, 3.0], B=[3.0, 2.0, 1.0])
        frame = correlation_frame(correlation_matrix(series, ['A', 'B']))

        assert list(frame.index) == ['A', 'B']
        assert list(frame.columns) == ['A', 'B']
        assert frame.loc['A', 'B'] == pytest.approx(-1.0)


class TestClassifyCorrelation:
    """Tests for heatmap buckets."""

    @pytest.mark.parametrize('value,expected', [
        (0.95, 'high'),
        (0.6, 'moderate'),
        (0.4, 'weak'),
        (0.1, 'uncorrelated'),
        (-0.2, 'uncorrelated'),
        (-0.4, 'weak'),
        (-0.9, 'inverse'),
    ])
    def test_buckets(self, value, expected):
        assert classify_correlation(value) == expected

    def test_diagonal(self):
        assert classify_correlation(1.0, is_diagonal=True) == 'self'
