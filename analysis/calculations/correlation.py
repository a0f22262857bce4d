"""
Correlation calculation utilities.
Pure functions for pairwise Pearson correlation across basket symbols.
"""

from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from analysis.calculations.series import price_at


class CorrelationError(Exception):
    """Raised when correlation calculation fails."""
    pass


class InsufficientDataError(CorrelationError):
    """Raised when fewer than 2 symbols are supplied."""
    pass


def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation coefficient from raw sums.

    Formula: r = (nΣxy - ΣxΣy) / sqrt((nΣx² - (Σx)²)(nΣy² - (Σy)²))

    Args:
        x: First sample
        y: Second sample, aligned with x

    Returns:
        Coefficient in [-1, 1]. 0.0 when the samples are empty, of
        different length, or either has zero variance.
    """
    n = len(x)
    if n == 0 or n != len(y):
        return 0.0

    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)

    # Constant samples have zero variance
    if np.ptp(x_arr) == 0 or np.ptp(y_arr) == 0:
        return 0.0

    sum_x = x_arr.sum()
    sum_y = y_arr.sum()
    sum_xy = (x_arr * y_arr).sum()
    sum_x2 = (x_arr * x_arr).sum()
    sum_y2 = (y_arr * y_arr).sum()

    numerator = n * sum_xy - sum_x * sum_y
    variance_term = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)

    # Raw sums can leave a tiny negative product on constant samples
    if variance_term <= 0:
        return 0.0

    denominator = np.sqrt(variance_term)
    if denominator == 0 or not np.isfinite(denominator):
        return 0.0

    r = float(numerator / denominator)

    # Clamp floating drift
    return max(-1.0, min(1.0, r))


def aligned_prices(
    series: List[Dict[str, Any]],
    first: str,
    second: str
) -> Tuple[List[float], List[float]]:
    """
    Pairwise-complete samples for two symbols.

    Only rows where both symbols have a raw price are kept. Rows produced by
    the normalizer are read from their 'original' map.
    """
    xs = []
    ys = []

    for point in series:
        raw = point.get('original', point)
        x = price_at(raw, first)
        y = price_at(raw, second)
        if x is not None and y is not None:
            xs.append(x)
            ys.append(y)

    return xs, ys


def correlation_matrix(series: List[Dict[str, Any]], symbols: Sequence[str]) -> List[Dict[str, Any]]:
    """
    Pairwise Pearson correlation matrix over raw prices.

    Each pair is aligned independently; the diagonal is always 1 and the
    matrix is symmetric.

    Args:
        series: Raw series or normalizer output, ascending by date
        symbols: Symbols in display order

    Returns:
        [{'symbol': 'AAPL', 'values': [1.0, 0.82, ...]}, ...] with values[i] aligned to symbols[i]

    Raises:
        InsufficientDataError: If fewer than 2 symbols are supplied
    """
    symbols = list(symbols)
    if len(symbols) < 2:
        raise InsufficientDataError("Add at least 2 stocks to view correlation.")

    size = len(symbols)
    values = [[0.0] * size for _ in range(size)]

    for i in range(size):
        values[i][i] = 1.0
        for j in range(i + 1, size):
            xs, ys = aligned_prices(series, symbols[i], symbols[j])
            r = pearson(xs, ys)
            values[i][j] = r
            values[j][i] = r

    return [
        {'symbol': symbol, 'values': values[i]}
        for i, symbol in enumerate(symbols)
    ]


def correlation_frame(matrix: List[Dict[str, Any]]) -> pd.DataFrame:
    """Matrix rows as a square DataFrame with symbols on both axes."""
    symbols = [row['symbol'] for row in matrix]
    return pd.DataFrame(
        [row['values'] for row in matrix],
        index=symbols,
        columns=symbols
    )


def classify_correlation(value: float, is_diagonal: bool = False) -> str:
    """
    Bucket a coefficient for heatmap display.

    Returns:
        'self', 'high' (> 0.8), 'moderate' (> 0.5), 'uncorrelated' (|r| < 0.3),
        'inverse' (< -0.5) or 'weak'
    """
    if is_diagonal:
        return 'self'
    if value > 0.8:
        return 'high'
    if value > 0.5:
        return 'moderate'
    if -0.3 < value < 0.3:
        return 'uncorrelated'
    if value < -0.5:
        return 'inverse'
    return 'weak'
