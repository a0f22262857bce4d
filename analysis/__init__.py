"""
Basket Analytics Module

Pure calculations over merged close-price series:
- Normalized percentage performance
- Pearson correlation matrix
- Trailing returns (1D through 5Y) with gap tolerance
- Options chain organization (expirations, strikes, moneyness)
"""

__version__ = "0.1.0"
