"""
Market Data Ingestion Module

Fetches and normalizes data from external sources:
- yfinance for quotes, close-price history and symbol search
- Massive options API for chain snapshots and contract quote history
"""

__version__ = "0.1.0"
