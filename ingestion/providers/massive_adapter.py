"""
Massive options data adapter - chain snapshots, contract snapshots and quote history.
Network IO allowed here, but minimal business logic.
"""

import os
import logging
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv

from ingestion.errors import MassiveAPIError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://api.massive.com/v3'

HISTORY_LIMIT = 5000


def _get(path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    GET a provider endpoint and decode the JSON body.

    Raises:
        MassiveAPIError: If the API key is missing, the request fails or the status is not 2xx
    """
    api_key = os.getenv('MASSIVE_API_KEY', '').strip()
    if not api_key:
        raise MassiveAPIError("MASSIVE_API_KEY environment variable required")

    base_url = os.getenv('MASSIVE_BASE_URL', DEFAULT_BASE_URL).rstrip('/')
    timeout = int(os.getenv('REQUESTS_TIMEOUT_S', '30'))

    query = {'apiKey': api_key}
    query.update(params or {})

    try:
        response = requests.get(
            f"{base_url}/{path}",
            params=query,
            headers={'Accept': 'application/json'},
            timeout=timeout
        )
    except requests.RequestException as e:
        logger.error(f"Options API request to {path} failed: {e}")
        raise MassiveAPIError(f"Request failed: {e}") from e

    if not response.ok:
        logger.error(f"Options API error: {response.status_code} {response.text[:200]}")
        raise MassiveAPIError(
            f"API request failed: {response.status_code} - {response.reason}",
            status_code=response.status_code
        )

    try:
        return response.json()
    except ValueError as e:
        raise MassiveAPIError(f"Invalid JSON from options API: {e}", status_code=response.status_code) from e


def fetch_chain_snapshot(ticker: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Raw options chain snapshot for an underlying ticker."""
    logger.info(f"Fetching options chain for {ticker}")
    return _get(f"snapshot/options/{ticker.upper()}", params)


def fetch_contract_snapshot(option_ticker: str) -> Dict[str, Any]:
    """Raw snapshot for a single OCC option ticker."""
    logger.info(f"Fetching contract details for {option_ticker}")
    return _get(f"snapshot/option/{option_ticker}")


def fetch_contract_quotes(
    option_ticker: str,
    start: Optional[str] = None,
    end: Optional[str] = None
) -> Dict[str, Any]:
    """Raw quote history for an option contract, optionally bounded by timestamps."""
    params = {'limit': str(HISTORY_LIMIT)}
    if start:
        params['timestamp.gte'] = start
    if end:
        params['timestamp.lte'] = end

    logger.info(f"Fetching historical data for {option_ticker}")
    return _get(f"quotes/{option_ticker}", params)
