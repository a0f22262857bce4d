"""
Options chain organisation - group contracts by expiration and strike, filter by moneyness.
Pure functions over normalized contracts. Greeks are passed through as given.
"""

from datetime import date
from typing import Any, Dict, List, Optional

# Strikes within this fraction of the underlying price count as at-the-money
ATM_THRESHOLD = 0.05


def expirations(contracts: List[Dict[str, Any]]) -> List[str]:
    """Sorted unique expiration dates (YYYY-MM-DD)."""
    return sorted({c['expiration_date'] for c in contracts if c.get('expiration_date')})


def nearest_expiration(contracts: List[Dict[str, Any]]) -> Optional[str]:
    """Earliest expiration in the chain, or None for an empty chain."""
    dates = expirations(contracts)
    return dates[0] if dates else None


def group_by_expiration(
    contracts: List[Dict[str, Any]],
    today: Optional[date] = None
) -> List[Dict[str, Any]]:
    """
    Split contracts into calls and puts per expiration date.

    Args:
        contracts: Normalized option contracts
        today: Reference date for days to expiration (defaults to today)

    Returns:
        [{'expiration_date', 'days_to_expiration', 'calls', 'puts'}, ...] sorted by date
    """
    if today is None:
        today = date.today()

    groups = {}

    for contract in contracts:
        exp = contract.get('expiration_date')
        if not exp:
            continue

        if exp not in groups:
            groups[exp] = {
                'expiration_date': exp,
                'days_to_expiration': (date.fromisoformat(exp) - today).days,
                'calls': [],
                'puts': []
            }

        if contract.get('contract_type') == 'call':
            groups[exp]['calls'].append(contract)
        else:
            groups[exp]['puts'].append(contract)

    return [groups[exp] for exp in sorted(groups)]


def group_by_strike(expiration_group: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Pair the call and put at each strike of one expiration.

    Returns:
        [{'strike', 'call', 'put'}, ...] sorted by strike; a side is None if absent
    """
    strikes = {}

    for side, key in (('calls', 'call'), ('puts', 'put')):
        for contract in expiration_group.get(side, []):
            strike = contract['strike_price']
            entry = strikes.setdefault(strike, {'strike': strike, 'call': None, 'put': None})
            entry[key] = contract

    return [strikes[s] for s in sorted(strikes)]


def moneyness(strike: float, underlying_price: float) -> Dict[str, bool]:
    """
    Moneyness flags for a combined call/put strike row.

    The call is in the money below the underlying price and the put above
    it, so any strike off the price has an ITM side. A row can be both
    'atm' and 'itm'.
    """
    if underlying_price:
        is_atm = abs(strike - underlying_price) / underlying_price < ATM_THRESHOLD
    else:
        is_atm = False

    is_itm = strike < underlying_price or strike > underlying_price
    is_otm = not is_itm and not is_atm

    return {'atm': is_atm, 'itm': is_itm, 'otm': is_otm}


def filter_strikes(
    strike_groups: List[Dict[str, Any]],
    underlying_price: float,
    show_itm: bool = True,
    show_otm: bool = True,
    show_atm: bool = True,
    min_volume: int = 0
) -> List[Dict[str, Any]]:
    """
    Filter strike rows by moneyness toggles and minimum volume.

    A row is hidden when any of its moneyness flags is switched off, or when
    neither side reaches min_volume.
    """
    result = []

    for group in strike_groups:
        flags = moneyness(group['strike'], underlying_price)

        if flags['atm'] and not show_atm:
            continue
        if flags['itm'] and not show_itm:
            continue
        if flags['otm'] and not show_otm:
            continue

        call_volume = (group.get('call') or {}).get('volume') or 0
        put_volume = (group.get('put') or {}).get('volume') or 0
        if max(call_volume, put_volume) < min_volume:
            continue

        result.append(group)

    return result


def organize_chain(
    chain: Dict[str, Any],
    expiration: Optional[str] = None,
    today: Optional[date] = None,
    **filters
) -> Dict[str, Any]:
    """
    Strike table for one expiration of a chain snapshot.

    Args:
        chain: {'underlying': {...}, 'contracts': [...]} from the gateway
        expiration: Expiration to show (defaults to the nearest)
        today: Reference date for days to expiration
        **filters: Passed to filter_strikes

    Returns:
        {'underlying', 'expirations', 'expiration', 'days_to_expiration', 'strikes'}
    """
    contracts = chain.get('contracts') or []
    underlying = chain.get('underlying') or {}
    groups = group_by_expiration(contracts, today=today)

    if expiration is None:
        expiration = nearest_expiration(contracts)

    selected = next((g for g in groups if g['expiration_date'] == expiration), None)
    if selected is None:
        strikes = []
        days = None
    else:
        strikes = filter_strikes(group_by_strike(selected), underlying.get('price') or 0, **filters)
        days = selected['days_to_expiration']

    return {
        'underlying': underlying,
        'expirations': [g['expiration_date'] for g in groups],
        'expiration': expiration,
        'days_to_expiration': days,
        'strikes': strikes
    }
