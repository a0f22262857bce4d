#!/usr/bin/env python3
"""
Main CLI for the stock basket dashboard.
Usage: python cli.py COMMAND [options]
"""

import os
import sys
import json
import logging
import argparse
from pathlib import Path
from datetime import date
from typing import Any, Dict, List

from dotenv import load_dotenv

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from analysis.basket_metrics import compose_basket_metrics, summarize_quotes
from analysis.calculations.correlation import (
    InsufficientDataError,
    classify_correlation,
    correlation_frame,
    correlation_matrix,
)
from analysis.calculations.normalize import latest_performance, normalize_series
from analysis.calculations.returns import (
    DEFAULT_INVESTMENT,
    TIMEFRAMES,
    ReturnsError,
    project_investment,
    sort_return_rows,
    trailing_returns,
)
from analysis.options_chain import organize_chain
from ingestion import gateway
from ingestion.transforms.normalizers import DEFAULT_NEWS_COUNT
from ingestion.errors import MarketDataError
from ingestion.transforms.validators import INTERVALS, RANGES, ValidationError
from storage.basket_store import BasketError, BasketStore
from storage.basket_storage import BasketStorageError, JsonFileBasketStorage

load_dotenv()

logger = logging.getLogger('cli')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Stock basket dashboard',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py baskets create Tech --description "Large cap tech"
  python cli.py baskets add BASKET_ID AAPL MSFT NVDA
  python cli.py returns --basket BASKET_ID --sort 1Y
  python cli.py correlate AAPL MSFT GOOGL --range 1y
  python cli.py details NVDA --news 5
  python cli.py options AAPL --min-volume 100
  python cli.py contract O:AAPL251219C00150000 --history --start 2025-12-01
        """
    )
    parser.add_argument('--baskets-path', help='Basket JSON file (default: $BASKETS_PATH or ./data/baskets.json)')
    parser.add_argument('--json', action='store_true', help='Print raw JSON output')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    commands = parser.add_subparsers(dest='command', required=True)

    baskets = commands.add_parser('baskets', help='Manage baskets')
    basket_cmds = baskets.add_subparsers(dest='basket_command', required=True)
    basket_cmds.add_parser('list', help='List baskets')
    create = basket_cmds.add_parser('create', help='Create a basket')
    create.add_argument('name')
    create.add_argument('--description')
    delete = basket_cmds.add_parser('delete', help='Delete a basket')
    delete.add_argument('basket_id')
    add = basket_cmds.add_parser('add', help='Add symbols to a basket')
    add.add_argument('basket_id')
    add.add_argument('symbols', nargs='+')
    remove = basket_cmds.add_parser('remove', help='Remove symbols from a basket')
    remove.add_argument('basket_id')
    remove.add_argument('symbols', nargs='+')

    quotes = commands.add_parser('quotes', help='Latest quotes')
    quotes.add_argument('symbols', nargs='+')

    search = commands.add_parser('search', help='Search symbols')
    search.add_argument('query')

    details = commands.add_parser('details', help='Profile, key statistics, earnings, analyst trend and news')
    details.add_argument('symbol')
    details.add_argument('--news', type=int, default=DEFAULT_NEWS_COUNT, help='Number of news items')

    for name, help_text, default_range in (
        ('performance', 'Percentage performance since range start', '1mo'),
        ('correlate', 'Correlation matrix of close prices', '1y'),
        ('returns', 'Trailing returns heatmap', '5y'),
        ('metrics', 'All basket metrics as JSON', '5y'),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument('symbols', nargs='*')
        sub.add_argument('--basket', help='Use the symbols of this basket ID')
        sub.add_argument('--range', dest='range_key', default=default_range, choices=RANGES)
        sub.add_argument('--interval', default='1d', choices=INTERVALS)
        sub.add_argument('--start', type=date.fromisoformat, help='Custom range start (YYYY-MM-DD), overrides --range')
        sub.add_argument('--end', type=date.fromisoformat, help='Custom range end (YYYY-MM-DD, inclusive)')
        if name == 'returns':
            sub.add_argument('--sort', help="Sort column: symbol, current_price or a window label")
            sub.add_argument('--asc', action='store_true', help='Sort ascending')
            sub.add_argument('--invest', type=float,
                             help=f'Show what this amount invested would be worth (JSON default: {DEFAULT_INVESTMENT})')

    options = commands.add_parser('options', help='Options chain for a ticker')
    options.add_argument('ticker')
    options.add_argument('--expiration', help='Expiration date (YYYY-MM-DD, default: nearest)')
    options.add_argument('--contract-type', choices=('call', 'put'))
    options.add_argument('--min-volume', type=int, default=0)
    options.add_argument('--hide-itm', action='store_true')
    options.add_argument('--hide-otm', action='store_true')
    options.add_argument('--hide-atm', action='store_true')

    contract = commands.add_parser('contract', help='Snapshot or quote history of one option contract')
    contract.add_argument('option_ticker', help='OCC ticker, e.g. O:AAPL251219C00150000')
    contract.add_argument('--history', action='store_true', help='Show quote history instead of the snapshot')
    contract.add_argument('--start', help='History start (YYYY-MM-DD)')
    contract.add_argument('--end', help='History end (YYYY-MM-DD)')

    return parser


def main(argv: List[str] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    level = 'DEBUG' if args.verbose else os.getenv('LOG_LEVEL', 'WARNING').upper()
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        store = BasketStore(JsonFileBasketStorage(Path(args.baskets_path) if args.baskets_path else None))

        if args.command == 'baskets':
            return run_baskets(args, store)
        if args.command == 'quotes':
            return emit(args, gateway.get_quotes(args.symbols), _print_quotes)
        if args.command == 'search':
            return emit(args, gateway.search_symbols(args.query), _print_search)
        if args.command == 'details':
            return emit(args, gateway.get_stock_details(args.symbol, args.news), _print_details)
        if args.command == 'options':
            return run_options(args)
        if args.command == 'contract':
            return run_contract(args)
        return run_analysis(args, store)

    except (BasketError, BasketStorageError, ValidationError, ReturnsError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except MarketDataError as e:
        print(f"ERROR: Failed to load market data: {e}", file=sys.stderr)
        return 1


def emit(args, payload: Any, printer) -> int:
    if args.json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        printer(payload)
    return 0


def run_baskets(args, store: BasketStore) -> int:
    cmd = args.basket_command

    if cmd == 'create':
        basket = store.create(args.name, args.description)
        return emit(args, basket.to_dict(), lambda b: print(f"Created basket {b['name']} ({b['id']})"))

    if cmd == 'delete':
        store.delete(args.basket_id)
        print(f"Deleted basket {args.basket_id}")
        return 0

    if cmd == 'add':
        for symbol in args.symbols:
            basket = store.add_item(args.basket_id, symbol)
        return emit(args, basket.to_dict(), _print_basket)

    if cmd == 'remove':
        for symbol in args.symbols:
            basket = store.remove_item(args.basket_id, symbol)
        return emit(args, basket.to_dict(), _print_basket)

    baskets = [b.to_dict() for b in store.list()]
    if not args.json and not baskets:
        print("No baskets yet. Create one: python cli.py baskets create NAME")
        return 0
    return emit(args, baskets, lambda items: [_print_basket(b) for b in items])


def _resolve_symbols(args, store: BasketStore) -> List[str]:
    symbols = list(args.symbols)
    if args.basket:
        symbols = store.symbols(args.basket) + symbols
    if not symbols:
        raise ValidationError("Provide symbols or --basket")
    return list(dict.fromkeys(s.upper() for s in symbols))


def run_analysis(args, store: BasketStore) -> int:
    symbols = _resolve_symbols(args, store)
    if args.end and not args.start:
        raise ValidationError("--end requires --start")

    series = gateway.get_historical_series(
        symbols,
        range_key=args.range_key,
        interval=args.interval,
        start=args.start,
        end=args.end
    )

    if not series:
        print(f"ERROR: No historical data for {', '.join(symbols)}", file=sys.stderr)
        return 1

    if args.command == 'metrics':
        print(json.dumps(compose_basket_metrics(symbols, series), indent=2, default=str))
        return 0

    if args.command == 'performance':
        normalized = normalize_series(series, symbols)
        return emit(args, latest_performance(normalized, symbols), _print_performance)

    if args.command == 'correlate':
        try:
            matrix = correlation_matrix(series, symbols)
        except InsufficientDataError as e:
            print(str(e))
            return 0
        return emit(args, matrix, _print_correlation)

    rows = trailing_returns(series, symbols)
    if args.sort:
        rows = sort_return_rows(rows, args.sort, 'asc' if args.asc else 'desc')

    amount = DEFAULT_INVESTMENT if args.invest is None else args.invest
    for row in rows:
        row['projection'] = {
            label: project_investment(amount, pct)
            for label, pct in row['returns'].items()
        }

    if args.json:
        print(json.dumps(rows, indent=2, default=str))
        return 0

    _print_returns(rows)
    if args.invest is not None:
        print()
        _print_projection(rows, amount)
    return 0


def run_options(args) -> int:
    filters = {}
    if args.expiration:
        filters['expiration_date'] = args.expiration
    if args.contract_type:
        filters['contract_type'] = args.contract_type

    chain = gateway.get_options_chain(args.ticker, filters)
    table = organize_chain(
        chain,
        expiration=args.expiration,
        show_itm=not args.hide_itm,
        show_otm=not args.hide_otm,
        show_atm=not args.hide_atm,
        min_volume=args.min_volume
    )
    return emit(args, table, _print_chain)


def run_contract(args) -> int:
    if args.history:
        history = gateway.get_option_history(args.option_ticker, args.start, args.end)
        return emit(args, history, _print_option_history)
    return emit(args, gateway.get_option_contract_detail(args.option_ticker), _print_contract)


def _fmt(value, pattern='{:+.2f}%', missing='-'):
    return missing if value is None else pattern.format(value)


def _print_basket(basket: Dict[str, Any]) -> None:
    symbols = ', '.join(item['symbol'] for item in basket['items']) or '(empty)'
    print(f"{basket['name']} [{basket['id']}]")
    if basket.get('description'):
        print(f"   {basket['description']}")
    print(f"   {len(basket['items'])} stocks: {symbols}")


def _print_quotes(quotes: List[Dict[str, Any]]) -> None:
    for q in quotes:
        print(f"{q['symbol']:<8} {q['shortName'][:30]:<30} "
              f"${q['regularMarketPrice']:>10.2f} {q['regularMarketChangePercent']:+7.2f}%")

    summary = summarize_quotes(quotes)
    if summary['count'] > 1:
        print(f"\n{summary['count']} stocks, average {summary['average_change_percent']:+.2f}%, "
              f"best {summary['best']}, worst {summary['worst']}")


def _print_search(results: List[Dict[str, Any]]) -> None:
    if not results:
        print("No matches")
    for r in results:
        print(f"{r['symbol']:<10} {r['longName']} ({r['exchange']})")


def _print_details(details: Dict[str, Any]) -> None:
    price = details['price']
    profile = details['profile']
    stats = details['key_statistics']

    print(f"{details['symbol']}  {price['shortName']}  "
          f"${price['regularMarketPrice']:.2f} {price['regularMarketChangePercent']:+.2f}%")
    print('   ' + ' | '.join(str(profile.get(k) or '-') for k in ('sector', 'industry', 'country')))

    print("\nKey statistics")
    for label, key, pattern in (
        ('P/E Ratio', 'trailingPE', '{:.2f}'),
        ('Forward P/E', 'forwardPE', '{:.2f}'),
        ('EPS (TTM)', 'trailingEps', '{:.2f}'),
        ('Beta', 'beta', '{:.2f}'),
        ('52W High', 'fiftyTwoWeekHigh', '{:.2f}'),
        ('52W Low', 'fiftyTwoWeekLow', '{:.2f}'),
        ('Market Cap', 'marketCap', '{:,.0f}'),
    ):
        print(f"   {label:<12} {_fmt(stats.get(key), pattern)}")
    dividend_yield = stats.get('dividendYield')
    print(f"   {'Div Yield':<12} {_fmt(dividend_yield * 100 if dividend_yield else None, '{:.2f}%')}")

    if details['earnings']:
        print("\nEarnings")
        for row in details['earnings']:
            print(f"   {row['period']}  revenue {_fmt(row['revenue'], '{:,.0f}')}  "
                  f"net income {_fmt(row['earnings'], '{:,.0f}')}")

    if details['recommendation_trend']:
        latest = details['recommendation_trend'][0]
        print("\nAnalyst recommendations (" + str(latest['period']) + ")")
        print('   ' + '  '.join(f"{k} {latest[k]}" for k in ('strongBuy', 'buy', 'hold', 'sell', 'strongSell')))

    print("\nLatest news")
    if not details['news']:
        print("   No recent news found.")
    for item in details['news']:
        print(f"   {(item['published_at'] or '')[:10]}  {item['title']} ({item['publisher'] or '-'})")


def _print_performance(performance: Dict[str, Any]) -> None:
    for symbol, value in performance.items():
        print(f"{symbol:<8} {_fmt(value)}")


def _print_correlation(matrix: List[Dict[str, Any]]) -> None:
    print(correlation_frame(matrix).round(2).to_string())
    print()
    for i, row in enumerate(matrix):
        for j in range(i + 1, len(matrix)):
            value = row['values'][j]
            print(f"{row['symbol']}/{matrix[j]['symbol']}: {value:+.2f} ({classify_correlation(value)})")


def _print_returns(rows: List[Dict[str, Any]]) -> None:
    labels = [tf.label for tf in TIMEFRAMES]
    print(f"{'Symbol':<8} {'Price':>10} " + ' '.join(f"{label:>8}" for label in labels))
    for row in rows:
        price = _fmt(row['current_price'], '${:.2f}')
        cells = ' '.join(f"{_fmt(row['returns'].get(label)):>8}" for label in labels)
        print(f"{row['symbol']:<8} {price:>10} {cells}")


def _print_projection(rows: List[Dict[str, Any]], amount: float) -> None:
    labels = [tf.label for tf in TIMEFRAMES]
    print(f"Value of ${amount:,.2f} invested")
    print(f"{'Symbol':<8} " + ' '.join(f"{label:>10}" for label in labels))
    for row in rows:
        cells = ' '.join(
            f"{_fmt(row['projection'][label]['current_value'], '${:,.0f}'):>10}" for label in labels
        )
        print(f"{row['symbol']:<8} {cells}")


def _print_chain(table: Dict[str, Any]) -> None:
    underlying = table['underlying']
    print(f"{underlying.get('ticker')} ${underlying.get('price', 0):.2f}")
    if table['expiration'] is None:
        print("No contracts match the current filters")
        return

    print(f"Expiration {table['expiration']} ({table['days_to_expiration']} days)")
    print(f"{'Call last':>10} {'Call vol':>9} {'Strike':>9} {'Put last':>10} {'Put vol':>9}")
    for group in table['strikes']:
        call = group.get('call') or {}
        put = group.get('put') or {}
        print(f"{_fmt(call.get('last_price'), '{:.2f}'):>10} {call.get('volume') or 0:>9} "
              f"{group['strike']:>9.2f} {_fmt(put.get('last_price'), '{:.2f}'):>10} {put.get('volume') or 0:>9}")
    if not table['strikes']:
        print("No contracts match the current filters")



def _print_contract(contract: Dict[str, Any]) -> None:
    print(f"{contract['ticker']} {contract.get('contract_type') or ''} "
          f"strike {contract.get('strike_price')} exp {contract.get('expiration_date')}")
    print(f"   bid {_fmt(contract.get('bid_price'), '{:.2f}')}  ask {_fmt(contract.get('ask_price'), '{:.2f}')}  "
          f"last {_fmt(contract.get('last_price'), '{:.2f}')}  volume {contract.get('volume') or 0}")
    greeks = contract.get('greeks')
    if greeks:
        print("   " + '  '.join(f"{name} {value}" for name, value in greeks.items() if value is not None))


def _print_option_history(history: Dict[str, Any]) -> None:
    print(f"{history['contract']['ticker']}: {len(history['quotes'])} quotes")
    for quote in history['quotes']:
        print(f"{quote['timestamp']:>20} bid {_fmt(quote['bid'], '{:.2f}')} ask {_fmt(quote['ask'], '{:.2f}')}")


if __name__ == '__main__':
    sys.exit(main())
