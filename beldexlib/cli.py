# beldexlib/cli.py
import argparse
import json
import sys

from . import __version__
from .core.local_data import BeldexLocalData, WALLET_DATA_FILE
from .currency_info import PRIMARY_CURRENCY
from .storage.database import FileDataStore
from .utils.console import print_error, print_info, safe_print
from .utils.formatting import format_amount


def show_snapshot(directory: str, as_json: bool = False) -> int:
    store = FileDataStore(directory)
    try:
        local_data = BeldexLocalData.from_json(store.get_text(WALLET_DATA_FILE))
    except (OSError, ValueError) as e:
        print_error(f"❌ Cannot read wallet data in {directory}: {e}")
        return 1

    if as_json:
        safe_print(json.dumps(local_data.to_dict(), indent=2, sort_keys=True))
        return 0

    print_info(f"Address:      {local_data.beldex_address}")
    print_info(f"Block height: {local_data.block_height}")
    for code, balance in sorted(local_data.total_balances.items()):
        print_info(f"Balance {code}:  {format_amount(balance)}")
    print_info(f"Locked:       {format_amount(local_data.locked_balance)}")
    print_info(f"Transactions: {len(local_data.transactions.get(PRIMARY_CURRENCY, []))}")
    return 0


def main(argv=None):
    """Command line interface for beldexlib"""
    parser = argparse.ArgumentParser(description="Beldex lightwallet engine tools")
    parser.add_argument('--version', action='store_true', help='Show version')
    subparsers = parser.add_subparsers(dest="command")

    show = subparsers.add_parser("show", help="Summarize a stored wallet snapshot")
    show.add_argument("directory", help="Wallet data directory")
    show.add_argument("--json", action="store_true", help="Dump the raw snapshot")

    args = parser.parse_args(argv)

    if args.version:
        safe_print(f"beldexlib v{__version__}")
        return 0
    if args.command == "show":
        return show_snapshot(args.directory, args.json)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
