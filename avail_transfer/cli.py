"""
Command-line entry point

    avail-transfer RECIPIENT AMOUNT [--endpoint URL] [--config PATH] [--yes]

The sender seed is read from AVAIL_SENDER_SEED or prompted for; it is
never accepted as an argument so it stays out of shell history. A .env
file in the working directory (or a parent) is loaded first; variables
already set in the environment win.
"""

import argparse
import asyncio
import getpass
import json
import os
import sys
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv
from loguru import logger

from .config import TransferConfig
from .transaction_manager import run_transfer


SEED_ENV = "AVAIL_SENDER_SEED"

BANNER_WIDTH = 50


def configure_logging(level: str = "INFO"):
    """Route loguru output to stderr at the given level"""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='avail-transfer',
        description='Send a balance transfer on Avail and wait for finalization'
    )
    parser.add_argument('recipient', help='Recipient SS58 address')
    parser.add_argument('amount', help='Amount in AVAIL (major units)')
    parser.add_argument('--endpoint', default=None, help='Node websocket URL')
    parser.add_argument('--config', default=None, help='Path to YAML config')
    parser.add_argument('--log-level', default='INFO', help='Log level (default: INFO)')
    parser.add_argument('--yes', action='store_true', help='Skip the confirmation prompt')
    return parser


def print_banner():
    print("🌟 Avail Blockchain Transaction Script")
    print("=" * BANNER_WIDTH)
    print("⚠️  WARNING: This script handles real cryptocurrency transactions!")
    print("⚠️  Always test on testnet first!")
    print("⚠️  Double-check all addresses and amounts!")
    print("=" * BANNER_WIDTH)


def read_seed() -> Optional[str]:
    seed = os.getenv(SEED_ENV)
    if seed:
        return seed
    try:
        return getpass.getpass("Sender seed phrase: ")
    except (EOFError, KeyboardInterrupt):
        return None


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    load_dotenv(find_dotenv(usecwd=True))

    try:
        config = TransferConfig.load(args.config).with_endpoint(args.endpoint)
    except (ValueError, TypeError) as e:
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        return 2

    print_banner()
    print(f"Endpoint:  {config.node_url}")
    print(f"Recipient: {args.recipient}")
    print(f"Amount:    {args.amount}")

    if not args.yes:
        try:
            answer = input("Proceed? [y/N] ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            answer = ''
        if answer not in ('y', 'yes'):
            print("Aborted")
            return 1

    seed = read_seed()
    if not seed:
        print(f"❌ No seed phrase: set {SEED_ENV} or enter it at the prompt", file=sys.stderr)
        return 2

    result = asyncio.run(run_transfer(seed, args.recipient, args.amount, config=config))

    print("\n" + "=" * BANNER_WIDTH)
    print("TRANSACTION RESULT:")
    print(json.dumps(result.to_dict(), indent=2))

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
