"""Generate FIFO tax reports for one Stellar wallet.

Usage:
    PYTHONPATH=src python scripts/run_report.py <stellar-wallet-address> [--output-dir DIR]

Runs the full pipeline:
  1. Fetch transactions + operations from Horizon
  2. Normalize them into ledger rows with running balances
  3. Build the EUR price book (cached in the price database)
  4. Replay FIFO lot matching
  5. Write CSV reports and the xlsx workbook
"""

import argparse
import asyncio
import logging
import sys

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s - %(message)s")
logger = logging.getLogger("run_report")

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="FIFO cost-basis report for a Stellar wallet")
    parser.add_argument("wallet", help="Stellar account id (G...)")
    parser.add_argument("--output-dir", default=None, help="Directory for the CSV/xlsx reports")
    return parser.parse_args(argv)


async def main(argv: list[str]) -> int:
    from stellartax.config import settings
    from stellartax.domain.units import format_cents
    from stellartax.exceptions import StellarTaxError
    from stellartax.pipeline import run_pipeline

    args = parse_args(argv)
    if args.output_dir:
        settings.output_dir = args.output_dir

    try:
        fifo, paths = await run_pipeline(args.wallet, settings)
    except StellarTaxError:
        logger.exception("Report run failed for %s", args.wallet)
        return 1

    logger.info("Realized P/L: %s EUR over %d fills", format_cents(fifo.total_gain_loss_cents), len(fifo.fills))
    for path in paths:
        print(path)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
