#!/usr/bin/env python3
"""
Market Data Exporter

Downloads price, volume and funding-rate history through the live data
source (or generates it synthetically) and writes one CSV per asset in
the layout the csv data source reads: <output-dir>/<asset>.csv with
columns timestamp, price, volume, funding_rate, exchange.
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

import pandas as pd
from loguru import logger

from dnbacktest.core.engine.backtester import to_epoch_ms, to_utc_datetime
from dnbacktest.core.exceptions.backtest import BacktestException
from dnbacktest.core.utils.validation import validate_date_range
from dnbacktest.infrastructure.data import create_data_source


def setup_logging(debug: bool = False):
    """Configure logging with loguru."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="DEBUG" if debug else "INFO",
    )


async def export_assets(
    assets: list[str], start: date, end: date, output_dir: Path, source_name: str, seed: int | None
) -> list[Path]:
    """Fetch every asset and write its CSV; failed assets are logged and skipped."""
    options = {"seed": seed} if source_name == "synthetic" else {}
    source = create_data_source(source_name, **options)
    start_ms = to_epoch_ms(to_utc_datetime(start))
    end_ms = to_epoch_ms(to_utc_datetime(end))
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for asset in assets:
        try:
            samples = await source.get_series(asset, start_ms, end_ms)
        except BacktestException as e:
            logger.warning(f"Skipping {asset}: {e}")
            continue
        except OSError as e:
            logger.warning(f"Skipping {asset}: network error {e}")
            continue

        frame = pd.DataFrame(
            [
                {
                    "timestamp": s.timestamp,
                    "price": s.price,
                    "volume": s.volume,
                    "funding_rate": s.funding_rate,
                    "exchange": s.exchange,
                }
                for s in samples
            ]
        )
        path = output_dir / f"{asset}.csv"
        frame.to_csv(path, index=False)
        logger.success(f"Wrote {len(frame)} rows for {asset} to {path}")
        written.append(path)
    return written


def main():
    parser = argparse.ArgumentParser(
        description="Export historical market data to CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python export_market_data.py --assets solana bitcoin --start 2024-01-01 --end 2024-03-31
  python export_market_data.py --assets ethereum --start 2024-01-01 --end 2024-01-31 --source synthetic --seed 7
        """,
    )
    parser.add_argument("--assets", nargs="+", default=["solana", "bitcoin", "ethereum"])
    parser.add_argument("--start", type=date.fromisoformat, required=True, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end", type=date.fromisoformat, required=True, help="End date (YYYY-MM-DD)")
    parser.add_argument("--output-dir", type=str, default="data", help="Output directory (default: data)")
    parser.add_argument("--source", choices=["live", "synthetic"], default="live")
    parser.add_argument("--seed", type=int, default=None, help="Seed for synthetic data")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()
    setup_logging(args.debug)

    try:
        validate_date_range(args.start, args.end)
    except BacktestException as e:
        logger.error(f"Invalid date range: {e}")
        return 2

    written = asyncio.run(
        export_assets(args.assets, args.start, args.end, Path(args.output_dir), args.source, args.seed)
    )
    if not written:
        logger.error("No data exported")
        return 1
    logger.success(f"Exported {len(written)} assets to {args.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
