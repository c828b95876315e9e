#!/usr/bin/env python3
"""
Strategy Backtest Runner

Runs a single delta-neutral strategy backtest from the command line and
prints a performance summary, optionally writing the full result as JSON.
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path

from loguru import logger

from dnbacktest.core.engine.backtester import StrategyBacktester
from dnbacktest.core.enums import StrategyKind
from dnbacktest.core.exceptions.backtest import BacktestException, ValidationError
from dnbacktest.core.models.strategy import StrategyConfig
from dnbacktest.infrastructure.data import (
    HistoricalDataProvider,
    SyntheticDataSource,
    create_data_source,
)


def setup_logging(debug: bool = False):
    """Configure logging with loguru."""
    logger.remove()

    level = "DEBUG" if debug else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
    )


def build_provider(source: str, data_dir: str, seed: int | None) -> HistoricalDataProvider:
    """Provider for the selected source, always with a synthetic fallback."""
    options: dict = {}
    if source == "csv":
        options["directory"] = data_dir
    elif source == "synthetic":
        options["seed"] = seed
    return HistoricalDataProvider(
        source=create_data_source(source, **options),
        fallback=SyntheticDataSource(seed=seed),
    )


def print_summary(result) -> None:
    summary = result.performance_summary()
    print(f"\n{result.strategy_name} ({result.strategy_kind.value})")
    print(f"  Period:            {result.start_date} -> {result.end_date} ({summary['duration_days']} days)")
    print(f"  Initial value:     {result.initial_value:,.2f}")
    print(f"  Final value:       {result.final_value:,.2f}")
    print(f"  Total return:      {result.total_return:.4%}")
    print(f"  Annualized return: {result.annualized_return:.4%}")
    print(f"  Volatility:        {result.volatility:.4%}")
    print(f"  Sharpe / Sortino:  {result.sharpe_ratio:.3f} / {result.sortino_ratio:.3f}")
    print(f"  Calmar:            {result.calmar_ratio:.3f}")
    print(f"  Max drawdown:      {result.max_drawdown:.4%}")
    print(f"  Win rate:          {result.win_rate:.2%}")
    if result.strategy_metrics:
        metrics = result.strategy_metrics
        print(f"  Funding collected: {metrics.total_funding_collected:,.2f}")
        print(f"  Position switches: {metrics.position_switches}")
        print(f"  Long/short ratio:  {metrics.long_short_ratio:.3f}")
    if result.prediction_metrics:
        print(f"  Prediction accuracy: {result.prediction_metrics.accuracy_score:.2%}")
    sources = ", ".join(f"{asset}={source.value}" for asset, source in result.data_sources.items())
    print(f"  Data sources:      {sources}")
    print(f"  Outcome:           {'profitable' if result.is_profitable() else 'not profitable'}")


def main():
    parser = argparse.ArgumentParser(
        description="Backtest a delta-neutral yield strategy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_backtest.py --kind "Funding Rate" --capital 100000 --start 2024-01-01 --end 2024-03-31 --seed 42
  python run_backtest.py --kind "Basis Trade" --start 2024-01-01 --end 2024-06-30 --source live
  python run_backtest.py --kind FundingRate --start 2024-01-01 --end 2024-02-01 --ai --json result.json
        """,
    )

    parser.add_argument(
        "--kind",
        type=str,
        default=StrategyKind.FUNDING_RATE.value,
        help="Strategy kind (default: 'Funding Rate')",
    )
    parser.add_argument("--name", type=str, default="CLI strategy", help="Strategy display name")
    parser.add_argument("--capital", type=float, default=100_000.0, help="USDC allocated")
    parser.add_argument("--leverage", type=float, default=3.0, help="Maximum leverage")
    parser.add_argument("--hedge-ratio", type=float, default=1.0, help="Hedge ratio (1.0 = fully hedged)")
    parser.add_argument("--start", type=date.fromisoformat, required=True, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end", type=date.fromisoformat, required=True, help="End date (YYYY-MM-DD)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    parser.add_argument(
        "--source",
        choices=["synthetic", "live", "csv"],
        default="synthetic",
        help="Historical data source (default: synthetic)",
    )
    parser.add_argument("--data-dir", type=str, default="data", help="CSV directory (default: data)")
    parser.add_argument("--ai", action="store_true", help="Enable prediction-enhanced returns")
    parser.add_argument("--json", type=str, help="Write the full result to this JSON file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    setup_logging(args.debug)

    try:
        strategy = StrategyConfig(
            strategy_id="cli",
            name=args.name,
            kind=StrategyKind.from_string(args.kind),
            usdc_allocated=args.capital,
            max_leverage=args.leverage,
            hedge_ratio=args.hedge_ratio,
        )
        backtester = StrategyBacktester(
            build_provider(args.source, args.data_dir, args.seed), seed=args.seed
        )
        result = backtester.run_backtest(strategy, args.start, args.end, use_ai_enhancement=args.ai)
    except (ValueError, ValidationError) as e:
        logger.error(f"Invalid input: {e}")
        return 2
    except BacktestException as e:
        logger.exception(f"Backtest failed: {e}")
        return 1

    print_summary(result)

    if args.json:
        output = Path(args.json)
        output.write_text(json.dumps(result.to_dict(), indent=2))
        logger.success(f"Wrote result to {output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
