#!/usr/bin/env python3
"""
Compare grid thresholds over the same kline file.

Usage:
    python scripts/sweep_thresholds.py --data klines.json
    python scripts/sweep_thresholds.py --data klines.json --thresholds 0.002,0.005,0.01 --workers 4
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gridtrade.backtest.sweep import sweep_thresholds
from gridtrade.core.config import VARIANTS, GridConfig
from gridtrade.core.data_manager import DataManager
from gridtrade.core.errors import GridTradeError
from gridtrade.metrics.reporter import Reporter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS = "0.002,0.003,0.005,0.0075,0.01"


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Sweep grid threshold values"
    )
    parser.add_argument("--data", type=str, required=True, help="Kline JSON file")
    parser.add_argument("--data-dir", type=str, default="data")
    parser.add_argument(
        "--thresholds",
        type=str,
        default=DEFAULT_THRESHOLDS,
        help="Comma-separated threshold fractions"
    )
    parser.add_argument(
        "--variant",
        type=str,
        choices=sorted(VARIANTS),
        default="intrabar_grid",
        help="Preset trigger/match/rebase combination"
    )
    parser.add_argument("--workers", type=int, default=1, help="Worker processes")
    args = parser.parse_args()

    try:
        thresholds = [float(t) for t in args.thresholds.split(",") if t.strip()]
    except ValueError:
        logger.error(f"Invalid --thresholds: {args.thresholds}")
        return 2

    try:
        config = GridConfig.for_variant(args.variant)
        candles = DataManager(args.data_dir).get_candles(args.data)
        results = sweep_thresholds(candles, config, thresholds, max_workers=args.workers)
    except GridTradeError as e:
        logger.error(f"Sweep aborted: {e}")
        return 1

    reporter = Reporter()
    reporter.compare_runs(results)

    best = max(results, key=lambda t: results[t].summary.profit_percent)
    print(f"Best threshold: {best * 100:.2f}%")
    reporter.print_summary(results[best])

    return 0


if __name__ == "__main__":
    sys.exit(main())
