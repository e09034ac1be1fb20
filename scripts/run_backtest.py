#!/usr/bin/env python3
"""
Run a grid backtest over a persisted kline file.

Usage:
    python scripts/run_backtest.py --data klines.json
    python scripts/run_backtest.py --data klines.json --variant close_only_ladder
    python scripts/run_backtest.py --data klines.json --threshold 0.01 --match fifo --show-trades
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gridtrade.backtest.engine import SimulationEngine
from gridtrade.core.config import VARIANTS, GridConfig
from gridtrade.core.data_manager import DataManager
from gridtrade.core.errors import GridTradeError
from gridtrade.core.types import CloseMatchOrder, OpenTriggerMode, ReferenceRebaseRule
from gridtrade.metrics.reporter import Reporter

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run grid strategy backtests"
    )
    parser.add_argument(
        "--data",
        type=str,
        required=True,
        help="Kline JSON file (array of [timestamp, open, high, low, close, ...])"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default="data",
        help="Directory searched for --data when it is not a path"
    )
    parser.add_argument(
        "--variant",
        type=str,
        choices=sorted(VARIANTS),
        help="Preset trigger/match/rebase combination"
    )
    parser.add_argument("--capital", type=float, help="Initial capital")
    parser.add_argument("--position-size", type=float, help="Notional per unit")
    parser.add_argument("--max-positions", type=int, help="Position cap")
    parser.add_argument("--threshold", type=float, help="Threshold fraction (0.005 = 0.5%%)")
    parser.add_argument(
        "--trigger",
        type=str,
        choices=[m.value for m in OpenTriggerMode],
        help="Open/close trigger mode"
    )
    parser.add_argument(
        "--match",
        type=str,
        choices=[m.value for m in CloseMatchOrder],
        help="Close match order"
    )
    parser.add_argument(
        "--rebase",
        type=str,
        choices=[m.value for m in ReferenceRebaseRule],
        help="Reference rebase rule"
    )
    parser.add_argument(
        "--env",
        action="store_true",
        help="Apply GRID_* environment variables over the variant preset (.env honoured)"
    )
    parser.add_argument(
        "--output",
        type=str,
        default="backtest_result.json",
        help="Where to write the result document"
    )
    parser.add_argument(
        "--positions-output",
        type=str,
        default="open_positions_detailed.json",
        help="Where to write the open-position report (skipped when flat)"
    )
    parser.add_argument(
        "--show-trades",
        action="store_true",
        help="Show individual trades"
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> GridConfig:
    """
    Combine defaults, variant preset, environment and explicit flags.

    Later layers win: a GRID_* variable overrides the preset, and a flag
    overrides both.
    """
    data = GridConfig().to_dict()
    if args.variant:
        data.update(VARIANTS[args.variant])
    if args.env:
        data.update(GridConfig.env_values())
    overrides = {
        "initial_capital": args.capital,
        "position_size": args.position_size,
        "max_positions": args.max_positions,
        "threshold_fraction": args.threshold,
        "open_trigger_mode": args.trigger,
        "close_match_order": args.match,
        "reference_rebase_rule": args.rebase,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    return GridConfig.from_dict(data)


def main() -> int:
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )

    try:
        config = config_from_args(args)
        candles = DataManager(args.data_dir).get_candles(args.data)
        result = SimulationEngine(config).run(candles)
    except GridTradeError as e:
        logger.error(f"Backtest aborted: {e}")
        return 1

    reporter = Reporter()
    reporter.print_summary(result)
    if args.show_trades:
        reporter.print_trades(result.ledger)

    reporter.save_json(reporter.generate_result_document(result), args.output)
    if result.summary.remaining_positions > 0:
        reporter.save_json(
            reporter.generate_open_positions_report(result),
            args.positions_output,
        )
    else:
        logger.info("No open positions left")

    return 0


if __name__ == "__main__":
    sys.exit(main())
