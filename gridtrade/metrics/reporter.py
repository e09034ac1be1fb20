"""
Reporting utilities for simulation results.
Generates console summaries and the JSON documents consumed by charts.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import pytz

from gridtrade.core.types import BacktestResult, Trade, TradeKind

logger = logging.getLogger(__name__)


def trade_to_dict(trade: Trade) -> Dict[str, Any]:
    """One ledger entry in result-document form."""
    entry: Dict[str, Any] = {
        "type": trade.kind.value,
        "timestamp": trade.timestamp,
        "time": trade.as_datetime.isoformat(),
        "price": trade.price,
        "amount": trade.size,
        "positions": trade.resulting_open_count,
        "positionId": trade.position_id,
    }
    if trade.kind == TradeKind.CLOSE:
        entry["profit"] = trade.realized_pnl
        entry["buyPrice"] = trade.matched_buy_price
    return entry


class Reporter:
    """
    Generates formatted reports from simulation results.

    Supports:
    - Console output
    - Trade-by-trade listing
    - Sweep comparison
    - Result and open-position JSON documents
    """

    def print_summary(self, result: BacktestResult) -> None:
        """
        Print a formatted summary of a run.

        Args:
            result: BacktestResult to summarize
        """
        s = result.summary
        m = result.metrics
        c = result.config

        print("\n" + "=" * 60)
        print("GRID BACKTEST RESULTS")
        print("=" * 60)

        print(f"\nTrigger: {c.open_trigger_mode.value}")
        print(f"Match Order: {c.close_match_order.value}")
        print(f"Rebase: {c.reference_rebase_rule.value}")
        print(f"Threshold: {c.threshold_fraction * 100:.2f}%")
        print(f"Position Size: {c.position_size:,.2f} x {c.max_positions} max")

        print("\n--- PERFORMANCE ---")
        print(f"Initial Capital: {s.initial_capital:,.2f}")
        print(f"Final Value: {s.final_value:,.2f}")
        print(f"Profit: {s.profit:,.2f} ({s.profit_percent:.2f}%)")
        print(f"Realized PnL: {s.realized_pnl:,.2f}")
        print(f"Unrealized PnL: {s.unrealized_pnl:,.2f}")
        print(f"Max Drawdown: {m.get('max_drawdown_pct', 0):.2f}%")

        print("\n--- TRADES ---")
        print(f"Total Trades: {s.trade_count}")
        print(f"Opens / Closes: {s.open_trade_count} / {s.close_trade_count}")
        print(f"Win Rate: {m.get('win_rate', 0):.1f}%")
        print(f"Avg Close PnL: {m.get('avg_close_pnl', 0):,.4f}")
        print(f"Remaining Positions: {s.remaining_positions}")

        print("\n" + "=" * 60 + "\n")

    def print_trades(self, trades: Iterable[Trade], limit: int = 20) -> None:
        """
        Print trade-by-trade details.

        Args:
            trades: Trades to display
            limit: Maximum number of trades to show (most recent)
        """
        trades = list(trades)
        recent = trades[-limit:] if len(trades) > limit else trades

        print("\n" + "-" * 80)
        print("TRADE DETAILS (most recent)")
        print("-" * 80)
        print(
            f"{'Time':<20} {'Type':<6} {'Price':>12} {'Amount':>10} "
            f"{'Open':>5} {'PnL':>12}"
        )
        print("-" * 80)

        for t in recent:
            pnl = f"{t.realized_pnl:>12.4f}" if t.realized_pnl is not None else f"{'':>12}"
            print(
                f"{t.as_datetime.strftime('%Y-%m-%d %H:%M'):<20} {t.kind.value:<6} "
                f"{t.price:>12.4f} {t.size:>10.2f} {t.resulting_open_count:>5} {pnl}"
            )

        print("-" * 80)
        print(f"Showing {len(recent)} of {len(trades)} trades\n")

    def compare_runs(self, results: Dict[float, BacktestResult]) -> None:
        """
        Print comparison across a threshold sweep.

        Args:
            results: Dict mapping threshold to BacktestResult
        """
        print("\n" + "=" * 80)
        print("THRESHOLD COMPARISON")
        print("=" * 80)
        print(
            f"{'Threshold':>10} {'Return%':>10} {'MaxDD%':>8} {'Trades':>8} "
            f"{'Closes':>8} {'Open':>6} {'Final':>14}"
        )
        print("-" * 80)

        for threshold, result in sorted(results.items()):
            s = result.summary
            print(
                f"{threshold * 100:>9.2f}% {s.profit_percent:>10.2f} "
                f"{result.metrics.get('max_drawdown_pct', 0):>8.2f} "
                f"{s.trade_count:>8} {s.close_trade_count:>8} "
                f"{s.remaining_positions:>6} {s.final_value:>14,.2f}"
            )

        print("=" * 80 + "\n")

    def generate_result_document(self, result: BacktestResult) -> Dict[str, Any]:
        """
        Build the persisted result document.

        Args:
            result: BacktestResult

        Returns:
            Dict ready for JSON serialization
        """
        s = result.summary
        return {
            "initialCapital": s.initial_capital,
            "finalValue": s.final_value,
            "profit": s.profit,
            "profitPercent": s.profit_percent,
            "config": result.config.to_dict(),
            "trades": [trade_to_dict(t) for t in result.ledger],
            "remainingPositions": s.remaining_positions,
            "openPositions": [
                {
                    "positionId": p.position_id,
                    "buyPrice": p.buy_price,
                    "expectedSellPrice": p.expected_sell_price,
                }
                for p in s.open_positions
            ],
        }

    def generate_open_positions_report(
        self,
        result: BacktestResult,
        generated_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Detail every position still open at the end of the run.

        Args:
            result: BacktestResult
            generated_at: Report time (defaults to now, UTC)

        Returns:
            Dict with totals and one entry per open position
        """
        s = result.summary
        generated_at = generated_at or datetime.now(pytz.UTC)
        return {
            "timestamp": generated_at.isoformat(),
            "lastPrice": s.last_price,
            "totalPositions": s.remaining_positions,
            "totalPositionValue": s.total_position_value,
            "totalUnrealizedProfit": s.unrealized_pnl,
            "averageBuyPrice": s.average_buy_price,
            "positions": [
                {
                    "positionId": p.position_id,
                    "buyPrice": p.buy_price,
                    "expectedSellPrice": p.expected_sell_price,
                    "currentPrice": p.current_price,
                    "unrealizedProfit": p.unrealized_pnl,
                    "profitPercent": p.profit_percent,
                    "positionSize": p.position_size,
                }
                for p in s.open_positions
            ],
        }

    def save_json(self, document: Dict[str, Any], path: Union[str, Path]) -> Path:
        """Write a report document to disk."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
        logger.info(f"Saved report to {path}")
        return path
