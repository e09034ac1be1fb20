"""
Performance metrics calculator for simulation results.
Computes trade statistics and equity-curve risk figures.
"""

import logging
from typing import TYPE_CHECKING, Dict, List

import numpy as np
import pandas as pd

from gridtrade.core.types import Trade

if TYPE_CHECKING:
    from gridtrade.backtest.ledger import TradeLedger

logger = logging.getLogger(__name__)


class MetricsCalculator:
    """
    Calculates grid performance metrics.

    Supports:
    - Trade counts (opens, closes)
    - Realized PnL and win rate of closes
    - Average / best / worst close
    - Max Drawdown of the mark-to-market equity curve
    """

    def calculate_all(
        self,
        ledger: "TradeLedger",
        equity_curve: pd.Series,
        initial_capital: float,
    ) -> Dict[str, float]:
        """
        Calculate all metrics.

        Args:
            ledger: Trades of the run
            equity_curve: Mark-to-market equity after each candle
            initial_capital: Starting capital

        Returns:
            Dict of metric name to value
        """
        closes = ledger.closes()

        metrics: Dict[str, float] = {
            "initial_capital": initial_capital,
            "total_trades": len(ledger),
            "open_trades": len(ledger) - len(closes),
            "close_trades": len(closes),
        }

        final_equity = float(equity_curve.iloc[-1]) if len(equity_curve) > 0 else initial_capital
        metrics["final_equity"] = final_equity
        metrics["total_return_pct"] = ((final_equity - initial_capital) / initial_capital) * 100
        metrics["max_drawdown_pct"] = self.calculate_max_drawdown(equity_curve)

        metrics.update(self._calculate_close_metrics(closes))

        return metrics

    def _calculate_close_metrics(self, closes: List[Trade]) -> Dict[str, float]:
        """Calculate metrics based on realized closes."""
        if not closes:
            return {
                "realized_pnl": 0.0,
                "win_rate": 0.0,
                "avg_close_pnl": 0.0,
                "best_close_pnl": 0.0,
                "worst_close_pnl": 0.0,
            }

        pnls = np.array([t.realized_pnl for t in closes], dtype=float)
        winners = int((pnls > 0).sum())

        return {
            "realized_pnl": float(pnls.sum()),
            "win_rate": winners / len(closes) * 100,
            "avg_close_pnl": float(pnls.mean()),
            "best_close_pnl": float(pnls.max()),
            "worst_close_pnl": float(pnls.min()),
        }

    def calculate_max_drawdown(self, equity_curve: pd.Series) -> float:
        """
        Calculate maximum drawdown percentage.

        Args:
            equity_curve: Series of equity values

        Returns:
            Max drawdown as positive percentage
        """
        if len(equity_curve) < 2:
            return 0.0

        running_max = equity_curve.expanding().max()
        drawdown = (equity_curve - running_max) / running_max * 100

        return float(abs(drawdown.min()))
