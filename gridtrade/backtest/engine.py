"""
Simulation engine for the grid strategy.
Folds the candle sequence through the trigger policy, one candle at a time.
"""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from gridtrade.core.config import GridConfig
from gridtrade.core.data_manager import check_candle, validate_candles
from gridtrade.core.errors import InputUnavailable
from gridtrade.core.types import (
    BacktestResult, Candle, EngineState, Position, Trade, TradeKind
)
from gridtrade.metrics.calculator import MetricsCalculator
from gridtrade.metrics.summary import summarize
from gridtrade.strategy import BaseTriggerPolicy, create_policy
from .ledger import TradeLedger

logger = logging.getLogger(__name__)


class SimulationEngine:
    """
    Deterministic grid backtesting engine.

    The first candle's close seeds the reference price; every later candle
    goes through process_candle, which returns a new EngineState and the
    trades executed on that candle. No state is shared between runs.
    """

    def __init__(self, config: Optional[GridConfig] = None):
        """
        Initialize engine.

        Args:
            config: Run configuration (defaults to GridConfig())

        Raises:
            ConfigurationInvalid: if any parameter is out of range
        """
        self.config = (config or GridConfig()).validate()
        self.policy: BaseTriggerPolicy = create_policy(self.config)

    def initial_state(
        self,
        reference_price: float,
        timestamp: Optional[int] = None,
    ) -> EngineState:
        """Fresh state with no positions and the given reference price."""
        return EngineState(
            initial_capital=self.config.initial_capital,
            reference_price=reference_price,
            last_close=reference_price,
            last_timestamp=timestamp,
        )

    def process_candle(
        self,
        state: EngineState,
        candle: Candle,
    ) -> Tuple[EngineState, List[Trade]]:
        """
        Advance the simulation by one candle.

        Opens are evaluated first, then closes, then the reference price is
        rebased.

        Args:
            state: State before the candle
            candle: Next candle in time order

        Returns:
            (new state, trades executed on this candle in execution order)
        """
        check_candle(candle, state.candles_processed + 1, state.last_timestamp)

        size = self.config.position_size
        trades: List[Trade] = []

        # Opens
        positions = list(state.open_positions)
        next_id = state.next_position_id
        last_fill = state.last_fill_price

        open_prices = self.policy.open_prices(state, candle)
        for price in open_prices:
            positions.append(Position(
                position_id=next_id,
                buy_price=price,
                size=size,
                opened_at=candle.timestamp,
                expected_sell_price=self.policy.expected_sell_price(price),
            ))
            trades.append(Trade(
                kind=TradeKind.OPEN,
                timestamp=candle.timestamp,
                price=price,
                size=size,
                resulting_open_count=len(positions),
                position_id=next_id,
            ))
            logger.debug(f"OPEN #{next_id} @ {price:.4f}, open={len(positions)}")
            next_id += 1
            last_fill = price

        after_open = replace(
            state,
            open_positions=tuple(positions),
            next_position_id=next_id,
            last_fill_price=last_fill,
        )

        # Closes, decided against a snapshot of the open positions
        realized = state.realized_pnl
        closed_ids = set()
        for position, price in self.policy.close_fills(after_open, candle):
            pnl = position.size * (price / position.buy_price - 1)
            realized += pnl
            closed_ids.add(position.position_id)
            trades.append(Trade(
                kind=TradeKind.CLOSE,
                timestamp=candle.timestamp,
                price=price,
                size=position.size,
                resulting_open_count=len(positions) - len(closed_ids),
                position_id=position.position_id,
                realized_pnl=pnl,
                matched_buy_price=position.buy_price,
            ))
            logger.debug(
                f"CLOSE #{position.position_id} @ {price:.4f} "
                f"(bought {position.buy_price:.4f}) PnL: {pnl:.4f}"
            )

        after_close = replace(
            after_open,
            open_positions=tuple(
                p for p in after_open.open_positions if p.position_id not in closed_ids
            ),
            realized_pnl=realized,
            last_close=candle.close,
            last_timestamp=candle.timestamp,
            candles_processed=state.candles_processed + 1,
        )

        # Rebase
        new_state = replace(
            after_close,
            reference_price=self.policy.next_reference(
                after_close, candle, opened=bool(open_prices)
            ),
        )

        return new_state, trades

    def run(self, candles: Iterable[Candle]) -> BacktestResult:
        """
        Run the simulation over a full candle sequence.

        Args:
            candles: Candles in non-decreasing timestamp order

        Returns:
            BacktestResult with ledger, final state, summary and metrics

        Raises:
            InputUnavailable: if no candles are supplied
            MalformedCandle: if any candle is invalid; nothing is simulated
        """
        candles = list(candles)
        if not candles:
            raise InputUnavailable("No candles provided for backtest")

        validate_candles(candles)

        logger.info(
            f"Starting backtest with {len(candles)} candles "
            f"from {candles[0].as_datetime} to {candles[-1].as_datetime}, "
            f"policy={self.policy}"
        )

        seed = candles[0]
        state = self.initial_state(seed.close, seed.timestamp)
        ledger = TradeLedger()
        equity = [state.total_value]

        for candle in candles[1:]:
            state, trades = self.process_candle(state, candle)
            ledger.extend(trades)
            equity.append(state.mark_to_market(candle.close))

        equity_curve = pd.Series(
            equity,
            index=pd.to_datetime([c.timestamp for c in candles], unit="ms", utc=True),
            name="equity",
        )

        summary = summarize(state, ledger, last_price=candles[-1].close)
        metrics = MetricsCalculator().calculate_all(
            ledger=ledger,
            equity_curve=equity_curve,
            initial_capital=self.config.initial_capital,
        )

        logger.info(
            f"Backtest complete: {summary.trade_count} trades, "
            f"{summary.remaining_positions} positions open, "
            f"Return: {summary.profit_percent:.2f}%"
        )

        return BacktestResult(
            config=self.config,
            ledger=ledger,
            final_state=state,
            summary=summary,
            equity_curve=equity_curve,
            metrics=metrics,
        )


def run_backtest(
    candles: Iterable[Candle],
    config: Optional[GridConfig] = None,
) -> BacktestResult:
    """
    Convenience function to run a backtest.

    Args:
        candles: Historical candle data
        config: Run configuration

    Returns:
        BacktestResult
    """
    return SimulationEngine(config).run(candles)
