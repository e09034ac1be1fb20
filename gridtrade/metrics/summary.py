"""
End-of-run valuation.

Open units are marked to the last close one by one, each against its own
buy price. No blended average price is used for valuation.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

from gridtrade.core.types import EngineState, TradeKind

if TYPE_CHECKING:
    from gridtrade.backtest.ledger import TradeLedger


@dataclass(frozen=True)
class OpenPositionDetail:
    """Mark-to-market view of one unit still open at the end of a run."""
    position_id: int
    buy_price: float
    expected_sell_price: Optional[float]
    current_price: float
    unrealized_pnl: float
    profit_percent: float
    position_size: float


@dataclass(frozen=True)
class ResultSummary:
    """Final aggregation of a simulation run."""
    initial_capital: float
    realized_pnl: float
    unrealized_pnl: float
    final_value: float
    profit: float
    profit_percent: float
    trade_count: int
    open_trade_count: int
    close_trade_count: int
    remaining_positions: int
    last_price: float
    open_positions: Tuple[OpenPositionDetail, ...] = ()

    @property
    def total_position_value(self) -> float:
        """Notional committed to the units still open."""
        return sum(p.position_size for p in self.open_positions)

    @property
    def average_buy_price(self) -> Optional[float]:
        """Informational only; never used for valuation."""
        if not self.open_positions:
            return None
        return sum(p.buy_price for p in self.open_positions) / len(self.open_positions)


def summarize(
    state: EngineState,
    ledger: "TradeLedger",
    last_price: Optional[float] = None,
) -> ResultSummary:
    """
    Build the result summary for a finished run.

    Args:
        state: Final engine state
        ledger: Every trade of the run
        last_price: Mark price for open units (defaults to the last close
            the engine saw)

    Returns:
        ResultSummary
    """
    if last_price is None:
        last_price = state.last_close if state.last_close is not None else state.reference_price

    details = []
    unrealized = 0.0
    for position in state.open_positions:
        pnl = position.unrealized_pnl(last_price)
        unrealized += pnl
        details.append(OpenPositionDetail(
            position_id=position.position_id,
            buy_price=position.buy_price,
            expected_sell_price=position.expected_sell_price,
            current_price=last_price,
            unrealized_pnl=pnl,
            profit_percent=position.unrealized_pct(last_price),
            position_size=position.size,
        ))

    profit = state.realized_pnl + unrealized
    final_value = state.initial_capital + profit

    open_count = sum(1 for t in ledger if t.kind == TradeKind.OPEN)

    return ResultSummary(
        initial_capital=state.initial_capital,
        realized_pnl=state.realized_pnl,
        unrealized_pnl=unrealized,
        final_value=final_value,
        profit=profit,
        profit_percent=(final_value / state.initial_capital - 1) * 100,
        trade_count=len(ledger),
        open_trade_count=open_count,
        close_trade_count=len(ledger) - open_count,
        remaining_positions=state.open_count,
        last_price=last_price,
        open_positions=tuple(details),
    )
