"""
Core data types for the grid simulator.

Candles are the engine's input, Positions its open exposure, and Trades
its append-only output. EngineState bundles everything the engine carries
from one candle to the next.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import pandas as pd
import pytz

if TYPE_CHECKING:
    from gridtrade.backtest.ledger import TradeLedger
    from gridtrade.core.config import GridConfig
    from gridtrade.metrics.summary import ResultSummary


def ms_to_datetime(timestamp: int) -> datetime:
    """Convert a millisecond epoch timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp / 1000, tz=pytz.UTC)


class TradeKind(str, Enum):
    """Direction of a simulated fill."""
    OPEN = "open"
    CLOSE = "close"


class OpenTriggerMode(str, Enum):
    """Which part of the candle the open/close thresholds are tested against."""
    INTRABAR_THRESHOLD = "intrabar_threshold"
    CLOSE_PRICE_ONLY = "close_price_only"


class CloseMatchOrder(str, Enum):
    """Which open position is matched first when closing."""
    FIFO = "fifo"
    LIFO = "lifo"


class ReferenceRebaseRule(str, Enum):
    """How the reference price moves after each candle."""
    TO_CLOSE_WHEN_FLAT = "to_close_when_flat"
    TO_LAST_BUY_WHEN_FULL = "to_last_buy_when_full"
    TO_LAST_BUY_ALWAYS = "to_last_buy_always"


@dataclass(frozen=True)
class Candle:
    """One OHLC bar. Timestamp is milliseconds since the epoch."""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def as_datetime(self) -> datetime:
        return ms_to_datetime(self.timestamp)

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    @property
    def range(self) -> float:
        """High-to-low span of the bar."""
        return self.high - self.low


@dataclass(frozen=True)
class Position:
    """
    One open unit of exposure.

    expected_sell_price is only set by policies that fix the exit at open
    time; otherwise exits are measured against the shared reference price.
    """
    position_id: int
    buy_price: float
    size: float
    opened_at: int
    expected_sell_price: Optional[float] = None

    def unrealized_pnl(self, price: float) -> float:
        """Mark-to-market profit of this unit at the given price."""
        return self.size * (price / self.buy_price - 1)

    def unrealized_pct(self, price: float) -> float:
        return (price / self.buy_price - 1) * 100


@dataclass(frozen=True)
class Trade:
    """A single executed open or close. Never mutated once recorded."""
    kind: TradeKind
    timestamp: int
    price: float
    size: float
    resulting_open_count: int
    position_id: int
    realized_pnl: Optional[float] = None
    matched_buy_price: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.kind == TradeKind.OPEN

    @property
    def is_close(self) -> bool:
        return self.kind == TradeKind.CLOSE

    @property
    def as_datetime(self) -> datetime:
        return ms_to_datetime(self.timestamp)

    @property
    def is_winner(self) -> bool:
        return self.realized_pnl is not None and self.realized_pnl > 0


@dataclass(frozen=True)
class EngineState:
    """
    Everything the engine carries between candles.

    A new state is produced for every candle; old states are left intact,
    so a run can be stopped and inspected at any point.
    """
    initial_capital: float
    reference_price: float
    open_positions: Tuple[Position, ...] = ()
    realized_pnl: float = 0.0
    last_fill_price: Optional[float] = None
    next_position_id: int = 1
    last_close: Optional[float] = None
    last_timestamp: Optional[int] = None
    candles_processed: int = 0

    @property
    def open_count(self) -> int:
        return len(self.open_positions)

    @property
    def is_flat(self) -> bool:
        return not self.open_positions

    @property
    def total_value(self) -> float:
        """Capital plus realized profit. Excludes open positions."""
        return self.initial_capital + self.realized_pnl

    def unrealized_pnl(self, price: float) -> float:
        return sum(p.unrealized_pnl(price) for p in self.open_positions)

    def mark_to_market(self, price: float) -> float:
        """Total value with open positions marked at price."""
        return self.total_value + self.unrealized_pnl(price)


@dataclass
class BacktestResult:
    """Complete output of one simulation run."""
    config: "GridConfig"
    ledger: "TradeLedger"
    final_state: EngineState
    summary: "ResultSummary"
    equity_curve: pd.Series
    metrics: Dict[str, float] = field(default_factory=dict)

    @property
    def trades(self):
        return list(self.ledger)
