"""
Append-only trade ledger.
"""

import logging
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Union

import pandas as pd
import pytz

from gridtrade.core.types import Trade, TradeKind

logger = logging.getLogger(__name__)

TimeBound = Union[int, datetime, None]


def _to_ms(value: TimeBound) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, datetime):
        # Naive datetimes are UTC, like every timestamp in the ledger
        if value.tzinfo is None:
            value = pytz.UTC.localize(value)
        return int(value.timestamp() * 1000)
    return int(value)


class TradeLedger:
    """
    Record of every executed open and close, in execution order.

    Entries are never edited or removed, and duplicates are kept: one candle
    can legitimately produce several identical-looking opens.
    """

    def __init__(self, trades: Optional[Iterable[Trade]] = None):
        self._trades: List[Trade] = []
        if trades is not None:
            self.extend(trades)

    def append(self, trade: Trade) -> None:
        self._trades.append(trade)

    def extend(self, trades: Iterable[Trade]) -> None:
        for trade in trades:
            self.append(trade)

    def __iter__(self) -> Iterator[Trade]:
        return iter(tuple(self._trades))

    def __len__(self) -> int:
        return len(self._trades)

    def __getitem__(self, index: int) -> Trade:
        return self._trades[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TradeLedger):
            return NotImplemented
        return self._trades == other._trades

    def __repr__(self) -> str:
        return f"TradeLedger({len(self._trades)} trades)"

    def between(self, start: TimeBound = None, end: TimeBound = None) -> List[Trade]:
        """
        Trades whose timestamp falls in [start, end].

        Bounds may be millisecond timestamps or datetimes (naive means UTC);
        None leaves that side open.
        """
        start_ms = _to_ms(start)
        end_ms = _to_ms(end)
        return [
            t for t in self._trades
            if (start_ms is None or t.timestamp >= start_ms)
            and (end_ms is None or t.timestamp <= end_ms)
        ]

    def opens(self) -> List[Trade]:
        return [t for t in self._trades if t.kind == TradeKind.OPEN]

    def closes(self) -> List[Trade]:
        return [t for t in self._trades if t.kind == TradeKind.CLOSE]

    def realized_pnl(self) -> float:
        """Sum of realized PnL over all closes, in execution order."""
        total = 0.0
        for trade in self.closes():
            total += trade.realized_pnl
        return total

    def to_frame(self) -> pd.DataFrame:
        """
        Trades as a DataFrame indexed by UTC datetime.

        This is what chart overlays consume: every row has a timestamp and
        a kind of "open" or "close".
        """
        columns = [
            "kind", "timestamp", "price", "size", "resulting_open_count",
            "position_id", "realized_pnl", "matched_buy_price",
        ]
        if not self._trades:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame(
            [
                {
                    "kind": t.kind.value,
                    "timestamp": t.timestamp,
                    "price": t.price,
                    "size": t.size,
                    "resulting_open_count": t.resulting_open_count,
                    "position_id": t.position_id,
                    "realized_pnl": t.realized_pnl,
                    "matched_buy_price": t.matched_buy_price,
                }
                for t in self._trades
            ],
            columns=columns,
        )
        df.index = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
        df.index.name = "time"
        return df
