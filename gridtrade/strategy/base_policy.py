"""
Base trigger policy interface.

A policy is pure decision logic: given the engine state and the current
candle it says which units to open, which to close and at what prices,
and where the reference price moves next. It never mutates state.
"""

import math
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from gridtrade.core.config import GridConfig
from gridtrade.core.types import (
    Candle, CloseMatchOrder, EngineState, Position, ReferenceRebaseRule
)

# Absorbs float noise when dividing a move by the threshold, so that a move
# of exactly N thresholds is not counted as N-1.
LEVEL_EPSILON = 1e-9

# Relative tolerance when testing whether a computed level price was
# actually traded through by the candle.
PRICE_TOLERANCE = 1e-12

CloseFill = Tuple[Position, float]


def levels_crossed(move: float, threshold: float) -> int:
    """Number of whole threshold steps contained in a fractional move."""
    if move <= 0:
        return 0
    return int(math.floor(move / threshold + LEVEL_EPSILON))


def at_or_below(price: float, bound: float) -> bool:
    """price <= bound, allowing for float noise."""
    return price <= bound + abs(bound) * PRICE_TOLERANCE


def at_or_above(price: float, bound: float) -> bool:
    """price >= bound, allowing for float noise."""
    return price >= bound - abs(bound) * PRICE_TOLERANCE


def match_sequence(
    positions: Sequence[Position],
    order: CloseMatchOrder,
) -> List[Position]:
    """
    Snapshot of open positions in the order they should be matched.

    FIFO starts from the earliest opened unit, LIFO from the latest. Ties
    on open timestamp fall back to the position id, which always grows
    with open order.
    """
    ordered = sorted(positions, key=lambda p: (p.opened_at, p.position_id))
    if order == CloseMatchOrder.LIFO:
        ordered.reverse()
    return ordered


class BaseTriggerPolicy(ABC):
    """Abstract base class for open/close trigger policies."""

    name = "base"

    def __init__(self, config: GridConfig):
        """
        Initialize policy.

        Args:
            config: Validated run configuration
        """
        self.config = config
        self.threshold = config.threshold_fraction

    @abstractmethod
    def open_prices(self, state: EngineState, candle: Candle) -> List[float]:
        """
        Decide which units to open on this candle.

        Args:
            state: Engine state before the candle
            candle: Current candle

        Returns:
            Fill prices in execution order (empty if nothing opens)
        """

    @abstractmethod
    def close_fills(self, state: EngineState, candle: Candle) -> List[CloseFill]:
        """
        Decide which units to close on this candle.

        Args:
            state: Engine state after this candle's opens
            candle: Current candle

        Returns:
            (position, sell price) pairs in execution order
        """

    def expected_sell_price(self, buy_price: float) -> Optional[float]:
        """Exit price fixed at open time, or None if exits use the reference."""
        return None

    def capacity(self, state: EngineState) -> int:
        """Units that can still be opened before hitting the cap."""
        return max(0, self.config.max_positions - state.open_count)

    def is_full(self, state: EngineState) -> bool:
        return state.open_count >= self.config.max_positions

    def drawdown(self, reference: float, price: float) -> float:
        """Fractional drop of price below the reference."""
        return (reference - price) / reference

    def rise(self, reference: float, price: float) -> float:
        """Fractional gain of price above the reference."""
        return (price - reference) / reference

    def ordered_positions(self, state: EngineState) -> List[Position]:
        return match_sequence(state.open_positions, self.config.close_match_order)

    def next_reference(
        self,
        state: EngineState,
        candle: Candle,
        opened: bool,
    ) -> float:
        """
        Compute the reference price for the next candle.

        Args:
            state: Engine state after this candle's opens and closes
            candle: Candle just processed
            opened: Whether any unit was opened on this candle

        Returns:
            New reference price
        """
        if state.is_flat:
            return candle.close

        rule = self.config.reference_rebase_rule
        last_fill = state.last_fill_price

        if last_fill is not None:
            if rule == ReferenceRebaseRule.TO_LAST_BUY_WHEN_FULL and self.is_full(state):
                return last_fill
            if rule == ReferenceRebaseRule.TO_LAST_BUY_ALWAYS and opened:
                return last_fill

        return state.reference_price

    def __str__(self) -> str:
        return (
            f"{self.__class__.__name__}(threshold={self.threshold}, "
            f"match={self.config.close_match_order.value}, "
            f"rebase={self.config.reference_rebase_rule.value})"
        )
