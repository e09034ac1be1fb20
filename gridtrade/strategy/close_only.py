"""
Close-price-only policy.

Looks at nothing but the candle close. Each candle may open at most one
unit and close at most one unit.
"""

from typing import List, Optional

from gridtrade.core.types import Candle, EngineState
from .base_policy import (
    BaseTriggerPolicy, CloseFill, at_or_above, levels_crossed
)


class ClosePriceOnlyPolicy(BaseTriggerPolicy):
    """
    Per-position take-profit ladder.

    A unit opens at the close when the close has fallen threshold_fraction
    below the reference. Each unit carries its own exit price, fixed at
    buy_price * (1 + threshold_fraction). On every candle the open units
    are scanned in close_match_order and only the first one whose exit has
    been reached is sold, even if others qualify too.
    """

    name = "close_price_only"

    def expected_sell_price(self, buy_price: float) -> Optional[float]:
        return buy_price * (1 + self.threshold)

    def open_prices(self, state: EngineState, candle: Candle) -> List[float]:
        if self.capacity(state) <= 0:
            return []
        drop = self.drawdown(state.reference_price, candle.close)
        if levels_crossed(drop, self.threshold) >= 1:
            return [candle.close]
        return []

    def close_fills(self, state: EngineState, candle: Candle) -> List[CloseFill]:
        for position in self.ordered_positions(state):
            target = position.expected_sell_price
            if target is None:
                target = self.expected_sell_price(position.buy_price)
            if at_or_above(candle.close, target):
                return [(position, candle.close)]
        return []
