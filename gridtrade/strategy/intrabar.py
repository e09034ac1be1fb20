"""
Intrabar threshold policy.

Tests the candle's low and high against the reference price, so a single
wide candle can fill several grid levels on either side.
"""

import logging
from typing import List

from gridtrade.core.types import Candle, EngineState
from .base_policy import (
    BaseTriggerPolicy, CloseFill, at_or_above, at_or_below, levels_crossed
)

logger = logging.getLogger(__name__)


class IntrabarThresholdPolicy(BaseTriggerPolicy):
    """
    Grid levels spaced threshold_fraction apart around a shared reference.

    Opens: one unit per level the low traded through, nearest level first,
    capped by remaining capacity.

    Closes: one unit per level the high traded through, matched against
    open positions in close_match_order. Once the cap is reached the sell
    levels are laid out above the last fill price instead of the reference.
    """

    name = "intrabar_threshold"

    def open_prices(self, state: EngineState, candle: Candle) -> List[float]:
        reference = state.reference_price
        drop = self.drawdown(reference, candle.low)
        capacity = self.capacity(state)

        levels = min(capacity, levels_crossed(drop, self.threshold))
        if levels <= 0:
            return []

        prices = []
        for level in range(1, levels + 1):
            price = reference * (1 - level * self.threshold)
            # Only levels the candle actually reached
            if at_or_above(price, candle.low):
                prices.append(price)
            else:
                logger.debug(
                    f"Skipping buy level {level} @ {price:.4f}: below low {candle.low}"
                )
        return prices

    def close_fills(self, state: EngineState, candle: Candle) -> List[CloseFill]:
        if state.is_flat:
            return []

        reference = state.reference_price
        gain = self.rise(reference, candle.high)
        levels = min(state.open_count, levels_crossed(gain, self.threshold))
        if levels <= 0:
            return []

        if self.is_full(state) and state.last_fill_price is not None:
            sell_reference = state.last_fill_price
        else:
            sell_reference = reference

        candidates = self.ordered_positions(state)
        fills: List[CloseFill] = []
        for level in range(1, levels + 1):
            price = sell_reference * (1 + level * self.threshold)
            if not at_or_below(price, candle.high):
                continue
            fills.append((candidates[len(fills)], price))
        return fills
