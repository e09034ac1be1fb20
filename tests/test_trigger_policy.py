"""Tests for open/close trigger policies."""

import pytest

from gridtrade.core.config import GridConfig
from gridtrade.core.types import (
    Candle, CloseMatchOrder, EngineState, OpenTriggerMode, Position, ReferenceRebaseRule
)
from gridtrade.strategy import (
    ClosePriceOnlyPolicy, IntrabarThresholdPolicy, create_policy, match_sequence
)
from gridtrade.strategy.base_policy import levels_crossed


def make_candle(close: float, high: float = None, low: float = None, ts: int = 60000) -> Candle:
    high = max(close, high if high is not None else close)
    low = min(close, low if low is not None else close)
    return Candle(timestamp=ts, open=close, high=high, low=low, close=close)


def make_positions(*buy_prices: float, expected: bool = False) -> tuple:
    return tuple(
        Position(
            position_id=i + 1,
            buy_price=price,
            size=1000.0,
            opened_at=i * 60000,
            expected_sell_price=price * 1.005 if expected else None,
        )
        for i, price in enumerate(buy_prices)
    )


def make_state(reference: float = 100.0, positions: tuple = (), last_fill: float = None) -> EngineState:
    return EngineState(
        initial_capital=10000.0,
        reference_price=reference,
        open_positions=positions,
        last_fill_price=last_fill,
        next_position_id=len(positions) + 1,
    )


class TestHelpers:
    """Tests for level counting and match ordering."""

    def test_levels_crossed_exact_multiples(self):
        assert levels_crossed(0.015, 0.005) == 3
        assert levels_crossed(0.005, 0.005) == 1
        assert levels_crossed(0.0049, 0.005) == 0
        assert levels_crossed(-0.02, 0.005) == 0

    def test_match_sequence(self):
        positions = make_positions(100.0, 99.0, 98.0)

        fifo = match_sequence(positions, CloseMatchOrder.FIFO)
        lifo = match_sequence(positions, CloseMatchOrder.LIFO)

        assert [p.position_id for p in fifo] == [1, 2, 3]
        assert [p.position_id for p in lifo] == [3, 2, 1]

    def test_match_sequence_timestamp_ties_use_id(self):
        positions = (
            Position(position_id=1, buy_price=99.5, size=1.0, opened_at=0),
            Position(position_id=2, buy_price=99.0, size=1.0, opened_at=0),
        )

        assert match_sequence(positions, CloseMatchOrder.LIFO)[0].position_id == 2
        assert match_sequence(positions, CloseMatchOrder.FIFO)[0].position_id == 1

    def test_create_policy(self):
        assert isinstance(create_policy(GridConfig()), IntrabarThresholdPolicy)
        config = GridConfig(open_trigger_mode=OpenTriggerMode.CLOSE_PRICE_ONLY)
        assert isinstance(create_policy(config), ClosePriceOnlyPolicy)


class TestIntrabarThresholdPolicy:
    """Tests for intrabar open/close decisions."""

    def setup_method(self):
        self.policy = IntrabarThresholdPolicy(GridConfig(max_positions=10, threshold_fraction=0.005))

    def test_opens_one_unit_per_level(self):
        """A 1.5% drawdown fills the three nearest levels."""
        prices = self.policy.open_prices(make_state(), make_candle(98.7, high=100.0, low=98.5))

        assert prices == pytest.approx([99.5, 99.0, 98.5])

    def test_no_open_below_threshold(self):
        prices = self.policy.open_prices(make_state(), make_candle(99.8, low=99.6))

        assert prices == []

    def test_open_capped_by_capacity(self):
        policy = IntrabarThresholdPolicy(GridConfig(max_positions=4))
        state = make_state(positions=make_positions(101.0, 100.5), last_fill=100.5)

        prices = policy.open_prices(state, make_candle(95.0, high=100.0, low=90.0))

        assert prices == pytest.approx([99.5, 99.0])

    def test_no_open_when_full(self):
        policy = IntrabarThresholdPolicy(GridConfig(max_positions=2))
        state = make_state(positions=make_positions(101.0, 100.5), last_fill=100.5)

        assert policy.open_prices(state, make_candle(95.0, low=90.0)) == []

    def test_close_levels_against_reference(self):
        state = make_state(positions=make_positions(99.5, 99.0, 98.5), last_fill=98.5)

        fills = self.policy.close_fills(state, make_candle(100.8, high=101.2, low=100.1))

        # 1.2% rise crosses two levels: 100.5 and 101.0, newest units first
        assert [p.position_id for p, _ in fills] == [3, 2]
        assert [price for _, price in fills] == pytest.approx([100.5, 101.0])

    def test_close_capped_by_open_count(self):
        state = make_state(positions=make_positions(99.5), last_fill=99.5)

        fills = self.policy.close_fills(state, make_candle(103.0, high=105.0, low=102.0))

        assert len(fills) == 1
        assert fills[0][1] == pytest.approx(100.5)

    def test_close_uses_last_fill_when_full(self):
        policy = IntrabarThresholdPolicy(GridConfig(max_positions=2))
        state = make_state(reference=99.0, positions=make_positions(99.5, 99.0), last_fill=99.0)

        fills = policy.close_fills(state, make_candle(99.6, high=99.6, low=99.2))

        assert len(fills) == 1
        assert fills[0][0].position_id == 2
        assert fills[0][1] == pytest.approx(99.495)

    def test_fifo_close_order(self):
        policy = IntrabarThresholdPolicy(GridConfig(close_match_order=CloseMatchOrder.FIFO))
        state = make_state(positions=make_positions(99.5, 99.0, 98.5), last_fill=98.5)

        fills = policy.close_fills(state, make_candle(100.6, high=100.6))

        assert [p.position_id for p, _ in fills] == [1]

    def test_no_close_when_flat(self):
        assert self.policy.close_fills(make_state(), make_candle(110.0)) == []

    def test_no_expected_sell_price(self):
        assert self.policy.expected_sell_price(100.0) is None


class TestClosePriceOnlyPolicy:
    """Tests for close-only decisions."""

    def setup_method(self):
        self.config = GridConfig(
            open_trigger_mode=OpenTriggerMode.CLOSE_PRICE_ONLY,
            close_match_order=CloseMatchOrder.LIFO,
            reference_rebase_rule=ReferenceRebaseRule.TO_LAST_BUY_ALWAYS,
        )
        self.policy = ClosePriceOnlyPolicy(self.config)

    def test_opens_single_unit_at_close(self):
        """Even a deep drop opens only one unit, at the close."""
        prices = self.policy.open_prices(make_state(), make_candle(97.0, high=100.0, low=95.0))

        assert prices == [97.0]

    def test_ignores_intrabar_low(self):
        prices = self.policy.open_prices(make_state(), make_candle(99.9, high=100.0, low=95.0))

        assert prices == []

    def test_expected_sell_price(self):
        assert self.policy.expected_sell_price(100.0) == pytest.approx(100.5)

    def test_closes_first_eligible_only(self):
        """Both units qualify but only one exits per candle."""
        state = make_state(positions=make_positions(100.0, 99.0, expected=True), last_fill=99.0)

        fills = self.policy.close_fills(state, make_candle(101.0))

        assert len(fills) == 1
        assert fills[0][0].position_id == 2
        assert fills[0][1] == 101.0

    def test_fifo_picks_oldest_eligible(self):
        policy = ClosePriceOnlyPolicy(GridConfig(
            open_trigger_mode=OpenTriggerMode.CLOSE_PRICE_ONLY,
            close_match_order=CloseMatchOrder.FIFO,
        ))
        state = make_state(positions=make_positions(100.0, 99.0, expected=True), last_fill=99.0)

        fills = policy.close_fills(state, make_candle(101.0))

        assert fills[0][0].position_id == 1

    def test_skips_ineligible_in_match_order(self):
        """LIFO scans newest first but skips a unit whose exit is not reached."""
        state = make_state(positions=make_positions(99.0, 101.0, expected=True), last_fill=101.0)

        fills = self.policy.close_fills(state, make_candle(100.0))

        assert [p.position_id for p, _ in fills] == [1]

    def test_close_at_exact_target(self):
        state = make_state(positions=make_positions(100.0, expected=True), last_fill=100.0)

        fills = self.policy.close_fills(state, make_candle(100.5))

        assert len(fills) == 1


class TestRebase:
    """Tests for reference price rebasing."""

    def _policy(self, rule: ReferenceRebaseRule) -> IntrabarThresholdPolicy:
        return IntrabarThresholdPolicy(GridConfig(max_positions=2, reference_rebase_rule=rule))

    @pytest.mark.parametrize("rule", list(ReferenceRebaseRule))
    def test_flat_rebases_to_close(self, rule):
        policy = self._policy(rule)

        assert policy.next_reference(make_state(), make_candle(97.0), opened=False) == 97.0

    def test_close_when_flat_keeps_reference_otherwise(self):
        policy = self._policy(ReferenceRebaseRule.TO_CLOSE_WHEN_FLAT)
        state = make_state(positions=make_positions(99.5, 99.0), last_fill=99.0)

        assert policy.next_reference(state, make_candle(98.0), opened=True) == 100.0

    def test_last_buy_when_full(self):
        policy = self._policy(ReferenceRebaseRule.TO_LAST_BUY_WHEN_FULL)
        full = make_state(positions=make_positions(99.5, 99.0), last_fill=99.0)
        partial = make_state(positions=make_positions(99.5), last_fill=99.5)

        assert policy.next_reference(full, make_candle(98.0), opened=False) == 99.0
        assert policy.next_reference(partial, make_candle(98.0), opened=True) == 100.0

    def test_last_buy_always(self):
        policy = self._policy(ReferenceRebaseRule.TO_LAST_BUY_ALWAYS)
        state = make_state(positions=make_positions(99.5), last_fill=99.5)

        assert policy.next_reference(state, make_candle(99.5), opened=True) == 99.5
        assert policy.next_reference(state, make_candle(99.7), opened=False) == 100.0

    def test_last_buy_always_flat_after_open_uses_close(self):
        """Being flat wins over the last fill even when the candle opened a unit."""
        policy = self._policy(ReferenceRebaseRule.TO_LAST_BUY_ALWAYS)
        state = make_state(positions=(), last_fill=99.5)

        assert policy.next_reference(state, make_candle(100.2), opened=True) == 100.2
