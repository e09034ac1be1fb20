"""Tests for threshold sweeps."""

import pytest

from gridtrade.backtest.engine import run_backtest
from gridtrade.backtest.sweep import sweep_thresholds
from gridtrade.core.config import GridConfig
from gridtrade.core.errors import ConfigurationInvalid, InputUnavailable
from gridtrade.core.types import Candle

MINUTE = 60000


def zigzag(n: int = 60) -> list:
    """Price oscillating between 97 and 103."""
    candles = []
    for i in range(n):
        close = 100.0 + 3.0 * (1 if (i // 5) % 2 == 0 else -1) * ((i % 5) / 4)
        candles.append(Candle(
            timestamp=i * MINUTE,
            open=close,
            high=close * 1.002,
            low=close * 0.998,
            close=close,
        ))
    return candles


class TestSweepThresholds:
    """Tests for sweep_thresholds."""

    def test_sequential_sweep(self):
        candles = zigzag()
        config = GridConfig(max_positions=5)

        results = sweep_thresholds(candles, config, [0.01, 0.005, 0.01])

        assert list(results) == [0.005, 0.01]
        for threshold, result in results.items():
            assert result.config.threshold_fraction == threshold
            assert result.config.max_positions == 5

        direct = run_backtest(candles, config.with_threshold(0.005))
        assert results[0.005].ledger == direct.ledger
        assert results[0.005].summary == direct.summary

    def test_parallel_matches_sequential(self):
        candles = zigzag()
        thresholds = [0.004, 0.008]

        sequential = sweep_thresholds(candles, GridConfig(), thresholds)
        parallel = sweep_thresholds(candles, GridConfig(), thresholds, max_workers=2)

        assert list(parallel) == thresholds
        for t in thresholds:
            assert parallel[t].ledger == sequential[t].ledger
            assert parallel[t].summary == sequential[t].summary

    def test_bad_threshold_fails_fast(self):
        with pytest.raises(ConfigurationInvalid):
            sweep_thresholds(zigzag(), GridConfig(), [0.005, -0.01])

    def test_no_thresholds(self):
        with pytest.raises(ConfigurationInvalid):
            sweep_thresholds(zigzag(), GridConfig(), [])

    def test_no_candles(self):
        with pytest.raises(InputUnavailable):
            sweep_thresholds([], GridConfig(), [0.005])

    def test_empty_iterator(self):
        with pytest.raises(InputUnavailable):
            sweep_thresholds(iter([]), GridConfig(), [0.005])

    def test_generator_candles(self):
        candles = zigzag()

        results = sweep_thresholds((c for c in candles), GridConfig(), [0.005])

        assert results[0.005].ledger == run_backtest(candles).ledger
