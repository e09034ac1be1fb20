"""
Threshold sweeps: many independent runs over the same candles.

Each run builds its own engine and state, so runs can be spread across
worker processes without any coordination.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional

from gridtrade.core.config import GridConfig
from gridtrade.core.errors import ConfigurationInvalid, InputUnavailable
from gridtrade.core.types import BacktestResult, Candle
from .engine import SimulationEngine

logger = logging.getLogger(__name__)


def _run_single(config_dict: dict, candles: List[Candle]) -> BacktestResult:
    """Run one simulation (module-level so it pickles for worker processes)."""
    config = GridConfig.from_dict(config_dict)
    return SimulationEngine(config).run(candles)


def sweep_thresholds(
    candles: Iterable[Candle],
    base_config: Optional[GridConfig] = None,
    thresholds: Iterable[float] = (0.003, 0.005, 0.01),
    max_workers: Optional[int] = None,
) -> Dict[float, BacktestResult]:
    """
    Run one simulation per threshold value.

    Args:
        candles: Candle sequence shared by every run
        base_config: Configuration for all other parameters
        thresholds: threshold_fraction values to try
        max_workers: Use a process pool when > 1, otherwise run in-process

    Returns:
        Dict mapping threshold to BacktestResult, in ascending threshold order
    """
    candles = list(candles)
    if not candles:
        raise InputUnavailable("No candles provided for sweep")

    base_config = base_config or GridConfig()
    values = sorted(set(thresholds))
    if not values:
        raise ConfigurationInvalid("At least one threshold is required")

    # Fail fast on a bad threshold before starting any run
    configs = {t: base_config.with_threshold(t).validate() for t in values}

    logger.info(
        f"Sweeping {len(values)} thresholds over {len(candles)} candles "
        f"(workers={max_workers or 1})"
    )

    results: Dict[float, BacktestResult] = {}

    if max_workers and max_workers > 1 and len(values) > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(_run_single, config.to_dict(), candles): threshold
                for threshold, config in configs.items()
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()
    else:
        for threshold, config in configs.items():
            results[threshold] = SimulationEngine(config).run(candles)

    for threshold in values:
        summary = results[threshold].summary
        logger.info(
            f"threshold={threshold}: {summary.trade_count} trades, "
            f"return {summary.profit_percent:.2f}%"
        )

    return {t: results[t] for t in values}
