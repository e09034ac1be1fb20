"""Backtesting components: engine, trade ledger, and parameter sweeps."""

from .engine import SimulationEngine, run_backtest
from .ledger import TradeLedger
from .sweep import sweep_thresholds

__all__ = ["SimulationEngine", "TradeLedger", "run_backtest", "sweep_thresholds"]
