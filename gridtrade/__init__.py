"""
Gridtrade - a grid mean-reversion backtester.

This package replays historical candles through a threshold-based grid
policy and produces a deterministic trade ledger and portfolio valuation.
"""

__version__ = "0.1.0"
