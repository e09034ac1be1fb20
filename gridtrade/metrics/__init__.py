"""Metrics, valuation, and reporting components."""

from .calculator import MetricsCalculator
from .reporter import Reporter
from .summary import ResultSummary, summarize

__all__ = ["MetricsCalculator", "Reporter", "ResultSummary", "summarize"]
