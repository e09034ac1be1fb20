"""Core components: types, configuration, errors, and data loading."""

from .config import GridConfig, VARIANTS
from .errors import (
    ConfigurationInvalid,
    GridTradeError,
    InputUnavailable,
    MalformedCandle,
)
from .types import (
    BacktestResult,
    Candle,
    CloseMatchOrder,
    EngineState,
    OpenTriggerMode,
    Position,
    ReferenceRebaseRule,
    Trade,
    TradeKind,
)

__all__ = [
    "GridConfig",
    "VARIANTS",
    "ConfigurationInvalid",
    "GridTradeError",
    "InputUnavailable",
    "MalformedCandle",
    "BacktestResult",
    "Candle",
    "CloseMatchOrder",
    "EngineState",
    "OpenTriggerMode",
    "Position",
    "ReferenceRebaseRule",
    "Trade",
    "TradeKind",
]
