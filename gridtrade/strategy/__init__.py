"""Trigger policies: when to open and close grid units."""

from gridtrade.core.config import GridConfig
from gridtrade.core.types import OpenTriggerMode

from .base_policy import BaseTriggerPolicy, match_sequence
from .close_only import ClosePriceOnlyPolicy
from .intrabar import IntrabarThresholdPolicy

POLICIES = {
    OpenTriggerMode.INTRABAR_THRESHOLD: IntrabarThresholdPolicy,
    OpenTriggerMode.CLOSE_PRICE_ONLY: ClosePriceOnlyPolicy,
}


def create_policy(config: GridConfig) -> BaseTriggerPolicy:
    """Instantiate the policy selected by config.open_trigger_mode."""
    return POLICIES[config.open_trigger_mode](config)


__all__ = [
    "BaseTriggerPolicy",
    "ClosePriceOnlyPolicy",
    "IntrabarThresholdPolicy",
    "create_policy",
    "match_sequence",
]
