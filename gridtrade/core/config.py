"""
Run configuration for the grid simulator.

All parameters are fixed at run start. Values can come from code, a plain
dict (e.g. parsed CLI arguments or JSON), a named variant preset, or
GRID_* environment variables (a .env file is honoured).
"""

import logging
import math
import os
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Type

from dotenv import load_dotenv

from .errors import ConfigurationInvalid
from .types import CloseMatchOrder, OpenTriggerMode, ReferenceRebaseRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridConfig:
    """Parameters of one simulation run."""

    initial_capital: float = 10000.0
    position_size: float = 1000.0      # Fixed notional per unit
    max_positions: int = 10
    threshold_fraction: float = 0.005  # 0.005 = 0.5%
    open_trigger_mode: OpenTriggerMode = OpenTriggerMode.INTRABAR_THRESHOLD
    close_match_order: CloseMatchOrder = CloseMatchOrder.LIFO
    reference_rebase_rule: ReferenceRebaseRule = ReferenceRebaseRule.TO_LAST_BUY_WHEN_FULL

    def validate(self) -> "GridConfig":
        """
        Check every parameter, raising ConfigurationInvalid on the first
        problem found.

        Returns:
            self, so calls can be chained
        """
        if not isinstance(self.max_positions, int) or isinstance(self.max_positions, bool):
            raise ConfigurationInvalid(
                f"max_positions must be an integer, got {self.max_positions!r}"
            )
        if self.max_positions <= 0:
            raise ConfigurationInvalid(f"max_positions must be > 0, got {self.max_positions}")
        for name in ("initial_capital", "position_size", "threshold_fraction"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigurationInvalid(f"{name} must be a finite number, got {value!r}")
        if not 0 < self.threshold_fraction < 1:
            raise ConfigurationInvalid(
                f"threshold_fraction must be in (0, 1), got {self.threshold_fraction}"
            )
        if self.initial_capital <= 0:
            raise ConfigurationInvalid(f"initial_capital must be > 0, got {self.initial_capital}")
        if self.position_size <= 0:
            raise ConfigurationInvalid(f"position_size must be > 0, got {self.position_size}")

        enum_fields = (
            ("open_trigger_mode", OpenTriggerMode),
            ("close_match_order", CloseMatchOrder),
            ("reference_rebase_rule", ReferenceRebaseRule),
        )
        for name, enum_cls in enum_fields:
            if not isinstance(getattr(self, name), enum_cls):
                raise ConfigurationInvalid(f"{name} must be a {enum_cls.__name__}")

        return self

    def with_threshold(self, threshold_fraction: float) -> "GridConfig":
        """Copy of this config with a different threshold."""
        return replace(self, threshold_fraction=threshold_fraction)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GridConfig":
        """
        Build a config from a dict, ignoring None values and unknown keys.

        Enum fields accept either the member name ("LIFO") or its value
        ("lifo").
        """
        kwargs: Dict[str, Any] = {}
        for key in cls.__dataclass_fields__:
            value = data.get(key)
            if value is None:
                continue
            if key in _ENUM_FIELDS:
                value = _parse_enum(_ENUM_FIELDS[key], value, key)
            elif key == "max_positions":
                value = _parse_number(int, value, key)
            else:
                value = _parse_number(float, value, key)
            kwargs[key] = value
        return cls(**kwargs).validate()

    @classmethod
    def from_env(cls, prefix: str = "GRID_", dotenv_path: Optional[str] = None) -> "GridConfig":
        """
        Build a config from environment variables such as GRID_MAX_POSITIONS.

        Unset variables keep their defaults.
        """
        config = cls.from_dict(cls.env_values(prefix, dotenv_path))
        logger.debug(f"Loaded config from environment: {config.to_dict()}")
        return config

    @classmethod
    def env_values(cls, prefix: str = "GRID_", dotenv_path: Optional[str] = None) -> Dict[str, str]:
        """Raw values of the config variables that are set, keyed by field name."""
        load_dotenv(dotenv_path)
        data = {}
        for key in cls.__dataclass_fields__:
            value = os.getenv(f"{prefix}{key.upper()}")
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def for_variant(cls, name: str, **overrides: Any) -> "GridConfig":
        """
        Build a config from a named variant preset.

        Args:
            name: Key of VARIANTS
            **overrides: Any other GridConfig fields to set

        Returns:
            Validated GridConfig
        """
        if name not in VARIANTS:
            raise ConfigurationInvalid(
                f"Unknown variant {name!r}, expected one of {sorted(VARIANTS)}"
            )
        data = dict(VARIANTS[name])
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(data)


# Named presets: each a fixed trigger/match/rebase triple.
VARIANTS: Dict[str, Dict[str, Any]] = {
    "intrabar_grid": {
        "open_trigger_mode": OpenTriggerMode.INTRABAR_THRESHOLD,
        "close_match_order": CloseMatchOrder.LIFO,
        "reference_rebase_rule": ReferenceRebaseRule.TO_LAST_BUY_WHEN_FULL,
    },
    "close_only_ladder": {
        "open_trigger_mode": OpenTriggerMode.CLOSE_PRICE_ONLY,
        "close_match_order": CloseMatchOrder.LIFO,
        "reference_rebase_rule": ReferenceRebaseRule.TO_LAST_BUY_ALWAYS,
        "position_size": 400.0,
    },
}

_ENUM_FIELDS: Dict[str, Type[Enum]] = {
    "open_trigger_mode": OpenTriggerMode,
    "close_match_order": CloseMatchOrder,
    "reference_rebase_rule": ReferenceRebaseRule,
}


def _parse_enum(enum_cls: Type[Enum], value: Any, field_name: str) -> Enum:
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip()
    try:
        return enum_cls(text.lower())
    except ValueError:
        pass
    try:
        return enum_cls[text.upper()]
    except KeyError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigurationInvalid(
            f"Invalid {field_name} {value!r}, expected one of: {choices}"
        ) from None


def _parse_number(kind: type, value: Any, field_name: str):
    try:
        if kind is int and isinstance(value, float) and not value.is_integer():
            raise ValueError(value)
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigurationInvalid(
            f"Invalid {field_name} {value!r}, expected {kind.__name__}"
        ) from None
