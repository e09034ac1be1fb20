"""
Error kinds raised while loading candles, validating configuration,
and running a simulation.
"""

from typing import Optional


class GridTradeError(Exception):
    """Base class for all gridtrade errors."""


class InputUnavailable(GridTradeError):
    """The candle source is missing, unreadable, or empty."""


class ConfigurationInvalid(GridTradeError, ValueError):
    """A run parameter is out of range or unknown."""


class MalformedCandle(GridTradeError, ValueError):
    """
    A candle failed numeric parsing or broke the ordering invariant.

    Carries the position of the offending record so it can be located
    in the source file.
    """

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        timestamp: Optional[int] = None,
    ):
        self.index = index
        self.timestamp = timestamp
        location = []
        if index is not None:
            location.append(f"index={index}")
        if timestamp is not None:
            location.append(f"timestamp={timestamp}")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)
