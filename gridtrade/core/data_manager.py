"""
Data manager for loading persisted kline data.
Reads exchange-style array-of-arrays JSON files and converts them to
Candle lists or pandas DataFrames for the simulator.
"""

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .errors import InputUnavailable, MalformedCandle
from .types import Candle, ms_to_datetime

logger = logging.getLogger(__name__)

# Column positions in an exchange kline row
TIMESTAMP_COL = 0
OPEN_COL = 1
HIGH_COL = 2
LOW_COL = 3
CLOSE_COL = 4
VOLUME_COL = 5

PRICE_COLUMNS = ("open", "high", "low", "close")


def _to_float(value: Any, name: str, index: int, timestamp: Optional[int]) -> float:
    """Parse one numeric field, rejecting booleans, NaN and infinities."""
    if isinstance(value, bool):
        raise MalformedCandle(f"Non-numeric {name}: {value!r}", index, timestamp)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedCandle(f"Non-numeric {name}: {value!r}", index, timestamp) from None
    if not math.isfinite(number):
        raise MalformedCandle(f"Non-finite {name}: {value!r}", index, timestamp)
    return number


def check_candle(candle: Candle, index: int, previous_timestamp: Optional[int] = None) -> None:
    """
    Validate a single candle against price and ordering rules.

    Args:
        candle: Candle to check
        index: Position of the candle in its sequence
        previous_timestamp: Timestamp of the preceding candle, if any

    Raises:
        MalformedCandle: if a price is non-finite or non-positive, high is
            below low, or the timestamp goes backwards
    """
    ts = candle.timestamp
    if isinstance(ts, bool) or not isinstance(ts, int):
        raise MalformedCandle(f"Timestamp must be an integer, got {ts!r}", index)

    for name in PRICE_COLUMNS:
        value = getattr(candle, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedCandle(f"Non-numeric {name}: {value!r}", index, ts)
        if not math.isfinite(value):
            raise MalformedCandle(f"Non-finite {name}: {value!r}", index, ts)
        if value <= 0:
            raise MalformedCandle(f"Non-positive {name}: {value}", index, ts)

    if candle.high < candle.low:
        raise MalformedCandle(
            f"High {candle.high} below low {candle.low}", index, ts
        )

    if previous_timestamp is not None and ts < previous_timestamp:
        raise MalformedCandle(
            f"Timestamp goes backwards from {previous_timestamp}", index, ts
        )


def validate_candles(candles: Sequence[Candle]) -> None:
    """Check a whole sequence; raises MalformedCandle on the first bad record."""
    previous = None
    for i, candle in enumerate(candles):
        check_candle(candle, i, previous)
        previous = candle.timestamp


def parse_klines(rows: Sequence[Sequence[Any]]) -> List[Candle]:
    """
    Convert kline rows into Candle objects.

    Each row is [timestamp, open, high, low, close, volume, ...]; prices
    may be numbers or numeric strings. Extra columns are ignored.

    Raises:
        MalformedCandle: on the first row that cannot be used
    """
    candles = []
    previous = None

    for i, row in enumerate(rows):
        if not isinstance(row, (list, tuple)) or len(row) <= CLOSE_COL:
            raise MalformedCandle(f"Expected at least 5 columns, got {row!r}", i)

        raw_ts = row[TIMESTAMP_COL]
        try:
            if isinstance(raw_ts, bool):
                raise ValueError(raw_ts)
            if isinstance(raw_ts, float) and not raw_ts.is_integer():
                raise ValueError(raw_ts)
            timestamp = int(raw_ts)
        except (TypeError, ValueError, OverflowError):
            raise MalformedCandle(f"Invalid timestamp: {raw_ts!r}", i) from None

        volume = 0.0
        if len(row) > VOLUME_COL:
            volume = _to_float(row[VOLUME_COL], "volume", i, timestamp)

        candle = Candle(
            timestamp=timestamp,
            open=_to_float(row[OPEN_COL], "open", i, timestamp),
            high=_to_float(row[HIGH_COL], "high", i, timestamp),
            low=_to_float(row[LOW_COL], "low", i, timestamp),
            close=_to_float(row[CLOSE_COL], "close", i, timestamp),
            volume=volume,
        )
        check_candle(candle, i, previous)
        previous = timestamp
        candles.append(candle)

    return candles


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """
    Build a DataFrame indexed by UTC datetime with OHLCV columns.

    The original millisecond timestamp is kept in a "timestamp" column.
    """
    if not candles:
        return pd.DataFrame(columns=["timestamp", "open", "high", "low", "close", "volume"])

    df = pd.DataFrame(
        {
            "timestamp": [c.timestamp for c in candles],
            "open": [c.open for c in candles],
            "high": [c.high for c in candles],
            "low": [c.low for c in candles],
            "close": [c.close for c in candles],
            "volume": [c.volume for c in candles],
        }
    )
    df.index = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
    df.index.name = "time"
    return df


def frame_to_candles(df: pd.DataFrame) -> List[Candle]:
    """
    Convert a DataFrame back into Candles.

    Uses the "timestamp" column when present, otherwise the datetime index.
    """
    if df.empty:
        return []

    if "timestamp" in df.columns:
        timestamps = [int(ts) for ts in df["timestamp"]]
    else:
        index = pd.DatetimeIndex(df.index)
        if index.tz is None:
            index = index.tz_localize("UTC")
        timestamps = [int(ts.value // 1_000_000) for ts in index]

    volumes = df["volume"] if "volume" in df.columns else [0.0] * len(df)

    candles = [
        Candle(
            timestamp=ts,
            open=float(o),
            high=float(h),
            low=float(lo),
            close=float(c),
            volume=float(v),
        )
        for ts, o, h, lo, c, v in zip(
            timestamps, df["open"], df["high"], df["low"], df["close"], volumes
        )
    ]
    validate_candles(candles)
    return candles


class DataManager:
    """
    Manages persisted kline files.

    Candle acquisition happens elsewhere; this class only reads and writes
    the JSON array-of-arrays files it leaves behind.
    """

    def __init__(self, data_dir: str = "data"):
        """
        Initialize data manager.

        Args:
            data_dir: Directory holding kline JSON files
        """
        self.data_dir = Path(data_dir)
        logger.debug(f"DataManager initialized with data dir: {self.data_dir}")

    def _resolve(self, name: str) -> Path:
        """Resolve a dataset name or path to a file path."""
        path = Path(name)
        if path.suffix != ".json":
            path = path.with_suffix(".json")
        if not path.is_absolute() and not path.exists():
            path = self.data_dir / path
        return path

    def load_klines(self, name: str) -> List[List[Any]]:
        """
        Read raw kline rows from a JSON file.

        Args:
            name: File path, or dataset name under data_dir

        Returns:
            List of raw rows

        Raises:
            InputUnavailable: if the file is missing, unreadable, or not a
                non-empty JSON list
        """
        path = self._resolve(name)
        try:
            with open(path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except FileNotFoundError:
            raise InputUnavailable(f"Kline file not found: {path}") from None
        except (OSError, json.JSONDecodeError) as e:
            raise InputUnavailable(f"Cannot read kline file {path}: {e}") from e

        if not isinstance(rows, list):
            raise InputUnavailable(f"Kline file {path} does not contain a JSON array")
        if not rows:
            raise InputUnavailable(f"Kline file {path} is empty")

        logger.info(f"Loaded {len(rows)} klines from {path}")
        return rows

    def get_candles(self, name: str) -> List[Candle]:
        """Load and parse a kline file into Candles."""
        return parse_klines(self.load_klines(name))

    def get_bars(self, name: str) -> pd.DataFrame:
        """
        Load a kline file as a DataFrame.

        Returns:
            DataFrame with columns: timestamp, open, high, low, close, volume
            Index is UTC datetime
        """
        df = candles_to_frame(self.get_candles(name))
        logger.info(
            f"Returning {len(df)} bars for {name} "
            f"from {df.index.min()} to {df.index.max()}"
        )
        return df

    def save_klines(self, rows: Sequence[Sequence[Any]], name: str) -> Path:
        """
        Persist kline rows fetched by an external source.

        Rows are parsed first so that a malformed download is never saved.
        """
        parse_klines(rows)
        path = self._resolve(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump([list(r) for r in rows], f)
        logger.info(f"Saved {len(rows)} klines to {path}")
        return path

    def list_datasets(self) -> List[Dict[str, Any]]:
        """
        Describe every kline file in data_dir.

        Returns:
            List of dicts with name, rows, start, end and size_kb.
            Files that cannot be parsed are skipped with a warning.
        """
        info = []
        if not self.data_dir.exists():
            return info

        for path in sorted(self.data_dir.glob("*.json")):
            try:
                candles = self.get_candles(str(path))
            except (InputUnavailable, MalformedCandle) as e:
                logger.warning(f"Skipping {path}: {e}")
                continue
            info.append({
                "name": path.stem,
                "rows": len(candles),
                "start": ms_to_datetime(candles[0].timestamp),
                "end": ms_to_datetime(candles[-1].timestamp),
                "size_kb": path.stat().st_size / 1024,
            })

        return info
