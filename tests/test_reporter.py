"""Tests for report generation."""

import json
from datetime import datetime

import pytest
import pytz

from gridtrade.backtest.engine import run_backtest
from gridtrade.core.config import GridConfig
from gridtrade.core.types import Candle
from gridtrade.metrics.reporter import Reporter

MINUTE = 60000


@pytest.fixture
def result():
    """Two units opened, one closed, one left open."""
    candles = [
        Candle(timestamp=0, open=100.0, high=100.0, low=100.0, close=100.0),
        Candle(timestamp=MINUTE, open=100.0, high=100.0, low=98.9, close=99.2),
        Candle(timestamp=2 * MINUTE, open=99.2, high=100.6, low=99.8, close=100.2),
    ]
    return run_backtest(candles, GridConfig(max_positions=10))


class TestReporter:
    """Tests for Reporter documents and console output."""

    def test_result_document(self, result):
        doc = Reporter().generate_result_document(result)

        assert doc["initialCapital"] == 10000.0
        assert doc["finalValue"] == result.summary.final_value
        assert doc["profit"] == pytest.approx(doc["finalValue"] - 10000.0)
        assert doc["profitPercent"] == result.summary.profit_percent
        assert doc["remainingPositions"] == 1
        assert [t["type"] for t in doc["trades"]] == ["open", "open", "close"]
        assert doc["openPositions"][0]["positionId"] == 1
        assert doc["config"]["close_match_order"] == "lifo"

    def test_trade_entries(self, result):
        doc = Reporter().generate_result_document(result)
        opened, _, closed = doc["trades"]

        assert opened["timestamp"] == MINUTE
        assert opened["time"] == "1970-01-01T00:01:00+00:00"
        assert opened["positions"] == 1
        assert "profit" not in opened
        assert closed["profit"] == pytest.approx(1000.0 * (100.5 / 99.0 - 1))
        assert closed["buyPrice"] == pytest.approx(99.0)

    def test_open_positions_report(self, result):
        generated = datetime(2024, 1, 1, tzinfo=pytz.UTC)

        report = Reporter().generate_open_positions_report(result, generated_at=generated)

        assert report["timestamp"] == "2024-01-01T00:00:00+00:00"
        assert report["lastPrice"] == 100.2
        assert report["totalPositions"] == 1
        assert report["totalPositionValue"] == 1000.0
        position = report["positions"][0]
        assert position["buyPrice"] == pytest.approx(99.5)
        assert position["unrealizedProfit"] == pytest.approx(1000.0 * (100.2 / 99.5 - 1))
        assert report["totalUnrealizedProfit"] == position["unrealizedProfit"]

    def test_save_json(self, result, tmp_path):
        reporter = Reporter()
        path = reporter.save_json(
            reporter.generate_result_document(result), tmp_path / "out" / "result.json"
        )

        loaded = json.loads(path.read_text())

        assert loaded["remainingPositions"] == 1
        assert len(loaded["trades"]) == 3

    def test_print_summary_and_trades(self, result, capsys):
        reporter = Reporter()

        reporter.print_summary(result)
        reporter.print_trades(result.ledger, limit=2)
        reporter.compare_runs({0.005: result})

        out = capsys.readouterr().out
        assert "GRID BACKTEST RESULTS" in out
        assert "Showing 2 of 3 trades" in out
        assert "THRESHOLD COMPARISON" in out
