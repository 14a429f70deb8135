"""Tests for summary statistics."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_market, make_trade
from insider_watch.models import Statistics, SuspiciousTradeRecord, TradeAnalysis
from insider_watch.detection.stats import RecencyBasis, summarize_analyses, summarize_records

NOW = datetime(2026, 5, 10, 9, 0, tzinfo=timezone.utc)


def make_analysis(score: float, maker: str = "0xa", hours_ago: float = 1.0) -> TradeAnalysis:
    trade = make_trade(maker=maker, timestamp=NOW - timedelta(hours=hours_ago))
    return TradeAnalysis(
        trade=trade,
        market=make_market(),
        suspicion_score=score,
        suspicion_reasons=(),
        is_suspicious=True,
    )


def make_record(
    score: float,
    maker: str = "0xa",
    traded_hours_ago: float = 1.0,
    stored_hours_ago: float = 1.0,
) -> SuspiciousTradeRecord:
    return SuspiciousTradeRecord(
        market_id="0xmarket",
        market_question="Will it happen?",
        trader_address=maker,
        outcome="Yes",
        price=0.05,
        size=1000.0,
        timestamp=NOW - timedelta(hours=traded_hours_ago),
        suspicion_score=score,
        created_at=NOW - timedelta(hours=stored_hours_ago),
    )


class TestSummarizeAnalyses:
    def test_empty_input_is_all_zero(self) -> None:
        stats = summarize_analyses([], now=NOW)

        assert stats == Statistics()
        assert stats.to_dict() == {
            "total_suspicious_trades": 0,
            "high_suspicion_trades": 0,
            "average_suspicion_score": "0.00",
            "recent_24h": 0,
            "unique_suspicious_traders": 0,
        }

    def test_counts_and_mean(self) -> None:
        analyses = [
            make_analysis(62.5, maker="0xa"),
            make_analysis(80.0, maker="0xb"),
            make_analysis(100.0, maker="0xa"),
        ]

        stats = summarize_analyses(analyses, now=NOW)

        assert stats.total_suspicious_trades == 3
        assert stats.high_suspicion_trades == 2
        assert stats.average_suspicion_score == pytest.approx(80.8333, rel=1e-4)
        assert stats.unique_suspicious_traders == 2

    def test_mean_is_formatted_only_at_the_boundary(self) -> None:
        stats = summarize_analyses([make_analysis(60.0), make_analysis(61.0), make_analysis(61.0)], now=NOW)

        assert isinstance(stats.average_suspicion_score, float)
        assert stats.to_dict()["average_suspicion_score"] == "60.67"

    def test_recent_window_uses_trade_time(self) -> None:
        analyses = [
            make_analysis(70, hours_ago=0.5),
            make_analysis(70, hours_ago=23.9),
            make_analysis(70, hours_ago=24.1),
            make_analysis(70, hours_ago=72),
        ]

        assert summarize_analyses(analyses, now=NOW).recent_24h == 2

    def test_trader_addresses_are_case_sensitive(self) -> None:
        analyses = [make_analysis(70, maker="0xABC"), make_analysis(70, maker="0xabc")]
        assert summarize_analyses(analyses, now=NOW).unique_suspicious_traders == 2


class TestSummarizeRecords:
    def test_empty_input_is_all_zero(self) -> None:
        assert summarize_records([], now=NOW) == Statistics()

    def test_defaults_to_trade_time(self) -> None:
        records = [
            make_record(70, traded_hours_ago=48, stored_hours_ago=1),
            make_record(90, traded_hours_ago=2, stored_hours_ago=30),
        ]

        stats = summarize_records(records, now=NOW)

        assert stats.recent_24h == 1
        assert stats.high_suspicion_trades == 1
        assert stats.average_suspicion_score == pytest.approx(80)

    def test_detection_time_basis(self) -> None:
        records = [
            make_record(70, traded_hours_ago=48, stored_hours_ago=1),
            make_record(70, traded_hours_ago=47, stored_hours_ago=3),
            make_record(90, traded_hours_ago=2, stored_hours_ago=30),
        ]

        stats = summarize_records(records, now=NOW, recency=RecencyBasis.DETECTED_AT)

        assert stats.recent_24h == 2

    def test_rows_without_detection_time_are_not_recent(self) -> None:
        record = make_record(70)
        record.created_at = None

        stats = summarize_records([record], now=NOW, recency=RecencyBasis.DETECTED_AT)

        assert stats.total_suspicious_trades == 1
        assert stats.recent_24h == 0
