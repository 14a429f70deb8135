"""
Summary statistics over suspicious trades.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional

from ..models import Statistics, SuspiciousTradeRecord, TradeAnalysis
from .engine import HIGH_SUSPICION_SCORE

RECENT_WINDOW = timedelta(hours=24)


class RecencyBasis(Enum):
    """Which timestamp of a stored row counts for the trailing 24h figure."""
    TRADE_TIME = "trade_time"  # when the trade executed
    DETECTED_AT = "detected_at"  # when the row was stored


def _summarize(
    scores: list[float],
    times: list[Optional[datetime]],
    traders: list[str],
    now: Optional[datetime],
) -> Statistics:
    total = len(scores)
    if total == 0:
        return Statistics()

    now = now or datetime.now(timezone.utc)
    cutoff = now - RECENT_WINDOW

    return Statistics(
        total_suspicious_trades=total,
        high_suspicion_trades=sum(1 for s in scores if s >= HIGH_SUSPICION_SCORE),
        average_suspicion_score=sum(scores) / total,
        recent_24h=sum(1 for t in times if t is not None and t >= cutoff),
        unique_suspicious_traders=len(set(traders)),
    )


def summarize_analyses(
    analyses: Iterable[TradeAnalysis],
    now: Optional[datetime] = None,
) -> Statistics:
    """Statistics for a live batch; recency is measured by trade time."""
    analyses = list(analyses)
    return _summarize(
        [a.suspicion_score for a in analyses],
        [a.trade.timestamp for a in analyses],
        [a.trade.maker_address for a in analyses],
        now,
    )


def summarize_records(
    records: Iterable[SuspiciousTradeRecord],
    now: Optional[datetime] = None,
    recency: RecencyBasis = RecencyBasis.TRADE_TIME,
) -> Statistics:
    """Statistics for stored rows.

    Trade time is used for the 24h count unless ``recency`` asks for the
    detection time, so live and stored figures measure the same thing.
    """
    records = list(records)
    if recency is RecencyBasis.DETECTED_AT:
        times = [r.created_at for r in records]
    else:
        times = [r.timestamp for r in records]

    return _summarize(
        [r.suspicion_score for r in records],
        times,
        [r.trader_address for r in records],
        now,
    )
