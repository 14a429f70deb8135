"""
Core data models for the insider trade watcher.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional


class TradeSide(Enum):
    BUY = "BUY"
    SELL = "SELL"


class MalformedTradeError(ValueError):
    """A trade payload whose price or size is not a usable number."""

    def __init__(self, field_name: str, raw_value, trade_id: str = ""):
        self.field_name = field_name
        self.raw_value = raw_value
        self.trade_id = trade_id
        super().__init__(
            f"Trade {trade_id or '<unknown>'} has malformed {field_name}: {raw_value!r}"
        )


@dataclass(frozen=True)
class Market:
    """A prediction market question as listed by the market source."""
    id: str  # condition id
    question: str
    end_date: Optional[datetime]  # resolution deadline
    active: bool = True
    closed: bool = False
    outcomes: tuple[str, ...] = ()
    token_ids: tuple[str, ...] = ()  # one tradable asset per outcome
    description: str = ""
    slug: str = ""
    volume: Decimal = Decimal("0")
    liquidity: Decimal = Decimal("0")

    @property
    def primary_token_id(self) -> Optional[str]:
        """First listed asset, conventionally the "Yes" outcome."""
        return self.token_ids[0] if self.token_ids else None


@dataclass(frozen=True)
class Trade:
    """A single execution on a market asset."""
    id: str
    market_id: str
    asset_id: str
    maker_address: str
    outcome: str
    price: Decimal
    size: Decimal  # shares
    timestamp: datetime
    side: TradeSide = TradeSide.BUY
    taker_address: str = ""
    transaction_hash: str = ""

    @property
    def value(self) -> Decimal:
        """Notional value in USDC (price x size)."""
        return self.price * self.size


@dataclass(frozen=True)
class TradeAnalysis:
    """Scored output for one (trade, market) pair."""
    trade: Trade
    market: Market
    suspicion_score: float
    suspicion_reasons: tuple[str, ...]
    is_suspicious: bool
    rule_ids: tuple[str, ...] = ()


@dataclass
class SuspiciousTradeRecord:
    """A flagged trade as stored by the persistence layer."""
    market_id: str
    market_question: str
    trader_address: str
    outcome: str
    price: float
    size: float
    timestamp: datetime
    suspicion_score: float
    suspicion_reasons: list[str] = field(default_factory=list)
    profit_amount: Optional[float] = None
    time_before_resolution: Optional[float] = None  # hours
    market_resolved: bool = False
    market_resolved_at: Optional[datetime] = None
    market_winning_outcome: Optional[str] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    @classmethod
    def from_analysis(cls, analysis: TradeAnalysis) -> "SuspiciousTradeRecord":
        trade, market = analysis.trade, analysis.market

        time_before_resolution = None
        if market.end_date is not None:
            time_before_resolution = (market.end_date - trade.timestamp).total_seconds() / 3600

        return cls(
            market_id=market.id,
            market_question=market.question,
            trader_address=trade.maker_address,
            outcome=trade.outcome,
            price=float(trade.price),
            size=float(trade.size),
            timestamp=trade.timestamp,
            suspicion_score=analysis.suspicion_score,
            suspicion_reasons=list(analysis.suspicion_reasons),
            time_before_resolution=time_before_resolution,
            market_resolved=market.closed,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "market_id": self.market_id,
            "market_question": self.market_question,
            "trader_address": self.trader_address,
            "outcome": self.outcome,
            "price": self.price,
            "size": self.size,
            "timestamp": self.timestamp.isoformat(),
            "suspicion_score": self.suspicion_score,
            "suspicion_reasons": list(self.suspicion_reasons),
            "profit_amount": self.profit_amount,
            "time_before_resolution": self.time_before_resolution,
            "market_resolved": self.market_resolved,
            "market_resolved_at": self.market_resolved_at.isoformat() if self.market_resolved_at else None,
            "market_winning_outcome": self.market_winning_outcome,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class Statistics:
    """Summary counters over a set of suspicious trades."""
    total_suspicious_trades: int = 0
    high_suspicion_trades: int = 0
    average_suspicion_score: float = 0.0
    recent_24h: int = 0
    unique_suspicious_traders: int = 0

    def to_dict(self) -> dict:
        return {
            "total_suspicious_trades": self.total_suspicious_trades,
            "high_suspicion_trades": self.high_suspicion_trades,
            "average_suspicion_score": f"{self.average_suspicion_score:.2f}",
            "recent_24h": self.recent_24h,
            "unique_suspicious_traders": self.unique_suspicious_traders,
        }


def utc_from_unix(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
