"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from insider_watch.clients.base import MarketSource
from insider_watch.models import Market, Trade, TradeSide

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_market(
    market_id: str = "0xmarket",
    end_date: Optional[datetime] = None,
    token_ids: tuple[str, ...] = ("token_yes", "token_no"),
    question: str = "Will it happen?",
    closed: bool = False,
) -> Market:
    return Market(
        id=market_id,
        question=question,
        end_date=end_date,
        active=not closed,
        closed=closed,
        outcomes=("Yes", "No"),
        token_ids=token_ids,
    )


def make_trade(
    price: str = "0.5",
    size: str = "100",
    timestamp: datetime = BASE_TIME,
    maker: str = "0xmaker",
    trade_id: str = "trade_1",
    market_id: str = "0xmarket",
    asset_id: str = "token_yes",
    outcome: str = "Yes",
) -> Trade:
    return Trade(
        id=trade_id,
        market_id=market_id,
        asset_id=asset_id,
        maker_address=maker,
        outcome=outcome,
        price=Decimal(price),
        size=Decimal(size),
        timestamp=timestamp,
        side=TradeSide.BUY,
    )


class FakeSource(MarketSource):
    """In-memory market source recording which assets were read."""

    def __init__(
        self,
        markets: Optional[list[Market]] = None,
        trades: Optional[dict[str, list[Trade]]] = None,
        failing_assets: tuple[str, ...] = (),
        slow_assets: tuple[str, ...] = (),
        fail_markets: bool = False,
    ):
        self.markets = markets or []
        self.trades = trades or {}
        self.failing_assets = failing_assets
        self.slow_assets = slow_assets
        self.fail_markets = fail_markets
        self.requested_assets: list[str] = []
        self.market_limits: list[int] = []

    async def get_active_markets(self, limit: int = 20) -> list[Market]:
        self.market_limits.append(limit)
        if self.fail_markets:
            raise ConnectionError("gamma unavailable")
        return list(self.markets)

    async def get_trades(self, asset_id: str, limit: int = 10) -> list[Trade]:
        self.requested_assets.append(asset_id)
        if asset_id in self.failing_assets:
            raise ConnectionError(f"trades unavailable for {asset_id}")
        if asset_id in self.slow_assets:
            await asyncio.sleep(1)
        return list(self.trades.get(asset_id, []))[:limit]


def build_source(market_count: int, trades_per_market: int, start: datetime = BASE_TIME) -> FakeSource:
    """Markets m0..mN, each with trades spaced one minute apart.

    Trade timestamps interleave across markets so the merged order differs
    from market order.
    """
    markets = []
    trades = {}
    for m in range(market_count):
        token = f"tok{m}"
        market = make_market(market_id=f"m{m}", token_ids=(token, f"{token}_no"))
        markets.append(market)
        trades[token] = [
            make_trade(
                trade_id=f"m{m}_t{t}",
                market_id=market.id,
                asset_id=token,
                maker=f"0xmaker{m}",
                timestamp=start - timedelta(minutes=t * market_count + m),
            )
            for t in range(trades_per_market)
        ]
    return FakeSource(markets=markets, trades=trades)


def make_pipeline_source(now: datetime) -> FakeSource:
    """One market resolving in two hours with two suspicious trades and one ordinary one."""
    market = make_market(
        market_id="0xnear",
        end_date=now + timedelta(hours=2),
        token_ids=("near_yes", "near_no"),
        question="Will the deal close this week?",
    )
    trades = [
        # 30 + 15 + ~32 = ~77
        make_trade(trade_id="whale", price="0.95", size="50000", maker="0xwhale",
                   timestamp=now - timedelta(minutes=5), market_id=market.id, asset_id="near_yes"),
        # 15 + 25 + ~32 + 20 + 15, capped at 100
        make_trade(trade_id="longshot", price="0.05", size="200000", maker="0xlong",
                   timestamp=now - timedelta(minutes=10), market_id=market.id, asset_id="near_yes"),
        # ~32, not suspicious
        make_trade(trade_id="small", price="0.5", size="20", maker="0xsmall",
                   timestamp=now - timedelta(minutes=1), market_id=market.id, asset_id="near_yes"),
    ]
    return FakeSource(markets=[market], trades={"near_yes": trades})
