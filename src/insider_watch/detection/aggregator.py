"""
Collects recent trades across active markets into one time-ordered stream.
"""

import asyncio
import logging
from typing import Optional

from ..clients.base import MarketSource
from ..config import AggregatorConfig
from ..models import Market, Trade

logger = logging.getLogger(__name__)

TradePair = tuple[Trade, Market]


class TradeAggregator:
    """
    Walks the active market list and merges each market's recent trades.

    Only the first listed outcome token of a market is read. Markets are
    consumed in listing order and the walk stops as soon as enough trades
    have been gathered; the merged set is then sorted newest first and cut
    to the requested size.

    Fetches run concurrently in windows of ``max_concurrent_fetches``
    markets. A window of one reproduces a strictly sequential walk.
    """

    def __init__(self, source: MarketSource, config: Optional[AggregatorConfig] = None):
        self.source = source
        self.config = config or AggregatorConfig()
        self._semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_fetches))

    async def _fetch_market_trades(self, market: Market) -> list[TradePair]:
        token_id = market.primary_token_id
        if not token_id:
            return []

        async with self._semaphore:
            try:
                trades = await asyncio.wait_for(
                    self.source.get_trades(token_id, limit=self.config.trades_per_market),
                    timeout=self.config.fetch_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"Timed out fetching trades for market {market.id}")
                return []
            except Exception as e:
                logger.warning(f"Failed to fetch trades for market {market.id}: {e}")
                return []

        return [(trade, market) for trade in trades or []]

    async def collect(self, target_count: int) -> list[TradePair]:
        """Return up to ``target_count`` (trade, market) pairs, newest first.

        Never raises; an unreachable source yields an empty list.
        """
        if target_count <= 0:
            return []

        try:
            markets = await self.source.get_active_markets(limit=self.config.market_limit)
        except Exception as e:
            logger.error(f"Failed to list active markets: {e}")
            return []

        markets = [m for m in (markets or [])[: self.config.market_limit] if m.primary_token_id]
        if not markets:
            logger.info("No active markets with tradable assets")
            return []

        collected: list[TradePair] = []
        seen: set[tuple[str, str, str]] = set()
        window = max(1, self.config.max_concurrent_fetches)

        for start in range(0, len(markets), window):
            batch = markets[start:start + window]
            results = await asyncio.gather(*(self._fetch_market_trades(m) for m in batch))

            for pairs in results:
                for trade, market in pairs:
                    key = (market.id, trade.asset_id, trade.id)
                    if trade.id and key in seen:
                        continue
                    seen.add(key)
                    collected.append((trade, market))

                if len(collected) >= target_count:
                    break

            if len(collected) >= target_count:
                logger.debug(f"Collected {len(collected)} trades, stopping early")
                break

        # Stable sort: equal timestamps keep market order
        collected.sort(key=lambda pair: pair[0].timestamp, reverse=True)
        logger.info(f"Collected {len(collected)} trades across {len(markets)} active markets")
        return collected[:target_count]
