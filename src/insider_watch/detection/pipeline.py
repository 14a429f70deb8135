"""
End-to-end detection run: fetch recent trades, score them, summarize, store.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..clients.base import MarketSource
from ..clients.polymarket import PolymarketClient
from ..config import Config, DetectionCriteria, get_config
from ..models import Statistics, SuspiciousTradeRecord, TradeAnalysis
from ..storage.database import Database, WriteResult
from .aggregator import TradeAggregator
from .engine import InsiderDetectionEngine, realized_profit
from .stats import RecencyBasis, summarize_analyses, summarize_records

logger = logging.getLogger(__name__)


@dataclass
class AnalysisReport:
    """Result of one analysis run."""
    analyzed: int = 0
    analyses: list[TradeAnalysis] = field(default_factory=list)
    saved: int = 0
    failed: int = 0

    @property
    def suspicious(self) -> int:
        return len(self.analyses)

    @property
    def records(self) -> list[SuspiciousTradeRecord]:
        return [SuspiciousTradeRecord.from_analysis(a) for a in self.analyses]

    def to_dict(self) -> dict:
        data = {
            "success": True,
            "analyzed": self.analyzed,
            "suspicious": self.suspicious,
            "trades": [r.to_dict() for r in self.records],
        }
        if self.analyzed == 0:
            data["message"] = "No trades found"
        return data


class DetectionPipeline:
    """
    Runs the fetch, score and summarize stages for one request.

    The pipeline keeps a reference to an engine with immutable criteria.
    ``update_criteria`` swaps in a new engine; runs already in progress
    finish with the engine they started with.
    """

    def __init__(
        self,
        source: Optional[MarketSource] = None,
        database: Optional[Database] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.engine = InsiderDetectionEngine(self.config.criteria)
        self.database = database

        self._owns_source = source is None
        self.source = source

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self) -> None:
        """Open the default Polymarket client when no source was supplied."""
        if self.source is None:
            client = PolymarketClient(self.config.polymarket)
            await client.connect()
            self.source = client

    async def close(self) -> None:
        if self._owns_source and isinstance(self.source, PolymarketClient):
            await self.source.close()
            self.source = None

    @property
    def criteria(self) -> DetectionCriteria:
        return self.engine.criteria

    def update_criteria(self, **overrides) -> DetectionCriteria:
        """Replace the scoring thresholds used by subsequent runs."""
        self.engine = self.engine.with_criteria(**overrides)
        logger.info(f"Detection criteria updated: {self.engine.criteria}")
        return self.engine.criteria

    def _aggregator(self) -> TradeAggregator:
        if self.source is None:
            raise RuntimeError("Pipeline not connected. Use 'async with' or call connect()")
        return TradeAggregator(self.source, self.config.aggregator)

    async def analyze(
        self,
        limit: int = 100,
        save: bool = False,
        criteria: Optional[DetectionCriteria] = None,
    ) -> AnalysisReport:
        """Fetch up to ``limit`` recent trades and keep the suspicious ones."""
        engine = InsiderDetectionEngine(criteria, self.engine.rules) if criteria else self.engine

        pairs = await self._aggregator().collect(limit)
        if not pairs:
            logger.info("No trades found")
            return AnalysisReport()

        analyses = engine.analyze_batch(pairs)
        report = AnalysisReport(analyzed=len(pairs), analyses=analyses)
        logger.info(f"Analyzed {report.analyzed} trades, {report.suspicious} suspicious")

        if save and analyses:
            result = await self.save(analyses)
            report.saved = result.inserted
            report.failed = result.failed

        return report

    async def save(self, analyses: list[TradeAnalysis]) -> WriteResult:
        """Store flagged trades; duplicates are ignored and failures counted."""
        if self.database is None:
            raise RuntimeError("No database configured for this pipeline")

        records = [SuspiciousTradeRecord.from_analysis(a) for a in analyses]
        result = await self.database.save_suspicious_trades(records)
        if result.failed:
            logger.warning(f"{result.failed} of {len(records)} trades failed to save")
        return result

    async def live_stats(
        self,
        limit: int = 100,
        now: Optional[datetime] = None,
    ) -> Statistics:
        """Statistics over a fresh analysis run."""
        report = await self.analyze(limit)
        return summarize_analyses(report.analyses, now=now)

    async def stored_stats(
        self,
        recency: RecencyBasis = RecencyBasis.TRADE_TIME,
        now: Optional[datetime] = None,
    ) -> Statistics:
        """Statistics over every stored trade."""
        if self.database is None:
            raise RuntimeError("No database configured for this pipeline")
        records = await self.database.get_all_suspicious_trades()
        return summarize_records(records, now=now, recency=recency)

    async def resolve_market(
        self,
        market_id: str,
        winning_outcome: str,
        resolved_at: Optional[datetime] = None,
    ) -> int:
        """Record a market's winning outcome and the profit of each stored trade."""
        if self.database is None:
            raise RuntimeError("No database configured for this pipeline")

        records = await self.database.get_market_trades(market_id)
        profits = {
            r.id: realized_profit(r.price, r.size, r.outcome, winning_outcome)
            for r in records
        }
        if not profits:
            logger.info(f"No stored trades for market {market_id}")
            return 0

        return await self.database.resolve_market(market_id, winning_outcome, profits, resolved_at)
