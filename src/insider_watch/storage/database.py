"""
SQLite storage for flagged trades.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite

from ..config import get_config
from ..models import SuspiciousTradeRecord

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    """Outcome of storing a batch of flagged trades."""
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Database:
    """SQLite database for storing suspicious trades."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else get_config().storage.database_path
        self._conn: Optional[aiosqlite.Connection] = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self) -> None:
        """Connect to database and initialize schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.db_path))
        await self._create_schema()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def _create_schema(self) -> None:
        """Create database tables."""
        await self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS suspicious_trades (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at TEXT NOT NULL,
                market_id TEXT NOT NULL,
                market_question TEXT NOT NULL,
                trader_address TEXT NOT NULL,
                outcome TEXT,
                price REAL NOT NULL,
                size REAL NOT NULL,
                timestamp TEXT NOT NULL,
                suspicion_score REAL NOT NULL,
                suspicion_reasons TEXT,
                profit_amount REAL,
                time_before_resolution REAL,
                market_resolved INTEGER DEFAULT 0,
                market_resolved_at TEXT,
                market_winning_outcome TEXT,
                UNIQUE(market_id, trader_address, timestamp)
            );

            CREATE INDEX IF NOT EXISTS idx_suspicious_created ON suspicious_trades(created_at DESC);
            CREATE INDEX IF NOT EXISTS idx_suspicious_score ON suspicious_trades(suspicion_score DESC);
            CREATE INDEX IF NOT EXISTS idx_suspicious_market ON suspicious_trades(market_id);
        """)
        await self._conn.commit()

    async def upsert_suspicious_trade(self, record: SuspiciousTradeRecord) -> bool:
        """Insert a flagged trade, ignoring rows already stored.

        Returns True if a new row was written.
        """
        created_at = record.created_at or datetime.now(timezone.utc)
        cursor = await self._conn.execute("""
            INSERT OR IGNORE INTO suspicious_trades
            (created_at, market_id, market_question, trader_address, outcome, price, size,
             timestamp, suspicion_score, suspicion_reasons, profit_amount,
             time_before_resolution, market_resolved, market_resolved_at, market_winning_outcome)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            created_at.isoformat(),
            record.market_id,
            record.market_question,
            record.trader_address,
            record.outcome,
            record.price,
            record.size,
            record.timestamp.isoformat(),
            record.suspicion_score,
            json.dumps(list(record.suspicion_reasons)),
            record.profit_amount,
            record.time_before_resolution,
            1 if record.market_resolved else 0,
            _iso(record.market_resolved_at),
            record.market_winning_outcome,
        ))
        await self._conn.commit()
        return cursor.rowcount > 0

    async def save_suspicious_trades(self, records: list[SuspiciousTradeRecord]) -> WriteResult:
        """Store each record independently; a failed write does not stop the batch."""
        result = WriteResult()
        for record in records:
            try:
                if await self.upsert_suspicious_trade(record):
                    result.inserted += 1
                else:
                    result.duplicates += 1
            except Exception as e:
                logger.warning(
                    f"Failed to save trade {record.market_id}/{record.trader_address}: {e}"
                )
                result.failed += 1
        return result

    def _row_to_record(self, row) -> SuspiciousTradeRecord:
        """Convert a database row to a record."""
        return SuspiciousTradeRecord(
            id=row[0],
            created_at=_from_iso(row[1]),
            market_id=row[2],
            market_question=row[3],
            trader_address=row[4],
            outcome=row[5] or "",
            price=row[6],
            size=row[7],
            timestamp=_from_iso(row[8]),
            suspicion_score=row[9],
            suspicion_reasons=json.loads(row[10]) if row[10] else [],
            profit_amount=row[11],
            time_before_resolution=row[12],
            market_resolved=row[13] == 1,
            market_resolved_at=_from_iso(row[14]),
            market_winning_outcome=row[15],
        )

    _COLUMNS = (
        "id, created_at, market_id, market_question, trader_address, outcome, price, size, "
        "timestamp, suspicion_score, suspicion_reasons, profit_amount, time_before_resolution, "
        "market_resolved, market_resolved_at, market_winning_outcome"
    )

    async def query_suspicious_trades(
        self,
        min_score: float = 0.0,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[SuspiciousTradeRecord], int]:
        """Page through stored trades, newest detections first.

        Returns the page and the total number of rows matching ``min_score``.
        """
        async with self._conn.execute(
            "SELECT COUNT(*) FROM suspicious_trades WHERE suspicion_score >= ?", (min_score,)
        ) as cursor:
            total = (await cursor.fetchone())[0]

        records = []
        async with self._conn.execute(f"""
            SELECT {self._COLUMNS} FROM suspicious_trades
            WHERE suspicion_score >= ?
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
        """, (min_score, limit, offset)) as cursor:
            async for row in cursor:
                records.append(self._row_to_record(row))

        return records, total

    async def get_all_suspicious_trades(self) -> list[SuspiciousTradeRecord]:
        """Get every stored trade."""
        records = []
        async with self._conn.execute(
            f"SELECT {self._COLUMNS} FROM suspicious_trades ORDER BY created_at DESC, id DESC"
        ) as cursor:
            async for row in cursor:
                records.append(self._row_to_record(row))
        return records

    async def resolve_market(
        self,
        market_id: str,
        winning_outcome: str,
        profits: dict[int, float],
        resolved_at: Optional[datetime] = None,
    ) -> int:
        """Mark a market's stored trades as resolved and record their profit.

        ``profits`` maps row id to realized profit. Returns rows updated.
        """
        resolved_at = resolved_at or datetime.now(timezone.utc)
        updated = 0
        for row_id, profit in profits.items():
            cursor = await self._conn.execute("""
                UPDATE suspicious_trades
                SET market_resolved = 1, market_resolved_at = ?,
                    market_winning_outcome = ?, profit_amount = ?
                WHERE id = ? AND market_id = ?
            """, (resolved_at.isoformat(), winning_outcome, profit, row_id, market_id))
            updated += cursor.rowcount
        await self._conn.commit()
        return updated

    async def get_market_trades(self, market_id: str) -> list[SuspiciousTradeRecord]:
        """Get stored trades for one market."""
        records = []
        async with self._conn.execute(
            f"SELECT {self._COLUMNS} FROM suspicious_trades WHERE market_id = ? ORDER BY timestamp",
            (market_id,),
        ) as cursor:
            async for row in cursor:
                records.append(self._row_to_record(row))
        return records
