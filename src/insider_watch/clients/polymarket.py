"""
Polymarket API client.

Polymarket exposes two APIs used here:
- Gamma API: market metadata (questions, deadlines, outcome tokens)
- CLOB API: recent trades per outcome token
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from ..config import PolymarketConfig, get_config
from ..models import Market, MalformedTradeError, Trade, TradeSide, utc_from_unix
from .base import BaseClient

logger = logging.getLogger(__name__)


def _items(data, *keys) -> list:
    """Unwrap a list payload that may be bare or nested under one of ``keys``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


def _as_list(value) -> list:
    """Gamma returns some list fields as JSON-encoded strings."""
    if value is None:
        return []
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return []
        return decoded if isinstance(decoded, list) else []
    return list(value)


def _parse_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    # Date-only and offset-less values are UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_number(raw, field_name: str, trade_id: str = "") -> Decimal:
    """Parse a decimal string, rejecting anything that is not a finite number."""
    if raw is None or raw == "":
        raise MalformedTradeError(field_name, raw, trade_id)
    try:
        number = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise MalformedTradeError(field_name, raw, trade_id) from None
    if not number.is_finite():
        raise MalformedTradeError(field_name, raw, trade_id)
    return number


class PolymarketClient(BaseClient):
    """Client for reading markets and trades from Polymarket."""

    def __init__(
        self,
        config: Optional[PolymarketConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or get_config().polymarket
        super().__init__(
            base_url=self.config.clob_api_url,
            requests_per_second=self.config.requests_per_second,
            timeout=self.config.timeout,
            transport=transport,
        )
        self._gamma_client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        """Initialize HTTP clients."""
        await super().connect()
        self._gamma_client = self._make_client(self.config.gamma_api_url)

    async def close(self) -> None:
        """Close HTTP clients."""
        await super().close()
        if self._gamma_client:
            await self._gamma_client.aclose()
            self._gamma_client = None

    async def _gamma_get(self, path: str, params: Optional[dict] = None):
        """Make a request to the Gamma API."""
        return await self._request(self._gamma_client, "GET", path, params=params)

    def _parse_market(self, data: dict) -> Market:
        """Parse market data from API response."""
        condition_id = data.get("condition_id") or data.get("conditionId") or data.get("id")
        if not condition_id:
            raise ValueError("market has no condition id")

        token_ids = _as_list(data.get("clob_token_ids") or data.get("clobTokenIds"))

        return Market(
            id=str(condition_id),
            question=data.get("question") or data.get("title", ""),
            end_date=_parse_datetime(
                data.get("end_date_iso") or data.get("endDate") or data.get("endDateIso")
            ),
            active=bool(data.get("active", True)),
            closed=bool(data.get("closed", False)),
            outcomes=tuple(str(o) for o in _as_list(data.get("outcomes"))),
            token_ids=tuple(str(t) for t in token_ids),
            description=data.get("description", "") or "",
            slug=data.get("market_slug") or data.get("slug", "") or "",
            volume=Decimal(str(data.get("volume", 0) or 0)),
            liquidity=Decimal(str(data.get("liquidity", 0) or 0)),
        )

    def _parse_trade(self, data: dict, asset_id: str = "") -> Trade:
        """Parse trade data from API response.

        Raises MalformedTradeError when price or size is not a number.
        """
        trade_id = str(data.get("id") or data.get("trade_id") or "")
        price = parse_number(data.get("price"), "price", trade_id)
        size = parse_number(data.get("size"), "size", trade_id)

        raw_ts = data.get("timestamp") or data.get("match_time")
        try:
            timestamp = utc_from_unix(float(raw_ts))
        except (TypeError, ValueError):
            parsed = _parse_datetime(raw_ts)
            if parsed is None:
                raise MalformedTradeError("timestamp", raw_ts, trade_id) from None
            timestamp = parsed

        side = TradeSide.SELL if str(data.get("side", "")).upper() == "SELL" else TradeSide.BUY

        return Trade(
            id=trade_id,
            market_id=data.get("market", "") or "",
            asset_id=data.get("asset_id") or asset_id,
            maker_address=data.get("maker_address") or data.get("maker", "") or "",
            taker_address=data.get("taker_address") or data.get("taker", "") or "",
            outcome=data.get("outcome", "") or "",
            price=price,
            size=size,
            timestamp=timestamp,
            side=side,
            transaction_hash=data.get("transaction_hash", "") or "",
        )

    async def get_active_markets(self, limit: int = 20) -> list[Market]:
        """Fetch active markets from the Gamma API."""
        try:
            data = await self._gamma_get("/markets", params={"limit": limit, "active": "true"})
        except Exception as e:
            logger.error(f"Failed to fetch markets: {e}")
            return []

        markets = []
        for item in _items(data, "data"):
            try:
                markets.append(self._parse_market(item))
            except Exception as e:
                logger.warning(f"Failed to parse market: {e}")
        return markets

    async def get_market(self, condition_id: str) -> Optional[Market]:
        """Fetch a single market by condition id."""
        try:
            data = await self._gamma_get(f"/markets/{condition_id}")
            return self._parse_market(data)
        except Exception as e:
            logger.error(f"Failed to fetch market {condition_id}: {e}")
            return None

    async def get_trades(self, asset_id: str, limit: int = 10) -> list[Trade]:
        """Fetch recent trades for an outcome token from the CLOB API."""
        try:
            data = await self.get("/trades", params={"asset_id": asset_id, "limit": limit})
        except Exception as e:
            logger.error(f"Failed to fetch trades for {asset_id}: {e}")
            return []

        trades = []
        for item in _items(data, "data", "trades"):
            try:
                trades.append(self._parse_trade(item, asset_id))
            except MalformedTradeError as e:
                logger.warning(f"Skipping trade: {e}")
            except Exception as e:
                logger.warning(f"Failed to parse trade: {e}")
        return trades
