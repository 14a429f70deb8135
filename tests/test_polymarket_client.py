"""Tests for the Polymarket client."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from conftest import make_trade
from insider_watch.clients.polymarket import PolymarketClient, parse_number
from insider_watch.config import DetectionCriteria, PolymarketConfig
from insider_watch.detection.engine import score_trade
from insider_watch.models import MalformedTradeError, TradeSide

GAMMA_MARKET = {
    "conditionId": "0xcond1",
    "question": "Will the bill pass?",
    "endDate": "2026-04-01T00:00:00Z",
    "active": True,
    "closed": False,
    "outcomes": json.dumps(["Yes", "No"]),
    "clobTokenIds": json.dumps(["111", "222"]),
    "slug": "will-the-bill-pass",
    "volume": "15000.5",
}

CLOB_MARKET = {
    "condition_id": "0xcond2",
    "question": "Will it rain?",
    "end_date_iso": "2026-04-02T12:00:00+00:00",
    "active": True,
    "closed": True,
    "outcomes": ["Yes", "No"],
    "clob_token_ids": ["333", "444"],
}

TRADE = {
    "id": "t1",
    "market": "0xcond1",
    "asset_id": "111",
    "maker_address": "0xMaker",
    "taker_address": "0xTaker",
    "price": "0.07",
    "size": "1200.5",
    "side": "BUY",
    "outcome": "Yes",
    "timestamp": 1772366400,
    "transaction_hash": "0xhash",
}


def make_client(handler) -> PolymarketClient:
    config = PolymarketConfig(
        clob_api_url="https://clob.test",
        gamma_api_url="https://gamma.test",
        requests_per_second=1000,
    )
    return PolymarketClient(config, transport=httpx.MockTransport(handler))


class TestParseNumber:
    def test_parses_decimal_string(self) -> None:
        assert parse_number("0.125", "price") == Decimal("0.125")

    def test_accepts_numbers(self) -> None:
        assert parse_number(42, "size") == Decimal("42")

    @pytest.mark.parametrize("raw", [None, "", "abc", "NaN", "Infinity", "1.2.3"])
    def test_rejects_non_numbers(self, raw) -> None:
        with pytest.raises(MalformedTradeError) as exc_info:
            parse_number(raw, "price", "t9")

        assert exc_info.value.field_name == "price"
        assert "t9" in str(exc_info.value)

    def test_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_number("x", "size")


class TestPolymarketClient:
    @pytest.mark.asyncio
    async def test_get_active_markets_parses_both_shapes(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["host"] = request.url.host
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[GAMMA_MARKET, CLOB_MARKET])

        async with make_client(handler) as client:
            markets = await client.get_active_markets(limit=20)

        assert seen["host"] == "gamma.test"
        assert seen["params"] == {"limit": "20", "active": "true"}

        first, second = markets
        assert first.id == "0xcond1"
        assert first.token_ids == ("111", "222")
        assert first.outcomes == ("Yes", "No")
        assert first.primary_token_id == "111"
        assert first.end_date == datetime(2026, 4, 1, tzinfo=timezone.utc)
        assert first.volume == Decimal("15000.5")

        assert second.id == "0xcond2"
        assert second.token_ids == ("333", "444")
        assert second.closed is True

    @pytest.mark.asyncio
    async def test_unparseable_market_is_skipped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"question": "no id"}, GAMMA_MARKET])

        async with make_client(handler) as client:
            markets = await client.get_active_markets()

        assert [m.id for m in markets] == ["0xcond1"]

    @pytest.mark.asyncio
    async def test_markets_fail_soft(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        async with make_client(handler) as client:
            assert await client.get_active_markets() == []

    @pytest.mark.asyncio
    async def test_get_trades(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["host"] = request.url.host
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[TRADE])

        async with make_client(handler) as client:
            trades = await client.get_trades("111", limit=10)

        assert seen == {"host": "clob.test", "path": "/trades", "params": {"asset_id": "111", "limit": "10"}}

        trade = trades[0]
        assert trade.id == "t1"
        assert trade.maker_address == "0xMaker"
        assert trade.price == Decimal("0.07")
        assert trade.size == Decimal("1200.5")
        assert trade.side is TradeSide.BUY
        assert trade.timestamp == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_malformed_trades_are_rejected(self) -> None:
        bad_price = {**TRADE, "id": "t2", "price": "n/a"}
        bad_size = {**TRADE, "id": "t3", "size": None}
        sell = {**TRADE, "id": "t4", "side": "SELL", "timestamp": "1772366460"}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[bad_price, TRADE, bad_size, sell])

        async with make_client(handler) as client:
            trades = await client.get_trades("111")

        assert [t.id for t in trades] == ["t1", "t4"]
        assert trades[1].side is TradeSide.SELL

    @pytest.mark.asyncio
    async def test_trades_fail_soft(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        async with make_client(handler) as client:
            assert await client.get_trades("111") == []

    @pytest.mark.asyncio
    async def test_get_market(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/markets/0xcond1":
                return httpx.Response(200, json=GAMMA_MARKET)
            return httpx.Response(404, json={"error": "not found"})

        async with make_client(handler) as client:
            market = await client.get_market("0xcond1")
            missing = await client.get_market("0xnope")

        assert market is not None and market.question == "Will the bill pass?"
        assert missing is None

    @pytest.mark.asyncio
    async def test_requires_connection(self) -> None:
        client = make_client(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(RuntimeError):
            await client.get("/trades")

    @pytest.mark.asyncio
    async def test_deadline_without_offset_is_utc(self) -> None:
        date_only = {**CLOB_MARKET, "end_date_iso": "2026-03-02"}
        no_offset = {**GAMMA_MARKET, "endDate": "2026-03-01T18:00:00"}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[date_only, no_offset])

        async with make_client(handler) as client:
            markets = await client.get_active_markets()

        assert markets[0].end_date == datetime(2026, 3, 2, tzinfo=timezone.utc)
        assert markets[1].end_date == datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc)

        # Trade at 2026-03-01 12:00 UTC, twelve hours before the date-only deadline
        analysis = score_trade(make_trade(), markets[0], DetectionCriteria())
        assert "close_to_resolution" in analysis.rule_ids

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [None, "unexpected", 42, {"data": None}, {"trades": "nope"}])
    async def test_unexpected_payload_shapes_give_empty_lists(self, body) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=json.dumps(body).encode())

        async with make_client(handler) as client:
            assert await client.get_active_markets() == []
            assert await client.get_trades("111") == []

    @pytest.mark.asyncio
    async def test_trades_nested_under_key(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": None, "trades": [TRADE]})

        async with make_client(handler) as client:
            trades = await client.get_trades("111")

        assert [t.id for t in trades] == ["t1"]
