"""
Alpaca Trading Gateway Tests

All responses are served by httpx.MockTransport - no real API calls.
"""

import json

import httpx
import pytest
from decimal import Decimal

from stopguard.integrations.brokers.alpaca_trading import AlpacaTradingGateway, parse_order
from stopguard.integrations.brokers.base import OrderSide
from stopguard.shared.exceptions import ExecutionError


def make_gateway(handler) -> AlpacaTradingGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AlpacaTradingGateway(api_key="key_123", secret_key="secret_456", paper=True, http_client=client)


# ==================== PARSER TESTS ====================

def test_parse_order_with_fill():
    order = parse_order({"id": "abc", "filled_avg_price": "150.12", "status": "filled"})
    
    assert order.order_id == "abc"
    assert order.fill_price == Decimal("150.12")
    assert order.status == "filled"


def test_parse_order_without_fill():
    assert parse_order({"id": "abc", "filled_avg_price": None}).fill_price is None
    assert parse_order({"id": "abc", "filled_avg_price": "0"}).fill_price is None


# ==================== CLIENT TESTS ====================

def test_gateway_urls():
    assert AlpacaTradingGateway("k", "s", paper=True).base_url == "https://paper-api.alpaca.markets"
    assert AlpacaTradingGateway("k", "s", paper=False).base_url == "https://api.alpaca.markets"


@pytest.mark.asyncio
async def test_place_market_order():
    seen = {}
    
    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "order-1", "filled_avg_price": None, "status": "accepted"})
    
    gateway = make_gateway(handler)
    order = await gateway.place_market_order("AAPL", Decimal("10"), OrderSide.BUY)
    await gateway.close()
    
    assert order.order_id == "order-1"
    assert order.fill_price is None
    assert seen["method"] == "POST"
    assert seen["url"] == "https://paper-api.alpaca.markets/v2/orders"
    assert seen["body"] == {
        "symbol": "AAPL",
        "qty": "10",
        "side": "buy",
        "type": "market",
        "time_in_force": "day",
    }


@pytest.mark.asyncio
async def test_close_position():
    seen = {}
    
    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        return httpx.Response(200, json={"id": "exit-9", "filled_avg_price": "145.02"})
    
    gateway = make_gateway(handler)
    order = await gateway.close_position("AAPL")
    
    assert seen == {"method": "DELETE", "path": "/v2/positions/AAPL"}
    assert order.order_id == "exit-9"
    assert order.fill_price == Decimal("145.02")


@pytest.mark.asyncio
async def test_rejected_order():
    gateway = make_gateway(lambda request: httpx.Response(403, json={"message": "insufficient buying power"}))
    
    with pytest.raises(ExecutionError) as exc_info:
        await gateway.place_market_order("AAPL", Decimal("10"), OrderSide.BUY)
    
    assert "insufficient buying power" in exc_info.value.message


@pytest.mark.asyncio
async def test_network_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)
    
    gateway = make_gateway(handler)
    
    with pytest.raises(ExecutionError):
        await gateway.close_position("AAPL")
