"""
Alpaca Trading Gateway

Market order placement and position liquidation through the Alpaca
trading API (paper or live).
"""

import httpx
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from stopguard.integrations.brokers.base import OrderExecutionGateway, OrderResult, OrderSide
from stopguard.shared.exceptions import ExecutionError
from stopguard.core.logger import get_logger

logger = get_logger(__name__)


def parse_order(payload: Dict[str, Any]) -> OrderResult:
    """Alpaca order JSON -> OrderResult (filled_avg_price arrives as a string or null)."""
    fill_price: Optional[Decimal] = None
    raw_fill = payload.get("filled_avg_price")
    if raw_fill not in (None, ""):
        try:
            fill_price = Decimal(str(raw_fill))
        except InvalidOperation:
            fill_price = None
        if fill_price is not None and fill_price <= 0:
            fill_price = None
    
    return OrderResult(
        order_id=str(payload["id"]),
        fill_price=fill_price,
        status=payload.get("status"),
    )


class AlpacaTradingGateway(OrderExecutionGateway):
    """
    Alpaca Trading Client
    
    Usage:
        gateway = AlpacaTradingGateway(api_key="...", secret_key="...", paper=True)
        order = await gateway.place_market_order("AAPL", Decimal("10"), OrderSide.BUY)
        exit_order = await gateway.close_position("AAPL")
    """
    
    PAPER_URL = "https://paper-api.alpaca.markets"
    LIVE_URL = "https://api.alpaca.markets"
    
    def __init__(
        self,
        api_key: str,
        secret_key: str,
        paper: bool = True,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize Alpaca trading client.
        
        Args:
            api_key: Alpaca API key id
            secret_key: Alpaca API secret
            paper: Use the paper trading endpoint
            base_url: Override the trading API base URL
            timeout: HTTP timeout in seconds
            http_client: Pre-built client (tests inject a MockTransport-backed one)
        """
        self.api_key = api_key
        self.secret_key = secret_key
        self.paper = paper
        self.base_url = (base_url or (self.PAPER_URL if paper else self.LIVE_URL)).rstrip("/")
        self.timeout = timeout
        self._client = http_client
        
        logger.info(f"Alpaca trading gateway initialized ({'paper' if paper else 'live'})")
    
    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client
    
    @property
    def headers(self) -> Dict[str, str]:
        return {
            "APCA-API-KEY-ID": self.api_key,
            "APCA-API-SECRET-KEY": self.secret_key,
        }
    
    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Send a trading API request.
        
        Raises:
            ExecutionError: Transport failure or non-2xx response
        """
        client = await self._get_client()
        url = f"{self.base_url}{endpoint}"
        
        try:
            response = await client.request(method, url, json=json, headers=self.headers)
        except httpx.HTTPError as e:
            raise ExecutionError(f"Alpaca {method} {endpoint} failed: {e}") from e
        
        if response.status_code >= 300:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            logger.error(f"Alpaca trading API error: {response.status_code} - {detail}")
            raise ExecutionError(f"Alpaca rejected {method} {endpoint}: {detail}")
        
        return response.json()
    
    async def place_market_order(
        self,
        symbol: str,
        qty: Decimal,
        side: OrderSide
    ) -> OrderResult:
        payload = await self._request(
            "POST",
            "/v2/orders",
            json={
                "symbol": symbol,
                "qty": str(qty),
                "side": OrderSide(side).value,
                "type": "market",
                "time_in_force": "day",
            },
        )
        order = parse_order(payload)
        
        logger.info(f"Entry order placed: {order.order_id} {side} {qty} {symbol}")
        return order
    
    async def close_position(self, symbol: str) -> OrderResult:
        payload = await self._request("DELETE", f"/v2/positions/{symbol}")
        order = parse_order(payload)
        
        logger.info(f"Close order placed: {order.order_id} for {symbol}")
        return order
    
    async def close(self) -> None:
        """Close HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
