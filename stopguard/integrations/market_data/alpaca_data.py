"""
Alpaca Market Data Provider

Latest-price lookups from the Alpaca stock snapshot endpoint.
Trade price is preferred; the best ask from the latest quote is the fallback.
"""

import re
import httpx
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from stopguard.integrations.market_data.base import MarketDataProvider, PriceQuote
from stopguard.shared.exceptions import PriceUnavailableError, TransientProviderError
from stopguard.core.logger import get_logger

logger = get_logger(__name__)

_RFC3339 = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})?$"
)


def _parse_timestamp(value: Optional[str]) -> datetime:
    """Alpaca RFC-3339 timestamps in UTC (nanosecond precision is truncated)."""
    if not value:
        return datetime.now(timezone.utc)

    match = _RFC3339.match(value.strip())
    if match is None:
        return datetime.now(timezone.utc)

    text = match.group("base")
    if match.group("fraction"):
        text += "." + match.group("fraction")[:6].ljust(6, "0")
    offset = match.group("offset")
    text += "+00:00" if offset in (None, "Z", "z") else offset

    try:
        return datetime.fromisoformat(text).astimezone(timezone.utc)
    except ValueError:
        return datetime.now(timezone.utc)


def _positive_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return None
    return price if price > 0 else None


def parse_snapshot(symbol: str, snapshot: Dict[str, Any]) -> PriceQuote:
    """
    Extract the latest price from a snapshot payload.
    
    Raises:
        PriceUnavailableError: Neither a trade nor an ask price is present
    """
    trade = snapshot.get("latestTrade") or {}
    price = _positive_decimal(trade.get("p"))
    if price is not None:
        return PriceQuote(symbol=symbol, price=price, source="trade", as_of=_parse_timestamp(trade.get("t")))
    
    quote = snapshot.get("latestQuote") or {}
    price = _positive_decimal(quote.get("ap"))
    if price is not None:
        return PriceQuote(symbol=symbol, price=price, source="ask", as_of=_parse_timestamp(quote.get("t")))
    
    raise PriceUnavailableError(f"No trade or quote price available for {symbol}")


class AlpacaMarketDataProvider(MarketDataProvider):
    """
    Alpaca Market Data Client
    
    Usage:
        provider = AlpacaMarketDataProvider(api_key="...", secret_key="...")
        quote = await provider.latest_price("AAPL")
        await provider.close()
    """
    
    DEFAULT_BASE_URL = "https://data.alpaca.markets"
    
    def __init__(
        self,
        api_key: str,
        secret_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize Alpaca data client.
        
        Args:
            api_key: Alpaca API key id
            secret_key: Alpaca API secret
            base_url: Data API base URL
            timeout: HTTP timeout in seconds
            http_client: Pre-built client (tests inject a MockTransport-backed one)
        """
        self.api_key = api_key
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = http_client
    
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
    
    async def get_snapshot(self, symbol: str) -> Dict[str, Any]:
        """
        Fetch the raw snapshot for a symbol.
        
        Raises:
            PriceUnavailableError: Unknown symbol
            TransientProviderError: Network error, timeout, or server error
        """
        client = await self._get_client()
        url = f"{self.base_url}/v2/stocks/{symbol}/snapshot"
        
        try:
            response = await client.get(url, headers=self.headers)
        except httpx.HTTPError as e:
            raise TransientProviderError(f"Snapshot request for {symbol} failed: {e}") from e
        
        if response.status_code == 404:
            raise PriceUnavailableError(f"No snapshot for {symbol}")
        if response.status_code != 200:
            logger.error(f"Alpaca data API error: {response.status_code} - {response.text}")
            raise TransientProviderError(
                f"Snapshot request for {symbol} returned HTTP {response.status_code}"
            )
        
        logger.debug(f"Snapshot fetched for {symbol}")
        return response.json()
    
    async def latest_price(self, symbol: str) -> PriceQuote:
        snapshot = await self.get_snapshot(symbol)
        return parse_snapshot(symbol, snapshot)
    
    async def close(self) -> None:
        """Close HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
