import aiohttp
import asyncio
import json
from typing import Optional, List, Dict, Any

import config


class PolymarketAPIError(Exception):
    """Base error for failed primary fetches against the Polymarket APIs."""


class UpstreamUnavailable(PolymarketAPIError):
    """Network failure or non-2xx status from the Data or Gamma API."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class UpstreamMalformed(PolymarketAPIError):
    """Empty body, invalid JSON or an unexpected response shape."""


def format_amount(amount: float) -> str:
    """Render a cash filter amount without a trailing '.0' (10.0 -> '10')."""
    return f"{amount:g}"


class PolymarketClient:
    DATA_API_BASE_URL = config.DATA_API_BASE_URL
    GAMMA_BASE_URL = config.GAMMA_BASE_URL

    def __init__(self, data_api_base_url: Optional[str] = None, gamma_base_url: Optional[str] = None):
        self.session: Optional[aiohttp.ClientSession] = None
        if data_api_base_url:
            self.DATA_API_BASE_URL = data_api_base_url.rstrip('/')
        if gamma_base_url:
            self.GAMMA_BASE_URL = gamma_base_url.rstrip('/')
        self.headers = {
            "Accept": "application/json",
            "User-Agent": config.USER_AGENT,
        }

    async def ensure_session(self):
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(headers=self.headers)

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a JSON document, raising on anything but a parseable 2xx body."""
        await self.ensure_session()
        try:
            async with self.session.get(url, params=params) as resp:
                if resp.status < 200 or resp.status >= 300:
                    print(f"[API] {url} returned status {resp.status}", flush=True)
                    raise UpstreamUnavailable(f"Polymarket API returned {resp.status}", status=resp.status)
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            print(f"[API] Request to {url} failed: {type(e).__name__}: {e}", flush=True)
            raise UpstreamUnavailable(f"Failed to reach Polymarket API: {e}") from e

        if not text:
            raise UpstreamMalformed("Empty response from Polymarket")
        try:
            return json.loads(text)
        except ValueError as e:
            print(f"[API] Failed to parse response from {url}: {text[:200]}", flush=True)
            raise UpstreamMalformed("Invalid JSON from Polymarket") from e

    async def _get_list(self, url: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = await self._get_json(url, params)
        if not isinstance(data, list):
            print(f"[API] {url} returned {type(data).__name__}, expected a list", flush=True)
            raise UpstreamMalformed("Unexpected response format")
        return data

    async def get_recent_trades(
        self,
        limit: int = config.DEFAULT_FEED_LIMIT,
        min_amount: float = 0.0,
        user: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        if user:
            params["user"] = user
        if min_amount > 0:
            params["filterType"] = "CASH"
            params["filterAmount"] = format_amount(min_amount)
        return await self._get_list(f"{self.DATA_API_BASE_URL}/trades", params)

    async def get_wallet_trades(self, wallet_address: str, limit: int = config.FORECASTER_TRADE_LIMIT) -> List[Dict[str, Any]]:
        return await self.get_recent_trades(limit=limit, user=wallet_address)

    async def get_markets(
        self,
        limit: int = config.MARKET_INDEX_LIMIT,
        active: bool = True,
        closed: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {
            "limit": limit,
            "active": str(active).lower(),
        }
        if closed is not None:
            params["closed"] = str(closed).lower()
        return await self._get_list(f"{self.GAMMA_BASE_URL}/markets", params)

    async def get_events(self, limit: int = 50, tag_slug: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {
            "limit": limit,
            "active": "true",
            "closed": "false",
            "order": "volume",
            "ascending": "false",
        }
        if tag_slug:
            params["tag_slug"] = tag_slug
        return await self._get_list(f"{self.GAMMA_BASE_URL}/events", params)

    async def fetch_market(self, market_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a single market by condition/token/market id.

        Best effort: any failure is logged and reported as None so a missing
        market never aborts the caller.
        """
        if not market_id or market_id == "unknown":
            return None

        try:
            market = await self._get_json(f"{self.GAMMA_BASE_URL}/markets/{market_id}")
        except PolymarketAPIError as e:
            print(f"[API] Failed to fetch market {market_id[:20]}: {e}", flush=True)
            return None
        if not isinstance(market, dict):
            print(f"[API] Market {market_id[:20]} response was not an object", flush=True)
            return None
        return market


polymarket_client = PolymarketClient()
