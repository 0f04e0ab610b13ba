"""Crypto quotes from the CoinGecko simple-price endpoint, in BRL."""

import asyncio
import os
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

import httpx
from pydantic import BaseModel

from ledgerly.api.exceptions import UpstreamServiceError
from ledgerly.pricing.retry import RetryPolicy, retry_with_backoff
from ledgerly.utils.logging import get_logger

logger = get_logger("pricing.quotes")

DEFAULT_COINGECKO_URL = "https://api.coingecko.com/api/v3"

QUOTE_CURRENCY = "brl"

# CoinGecko rejects longer id lists
MAX_IDS_PER_REQUEST = 250

CACHE_TTL_SECONDS = 15.0

SYMBOL_TO_COINGECKO_ID = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "BNB": "binancecoin",
    "XRP": "ripple",
    "ADA": "cardano",
    "SOL": "solana",
    "DOT": "polkadot",
    "DOGE": "dogecoin",
    "AVAX": "avalanche-2",
    "SHIB": "shiba-inu",
    "MATIC": "matic-network",
    "LTC": "litecoin",
    "UNI": "uniswap",
    "LINK": "chainlink",
    "ATOM": "cosmos",
    "BCH": "bitcoin-cash",
    "NEAR": "near",
    "ALGO": "algorand",
    "VET": "vechain",
    "ICP": "internet-computer",
    "FIL": "filecoin",
    "HBAR": "hedera-hashgraph",
    "APE": "apecoin",
    "MANA": "decentraland",
    "SAND": "the-sandbox",
    "CRV": "curve-dao-token",
    "GRT": "the-graph",
    "ENJ": "enjincoin",
    "CHZ": "chiliz",
    "BAT": "basic-attention-token",
}


def get_coingecko_id(symbol: str) -> str:
    """Map a ticker symbol to a CoinGecko id; unknown symbols are lower-cased."""
    return SYMBOL_TO_COINGECKO_ID.get(symbol.upper(), symbol.lower())


def unique_coin_ids(symbols: Iterable[str], limit: int = MAX_IDS_PER_REQUEST) -> List[str]:
    """Distinct coin ids for the given symbols, first-seen order, capped at ``limit``."""
    seen = []
    for symbol in symbols:
        if not symbol:
            continue
        coin_id = get_coingecko_id(symbol)
        if coin_id not in seen:
            seen.append(coin_id)
    return seen[:limit]


class PriceQuote(BaseModel):
    coin_id: str
    price: float
    change_24h: float = 0.0
    last_updated: Optional[datetime] = None


class PriceCache:
    """Per-coin quote cache with a fixed time-to-live."""

    def __init__(self, ttl: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, tuple] = {}

    def get(self, coin_id: str) -> Optional[PriceQuote]:
        entry = self._entries.get(coin_id)
        if entry is None:
            return None
        quote, stored_at = entry
        if self._clock() - stored_at >= self.ttl:
            return None
        return quote

    def put(self, quote: PriceQuote) -> None:
        self._entries[quote.coin_id] = (quote, self._clock())

    def stale(self, coin_ids: Iterable[str]) -> List[str]:
        """Ids with no fresh entry, in input order."""
        return [coin_id for coin_id in coin_ids if self.get(coin_id) is None]

    def clear(self) -> None:
        self._entries.clear()


class CoinGeckoClient:
    """Async client for the simple-price endpoint.

    Args:
        base_url: API root (default: COINGECKO_API_URL or the public API)
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or os.getenv("COINGECKO_API_URL") or DEFAULT_COINGECKO_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def fetch_prices(self, coin_ids: List[str]) -> Dict[str, PriceQuote]:
        """Fetch BRL quotes for up to 250 coin ids.

        Ids CoinGecko does not know are absent from the result.

        Raises:
            UpstreamServiceError: On transport errors, non-2xx responses or malformed bodies
        """
        if not coin_ids:
            return {}
        if len(coin_ids) > MAX_IDS_PER_REQUEST:
            coin_ids = coin_ids[:MAX_IDS_PER_REQUEST]

        params = {
            "ids": ",".join(coin_ids),
            "vs_currencies": QUOTE_CURRENCY,
            "include_24hr_change": "true",
            "include_last_updated_at": "true",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/simple/price",
                    params=params,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise UpstreamServiceError("coingecko", f"Request failed: {e}")

        if response.status_code != 200:
            raise UpstreamServiceError("coingecko", f"API error: {response.status_code} {response.reason_phrase}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamServiceError("coingecko", f"Invalid JSON response: {e}")

        quotes = {}
        for coin_id, price_data in data.items():
            if not isinstance(price_data, dict) or QUOTE_CURRENCY not in price_data:
                continue
            last_updated_at = price_data.get("last_updated_at")
            quotes[coin_id] = PriceQuote(
                coin_id=coin_id,
                price=price_data[QUOTE_CURRENCY],
                change_24h=price_data.get(f"{QUOTE_CURRENCY}_24h_change") or 0.0,
                last_updated=(
                    datetime.fromtimestamp(last_updated_at, tz=timezone.utc) if last_updated_at else None
                ),
            )

        logger.debug(f"Fetched {len(quotes)} of {len(coin_ids)} quotes")
        return quotes


async def get_prices(
    client: CoinGeckoClient,
    cache: PriceCache,
    coin_ids: List[str],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Dict[str, PriceQuote]:
    """Quotes for ``coin_ids``, serving fresh ones from the cache.

    Only stale ids go to the network; fetched quotes are cached.
    """
    quotes = {}
    for coin_id in coin_ids:
        cached = cache.get(coin_id)
        if cached is not None:
            quotes[coin_id] = cached

    to_fetch = [coin_id for coin_id in coin_ids if coin_id not in quotes]
    if to_fetch:
        fetched = await retry_with_backoff(lambda: client.fetch_prices(to_fetch), policy, sleep=sleep)
        for quote in fetched.values():
            cache.put(quote)
        quotes.update(fetched)

    return quotes
