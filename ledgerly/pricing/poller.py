"""Background crypto price poller.

The poller periodically fetches quotes for every crypto asset with a ticker
symbol and hands each new price to a callback. At most one request is in
flight: starting an update cancels the previous one, and ``stop()`` cancels
both the timer loop and the in-flight request.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ledgerly.database.store import OPERATING_MODES, Store, table_for
from ledgerly.health.models import AssetCategory
from ledgerly.pricing.quotes import (
    CoinGeckoClient,
    PriceCache,
    PriceQuote,
    get_coingecko_id,
    unique_coin_ids,
)
from ledgerly.pricing.retry import RetryPolicy, retry_with_backoff
from ledgerly.utils.calculators import round_money, to_number
from ledgerly.utils.logging import get_logger

logger = get_logger("pricing.poller")

DEFAULT_INTERVAL_SECONDS = 120

AssetsProvider = Callable[[], List[Dict[str, Any]]]
PriceUpdateCallback = Callable[[Dict[str, Any], PriceQuote], None]


def is_tracked_crypto(asset: Dict[str, Any]) -> bool:
    return asset.get("type") == AssetCategory.CRYPTO.value and bool(asset.get("symbol"))


class CryptoPricePoller:
    """Poll crypto quotes and report per-asset price updates.

    Args:
        assets_provider: Returns the current asset rows
        on_price_update: Called as ``on_price_update(asset, quote)`` for each priced asset
        client: Quote client (default: CoinGeckoClient())
        interval: Seconds between scheduled updates
        policy: Retry policy for failed fetches
        enabled: When False no request is ever made
        cache: Quote cache (default: 15 second TTL)
        sleep: Awaitable sleep used for backoff and the timer loop
    """

    def __init__(
        self,
        assets_provider: AssetsProvider,
        on_price_update: PriceUpdateCallback,
        client: Optional[CoinGeckoClient] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        policy: Optional[RetryPolicy] = None,
        enabled: bool = True,
        cache: Optional[PriceCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.assets_provider = assets_provider
        self.on_price_update = on_price_update
        self.client = client or CoinGeckoClient()
        self.interval = interval
        self.policy = policy or RetryPolicy()
        self.enabled = enabled
        self.cache = cache or PriceCache()
        self._sleep = sleep

        self.is_updating = False
        self.last_update_time: Optional[datetime] = None
        self.error: Optional[str] = None
        self.retry_count = 0

        self._inflight: Optional[asyncio.Task] = None
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def _tracked_assets(self) -> List[Dict[str, Any]]:
        return [asset for asset in self.assets_provider() if is_tracked_crypto(asset)]

    def _on_retry(self, retry_state) -> None:
        self.retry_count = retry_state.attempt_number

    def _apply(self, assets: List[Dict[str, Any]], quotes: Dict[str, PriceQuote]) -> int:
        updated = 0
        for asset in assets:
            quote = quotes.get(get_coingecko_id(asset["symbol"]))
            if quote is None:
                continue
            self.on_price_update(asset, quote)
            updated += 1
        return updated

    async def _fetch_and_apply(self) -> int:
        # Providers and writers are blocking store calls; run them in worker threads
        assets = await asyncio.to_thread(self._tracked_assets)
        coin_ids = unique_coin_ids(asset["symbol"] for asset in assets)
        to_fetch = self.cache.stale(coin_ids)
        if not to_fetch:
            logger.debug("All crypto quotes are cached; nothing to fetch")
            return 0

        quotes = await retry_with_backoff(
            lambda: self.client.fetch_prices(to_fetch),
            self.policy,
            sleep=self._sleep,
            before_retry=self._on_retry,
        )
        for quote in quotes.values():
            self.cache.put(quote)

        return await asyncio.to_thread(self._apply, assets, quotes)

    async def update_prices(self) -> int:
        """Fetch quotes for all tracked assets and report the new prices.

        A previous in-flight update is cancelled first. Failures are retried
        with backoff; when retries run out the error is recorded on
        ``self.error`` and the poller keeps going.

        Returns:
            Number of assets whose price was reported (0 when superseded or failed)
        """
        if not self.enabled:
            return 0

        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

        task = asyncio.ensure_future(self._fetch_and_apply())
        self._inflight = task
        self.is_updating = True
        self.error = None

        try:
            updated = await task
        except asyncio.CancelledError:
            # stop() clears _inflight; only a newer update counts as superseding
            if task.cancelled() and self._inflight is not None and self._inflight is not task:
                logger.debug("Price update superseded")
                return 0
            raise
        except Exception as e:
            logger.error(f"Error updating crypto prices: {e}")
            self.error = str(e)
            return 0
        finally:
            if self._inflight is task:
                self.is_updating = False

        self.last_update_time = datetime.now(timezone.utc)
        self.retry_count = 0
        if updated:
            logger.info(f"Updated prices for {updated} crypto assets")
        return updated

    async def manual_update(self) -> int:
        """Run an update immediately with a fresh retry count."""
        self.retry_count = 0
        return await self.update_prices()

    async def _run(self) -> None:
        while True:
            await self.update_prices()
            await self._sleep(self.interval)

    def start(self) -> None:
        """Start the timer loop; the first update runs immediately."""
        if not self.enabled:
            logger.info("Crypto price poller disabled")
            return
        if self.is_running:
            return
        logger.info(f"Starting crypto price poller (every {self.interval}s)")
        self._loop_task = asyncio.ensure_future(self._run())

    def stop(self) -> None:
        """Cancel the timer loop and any in-flight request."""
        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done():
            inflight.cancel()
        loop_task, self._loop_task = self._loop_task, None
        if loop_task is not None and not loop_task.done():
            loop_task.cancel()
        self.is_updating = False
        logger.info("Crypto price poller stopped")


def make_crypto_assets_provider(store: Store) -> AssetsProvider:
    """Assets provider reading crypto rows from both modes' asset tables.

    Each row is tagged with ``source_table`` so writers know where it lives.
    """
    def provider() -> List[Dict[str, Any]]:
        rows = []
        for mode in OPERATING_MODES:
            table = table_for(mode, "assets")
            for row in store.fetch(table, [("type", "==", AssetCategory.CRYPTO.value)]):
                rows.append({**row, "source_table": table})
        return rows

    return provider


def make_asset_price_writer(store: Store) -> PriceUpdateCallback:
    """Price callback persisting the quote onto the asset row.

    When the asset records a quantity, its ``value`` is recomputed as
    ``quantity * price``.
    """
    def write(asset: Dict[str, Any], quote: PriceQuote) -> None:
        table = asset.get("source_table", "assets")
        values = {
            "current_price": quote.price,
            "price_change_24h": quote.change_24h,
            "price_updated_at": (quote.last_updated or datetime.now(timezone.utc)).isoformat(),
        }
        if asset.get("quantity") is not None:
            values["value"] = round_money(to_number(asset["quantity"]) * quote.price)
        store.update(table, values, [("id", "==", asset["id"])])

    return write
