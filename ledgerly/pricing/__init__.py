"""Crypto quotes, retry with backoff and the background price poller."""

from ledgerly.pricing.poller import (
    CryptoPricePoller,
    make_asset_price_writer,
    make_crypto_assets_provider,
)
from ledgerly.pricing.quotes import (
    SYMBOL_TO_COINGECKO_ID,
    CoinGeckoClient,
    PriceCache,
    PriceQuote,
    get_coingecko_id,
    get_prices,
)
from ledgerly.pricing.retry import RetryPolicy, retry_with_backoff

__all__ = [
    "CoinGeckoClient",
    "CryptoPricePoller",
    "PriceCache",
    "PriceQuote",
    "RetryPolicy",
    "SYMBOL_TO_COINGECKO_ID",
    "get_coingecko_id",
    "get_prices",
    "make_asset_price_writer",
    "make_crypto_assets_provider",
    "retry_with_backoff",
]
