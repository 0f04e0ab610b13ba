"""FastAPI application for the Ledgerly API.

The store, price client, price cache, notifier and crypto poller are built
once at start-up, kept on ``app.state`` and handed to endpoints through
dependencies so tests can override them.
"""

import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from ledgerly import __version__
from ledgerly.admin import (
    create_coupon,
    get_dashboard_stats,
    list_subscriptions,
    list_users_with_subscriptions,
    promote_to_admin,
    validate_coupon,
)
from ledgerly.alerts import WebhookNotifier, check_recurring_expenses, check_spending_limits
from ledgerly.api.auth import (
    User,
    get_caller,
    get_current_user,
    require_admin,
    require_service_or_admin,
    set_role_claim,
)
from ledgerly.api.error_handlers import (
    general_exception_handler,
    ledgerly_exception_handler,
    store_exception_handler,
    validation_exception_handler,
)
from ledgerly.api.exceptions import ForbiddenError, InvalidInputError, LedgerlyException
from ledgerly.api.rate_limit import enforce_rate_limit
from ledgerly.api.schemas import (
    AddAdminRequest,
    CalculateHealthRequest,
    CreateCouponRequest,
    ModePinRequest,
    ResetPinRequest,
    ValidateCouponRequest,
)
from ledgerly.api.validators import (
    validate_coupon_code,
    validate_discount_percent,
    validate_limit,
    validate_mode,
    validate_symbols,
    validate_user_id,
)
from ledgerly.billing import get_subscription_status, handle_event, parse_event
from ledgerly.database.db_config import create_store, get_database_info
from ledgerly.database.store import Store, StoreError
from ledgerly.health import (
    calculate_all_users,
    calculate_user_health,
    classify_snapshot,
    get_health_history,
)
from ledgerly.pins import handle_pin_action, request_pin_reset, reset_pin
from ledgerly.pricing import (
    CoinGeckoClient,
    CryptoPricePoller,
    PriceCache,
    get_prices,
    make_asset_price_writer,
    make_crypto_assets_provider,
)
from ledgerly.pricing.quotes import get_coingecko_id
from ledgerly.utils.logging import get_logger, setup_logging

# Load environment variables from .env file
load_dotenv()

logger = get_logger("api")

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:8080,http://127.0.0.1:5173"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    if getattr(app.state, "store", None) is None:
        app.state.store = create_store()
    app.state.price_client = CoinGeckoClient()
    app.state.price_cache = PriceCache()
    app.state.notifier = WebhookNotifier()
    logger.info(f"Ledgerly API starting with {get_database_info(app.state.store)}")

    app.state.poller = None
    if os.getenv("CRYPTO_POLLER_ENABLED", "false").lower() == "true":
        app.state.poller = CryptoPricePoller(
            assets_provider=make_crypto_assets_provider(app.state.store),
            on_price_update=make_asset_price_writer(app.state.store),
            client=app.state.price_client,
            interval=float(os.getenv("CRYPTO_POLL_INTERVAL", "120")),
            cache=app.state.price_cache,
        )
        app.state.poller.start()

    yield

    if app.state.poller is not None:
        app.state.poller.stop()
    logger.info("Ledgerly API stopped")


app = FastAPI(
    title="Ledgerly API",
    description="Financial health, billing and alerts backend for Ledgerly",
    version=__version__,
    lifespan=lifespan,
)

# Add exception handlers
app.add_exception_handler(LedgerlyException, ledgerly_exception_handler)
app.add_exception_handler(StoreError, store_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all API requests and responses."""
    request_id = getattr(request.state, "request_id", "unknown")

    start_time = time.time()
    logger.info(f"Request: {request.method} {request.url.path} [{request_id}]")

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        f"Response: {request.method} {request.url.path} - {response.status_code} "
        f"({process_time * 1000:.1f}ms) [{request_id}]"
    )
    return response


# Request ID middleware (registered last so it runs first)
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to all requests for tracing."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# Dependencies

def get_store(request: Request) -> Store:
    return request.app.state.store


def get_notifier(request: Request) -> WebhookNotifier:
    return request.app.state.notifier


def get_price_client(request: Request) -> CoinGeckoClient:
    return request.app.state.price_client


def get_price_cache(request: Request) -> PriceCache:
    return request.app.state.price_cache


def get_webhook_secret() -> Optional[str]:
    return os.getenv("STRIPE_WEBHOOK_SECRET") or None


def _require_valid(result) -> None:
    if not result[0]:
        raise InvalidInputError(result[1])


# Endpoints

@app.get("/")
def root():
    """Root endpoint providing API information"""
    return {"name": "Ledgerly API", "version": __version__, "docs": "/docs"}


@app.get("/api/health")
def health_check(store: Store = Depends(get_store)):
    """Liveness check with database connectivity"""
    db_status = "connected"
    db_error = None
    try:
        store.ping()
    except StoreError as e:
        db_status = "error"
        db_error = e.message
        logger.error(f"Database health check failed: {e}")

    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {**get_database_info(store), "status": db_status, "error": db_error},
    }


@app.post("/api/financial-health/calculate")
def calculate_financial_health(
    request: CalculateHealthRequest,
    caller: User = Depends(get_caller),
    store: Store = Depends(get_store),
):
    """Recompute health snapshots for the caller, one user, or everyone.

    ``all_users`` and recomputing someone else's snapshots need the admin role
    or the service key.
    """
    privileged = caller.is_admin() or caller.is_service()

    if request.mode == "all_users":
        if not privileged:
            raise ForbiddenError("Admin role or service key required for all_users")
        batch = calculate_all_users(store)
        return batch.model_dump()

    user_id = request.user_id or caller.user_id
    if caller.is_service() and not request.user_id:
        raise InvalidInputError("user_id is required for service calls", field="user_id")
    _require_valid(validate_user_id(user_id))
    if user_id != caller.user_id and not privileged:
        raise ForbiddenError("Cannot recompute another user's health")

    enforce_rate_limit(caller.user_id, "calculate_health")
    result = calculate_user_health(store, user_id)
    return result.model_dump()


@app.get("/api/financial-health")
def get_financial_health(
    mode: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    """Snapshot history for the caller, newest first, with the latest classified"""
    is_valid, error, mode = validate_mode(mode)
    if not is_valid:
        raise InvalidInputError(error, field="mode")
    is_valid, error, limit = validate_limit(limit)
    if not is_valid:
        raise InvalidInputError(error, field="limit")

    snapshots = get_health_history(store, current_user.user_id, mode, limit)
    latest = None
    if snapshots:
        latest = {
            **snapshots[0].model_dump(by_alias=True),
            "classification": classify_snapshot(snapshots[0]),
        }

    return {
        "user_id": current_user.user_id,
        "mode": mode,
        "latest": latest,
        "snapshots": [s.model_dump(by_alias=True) for s in snapshots],
    }


@app.get("/api/subscription")
def get_subscription(
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    return get_subscription_status(store, current_user.user_id)


@app.post("/api/billing/webhook")
async def billing_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    store: Store = Depends(get_store),
    secret: Optional[str] = Depends(get_webhook_secret),
):
    """Payment processor webhook; the signature header authenticates the call"""
    payload = await request.body()
    event = parse_event(payload, stripe_signature, secret)
    handled = await run_in_threadpool(handle_event, store, event)
    return {"received": True, "handled": handled}


@app.post("/api/coupons/validate")
def validate_coupon_endpoint(
    request: ValidateCouponRequest,
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    enforce_rate_limit(current_user.user_id, "validate_coupon")
    is_valid, error, code = validate_coupon_code(request.code)
    if not is_valid:
        return {"valid": False, "error": error}
    return validate_coupon(store, code)


@app.post("/api/admin/coupons", status_code=201)
def create_coupon_endpoint(
    request: CreateCouponRequest,
    current_user: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    is_valid, error, code = validate_coupon_code(request.code)
    if not is_valid:
        raise InvalidInputError(error, field="code")
    is_valid, error = validate_discount_percent(request.discount_percent)
    if not is_valid:
        raise InvalidInputError(error, field="discount_percent")

    coupon = create_coupon(
        store,
        code,
        request.discount_percent,
        valid_until=request.valid_until,
        max_uses=request.max_uses,
        created_by=current_user.user_id,
    )
    return {"success": True, "coupon": coupon}


@app.get("/api/admin/stats")
def admin_stats(
    current_user: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    return get_dashboard_stats(store)


@app.get("/api/admin/users")
def admin_users(
    current_user: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    return {"users": list_users_with_subscriptions(store)}


@app.get("/api/admin/subscriptions")
def admin_subscriptions(
    current_user: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    return list_subscriptions(store)


@app.post("/api/admin/admins")
def add_admin(
    request: AddAdminRequest,
    current_user: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Grant the admin role to the user registered under an email"""
    result = promote_to_admin(store, request.email)
    if store.backend == "firestore":
        set_role_claim(result["user_id"], "admin")
    logger.info(f"Admin {current_user.user_id} promoted {result['user_id']}")
    return result


@app.post("/api/mode-pin")
def mode_pin(
    request: ModePinRequest,
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    """Create, validate or update the caller's mode-switch PIN"""
    return handle_pin_action(store, current_user.user_id, request.action, request.pin, request.new_pin)


@app.post("/api/mode-pin/reset-request")
def mode_pin_reset_request(
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    enforce_rate_limit(current_user.user_id, "pin_reset_request")
    return request_pin_reset(store, current_user.user_id, notifier)


@app.post("/api/mode-pin/reset")
def mode_pin_reset(
    request: ResetPinRequest,
    store: Store = Depends(get_store),
):
    """Redeem a reset link; the one-time token authenticates the call"""
    return reset_pin(store, request.token, request.new_pin)


@app.post("/api/alerts/spending-limit")
def spending_limit_alerts(
    caller: User = Depends(require_service_or_admin),
    store: Store = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    result = check_spending_limits(store, notifier)
    return {"message": "Spending limit check completed", **result}


@app.post("/api/alerts/recurring-expenses")
def recurring_expense_alerts(
    caller: User = Depends(require_service_or_admin),
    store: Store = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    result = check_recurring_expenses(store, notifier)
    return {"message": "Check completed", **result}


@app.get("/api/crypto/prices")
async def crypto_prices(
    symbols: Optional[str] = Query(None, description="Comma-separated tickers, e.g. BTC,ETH"),
    current_user: User = Depends(get_current_user),
    client: CoinGeckoClient = Depends(get_price_client),
    cache: PriceCache = Depends(get_price_cache),
):
    """BRL quotes for the requested tickers"""
    is_valid, error, symbol_list = validate_symbols(symbols)
    if not is_valid:
        raise InvalidInputError(error, field="symbols")
    enforce_rate_limit(current_user.user_id, "crypto_prices")

    coin_ids = {symbol: get_coingecko_id(symbol) for symbol in symbol_list}
    quotes = await get_prices(client, cache, list(dict.fromkeys(coin_ids.values())))

    return {
        "currency": "BRL",
        "prices": {
            symbol: quotes[coin_id].model_dump(mode="json")
            for symbol, coin_id in coin_ids.items()
            if coin_id in quotes
        },
        "missing": [symbol for symbol, coin_id in coin_ids.items() if coin_id not in quotes],
    }
