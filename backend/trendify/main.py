"""
Trendify - Backend API
Storefront and back-office API: catalog, cart, checkout, Paystack payments,
orders, returns, reviews, coupons, delivery and drivers
"""
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError

# Load environment variables
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from trendify.api import admin, cart, coupons, cron, delivery, orders, payments, products, returns, reviews, webhooks
from trendify.core.config import get_settings
from trendify.core.database import check_db_connection, init_db
from trendify.core.errors import RateLimitExceededError, TrendifyError
from trendify.core.logging_config import setup_logging
from trendify.core.rate_limit import RateLimitMiddleware, limit_headers

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.API_TITLE} {settings.API_VERSION} started")
    yield


# Create FastAPI application
app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
    lifespan=lifespan,
)

app.add_middleware(RateLimitMiddleware)

# CORS (web storefront and mobile clients)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
)


# ============================================================================
# Error handling
# ============================================================================

@app.exception_handler(TrendifyError)
async def trendify_error_handler(request: Request, exc: TrendifyError):
    """Map domain errors to their HTTP status"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = limit_headers(exc.limit, 0, exc.retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_type": type(exc).__name__},
        headers=headers,
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=409,
        content={"detail": "Conflicting data", "error_type": "IntegrityError"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": "InternalError"},
    )


# Include API routers
app.include_router(products.router, prefix="/api/v1/products", tags=["Products"])
app.include_router(cart.router, prefix="/api/v1/cart", tags=["Cart"])
app.include_router(coupons.router, prefix="/api/v1/coupons", tags=["Coupons"])
app.include_router(delivery.router, prefix="/api/v1/delivery", tags=["Delivery"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(payments.router, prefix="/api/v1/payments", tags=["Payments"])
app.include_router(webhooks.router, prefix="/api/v1/webhooks", tags=["Webhooks"])
app.include_router(returns.router, prefix="/api/v1/returns", tags=["Returns"])
app.include_router(reviews.router, prefix="/api/v1/reviews", tags=["Reviews"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])
app.include_router(cron.router, prefix="/api/v1/cron", tags=["Cron"])


@app.get("/")
async def root():
    """Root endpoint - API status"""
    return {
        "message": "Trendify API",
        "status": "online",
        "version": settings.API_VERSION,
        "description": settings.API_DESCRIPTION,
    }


@app.get("/health")
async def health():
    """Health check endpoint for monitoring - tests database connectivity"""
    start_time = time.time()

    db_status = "unknown"
    db_latency_ms = None
    db_error = None

    try:
        # Fast check: a single attempt, no backoff
        db_latency_ms = check_db_connection(max_retries=1)
        db_status = "connected"
    except OperationalError as e:
        db_status = "disconnected"
        db_error = str(e.orig)

    total_latency_ms = round((time.time() - start_time) * 1000, 2)

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": "trendify-api",
        "version": settings.API_VERSION,
        "database": {
            "status": db_status,
            "latency_ms": db_latency_ms,
            "error": db_error,
        },
        "total_latency_ms": total_latency_ms,
        "payments_configured": bool(settings.PAYSTACK_SECRET_KEY),
    }
