"""
FastAPI Server for the Trading Bot Platform
Serves the API for the web frontend
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from config.config import validate_config, API_RATE_LIMIT, CORS_ORIGINS, ENVIRONMENT, FRONTEND_URL
from config.logging import setup_logging
from config.sentry import init_sentry
from src.core.exceptions import PlatformError
from src.database.engine import check_connection, dispose_engine
from src.api.router import router as api_router
from src.tasks.platform_scheduler import platform_scheduler

# Setup logging at module level (must run before app creation)
# This ensures logging works when uvicorn imports the module
setup_logging()
init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events
    """
    logger.info("Starting Bot Platform API Server...")

    # NOTE: Database tables managed by Alembic migrations
    # Run: alembic upgrade head

    # Withdrawal confirmations + auto-stop of expired positions
    platform_scheduler.start()

    yield

    logger.info("Shutting down Bot Platform API Server...")

    platform_scheduler.stop()

    await dispose_engine()
    logger.info("Database connections closed")


# Rate limiter
# SECURITY: per-IP limit, stricter per-route limits live in the routers
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[API_RATE_LIMIT],
    storage_uri="memory://",
)

app = FastAPI(
    title="Trading Bot Platform API",
    description="Wallets, trading bots, referrals and KYC",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# CORS: exact origins only, no wildcards
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

if FRONTEND_URL and FRONTEND_URL not in allowed_origins:
    allowed_origins.append(FRONTEND_URL)

for origin in CORS_ORIGINS:
    if origin not in allowed_origins:
        allowed_origins.append(origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """
    Security headers for every response

    - X-Content-Type-Options: no MIME sniffing
    - X-Frame-Options: no framing by other origins
    - Referrer-Policy: origin only for cross-origin requests
    - Strict-Transport-Security: production over HTTPS only
    """
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

    if ENVIRONMENT == "production" and request.url.scheme == "https":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response


# All API endpoints under /api
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "service": "Trading Bot Platform API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Liveness plus a database round trip (503 when the database is down)"""
    if await check_connection():
        return {"status": "healthy", "database": "ok"}
    return JSONResponse(status_code=503, content={"status": "degraded", "database": "unavailable"})


# Domain errors raised by services (insufficient funds, KYC, disabled bots...)
@app.exception_handler(PlatformError)
async def platform_error_handler(request: Request, exc: PlatformError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Error handler for HTTPException (must be before generic Exception handler)
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTPException properly - return correct status code and detail
    """
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {exc.detail}")

    content = exc.detail if isinstance(exc.detail, dict) else {"detail": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=content
    )


# Error handler for unexpected exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unexpected errors
    """
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "code": "internal_error",
        }
    )


if __name__ == "__main__":
    import uvicorn

    if not validate_config():
        logger.error("Configuration validation failed. Please check your .env file.")
        exit(1)

    logger.info("Configuration validated successfully")

    # SECURITY: listen on localhost only, public access through the reverse proxy
    uvicorn.run(
        "api_server:app",
        host="127.0.0.1",
        port=8000,
        reload=ENVIRONMENT == "development",
        log_level="info",
    )
