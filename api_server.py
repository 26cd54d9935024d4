"""
FastAPI Server for the Affiliate Leads Portal
Serves the JSON API used by the web frontend
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from config.config import validate_config, ENVIRONMENT, WEBAPP_URL
from config.logging import setup_logging
from src.core.exceptions import LeadPortalError
from src.database.engine import check_connection, dispose_engine, get_missing_tables
from src.api.router import router as api_router
from src.api.rate_limit import limiter

# Setup logging at module level (must run before app creation)
# This ensures logging works when uvicorn imports the module
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events
    """
    # Startup
    logger.info(f"Starting Leads Portal API Server ({ENVIRONMENT})...")

    # NOTE: Database tables managed by Alembic migrations
    # Run: alembic upgrade head

    yield

    # Shutdown
    logger.info("Shutting down Leads Portal API Server...")

    await dispose_engine()
    logger.info("Database connections closed")


app = FastAPI(
    title="Affiliate Leads Portal API",
    description="Lead submission, review and affiliate payouts",
    version="1.0.0",
    lifespan=lifespan,
)

# Add limiter state to app
app.state.limiter = limiter

# Rate limit error handler and global limit (API_RATE_LIMIT in .env)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# CORS for the web frontend
# SECURITY: exact origins only, no wildcards
allowed_origins = [
    "http://localhost:3000",  # Local development
    "http://127.0.0.1:3000",  # Alternative localhost
]

if WEBAPP_URL and WEBAPP_URL not in allowed_origins:
    allowed_origins.append(WEBAPP_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# SECURITY: Security Headers Middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """
    Add security headers to every response

    Headers:
    - X-Content-Type-Options: block MIME sniffing
    - X-Frame-Options: block clickjacking
    - Referrer-Policy: limit referrer leakage
    - Permissions-Policy: disable unused browser features
    - Strict-Transport-Security: production HTTPS only
    """
    response = await call_next(request)

    is_production = ENVIRONMENT == "production"

    # JSON API only, nothing to load
    response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = (
        "geolocation=(), "
        "microphone=(), "
        "camera=(), "
        "payment=(), "
        "usb=()"
    )

    if is_production and request.url.scheme == "https":
        # max-age=31536000 (1 year), includeSubDomains, preload
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains; preload"
        )

    return response


# Mount the API router under /api
app.include_router(api_router, prefix="/api")


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint
    """
    return {
        "service": "Affiliate Leads Portal API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


# Health check endpoint
@app.get("/health")
async def health():
    """
    Health check endpoint
    """
    return {"status": "healthy"}


@app.get("/health/database")
async def database_health():
    """
    Database status: reachable, and which application tables are missing

    Returns:
        {"connected": true, "initialized": false, "missing_tables": ["payout_requests"]}
    """
    if not await check_connection():
        return JSONResponse(
            status_code=503,
            content={"connected": False, "initialized": False, "missing_tables": []},
        )

    missing = await get_missing_tables()
    if missing:
        logger.warning(f"Database not initialised, missing tables: {missing}")

    return {
        "connected": True,
        "initialized": not missing,
        "missing_tables": missing,
    }


# Error handler for HTTPException (must be before generic Exception handler)
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTPException properly - return correct status code and detail
    """
    # Log 4xx as warning, 5xx as error
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {exc.detail}")

    content = exc.detail if isinstance(exc.detail, dict) else {"detail": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=content
    )


# Domain errors that escape a router keep their own status code
@app.exception_handler(LeadPortalError)
async def lead_portal_exception_handler(request: Request, exc: LeadPortalError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message}
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
            "success": False,
            "error": "Internal server error",
            "detail": str(exc) if getattr(app, 'debug', False) else "An error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    # Validate configuration
    try:
        validate_config()
    except ValueError as e:
        logger.error(str(e))
        raise SystemExit(1)

    logger.info("Configuration validated successfully")

    # SECURITY: listen on localhost only, exposed through the reverse proxy
    uvicorn.run(
        "api_server:app",
        host="127.0.0.1",
        port=8003,
        reload=ENVIRONMENT == "development",
        log_level="info",
    )
