"""
Price History Crawler API
FastAPI Backend Entry Point
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apps.api.routers.crawl import router as crawl_router
from apps.api.routers.health import API_VERSION, router as health_router
from pricecrawler.progress import SessionRegistry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

URLS_REQUIRED = "URLs array is required"


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Creates the session registry and waits for running crawls on shutdown.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("PRICE HISTORY CRAWLER API")
    logger.info("=" * 60)
    logger.info(f"Environment: {os.environ.get('PYTHON_ENV', 'development')}")
    logger.info(f"Port: {os.environ.get('PORT', '3001')}")

    app.state.registry = SessionRegistry()
    app.state.tasks = set()

    logger.info("API started successfully")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("Shutting down API...")
    pending = list(app.state.tasks)
    if pending:
        logger.info(f"Waiting for {len(pending)} running crawl(s)")
        await asyncio.gather(*pending, return_exceptions=True)


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Price History Crawler API",
    description="""
    ## Price History Crawler API

    Crawls paginated price history tables of property listings with a pool
    of headless browsers and streams per-URL progress as server-sent events.

    ### Endpoints
    - `POST /crawl` - start a batch crawl, returns an event stream
    - `GET /api/sessions` - crawl sessions still running
    - `GET /api/health` - health check
    """,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)


# =============================================================================
# CORS Middleware
# =============================================================================

is_production = os.environ.get("PYTHON_ENV", "").lower() in ("production", "prod")
cors_origins_env = os.environ.get("CORS_ORIGINS", "")

if cors_origins_env and cors_origins_env != "*":
    CORS_ORIGINS = [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
elif is_production:
    # Production without explicit config: same-origin only
    CORS_ORIGINS = []
    logger.warning("CORS: No origins configured for production. Set CORS_ORIGINS to allow browsers.")
else:
    CORS_ORIGINS = ["*"]
    logger.info("CORS: Development mode - allowing all origins")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True if CORS_ORIGINS != ["*"] else False,  # Can't use credentials with "*"
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Cache-Control"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reject malformed requests with 400 and the failing fields."""
    errors = []
    urls_invalid = False
    for error in exc.errors():
        loc = [str(part) for part in error["loc"]]
        # A missing or unparsable body means there are no URLs either.
        if "urls" in loc or loc == ["body"]:
            urls_invalid = True
        errors.append({
            "field": ".".join(loc),
            "message": error["msg"],
            "type": error["type"]
        })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": URLS_REQUIRED if urls_invalid else "Invalid request",
            "detail": "Validation error",
            "errors": errors
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    # Don't expose internal errors in production
    if is_production:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"}
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": str(exc),
            "type": type(exc).__name__
        }
    )


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(crawl_router)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", include_in_schema=False)
async def root():
    return {
        "name": "Price History Crawler API",
        "version": API_VERSION,
        "documentation": "/docs",
        "health": "/api/health"
    }


# =============================================================================
# Run with Uvicorn (for local development)
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 3001))
    host = os.environ.get("HOST", "0.0.0.0")
    reload = os.environ.get("PYTHON_ENV") != "production"

    uvicorn.run(
        "apps.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )
