"""Autoquote FastAPI application.

Endpoints
---------
POST   /v1/quotes                               create a quoted policy
GET    /v1/quotes/{policy_id}                   quote with coverages and expiration
GET    /v1/quotes/reference/{policy_number}     quote by Q-YYYYMMDD-XXXXXX reference
PUT    /v1/quotes/{policy_id}/coverages         replace coverage selections
DELETE /v1/quotes/{policy_id}/coverages         remove all coverages
GET    /v1/policies/{policy_id}/coverages       raw coverage detail rows
PATCH  /v1/policies/{policy_id}/status          set policy status
GET    /v1/health                               system health check

Authentication is via the ``X-API-Key`` header, rate limited per key with
an in-memory sliding window (see :mod:`autoquote.api.security`).
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from autoquote import __version__
from autoquote.api.schemas import ErrorResponse, HealthResponse
from autoquote.api.security import require_api_key
from autoquote.db import Coverage, Policy, Product
from autoquote.quoting import routes as quoting_routes
from autoquote.quoting.errors import CoverageNotFoundError, PolicyNotFoundError, QuotingError
from autoquote.quoting.policy_service import STATUS_QUOTED
from autoquote.quoting.quote_service import QuoteService

logger = logging.getLogger("autoquote.api")

# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------

_session_factory: async_sessionmaker[AsyncSession] | None = None


def configure(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Bind the API's services to ``engine`` and return the session factory."""
    global _session_factory
    _session_factory = async_sessionmaker(engine, expire_on_commit=False)
    quoting_routes.set_quote_service(QuoteService(_session_factory))
    return _session_factory


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle handler.

    On startup: binds the quote service to the shared engine.  On shutdown:
    disposes the connection pool.
    """
    from autoquote.db import engine

    logger.info("Autoquote API starting up (version=%s)", __version__)
    configure(engine)
    logger.info("QuoteService ready")

    yield

    logger.info("Autoquote API shutting down")
    quoting_routes.set_quote_service(None)
    await engine.dispose()
    logger.info("Database pool disposed")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Autoquote Personal Auto Quoting API",
    description=(
        "Quote creation, coverage assignment, and policy status servicing "
        "for personal auto insurance."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every inbound request with timing."""
    start = time.monotonic()
    response = await call_next(request)
    elapsed_ms = (time.monotonic() - start) * 1000
    logger.info(
        "%s %s → %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(CoverageNotFoundError)
async def coverage_not_found_handler(request: Request, exc: CoverageNotFoundError) -> JSONResponse:
    return _error(
        422,
        ErrorResponse(error=exc.code, detail=str(exc), coverage_code=exc.coverage_code),
    )


@app.exception_handler(PolicyNotFoundError)
async def policy_not_found_handler(request: Request, exc: PolicyNotFoundError) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, ErrorResponse(error=exc.code, detail=str(exc)))


@app.exception_handler(QuotingError)
async def quoting_error_handler(request: Request, exc: QuotingError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, ErrorResponse(error=exc.code, detail=str(exc)))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity violation on %s %s: %s", request.method, request.url.path, exc.orig)
    return _error(
        status.HTTP_409_CONFLICT,
        ErrorResponse(error="integrity_error", detail="Request conflicts with existing data."),
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return _error(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        ErrorResponse(error="database_error", detail="Database unavailable."),
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(quoting_routes.router, dependencies=[Depends(require_api_key)])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get(
    "/v1/health",
    response_model=HealthResponse,
    summary="System health check",
    tags=["System"],
)
async def health_check(
    _key: str = Depends(require_api_key),
) -> HealthResponse:
    """Return database reachability and reference/quote row counts."""
    if _session_factory is None:
        return HealthResponse(status="error", version=__version__, database="not_initialised")

    try:
        async with _session_factory() as session:
            products = await session.scalar(select(func.count()).select_from(Product))
            coverages = await session.scalar(select(func.count()).select_from(Coverage))
            open_quotes = await session.scalar(
                select(func.count())
                .select_from(Policy)
                .where(Policy.status_code == STATUS_QUOTED)
            )
        return HealthResponse(
            status="ok",
            version=__version__,
            database="ok",
            products_loaded=int(products or 0),
            coverages_loaded=int(coverages or 0),
            open_quotes=int(open_quotes or 0),
        )

    except Exception as exc:
        logger.exception("Health check database error: %s", exc)
        return HealthResponse(status="error", version=__version__, database="error")
