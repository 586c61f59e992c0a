"""
BoardScan Backend — FastAPI Application Factory
=================================================

What:  Builds the FastAPI app: logging, lifespan, middleware, error
       handlers and routers.
Who:   uvicorn (`uvicorn boardscan.main:app`) and the API tests.

Application Architecture:
    ┌────────────────────────────────────────────────────────────┐
    │                        FastAPI App                         │
    │                                                            │
    │  Middleware:  Rate Limit → Request ID → Access Log → GZip  │
    │               → CORS                                       │
    │                                                            │
    │  Routers:     scans · dashboard · lots · activity ·        │
    │               board-names · users · health                 │
    │                                                            │
    │  Errors:      BoardScanError subclasses → JSON error body  │
    │               {error, message, details, request_id}        │
    └────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config validation → storage dir → admin bootstrap
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Dict, Optional, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from boardscan import __version__
from boardscan.config import settings
from boardscan.database import async_session_factory, dispose_engine
from boardscan.exceptions import (
    AuthenticationError,
    BoardScanError,
    CircuitBreakerOpenError,
    ConflictError,
    DatabaseError,
    FileStorageError,
    ForbiddenError,
    NotFoundError,
    RateLimitExceededError,
    UpstreamFailureError,
    ValidationError,
)
from boardscan.middleware.logging import RequestLoggingMiddleware
from boardscan.middleware.rate_limit import RateLimitMiddleware
from boardscan.middleware.request_id import RequestIDMiddleware, request_id_var
from boardscan.routes import activity, board_names, dashboard, health, lots, scans, users
from boardscan.security import hash_password
from boardscan.services.user_service import user_service

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Root logger to stdout at LOG_LEVEL; chatty libraries held at WARNING."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "google"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

async def bootstrap_admin() -> None:
    """
    Create the configured admin account once.

    Runs on every startup; ensure_admin_user leaves an existing account
    alone, so restarts are harmless.
    """
    if not (settings.admin_email and settings.admin_password):
        logger.info("Admin bootstrap disabled (ADMIN_EMAIL/ADMIN_PASSWORD not set)")
        return

    async with async_session_factory() as session:
        try:
            await user_service.ensure_admin_user(
                session,
                email=settings.admin_email,
                password_hash=hash_password(settings.admin_password),
                first_name=settings.admin_first_name,
                last_name=settings.admin_last_name,
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("BoardScan Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: health checks and non-scan endpoints still work
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())
    logger.info("Application timezone: %s", settings.app_timezone)

    try:
        await bootstrap_admin()
    except Exception as e:
        logger.error("Admin bootstrap failed: %s", str(e), exc_info=True)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("BoardScan Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

# Most specific class first; handlers are looked up along the MRO anyway
ERROR_STATUS: Dict[Type[BoardScanError], tuple] = {
    ValidationError: (400, "validation_error"),
    AuthenticationError: (401, "unauthorized"),
    ForbiddenError: (403, "forbidden"),
    NotFoundError: (404, "not_found"),
    ConflictError: (409, "conflict"),
    RateLimitExceededError: (429, "rate_limit_exceeded"),
    CircuitBreakerOpenError: (503, "service_unavailable"),
    UpstreamFailureError: (503, "upstream_failure"),
    FileStorageError: (500, "server_error"),
    DatabaseError: (500, "server_error"),
}

# Context for these stays in the logs; clients only get the message
_PRIVATE_CONTEXT = (DatabaseError, FileStorageError)


def _retry_after(exc: BoardScanError) -> Optional[int]:
    return getattr(exc, "retry_after", None)


def register_exception_handlers(app: FastAPI) -> None:

    async def handle_app_error(request: Request, exc: BoardScanError) -> JSONResponse:
        rid = request_id_var.get("")
        status, code = next(
            (ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS),
            (500, "server_error"),
        )

        if status >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        elif status != 404:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)

        content = {"error": code, "message": exc.message, "request_id": rid}
        if isinstance(exc, DatabaseError):
            content["message"] = "An internal error occurred. Please try again later."
        if exc.context and not isinstance(exc, _PRIVATE_CONTEXT):
            content["details"] = exc.context

        headers = {}
        retry_after = _retry_after(exc)
        if retry_after:
            headers["Retry-After"] = str(retry_after)
        return JSONResponse(status_code=status, content=content, headers=headers)

    for exc_class in ERROR_STATUS:
        app.add_exception_handler(exc_class, handle_app_error)
    app.add_exception_handler(BoardScanError, handle_app_error)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack traces go to the log only, never into the response."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="BoardScan API",
        description=(
            "Circuit-board scan triage: classify board photos with Gemini Vision, "
            "track scan records, batch them into lots and report on activity."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    for module in (scans, dashboard, lots, activity, board_names, users, health):
        app.include_router(module.router)

    return app


app = create_app()
