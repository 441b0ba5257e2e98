"""
api/main.py -- FastAPI application entry point for the job board API.

Run with:      uvicorn asgi:app --reload
Docs:          /docs (Swagger UI) and /redoc, generated from the route models

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (stores, revocation registry, storage backend, purge
task) and shutdown (cancel purge task, close DB connections) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.applications import router as applications_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.employers import router as employers_router
from api.routes.v1.jobs import router as jobs_router
from api.routes.v1.uploads import router as uploads_router
from api.routes.v1.users import router as users_router
from auth.revocation import RevocationRegistry
from auth.store import PrincipalStore
from board.store import BoardStore
from core.config import get_settings
from core.storage import get_storage

__version__ = "1.0.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("jobboard.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Drop expired revocation entries every REVOCATION_PURGE_SECONDS.

    Lookups already evict lazily; this bounds memory for tokens that are
    revoked and then never presented again. CancelledError from task.cancel()
    during shutdown propagates out of asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(settings.revocation_purge_seconds)
        removed = app.state.revocations.purge_expired()
        if removed:
            logger.info("Purged %d expired revocation entries", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create application-level resources before the first request; release them on shutdown.

    The purge task starts last because it references app.state.revocations.
    """
    logger.info("Job board API starting up")
    app.state.principal_store = PrincipalStore(settings.database_url)
    app.state.board_store = BoardStore(settings.database_url)
    logger.info("Database initialized")
    app.state.revocations = RevocationRegistry()
    app.state.storage = get_storage(settings)
    if settings.storage_backend == "local":
        Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    logger.info("Storage backend: %s", settings.storage_backend)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.principal_store.close()
    app.state.board_store.close()
    logger.info("Job board API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    description="Job board backend: accounts, job postings, applications and moderation.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_host_list)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Captures wall-clock time around call_next so every response is logged with
# its latency.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(jobs_router, prefix="/api/v1", tags=["Jobs"])
app.include_router(applications_router, prefix="/api/v1", tags=["Applications"])
app.include_router(employers_router, prefix="/api/v1", tags=["Employers"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])
app.include_router(uploads_router, prefix="/api/v1", tags=["Uploads"])

# Uploaded media for the local storage backend. check_dir=False because the
# directory is created in lifespan, after this module is imported.
if settings.storage_backend == "local":
    app.mount(
        settings.media_url_prefix,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="media",
    )


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=code, message=message, detail=detail).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests. Please try again later.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 validation_error with the first failing field named in the message."""
    errors = exc.errors()
    message = "Request validation failed."
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", message)
    return _error(400, "validation_error", message, str(errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail={"code", "message"}. When
    detail is already that dict, lift it into the envelope rather than
    stringifying it. Headers (e.g. WWW-Authenticate) are preserved.
    """
    if isinstance(exc.detail, dict):
        response = _error(
            exc.status_code,
            exc.detail.get("code", f"http_{exc.status_code}"),
            exc.detail.get("message", ""),
            exc.detail.get("detail"),
        )
    else:
        code = "not_found" if exc.status_code == 404 else f"http_{exc.status_code}"
        response = _error(exc.status_code, code, str(exc.detail))
    for name, value in (getattr(exc, "headers", None) or {}).items():
        response.headers[name] = value
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is logged only, never written to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
