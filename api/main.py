"""
api/main.py -- FastAPI application entry point for SessionGate.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost, i.e. reverse registration order):
  1. log_requests                -- method, path, status, latency
  2. CORSMiddleware              -- credentials allowed for the UI origin only
  3. SlowAPIMiddleware           -- per-route rate limits from api.limiter
  4. SessionValidationMiddleware -- resets identity, gates protected paths

Lifespan opens the auth database, builds the stores and the per-provider
OAuth flows on startup, and disposes the engine on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.hooks import build_oauth_flows
from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.session import router as session_router
from auth.errors import InvalidCredential, StorageError
from auth.middleware import SessionValidationMiddleware
from auth.store import SessionStore, UserStore, open_engine
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sessiongate.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the auth stores and OAuth flows; dispose the engine on shutdown.

    open_engine() raises StorageError when the database is unreachable, which
    aborts startup -- the service cannot answer any session question without it.
    """
    logger.info("SessionGate API starting up")
    engine = open_engine(_settings.database_url)
    app.state.user_store = UserStore(engine)
    app.state.session_store = SessionStore(engine, _settings.session_expiration_seconds)
    app.state.oauth_flows = build_oauth_flows(_settings, app.state.user_store)
    logger.info("Auth initialized (providers=%s)", ",".join(app.state.oauth_flows) or "none")

    yield

    engine.dispose()
    logger.info("SessionGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SessionGate API",
    description="Session issuance and validation with third-party OAuth2 login.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack -- add_middleware() wraps, so the last one added runs first.
# ---------------------------------------------------------------------------

app.add_middleware(
    SessionValidationMiddleware,
    protected_paths=_settings.protected_paths,
    cookie_name=_settings.session_cookie,
    unauthorized_redirect=_settings.unauthorized_redirect,
)

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[_settings.ui_url],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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
app.include_router(session_router, prefix="/api/v1", tags=["Session"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# JSON errors share the ErrorResponse envelope. No handler ever puts exception
# text from storage or providers into a response body.
# ---------------------------------------------------------------------------


@app.exception_handler(InvalidCredential)
async def invalid_credential_handler(request: Request, exc: InvalidCredential) -> RedirectResponse:
    """A missing or dead session always means: go sign in. The reason is not disclosed."""
    return RedirectResponse(f"{_settings.ui_url}/signin", status_code=302)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    """Storage outages are 503, distinct from any authentication outcome."""
    logger.error("Storage unavailable on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(
            error=ErrorDetail(code="storage_unavailable", message="Service temporarily unavailable.")
        ).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(code="rate_limited", message="Too many requests.", detail=str(exc))
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Structured dict details are passed through as the error field unchanged."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback server-side, return a generic 500."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(code="internal_error", message="An unexpected error occurred.")
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint -- not rate limited, not session gated.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
