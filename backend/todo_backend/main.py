"""
Todo Backend — FastAPI Application Factory
===========================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires settings, the JWKS key resolver, the AuthResolver,
       middleware, exception handlers and routers into one app.
Who:   uvicorn (`uvicorn todo_backend.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────┐ ┌──────────┐          │
    │  │  Req ID  │→│ Access Log  │→│   CORS   │          │
    │  └──────────┘ └─────────────┘ └──────────┘          │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌─────────────────┐ ┌──────────┐  │
    │  │ /api/todos   │ │ /api/me, config │ │ health   │  │
    │  └──────────────┘ └─────────────────┘ └──────────┘  │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ TodoAppError→status │ bad input→400 │ *→500  │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Report configuration problems (logged, not fatal)
    3. In mock mode, log a bearer token per predefined identity

    Shutdown:
    1. Close the JWKS HTTP client
    2. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from todo_backend import __version__
from todo_backend.auth.dependencies import pending_anonymous_cookie
from todo_backend.auth.keys import build_key_resolver
from todo_backend.auth.mock import log_mock_tokens
from todo_backend.auth.resolver import AuthResolver
from todo_backend.config import Settings, settings
from todo_backend.database import dispose_engine
from todo_backend.exceptions import (
    ConfigurationError,
    InvalidCredentialError,
    TodoAppError,
    ValidationError,
)
from todo_backend.middleware.logging import RequestLoggingMiddleware
from todo_backend.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware, request_id_var
from todo_backend.routes import health, todos, users
from todo_backend.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s on stdout.
    Per-request correlation comes from the access log line, which carries
    the request ID and user id.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app_settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("Todo Backend %s starting (environment=%s)", __version__, app_settings.environment)

    try:
        app_settings.validate_for_production()
    except ValueError as e:
        # Anonymous users are still served without JWKS
        logger.error("Configuration error: %s", e)

    if app_settings.mock_auth_enabled:
        log_mock_tokens()

    logger.info("Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Todo Backend shutting down...")
    if app.state.key_resolver is not None:
        await app.state.key_resolver.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    request: Request,
    status_code: int,
    message: str,
    code: str,
    details: Optional[list] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=message,
        code=code,
        details=details,
        request_id=request_id_var.get("") or None,
    )
    response = JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )
    # The anonymous user row is committed before the route runs
    cookie = pending_anonymous_cookie(request)
    if cookie is not None:
        cookie.apply(response)
    return response


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to JSON error bodies.

    Handler hierarchy:
        InvalidCredentialError  → 401 + WWW-Authenticate: Bearer
        ConfigurationError      → 500 (logged at ERROR for the operator)
        ValidationError         → 500, row index and detail logged only
        TodoAppError (others)   → exc.status_code (404 / 500)
        RequestValidationError  → 400 with field errors
        Exception (fallback)    → 500 "Internal server error"

    Error responses also set the anonymous cookie minted for the request.
    Bodies never contain stack traces, SQL or validation internals; the
    exception context is logged server-side only.
    """

    @app.exception_handler(InvalidCredentialError)
    async def handle_invalid_credentials(request: Request, exc: InvalidCredentialError):
        logger.warning(
            "[%s] Credential rejected: %s",
            request_id_var.get(""),
            exc.reason,
        )
        return _error_response(
            request,
            exc.status_code,
            exc.message,
            exc.code,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError):
        logger.error(
            "[%s] Configuration error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(request, exc.status_code, exc.message, exc.code)

    @app.exception_handler(ValidationError)
    async def handle_row_validation_error(request: Request, exc: ValidationError):
        logger.error(
            "[%s] %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(request, exc.status_code, "Internal server error", exc.code)

    @app.exception_handler(TodoAppError)
    async def handle_app_error(request: Request, exc: TodoAppError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.info("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return _error_response(request, exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.info("[%s] Invalid request: %s", request_id_var.get(""), exc.errors())
        return _error_response(
            request,
            400,
            "Invalid request",
            "validation_error",
            details=[
                {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                for err in exc.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            exc,
            exc_info=True,
        )
        return _error_response(request, 500, "Internal server error", "internal_error")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(app_settings: Settings = settings) -> FastAPI:
    """
    Assemble the application for the given settings.

    The key resolver and AuthResolver are built here, not in the lifespan,
    so an app driven without lifespan events (ASGI test transports) is
    fully wired.
    """
    app = FastAPI(
        title="Todo API",
        description="Per-user todo lists with anonymous cookie or JWT identities.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Auth wiring ───────────────────────────────────────────────────────
    key_resolver = build_key_resolver(app_settings)
    app.state.settings = app_settings
    app.state.key_resolver = key_resolver
    app.state.auth_resolver = AuthResolver.from_settings(app_settings, key_resolver)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,  # anonymous_user_id cookie
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(todos.router)
    app.include_router(users.router)
    app.include_router(health.router)

    return app


app = create_app()
