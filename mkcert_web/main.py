"""
FastAPI application factory for the mkcert web console.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .api import auth, certificates, files, notifications, system
from .config import Settings, settings as default_settings
from .database import init_db
from .exceptions import ConsoleError
from .services import CertificateStore, EmailService, MonitoringService
from .utils.rate_limit import limiter, rate_limit_exceeded_handler
from .utils.runner import CommandRunner

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


def register_exception_handlers(app: FastAPI):
    """Translate domain and framework errors into the JSON error envelope"""

    @app.exception_handler(ConsoleError)
    async def console_error_handler(request: Request, exc: ConsoleError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return _error(exc.status_code, str(exc), **exc.payload())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _error(404, "Route not found", path=request.url.path, method=request.method)
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}" for err in exc.errors()]
        return _error(400, "Validation failed", details=details)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")


def create_app(settings: Optional[Settings] = None, runner: Optional[CommandRunner] = None) -> FastAPI:
    settings = settings or default_settings
    runner = runner or CommandRunner(timeout=settings.COMMAND_TIMEOUT, max_output=settings.COMMAND_MAX_OUTPUT)
    store = CertificateStore(str(settings.certificates_root), runner, max_upload_bytes=settings.MAX_UPLOAD_BYTES)
    email_service = EmailService(settings)
    monitoring = MonitoringService(settings, runner, email_service, root=store.root)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("Initializing mkcert-web (certificates in %s)", store.root)
        init_db()
        if monitoring.enabled:
            monitoring.start()

        yield

        # Shutdown
        monitoring.stop()
        logger.info("Shutting down mkcert-web")

    app = FastAPI(
        title="mkcert Web UI",
        description="Web console for mkcert certificate management",
        version=system.VERSION,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.runner = runner
    app.state.store = store
    app.state.email_service = email_service
    app.state.monitoring = monitoring

    limiter.enabled = settings.RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    register_exception_handlers(app)

    if settings.ENABLE_HTTPS and settings.FORCE_HTTPS:
        @app.middleware("http")
        async def https_redirect(request: Request, call_next):
            forwarded = request.headers.get("x-forwarded-proto")
            if forwarded != "https" and request.url.scheme != "https":
                return RedirectResponse(str(request.url.replace(scheme="https", port=settings.HTTPS_PORT)))
            return await call_next(request)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        session_cookie="mkcert_web_session",
        max_age=settings.SESSION_MAX_AGE,
        same_site="lax",
        https_only=settings.ENABLE_HTTPS and settings.FORCE_HTTPS,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Origin"],
    )

    # Include routers
    app.include_router(auth.router)
    app.include_router(certificates.router)
    app.include_router(files.router)
    app.include_router(notifications.router)
    app.include_router(system.router)

    # Mount the static UI last so API routes win
    if settings.PUBLIC_DIR and Path(settings.PUBLIC_DIR).is_dir():
        app.mount("/", StaticFiles(directory=settings.PUBLIC_DIR), name="public")

    return app
