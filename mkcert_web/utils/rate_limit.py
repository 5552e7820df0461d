"""
slowapi limiter shared by all routers.

Four limit classes mirror the kinds of traffic the console sees: ``cli`` for
anything that spawns mkcert/openssl, ``api`` for read-only JSON, ``auth`` for
login attempts and ``general`` for pages and downloads.
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from ..config import settings


def client_key(request: Request) -> str:
    """Rate limit by IP address and session user"""
    session = request.scope.get("session") or {}
    return f"{get_remote_address(request)}:{session.get('username') or 'anonymous'}"


limiter = Limiter(key_func=client_key, enabled=settings.RATE_LIMIT_ENABLED)


def cli_limit() -> str:
    return settings.CLI_RATE_LIMIT


def api_limit() -> str:
    return settings.API_RATE_LIMIT


def auth_limit() -> str:
    return settings.AUTH_RATE_LIMIT


def general_limit() -> str:
    return settings.GENERAL_RATE_LIMIT


RATE_LIMITS = {
    "cli": cli_limit,
    "api": api_limit,
    "auth": auth_limit,
    "general": general_limit,
}


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = JSONResponse(
        status_code=429,
        content={"success": False, "error": f"Too many requests, please try again later ({exc.detail})"},
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)
