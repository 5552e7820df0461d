"""
Session-cookie authentication against the single configured account.

The session itself is signed by Starlette's ``SessionMiddleware``; this module
only decides what goes into it and who may pass.
"""
import logging
import secrets
from typing import Optional

from fastapi import Request

from ..config import Settings
from ..exceptions import AuthenticationRequired

logger = logging.getLogger(__name__)


def verify_credentials(settings: Settings, username: Optional[str], password: Optional[str]) -> bool:
    """Compare credentials with the configured account in constant time"""
    if not username or not password:
        return False
    user_ok = secrets.compare_digest(username.encode("utf-8"), settings.AUTH_USERNAME.encode("utf-8"))
    password_ok = secrets.compare_digest(password.encode("utf-8"), settings.AUTH_PASSWORD.encode("utf-8"))
    return user_ok and password_ok


def _session(request: Request) -> dict:
    # SessionMiddleware may be absent in bare test apps
    return request.scope.get("session") or {}


def is_authenticated(request: Request) -> bool:
    return bool(_session(request).get("authenticated"))


def current_username(request: Request) -> Optional[str]:
    return _session(request).get("username")


def login_session(request: Request, username: str):
    request.session["authenticated"] = True
    request.session["username"] = username


def logout_session(request: Request):
    request.session.clear()


async def require_auth(request: Request) -> Optional[str]:
    """Dependency for protected routes; returns the session username (None when auth is disabled)"""
    settings = request.app.state.settings
    if not settings.ENABLE_AUTH:
        return None
    if not is_authenticated(request):
        logger.info("Unauthenticated request to %s", request.url.path)
        raise AuthenticationRequired()
    return current_username(request)
