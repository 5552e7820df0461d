from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.orm import Session
from typing import Optional
from pathlib import Path
import logging

from ..config import Settings
from ..database import get_db
from ..schemas.auth import AuthStatus, LoginRequest
from ..utils.auth import is_authenticated, current_username, login_session, logout_session, verify_credentials
from ..utils.rate_limit import limiter, auth_limit, general_limit
from .deps import audit, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


def _page(settings: Settings, name: str) -> Optional[Path]:
    if not settings.PUBLIC_DIR:
        return None
    page = Path(settings.PUBLIC_DIR) / name
    return page if page.is_file() else None


@router.get("/login")
@limiter.limit(general_limit)
async def login_page(request: Request, settings: Settings = Depends(get_settings)):
    """Serve the login page, or go home when already logged in or auth is off"""
    if not settings.ENABLE_AUTH or is_authenticated(request):
        return RedirectResponse("/", status_code=status.HTTP_302_FOUND)
    page = _page(settings, "login.html")
    if page:
        return FileResponse(page)
    return {"success": True, "message": "Login required", "loginEndpoint": "/api/auth/login"}


@router.post("/login")
@limiter.limit(auth_limit)
async def login_form(
    request: Request,
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db)
):
    """Traditional form-based login"""
    if not settings.ENABLE_AUTH:
        return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    if not username or not password:
        return RedirectResponse("/login?error=missing_credentials", status_code=status.HTTP_303_SEE_OTHER)
    if not verify_credentials(settings, username, password):
        audit(db, request, "login_failed", "auth", username, username=username)
        return RedirectResponse("/login?error=invalid_credentials", status_code=status.HTTP_303_SEE_OTHER)

    login_session(request, username)
    audit(db, request, "login", "auth", username, username=username)
    return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/api/auth/login")
@limiter.limit(auth_limit)
async def login_json(
    request: Request,
    login_data: LoginRequest,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db)
):
    """Login endpoint that accepts JSON"""
    if not settings.ENABLE_AUTH:
        return {"success": True, "message": "Authentication is disabled", "redirectTo": "/"}
    if not login_data.username or not login_data.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username and password are required"
        )
    if not verify_credentials(settings, login_data.username, login_data.password):
        audit(db, request, "login_failed", "auth", login_data.username, username=login_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )

    login_session(request, login_data.username)
    audit(db, request, "login", "auth", login_data.username, username=login_data.username)
    return {"success": True, "message": "Login successful", "redirectTo": "/"}


@router.post("/api/auth/logout")
async def logout(request: Request, db: Session = Depends(get_db)):
    """Logout endpoint"""
    username = current_username(request)
    if "session" in request.scope:
        logout_session(request)
    if username:
        audit(db, request, "logout", "auth", username, username=username)
    return {"success": True, "message": "Logout successful", "redirectTo": "/login"}


@router.get("/api/auth/status", response_model=AuthStatus)
async def auth_status(request: Request, settings: Settings = Depends(get_settings)):
    if not settings.ENABLE_AUTH:
        return AuthStatus(authenticated=False, username=None, authEnabled=False)
    return AuthStatus(
        authenticated=is_authenticated(request),
        username=current_username(request),
        authEnabled=True
    )


@router.get("/api/auth/methods")
async def auth_methods():
    return {"basic": True, "oidc": {"enabled": False}}


@router.get("/")
@limiter.limit(general_limit)
async def index(request: Request, settings: Settings = Depends(get_settings)):
    """Serve the console, sending anonymous users to the login page"""
    if settings.ENABLE_AUTH and not is_authenticated(request):
        return RedirectResponse("/login", status_code=status.HTTP_302_FOUND)
    page = _page(settings, "index.html")
    if page:
        return FileResponse(page)
    return {
        "name": "mkcert Web UI API",
        "version": "1.0.0",
        "docs": "/docs"
    }
