"""
FastAPI dependencies that hand out the per-app services stored on ``app.state``.
"""
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from ..config import Settings
from ..services import CertificateStore, EmailService, MonitoringService
from ..utils.audit import log_action
from ..utils.auth import current_username
from ..utils.runner import CommandRunner


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_runner(request: Request) -> CommandRunner:
    return request.app.state.runner


def get_store(request: Request) -> CertificateStore:
    return request.app.state.store


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


def get_monitoring(request: Request) -> MonitoringService:
    return request.app.state.monitoring


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def audit(
    db: Session,
    request: Request,
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    detail: Optional[Any] = None,
    username: Optional[str] = None,
):
    """Record an audit entry for the current request"""
    return log_action(
        db=db,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        username=username or current_username(request),
        detail=detail,
        ip_address=client_ip(request),
    )
