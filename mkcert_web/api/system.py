"""System, status and discovery endpoints."""

import logging
import os
import platform
import socket
import sys
import time
from datetime import datetime
from typing import Optional

import psutil
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..exceptions import CommandTimeout, SubprocessFailure
from ..services import CertificateStore
from ..utils.audit import get_audit_logs
from ..utils.auth import require_auth
from ..utils.rate_limit import limiter, general_limit, RATE_LIMITS
from .deps import get_settings, get_store

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

router = APIRouter(prefix="/api", tags=["System"])

ENDPOINTS = {
    "authentication": {
        "/api/auth/status": "GET - Check authentication status",
        "/api/auth/methods": "GET - Get available authentication methods",
        "/api/auth/login": "POST - Login with credentials",
        "/api/auth/logout": "POST - Logout current session",
    },
    "certificates": {
        "/api/certificates": "GET - List all certificates",
        "/api/certificate/{filename}": "GET - Get certificate details; DELETE - Delete certificate",
        "/api/commands": "GET - Get available mkcert commands",
        "/api/execute": "POST - Execute mkcert command",
        "/api/rootca/info": "GET - Root CA information",
        "/certificates/{folder}/{name}/archive": "POST - Archive certificate",
        "/certificates/{folder}/{name}/restore": "POST - Restore archived certificate",
        "/certificates/{folder}/{name}/pfx": "POST - Export certificate as PKCS#12",
        "/download/bundle/{folder}/{name}": "GET - Download certificate and key as ZIP",
        "/download/rootca": "GET - Download root CA certificate",
    },
    "files": {
        "/api/files": "GET - List certificate files",
        "/api/file/{filename}/content": "GET - Get file content",
        "/api/upload": "POST - Upload certificate file",
        "/download/{filename}": "GET - Download certificate file",
    },
    "notifications": {
        "/api/email/status": "GET - Email configuration status",
        "/api/email/test": "POST - Send test email",
        "/api/email/verify": "POST - Verify SMTP connection",
        "/api/monitoring/status": "GET - Monitoring status",
        "/api/monitoring/check": "POST - Run expiry check now",
        "/api/monitoring/start": "POST - Start monitoring",
        "/api/monitoring/stop": "POST - Stop monitoring",
        "/api/monitoring/expiring": "GET - List expiring certificates",
        "/api/monitoring/config": "PUT - Update monitoring configuration",
    },
    "system": {
        "/api/health": "GET - Health check",
        "/api/status": "GET - Server status",
        "/api/system": "GET - System information",
        "/api/config": "GET - Client configuration",
        "/api/rate-limit/status": "GET - Rate limiting status",
        "/api/audit": "GET - Audit trail",
    },
}


def _uptime() -> float:
    return time.time() - psutil.Process().create_time()


@router.get("/health")
@limiter.limit(general_limit)
async def health_check(request: Request):
    return {
        "success": True,
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "uptime": _uptime(),
        "version": VERSION,
    }


@router.get("/system", dependencies=[Depends(require_auth)])
@limiter.limit(general_limit)
async def system_info(request: Request):
    memory = psutil.virtual_memory()
    return {
        "success": True,
        "platform": platform.system(),
        "arch": platform.machine(),
        "hostname": socket.gethostname(),
        "uptime": time.time() - psutil.boot_time(),
        "loadavg": list(os.getloadavg()) if hasattr(os, "getloadavg") else None,
        "totalmem": memory.total,
        "freemem": memory.available,
        "cpus": psutil.cpu_count(),
        "pythonVersion": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "workingDirectory": os.getcwd(),
    }


@router.get("/config", dependencies=[Depends(require_auth)])
@limiter.limit(general_limit)
async def client_config(request: Request, settings: Settings = Depends(get_settings)):
    """Configuration subset that is safe to hand to the browser"""
    return {
        "success": True,
        "server": {"port": settings.PORT, "host": settings.HOST},
        "auth": {"enabled": settings.ENABLE_AUTH},
        "oidc": {"enabled": False},
        "theme": {
            "mode": settings.THEME_MODE,
            "primaryColor": settings.THEME_PRIMARY_COLOR,
            "darkMode": settings.THEME_DARK_MODE,
        },
        "features": {
            "rateLimiting": settings.RATE_LIMIT_ENABLED,
            "fileUpload": True,
            "certificateManagement": True,
            "emailNotifications": settings.EMAIL_ENABLED,
            "monitoring": settings.MONITORING_ENABLED,
        },
    }


@router.get("/rate-limit/status")
@limiter.limit(general_limit)
async def rate_limit_status(request: Request):
    return {
        "success": True,
        "rateLimiting": {
            "enabled": limiter.enabled,
            "limits": {name: provider() for name, provider in RATE_LIMITS.items()},
        },
    }


@router.get("/status")
@limiter.limit(general_limit)
async def server_status(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: CertificateStore = Depends(get_store)
):
    ca_exists = False
    ca_root = None
    try:
        ca_root = await store.ca_root()
        ca_exists = await store.ca_exists()
    except (SubprocessFailure, CommandTimeout) as e:
        logger.error("Error checking CA status: %s", e)

    process = psutil.Process()
    return {
        "success": True,
        "server": {
            "running": True,
            "uptime": _uptime(),
            "memory": {"rss": process.memory_info().rss},
            "pid": process.pid,
            "version": VERSION,
        },
        "ca": {"exists": ca_exists, "root": ca_root},
        "caExists": ca_exists,
        "caRoot": ca_root,
        "features": {
            "authentication": settings.ENABLE_AUTH,
            "oidc": False,
            "rateLimiting": settings.RATE_LIMIT_ENABLED,
            "fileManagement": True,
            "certificateManagement": True,
            "emailNotifications": settings.EMAIL_ENABLED,
            "monitoring": settings.MONITORING_ENABLED,
        },
        "environment": {
            "workingDir": os.getcwd(),
            "certificatesDir": store.root,
            "platform": platform.system(),
            "arch": platform.machine(),
        },
    }


@router.get("")
@limiter.limit(general_limit)
async def api_catalogue(request: Request):
    return {
        "success": True,
        "name": "mkcert Web UI API",
        "version": VERSION,
        "description": "REST API for mkcert certificate management",
        "endpoints": ENDPOINTS,
    }


@router.get("/audit", dependencies=[Depends(require_auth)])
@limiter.limit(general_limit)
async def audit_trail(
    request: Request,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    username: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    result = get_audit_logs(
        db,
        username=username,
        resource_type=resource_type,
        action=action,
        limit=limit,
        offset=offset,
    )
    return {
        "success": True,
        "total": result["total"],
        "limit": result["limit"],
        "offset": result["offset"],
        "logs": [log.to_dict() for log in result["logs"]],
    }
