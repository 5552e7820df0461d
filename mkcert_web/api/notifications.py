"""
Email notification and certificate monitoring routes.
"""
import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..schemas.notifications import MonitoringConfigUpdate
from ..services import EmailService, MonitoringService
from ..utils.auth import require_auth
from ..utils.rate_limit import limiter, api_limit, cli_limit
from .deps import get_email_service, get_monitoring

router = APIRouter(prefix="/api", tags=["Notifications"], dependencies=[Depends(require_auth)])


def _summary(expiring):
    return {
        "total": len(expiring),
        "critical": sum(1 for c in expiring if c["priority"] == "critical"),
        "warning": sum(1 for c in expiring if c["priority"] == "warning"),
        "certificates": expiring,
    }


@router.get("/email/status")
@limiter.limit(api_limit)
async def email_status(request: Request, email: EmailService = Depends(get_email_service)):
    return {"success": True, "message": "Email configuration status retrieved", **email.status()}


@router.post("/email/test")
@limiter.limit(cli_limit)
async def email_test(request: Request, email: EmailService = Depends(get_email_service)):
    """Verify the SMTP connection, then send a test message"""
    await asyncio.to_thread(email.verify_connection)
    result = await asyncio.to_thread(email.send_test_email)
    return {**result, "success": True}


@router.post("/email/verify")
@limiter.limit(cli_limit)
async def email_verify(request: Request, email: EmailService = Depends(get_email_service)):
    result = await asyncio.to_thread(email.verify_connection)
    return {**result, "success": True}


@router.get("/monitoring/status")
@limiter.limit(api_limit)
async def monitoring_status(request: Request, monitoring: MonitoringService = Depends(get_monitoring)):
    return {"success": True, "message": "Certificate monitoring status retrieved", **monitoring.get_status()}


@router.post("/monitoring/check")
@limiter.limit(cli_limit)
async def monitoring_check(request: Request, monitoring: MonitoringService = Depends(get_monitoring)):
    if not monitoring.enabled:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Certificate monitoring is disabled")
    report = await monitoring.manual_check()
    return {
        "success": True,
        "message": "Manual certificate check completed",
        "checked": report["checked"],
        "notified": report["notified"],
        **_summary(report["expiring"]),
    }


@router.post("/monitoring/start")
@limiter.limit(cli_limit)
async def monitoring_start(request: Request, monitoring: MonitoringService = Depends(get_monitoring)):
    if not monitoring.enabled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Certificate monitoring is disabled in configuration"
        )
    monitoring.start()
    return {"success": True, "message": "Certificate monitoring started"}


@router.post("/monitoring/stop")
@limiter.limit(cli_limit)
async def monitoring_stop(request: Request, monitoring: MonitoringService = Depends(get_monitoring)):
    monitoring.stop()
    return {"success": True, "message": "Certificate monitoring stopped"}


@router.get("/monitoring/expiring")
@limiter.limit(api_limit)
async def monitoring_expiring(request: Request, monitoring: MonitoringService = Depends(get_monitoring)):
    """Expiring certificates, without sending email"""
    paths = monitoring.find_certificates_to_monitor()
    expiring = await monitoring.analyze_expiring_certificates(paths)
    return {"success": True, "message": "Expiring certificates retrieved", **_summary(expiring)}


@router.put("/monitoring/config")
@limiter.limit(cli_limit)
async def monitoring_config(
    request: Request,
    body: MonitoringConfigUpdate,
    monitoring: MonitoringService = Depends(get_monitoring)
):
    updates = monitoring.update_configuration(
        warning_days=body.warningDays,
        critical_days=body.criticalDays,
        check_interval=body.checkInterval,
        include_uploaded=body.includeUploaded,
    )
    return {"success": True, "message": "Monitoring configuration updated", "updates": updates}
