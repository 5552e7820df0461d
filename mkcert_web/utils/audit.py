from typing import Optional, Any, Dict
from sqlalchemy.orm import Session
from datetime import datetime
import json
import logging
from ..models import AuditLog

logger = logging.getLogger(__name__)

def log_action(
    db: Session,
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    username: Optional[str] = None,
    detail: Optional[Any] = None,
    ip_address: Optional[str] = None
):
    """Log a console action for audit trail"""

    # Convert detail to JSON if it's a structured value
    if isinstance(detail, (dict, list)):
        detail = json.dumps(detail)

    audit = AuditLog(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        username=username,
        detail=detail,
        ip_address=ip_address,
        timestamp=datetime.utcnow()
    )

    db.add(audit)
    db.commit()
    logger.info("audit: %s %s %s by %s", action, resource_type, resource_id or "-", username or "anonymous")

    return audit

def get_audit_logs(
    db: Session,
    username: Optional[str] = None,
    resource_type: Optional[str] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0
) -> Dict:
    """Get audit logs with filtering"""

    query = db.query(AuditLog)

    if username:
        query = query.filter(AuditLog.username == username)
    if resource_type:
        query = query.filter(AuditLog.resource_type == resource_type)
    if action:
        query = query.filter(AuditLog.action == action)
    if start_date:
        query = query.filter(AuditLog.timestamp >= start_date)
    if end_date:
        query = query.filter(AuditLog.timestamp <= end_date)

    total = query.count()
    logs = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()

    return {
        "total": total,
        "logs": logs,
        "limit": limit,
        "offset": offset
    }
