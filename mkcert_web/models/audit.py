from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String, index=True)  # login, logout, generate, delete, archive, restore, upload, pfx_export, ...
    resource_type = Column(String, index=True)  # auth, certificate, rootca, file
    resource_id = Column(String)
    username = Column(String, index=True)
    detail = Column(Text)  # JSON string
    ip_address = Column(String)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "action": self.action,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "username": self.username,
            "detail": self.detail,
            "ipAddress": self.ip_address,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
