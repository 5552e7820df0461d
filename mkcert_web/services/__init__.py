"""
Services backing the HTTP routes: certificate storage, email and monitoring.
"""
from .certificate_store import CertificateStore
from .email_service import EmailService
from .monitoring import MonitoringService

__all__ = ["CertificateStore", "EmailService", "MonitoringService"]
