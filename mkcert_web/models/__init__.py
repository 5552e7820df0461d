from .audit import AuditLog, Base

__all__ = ["AuditLog", "Base"]
