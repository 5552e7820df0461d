from .auth import LoginRequest, AuthStatus
from .certificates import ExecuteRequest, PfxRequest
from .notifications import MonitoringConfigUpdate

__all__ = ["LoginRequest", "AuthStatus", "ExecuteRequest", "PfxRequest", "MonitoringConfigUpdate"]
