"""
Routers for the web console.
"""

from . import auth
from . import certificates
from . import files
from . import notifications
from . import system

__all__ = ["auth", "certificates", "files", "notifications", "system"]
