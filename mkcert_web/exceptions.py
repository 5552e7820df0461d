"""Exceptions raised by the validation layer, the command runner and the
certificate store.

Every exception here is local and non-retryable; the web layer maps each
class to an HTTP status in ``main.py``.
"""
from typing import Optional


class ConsoleError(Exception):
    """Base exception for all errors raised by mkcert-web."""
    status_code = 500

    def payload(self) -> dict:
        """Extra fields merged into the JSON error body."""
        return {}


class SecurityValidationError(ConsoleError, ValueError):
    """Base class for input rejected by the validation layer."""
    status_code = 400


class InvalidCommand(SecurityValidationError):
    """Raised when a command matches no allowed pattern or matches a dangerous one."""


class InvalidPath(SecurityValidationError):
    """Raised when a user path is malformed or contains a traversal pattern."""


class AccessDenied(SecurityValidationError):
    """Raised when a resolved path escapes its base directory."""
    status_code = 403


class InvalidFilename(SecurityValidationError):
    """Raised when a filename contains a dangerous pattern or is too long."""


class InvalidUpload(SecurityValidationError):
    """Raised when an uploaded file has the wrong type or exceeds the size limit."""


class CertificateNotFound(ConsoleError):
    """Raised when a referenced certificate, key or CA file does not exist."""
    status_code = 404


class CommandTimeout(ConsoleError):
    """Raised when a subprocess runs longer than the configured timeout."""
    status_code = 504

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout:g} seconds")


class SubprocessFailure(ConsoleError):
    """
    Raised when a subprocess exits non-zero, produces too much output or
    cannot be started. Carries the captured streams so callers can surface
    stderr.
    """

    def __init__(self, message: str, stdout: Optional[str] = None, stderr: Optional[str] = None, exit_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code

    def payload(self) -> dict:
        return {"stderr": self.stderr} if self.stderr else {}


class AuthenticationRequired(ConsoleError):
    """Raised by protected routes when auth is enabled and the session is anonymous."""
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)

    def payload(self) -> dict:
        return {"redirectTo": "/login"}


class EmailNotConfigured(ConsoleError):
    """Raised when email is disabled or the SMTP settings are incomplete."""
    status_code = 400


class EmailDeliveryError(ConsoleError):
    """Raised when the SMTP server cannot be reached or rejects a message."""
    status_code = 500


class InvalidConfiguration(ConsoleError):
    """Raised when a runtime configuration update is rejected."""
    status_code = 400
