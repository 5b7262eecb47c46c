"""
Error taxonomy for the source console.

User cancellation, validation, external-service failures and missing
records each get their own type so callers can pick the right
notification without inspecting messages.
"""

from typing import Dict, Optional


class ConsoleError(Exception):
    """Base class for all source console errors."""


class ValidationError(ConsoleError):
    """Raised when user input fails validation before any network call."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))


class ConnectorError(ConsoleError):
    """Raised when the external connector rejects or fails a request."""

    def __init__(self, message: str, type: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.type = type
        self.status_code = status_code


class ConnectorCallbackError(ConnectorError):
    """The user closed or abandoned the authorization flow."""

    def __init__(self, message: str = "Authorization was canceled"):
        super().__init__(message, type="callback_err")


class SourceNotFoundError(ConsoleError):
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Source {source_id} not found")


class SyncAlreadyRunningError(ConsoleError):
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"A sync is already running for source {source_id}")


class SyncNotRunningError(ConsoleError):
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"No sync is running for source {source_id}")


class FileDeletionError(ConsoleError):
    """Raised when a bulk file delete could not be confirmed by the server."""
