"""
Error types shared by the monitor, the directory store and the file actions.

Backend failures are normalized into TransportError by the panel client so
the rest of the package never has to know about httpx.
"""

from typing import Any, Optional

import httpx

GENERIC_ERROR_MESSAGE = "An unexpected error was encountered while processing this request."


class DashboardError(Exception):
    """Base class for every error raised by serverdash."""


class TransportError(DashboardError):
    """Raised when a backend call fails at the network or HTTP level."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        """
        Initialize TransportError.

        Args:
            message: Error message
            status_code: HTTP status code returned by the panel, if any
            detail: Human readable detail extracted from the panel response
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"TransportError: {self.message} (status: {self.status_code})"
        return f"TransportError: {self.message}"


class ValidationError(DashboardError):
    """Raised by the rename/move flow when the submitted value is unusable."""

    def __init__(self, message: str, field_name: str = ""):
        super().__init__(message)
        self.message = message
        self.field_name = field_name

    def __str__(self) -> str:
        if self.field_name:
            return f"ValidationError: {self.message} (field: {self.field_name})"
        return f"ValidationError: {self.message}"


class ActionNotPermittedError(DashboardError):
    """Raised when a file action is invoked without the capability it needs."""


class ActionInProgressError(DashboardError):
    """Raised when a file action is invoked while another one is still running."""


def extract_error_detail(response: httpx.Response) -> Optional[str]:
    """
    Pull the human readable error detail out of a panel error response.

    The panel answers with ``{"errors": [{"detail": ...}]}``; a plain
    ``{"detail": ...}`` body is accepted as well.
    """
    try:
        data: Any = response.json()
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None

    errors = data.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        detail = errors[0].get("detail")
        if detail:
            return str(detail)

    if data.get("detail"):
        return str(data["detail"])

    return None


def http_error_to_human(error: BaseException) -> str:
    """
    Convert an error raised by a backend call into a message for the user.

    Args:
        error: The exception raised by the call

    Returns:
        The panel's detail if one was provided, otherwise the error message.
    """
    if isinstance(error, TransportError):
        if error.detail:
            return error.detail
        return error.message or GENERIC_ERROR_MESSAGE

    message = str(error)
    return message or GENERIC_ERROR_MESSAGE
