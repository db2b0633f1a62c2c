"""
Exception classes for MCP Config Manager.

Defines the error taxonomy used by the reconciliation engine. A missing
file is never an error (it reads as an empty structure); everything else
that a caller must see is raised as a subclass of ConfigManagerError.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union


class ConfigManagerError(Exception):
    """Base exception for all MCP Config Manager errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize ConfigManagerError.

        Args:
            message: Error message
            error_code: Optional error code for categorization
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        """String representation of the error."""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class MalformedConfigError(ConfigManagerError):
    """A config file exists but does not contain valid JSON."""

    def __init__(self, path: Union[str, Path], reason: str = ""):
        self.path = Path(path)
        message = f"Invalid JSON in config file: {self.path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message,
            error_code="MALFORMED_CONFIG",
            details={"path": str(self.path)},
        )


class ValidationError(ConfigManagerError):
    """Request rejected before any state was changed."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class NotFoundError(ValidationError):
    """Unknown client or sync group id."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(
            f"Unknown {kind}: {identifier}",
            error_code="NOT_FOUND",
            details={"kind": kind, "id": identifier},
        )


class ProtectedClientError(ValidationError):
    """Built-in clients cannot be deleted."""

    def __init__(self, client_id: str):
        super().__init__(
            f"Built-in client '{client_id}' cannot be deleted",
            error_code="PROTECTED_CLIENT",
            details={"id": client_id},
        )


class WriteError(ConfigManagerError):
    """Writing a config file failed (disk full, permissions...)."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        super().__init__(
            f"Failed to write {self.path}: {reason}",
            error_code="WRITE_FAILED",
            details={"path": str(self.path)},
        )
