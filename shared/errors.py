"""
Shared error handling for the Trade Operations Workspace Layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    operation_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class WorkspaceLayerException(Exception):
    """Base exception for the workspace layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, operation_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            operation_id=operation_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(WorkspaceLayerException):
    """Malformed identifier, path or operation."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class RemoteUnavailable(WorkspaceLayerException):
    """I/O failure reported by a remote store."""

    def __init__(self, store: str, message: str = "Remote store unavailable", details: Optional[Dict[str, Any]] = None):
        self.store = store
        super().__init__("REMOTE_UNAVAILABLE", message, {"store": store, **(details or {})})


class PartialBatchFailure(WorkspaceLayerException):
    """Some items of a batch failed while others succeeded."""

    def __init__(self, message: str = "Batch completed with failures", details: Optional[Dict[str, Any]] = None):
        super().__init__("PARTIAL_BATCH_FAILURE", message, details)


class NotFound(WorkspaceLayerException):
    """A lookup found no matching child or row."""

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)
