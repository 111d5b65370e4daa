"""
Outcome shapes returned by every public workspace operation.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Type
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from pydantic import BaseModel, ConfigDict, Field

from shared.errors import (
    NotFound,
    PartialBatchFailure,
    RemoteUnavailable,
    ValidationError,
    WorkspaceLayerException,
)


class ResultStatus(str, Enum):
    """Outcome of a public operation."""
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Error kinds surfaced in results."""
    VALIDATION = "ValidationError"
    REMOTE_UNAVAILABLE = "RemoteUnavailable"
    PARTIAL_BATCH_FAILURE = "PartialBatchFailure"
    NOT_FOUND = "NotFound"


ERROR_KIND_BY_CODE: Dict[str, ErrorKind] = {
    "VALIDATION_ERROR": ErrorKind.VALIDATION,
    "REMOTE_UNAVAILABLE": ErrorKind.REMOTE_UNAVAILABLE,
    "PARTIAL_BATCH_FAILURE": ErrorKind.PARTIAL_BATCH_FAILURE,
    "NOT_FOUND": ErrorKind.NOT_FOUND,
}

EXCEPTION_BY_KIND: Dict[ErrorKind, Type[WorkspaceLayerException]] = {
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.PARTIAL_BATCH_FAILURE: PartialBatchFailure,
    ErrorKind.NOT_FOUND: NotFound,
}


class ErrorInfo(BaseModel):
    """Typed error payload."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: ErrorKind
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: Exception, context: Optional[Dict[str, Any]] = None) -> "ErrorInfo":
        """Build from a layer exception; anything else counts as a remote failure."""
        merged: Dict[str, Any] = {}
        if isinstance(exc, WorkspaceLayerException):
            kind = ERROR_KIND_BY_CODE.get(exc.code, ErrorKind.REMOTE_UNAVAILABLE)
            merged.update(exc.details)
            message = exc.message
        else:
            kind = ErrorKind.REMOTE_UNAVAILABLE
            message = str(exc) or exc.__class__.__name__
        merged.update(context or {})
        return cls(kind=kind, message=message, context=merged)

    def to_exception(self) -> WorkspaceLayerException:
        """Rebuild the layer exception this error describes."""
        if self.kind == ErrorKind.REMOTE_UNAVAILABLE:
            details = {k: v for k, v in self.context.items() if k != "store"}
            return RemoteUnavailable(self.context.get("store", "remote"), self.message, details)
        return EXCEPTION_BY_KIND[self.kind](self.message, dict(self.context))


class ItemResult(BaseModel):
    """Outcome of one logical item inside a batch."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int
    operation: str
    success: bool
    data: Any = None
    error: Optional[ErrorInfo] = None


class OperationResult(BaseModel):
    """One of ``success(data)``, ``partial_success(succeeded, failed)`` or
    ``error(kind, message, context)``.

    ``meta`` carries bookkeeping (physical call counts, creates issued) that
    callers and tests may inspect without it being part of the payload.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: ResultStatus
    data: Any = None
    succeeded: List[Any] = Field(default_factory=list)
    failed: List[Any] = Field(default_factory=list)
    error: Optional[ErrorInfo] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, data: Any = None, **meta) -> "OperationResult":
        return cls(status=ResultStatus.SUCCESS, data=data, meta=meta)

    @classmethod
    def partial(cls, succeeded: List[Any], failed: List[Any], **meta) -> "OperationResult":
        return cls(status=ResultStatus.PARTIAL_SUCCESS, succeeded=succeeded, failed=failed, meta=meta)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        **meta
    ) -> "OperationResult":
        return cls(
            status=ResultStatus.ERROR,
            error=ErrorInfo(kind=kind, message=message, context=context or {}),
            meta=meta
        )

    @classmethod
    def from_exception(cls, exc: Exception, context: Optional[Dict[str, Any]] = None, **meta) -> "OperationResult":
        return cls(status=ResultStatus.ERROR, error=ErrorInfo.from_exception(exc, context), meta=meta)

    @property
    def ok(self) -> bool:
        """True only for a full success."""
        return self.status == ResultStatus.SUCCESS

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    def raise_for_error(self) -> "OperationResult":
        """Raise the matching layer exception for an error result."""
        if self.status != ResultStatus.ERROR or self.error is None:
            return self
        raise self.error.to_exception()
