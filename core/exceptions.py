"""
Custom exceptions for the roof inspection service.

Exception Hierarchy:
    InspectionServiceError (base)
    ├── StoreError                 - Blob Store / Record Store failure
    │   ├── UploadError            - A single image failed to reach the Blob Store
    │   ├── SchemaMismatchError    - Record keys do not match the store's columns
    │   ├── RecordInsertError      - Record Store rejected the row for another reason
    │   └── TransportError         - Connectivity or auth failure
    │       └── StoreTimeoutError  - Store operation exceeded its timeout
    ├── PreconditionError          - Operation not allowed in the current state
    ├── SubmissionCancelledError   - In-flight attempt cancelled on teardown
    └── InvalidFieldError          - Unknown field/bucket or invalid value

Usage:
    Store errors are never retried. Their message is kept verbatim so the
    caller can render the raw failure detail (especially schema drift).
"""

from typing import Any, Dict, Iterable, List, Optional


class InspectionServiceError(Exception):
    """
    Base exception for all inspection service errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    @property
    def code(self) -> str:
        """Stable error code for API payloads (the class name)."""
        return type(self).__name__


# =============================================================================
# STORE ERRORS - surfaced to the caller with the store's message preserved
# =============================================================================

class StoreError(InspectionServiceError):
    """
    Base class for failures reported by the Blob Store or Record Store.

    The message is the store's own failure detail, unmodified.
    """

    def __init__(
        self,
        message: str,
        store: str = "",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if store:
            error_details["store"] = store
        if status_code is not None:
            error_details["status_code"] = status_code
        super().__init__(message, error_details)
        self.store = store
        self.status_code = status_code


class UploadError(StoreError):
    """
    A single file failed to reach the Blob Store.

    Aborts the whole submission attempt: no partial reference set is
    returned and no record is inserted.
    """

    def __init__(
        self,
        message: str,
        bucket: str = "",
        filename: str = "",
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None
    ):
        details = {}
        if bucket:
            details["bucket"] = bucket
        if filename:
            details["filename"] = filename
        if status_code is None and isinstance(cause, StoreError):
            status_code = cause.status_code
        super().__init__(message, store="blob", status_code=status_code, details=details)
        self.bucket = bucket
        self.filename = filename
        self.cause = cause
        # Objects stored before the failure, bucket -> URLs (orphans)
        self.uploaded: Dict[str, List[str]] = {}


class SchemaMismatchError(StoreError):
    """
    The Record Store rejected a record key that has no matching column.

    This is the dominant expected failure when the record shape and the
    store schema drift apart. It must never be reported as a generic
    transport failure.
    """

    def __init__(
        self,
        message: str,
        collection: str = "",
        columns: Iterable[str] = (),
        status_code: Optional[int] = None
    ):
        columns = sorted(columns)
        details = {"resolution": "Align the record store columns with the declared report fields"}
        if collection:
            details["collection"] = collection
        if columns:
            details["columns"] = columns
        super().__init__(message, store="record", status_code=status_code, details=details)
        self.collection = collection
        self.columns = columns


class RecordInsertError(StoreError):
    """Record Store rejected the insert for a reason other than schema drift."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: str = ""):
        details = {"store_code": code} if code else {}
        super().__init__(message, store="record", status_code=status_code, details=details)
        self.store_code = code


class TransportError(StoreError):
    """
    Generic connectivity or authentication failure from either store.

    Typical causes:
    - Store unreachable (DNS, refused connection)
    - Invalid or expired API key
    """


class StoreTimeoutError(TransportError):
    """
    A store operation did not complete within the configured timeout.

    The operation may still complete on the store side.
    """

    def __init__(self, operation: str, timeout_seconds: float, store: str = ""):
        message = f"Store {operation} timed out after {timeout_seconds:.1f}s"
        super().__init__(
            message,
            store=store,
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


# =============================================================================
# SESSION ERRORS
# =============================================================================

class PreconditionError(InspectionServiceError):
    """
    Operation attempted in a state that does not allow it.

    Raised for a second submit while one is in flight, and for reset
    while in flight or after a failed attempt.
    """

    def __init__(self, operation: str, state: str):
        message = f"Cannot {operation} while submission is {state}"
        super().__init__(message, {"operation": operation, "state": state})
        self.operation = operation
        self.state = state


class SubmissionCancelledError(InspectionServiceError):
    """The in-flight attempt was cancelled before it recorded a report."""

    def __init__(self, message: str = "Submission cancelled"):
        super().__init__(message)
        # Objects stored before the cancel, bucket -> URLs (orphans)
        self.uploaded: Dict[str, List[str]] = {}


class InvalidFieldError(InspectionServiceError, ValueError):
    """Unknown field or bucket name, or a value the field does not accept."""

    def __init__(self, key: str, message: str):
        super().__init__(message, {"field": key})
        self.key = key
