"""
Submission state and result models.

These models describe one submission attempt of an inspection form.
Used for communication between submission threads and the Flask request
threads that poll for the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class SubmissionState(Enum):
    """
    State of a form session's submission.

    Lifecycle:
        IDLE -> IN_FLIGHT -> (SUCCEEDED | FAILED)
        SUCCEEDED -> IDLE on reset
        FAILED -> IN_FLIGHT on user-initiated retry
    """

    IDLE = "idle"
    """No attempt running, form is being edited."""

    IN_FLIGHT = "in_flight"
    """Uploads and insert are running."""

    SUCCEEDED = "succeeded"
    """Report recorded."""

    FAILED = "failed"
    """Attempt failed, form kept for retry."""


@dataclass
class SubmissionResult:
    """
    Outcome of one submission attempt.

    On failure, error holds the exception raised by the store layer and
    error_message its message unmodified.
    """

    submission_id: str
    """Unique attempt identifier (UUID)."""

    submitted_at: datetime
    """When the attempt started."""

    status: SubmissionState
    """SUCCEEDED or FAILED."""

    record_id: str = ""
    """Identifier returned by the Record Store."""

    uploaded: Dict[str, List[str]] = field(default_factory=dict)
    """Resolved image URLs per bucket."""

    error: Optional[BaseException] = None
    """The failure, if any."""

    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.status == SubmissionState.SUCCEEDED

    @property
    def error_code(self) -> str:
        return type(self.error).__name__ if self.error else ""

    @property
    def error_message(self) -> str:
        """Raw failure detail as reported by the store."""
        if self.error is None:
            return ""
        return getattr(self.error, "message", None) or str(self.error)

    @classmethod
    def create_succeeded(
        cls,
        submission_id: str,
        submitted_at: datetime,
        record_id: str,
        uploaded: Dict[str, List[str]]
    ) -> "SubmissionResult":
        """
        Create a result for a recorded report.

        Args:
            submission_id: Unique attempt identifier
            submitted_at: Attempt start time
            record_id: Identifier from the Record Store
            uploaded: Resolved image URLs per bucket

        Returns:
            SubmissionResult in SUCCEEDED status
        """
        return cls(
            submission_id=submission_id,
            submitted_at=submitted_at,
            status=SubmissionState.SUCCEEDED,
            record_id=record_id,
            uploaded=uploaded,
        )

    @classmethod
    def create_failed(
        cls,
        submission_id: str,
        submitted_at: datetime,
        error: BaseException,
        uploaded: Optional[Dict[str, List[str]]] = None
    ) -> "SubmissionResult":
        """
        Create a result for a failed attempt.

        Args:
            submission_id: Unique attempt identifier
            submitted_at: Attempt start time
            error: The failure
            uploaded: References uploaded before the failure (orphaned objects)

        Returns:
            SubmissionResult in FAILED status
        """
        return cls(
            submission_id=submission_id,
            submitted_at=submitted_at,
            status=SubmissionState.FAILED,
            uploaded=uploaded or {},
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        data = {
            "submission_id": self.submission_id,
            "submitted_at": self.submitted_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "status": self.status.value,
            "record_id": self.record_id,
            "uploaded": {bucket: list(urls) for bucket, urls in self.uploaded.items()},
        }
        if self.error is not None:
            data["error"] = {
                "code": self.error_code,
                "message": self.error_message,
                "details": getattr(self.error, "details", {}),
            }
        return data
