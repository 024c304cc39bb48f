"""
Inspection form session.

The session is the explicit owner of one form's state: scalar answers,
image buckets, the submission state machine and the last result. Request
handlers mutate it; the submission orchestrator receives it by reference.

Thread Safety:
    - All state transitions happen under the session lock
    - begin_submission() snapshots form and images under the lock, so edits
      made while IN_FLIGHT never reach the running attempt
    - The cancel event is per attempt and only set by cancel()
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional

from core.exceptions import PreconditionError
from logging_config import get_logger

from .form_state import FormState, FrozenFormState
from .image_buckets import FrozenImageBuckets, ImageBucketSet, ImageFile
from .submission import SubmissionResult, SubmissionState


# Module logger
logger = get_logger(__name__)

Clock = Callable[[], datetime]

RESETTABLE_STATES = (SubmissionState.IDLE, SubmissionState.SUCCEEDED)


@dataclass(frozen=True)
class SubmissionSnapshot:
    """Everything a submission attempt reads, frozen at its start."""

    submission_id: str
    submitted_at: datetime
    form: FrozenFormState
    images: FrozenImageBuckets
    cancel_event: threading.Event


class InspectionSession:
    """
    One inspector's form session.

    Attributes:
        session_id: Identifier used by the session registry
        form_state: Current scalar answers
        image_buckets: Current image selections
        state: SubmissionState of the session
        last_result: Result of the most recent attempt, if any
    """

    def __init__(self, session_id: Optional[str] = None, clock: Clock = datetime.now):
        self.session_id = session_id or str(uuid.uuid4())
        self._clock = clock
        self._lock = threading.RLock()
        self._cancel_event: Optional[threading.Event] = None

        self.form_state = FormState.fresh(clock())
        self.image_buckets = ImageBucketSet()
        self.state = SubmissionState.IDLE
        self.last_result: Optional[SubmissionResult] = None

    # -------------------------------------------------------------------------
    # Field-level mutators (no I/O)
    # -------------------------------------------------------------------------

    def set_field(self, key: str, value: object) -> str:
        with self._lock:
            return self.form_state.set_field(key, value)

    def add_images(self, bucket: str, files: Iterable[ImageFile]) -> int:
        with self._lock:
            return self.image_buckets.add_images(bucket, files)

    def remove_image(self, bucket: str, index: int) -> ImageFile:
        with self._lock:
            return self.image_buckets.remove_image(bucket, index)

    # -------------------------------------------------------------------------
    # Submission state machine
    # -------------------------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self.state == SubmissionState.IN_FLIGHT

    def begin_submission(self) -> SubmissionSnapshot:
        """
        Enter IN_FLIGHT and snapshot the form.

        Clears any previously reported result.

        Raises:
            PreconditionError: If an attempt is already in flight
        """
        with self._lock:
            if self.state == SubmissionState.IN_FLIGHT:
                raise PreconditionError("submit", self.state.value)

            self.state = SubmissionState.IN_FLIGHT
            self.last_result = None
            self._cancel_event = threading.Event()

            snapshot = SubmissionSnapshot(
                submission_id=str(uuid.uuid4()),
                submitted_at=self._clock(),
                form=self.form_state.freeze(),
                images=self.image_buckets.freeze(),
                cancel_event=self._cancel_event,
            )

        logger.info(
            f"Session {self.session_id[:8]} submission {snapshot.submission_id[:8]} in flight "
            f"({snapshot.images.total_files} images)"
        )
        return snapshot

    def complete_submission(self, result: SubmissionResult, reset: bool = False) -> None:
        """
        Record the outcome of the in-flight attempt.

        With reset, a successful outcome also returns the form to a fresh
        baseline under the same lock, so no submit can slip in between.
        last_result is kept either way.
        """
        with self._lock:
            self.state = result.status
            self.last_result = result
            self._cancel_event = None
            if reset and result.succeeded:
                self._start_fresh()

        logger.info(f"Session {self.session_id[:8]} submission {result.submission_id[:8]} {result.status.value}")
        if reset and result.succeeded:
            logger.info(f"Session {self.session_id[:8]} reset after successful submission")

    def cancel(self) -> bool:
        """
        Cancel the in-flight attempt, if any.

        Returns:
            True if an attempt was signalled to stop
        """
        with self._lock:
            if self.state != SubmissionState.IN_FLIGHT or self._cancel_event is None:
                return False
            self._cancel_event.set()

        logger.info(f"Session {self.session_id[:8]} cancellation requested")
        return True

    # -------------------------------------------------------------------------
    # Reset / lifecycle
    # -------------------------------------------------------------------------

    def reset(self) -> FormState:
        """
        Return the session to a fresh baseline.

        Date and time are recomputed at the moment of reset; every other
        field is cleared and all image buckets are emptied.

        Raises:
            PreconditionError: If in flight, or if the last attempt failed
        """
        with self._lock:
            if self.state not in RESETTABLE_STATES:
                raise PreconditionError("reset", self.state.value)

            self._start_fresh()
            return self.form_state

    def _start_fresh(self) -> None:
        # Caller holds the lock
        self.form_state = FormState.fresh(self._clock())
        self.image_buckets = ImageBucketSet()
        self.state = SubmissionState.IDLE

    def to_dict(self) -> Dict[str, object]:
        """Snapshot of the session for JSON responses."""
        with self._lock:
            return {
                "session_id": self.session_id,
                "state": self.state.value,
                "fields": self.form_state.to_dict(),
                "images": {
                    bucket: [f.to_dict() for f in files]
                    for bucket, files in self.image_buckets.buckets.items()
                },
                "last_result": self.last_result.to_dict() if self.last_result else None,
            }
