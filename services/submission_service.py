"""
Submission orchestration with thread-per-submission architecture.

SubmissionOrchestrator drives one end-to-end attempt synchronously:

    1. Enter IN_FLIGHT, clear the previous result, snapshot the form
    2. Upload every non-empty image bucket (all-or-nothing)
    3. Merge scalar fields and image references into one record
    4. Insert the record into the Record Store (exactly one row)
    5. Report SUCCEEDED or FAILED with the store's error verbatim

SubmissionService runs the orchestrator on a dedicated thread per attempt
so HTTP handlers can return immediately and poll the session for the
outcome. The IN_FLIGHT transition happens in the caller's thread, before
the worker starts, so a second submit is rejected at once.

No automatic retries: a retry is a new, user-initiated attempt.

Usage:
    orchestrator = SubmissionOrchestrator(blob_store, record_store, "roof_inspections")

    # Synchronous
    result = orchestrator.submit(session)

    # Background (Flask)
    service = SubmissionService(orchestrator, auto_reset=True)
    submission_id = service.start(session)
    ...
    service.shutdown()
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from core.exceptions import InspectionServiceError, SubmissionCancelledError, UploadError
from core.stores import BlobStore, RecordStore
from logging_config import get_logger, get_submission_logger
from models.report import build_report
from models.session import InspectionSession, SubmissionSnapshot
from models.submission import SubmissionResult

from .upload_coordinator import ImageUploadCoordinator


# Module logger
logger = get_logger(__name__)


class SubmissionOrchestrator:
    """
    Performs one submission attempt for a form session.

    Attributes:
        record_store: Destination of the inspection report row
        collection: Record Store collection name
        coordinator: Image upload coordinator
    """

    def __init__(
        self,
        blob_store: BlobStore,
        record_store: RecordStore,
        collection: str,
        coordinator: Optional[ImageUploadCoordinator] = None
    ):
        self.record_store = record_store
        self.collection = collection
        self.coordinator = coordinator or ImageUploadCoordinator(blob_store)

    def submit(self, session: InspectionSession) -> SubmissionResult:
        """
        Run one attempt to completion.

        Returns:
            SubmissionResult (SUCCEEDED or FAILED)

        Raises:
            PreconditionError: If the session already has an attempt in flight
        """
        snapshot = session.begin_submission()
        return self.run(session, snapshot)

    def run(
        self,
        session: InspectionSession,
        snapshot: SubmissionSnapshot,
        reset_on_success: bool = False
    ) -> SubmissionResult:
        """
        Execute an attempt whose IN_FLIGHT transition was already made.

        Domain failures become a FAILED result. Anything else still moves the
        session to FAILED and is re-raised. With reset_on_success the form is
        cleared in the same locked step that records the success.
        """
        submission_logger = get_submission_logger(snapshot.submission_id)
        uploaded: Dict[str, List[str]] = {}

        try:
            uploaded = self.coordinator.upload_all(
                snapshot.images,
                snapshot.submitted_at,
                cancel_event=snapshot.cancel_event,
                submission_logger=submission_logger,
            )

            report = build_report(snapshot.form, uploaded)

            if snapshot.cancel_event.is_set():
                raise SubmissionCancelledError()

            submission_logger.info(f"Inserting report into {self.collection}")
            record_id = self.record_store.insert(self.collection, report.to_row())
            submission_logger.info(f"Report recorded: id={record_id}")

            result = SubmissionResult.create_succeeded(
                submission_id=snapshot.submission_id,
                submitted_at=snapshot.submitted_at,
                record_id=record_id,
                uploaded=uploaded,
            )

        except InspectionServiceError as e:
            submission_logger.error(f"Submission failed: {e.code}: {e.message}")
            if not uploaded and isinstance(e, (UploadError, SubmissionCancelledError)):
                uploaded = e.uploaded
            if uploaded:
                orphans = sum(len(urls) for urls in uploaded.values())
                submission_logger.warning(f"{orphans} uploaded image(s) are now unreferenced: {uploaded}")
            result = SubmissionResult.create_failed(
                submission_id=snapshot.submission_id,
                submitted_at=snapshot.submitted_at,
                error=e,
                uploaded=uploaded,
            )

        except Exception as e:
            submission_logger.error(f"Unexpected submission failure: {e}", exc_info=True)
            session.complete_submission(SubmissionResult.create_failed(
                submission_id=snapshot.submission_id,
                submitted_at=snapshot.submitted_at,
                error=e,
                uploaded=uploaded,
            ))
            raise

        session.complete_submission(result, reset=reset_on_success)
        return result


class SubmissionService:
    """
    Runs submission attempts on background threads.

    One thread per attempt, named Submit-<id>. Threads share nothing but
    the store adapters and the session they were started for.
    """

    def __init__(self, orchestrator: SubmissionOrchestrator, auto_reset: bool = True):
        self._orchestrator = orchestrator
        self._auto_reset = auto_reset

        # Track active submission threads for shutdown
        self._active: Dict[str, tuple] = {}
        self._lock = threading.Lock()

        logger.info("SubmissionService initialized")

    @property
    def orchestrator(self) -> SubmissionOrchestrator:
        return self._orchestrator

    def start(self, session: InspectionSession) -> str:
        """
        Start an attempt for session in the background.

        Returns:
            submission_id

        Raises:
            PreconditionError: If the session already has an attempt in flight
        """
        snapshot = session.begin_submission()
        submission_id = snapshot.submission_id

        thread = threading.Thread(
            target=self._submission_thread_main,
            args=(session, snapshot),
            name=f"Submit-{submission_id[:8]}",
            daemon=True
        )

        with self._lock:
            self._active[submission_id] = (thread, session)

        thread.start()
        logger.info(f"Submission {submission_id[:8]} started for session {session.session_id[:8]}")
        return submission_id

    def is_pending(self, submission_id: str) -> bool:
        with self._lock:
            entry = self._active.get(submission_id)
            return entry is not None and entry[0].is_alive()

    def join(self, submission_id: str, timeout: Optional[float] = None) -> None:
        """Wait for one attempt's thread to finish."""
        with self._lock:
            entry = self._active.get(submission_id)
        if entry is not None:
            entry[0].join(timeout=timeout)

    def shutdown(self, timeout_per_thread: float = 5.0) -> None:
        """
        Cancel in-flight attempts and wait for their threads.

        Call this during application shutdown.
        """
        with self._lock:
            active = list(self._active.items())

        if not active:
            logger.info("No active submission threads to wait for")
            return

        logger.info(f"Cancelling {len(active)} submission thread(s)...")

        for submission_id, (thread, session) in active:
            session.cancel()
            if thread.is_alive():
                thread.join(timeout=timeout_per_thread)
                if thread.is_alive():
                    logger.warning(f"Submission thread {submission_id[:8]} did not stop in time")

        logger.info("Submission service shutdown complete")

    def _submission_thread_main(self, session: InspectionSession, snapshot: SubmissionSnapshot) -> None:
        submission_logger = get_submission_logger(snapshot.submission_id)

        try:
            self._orchestrator.run(session, snapshot, reset_on_success=self._auto_reset)
        except Exception as e:
            submission_logger.error(f"Submission thread crashed: {e}")
        finally:
            with self._lock:
                self._active.pop(snapshot.submission_id, None)
            submission_logger.info("Submission thread exiting")
