"""
Unit tests for the submission orchestrator and the background service.
"""

import time
from datetime import datetime

import pytest
from unittest.mock import MagicMock

from core.exceptions import (
    PreconditionError,
    RecordInsertError,
    SchemaMismatchError,
    TransportError,
    UploadError,
)
from models.form_state import DATE_FIELD, FIELD_NAMES, TIME_FIELD
from models.image_buckets import BUCKET_NAMES
from models.session import InspectionSession
from models.submission import SubmissionState
from services.submission_service import SubmissionOrchestrator, SubmissionService

from conftest import FIXED_NOW, FakeBlobStore, FakeRecordStore, make_image


COLLECTION = "roof_inspections"


@pytest.fixture
def orchestrator(blob_store, record_store):
    return SubmissionOrchestrator(blob_store, record_store, COLLECTION)


class TestSubmitWithoutImages:
    """Scalar-only submissions."""

    def test_no_blob_calls_and_one_insert_equal_to_form(self, session, blob_store, record_store, orchestrator):
        session.set_field("clientName", "A. Smith")
        session.set_field("roofPitch", "22.5")

        result = orchestrator.submit(session)

        assert result.succeeded
        assert blob_store.put_calls == []
        assert blob_store.resolve_calls == []
        assert record_store.rows == [session.form_state.to_dict()]
        assert result.record_id == "row-1"

    def test_identical_submissions_create_separate_rows(self, session, record_store, orchestrator):
        orchestrator.submit(session)
        orchestrator.submit(session)

        assert len(record_store.rows) == 2
        assert record_store.rows[0] == record_store.rows[1]


class TestSubmitWithImages:
    """Submissions that upload photos."""

    def test_concrete_scenario(self, session, blob_store, record_store, orchestrator):
        session.set_field("clientName", "A. Smith")
        session.set_field("claddingType", "Metal")
        session.add_images("brokenTilesPhoto", [make_image("tile.jpg")])

        result = orchestrator.submit(session)

        assert result.succeeded
        assert len(blob_store.put_calls) == 1
        assert len(blob_store.resolve_calls) == 1
        assert len(record_store.rows) == 1

        row = record_store.rows[0]
        expected_url = blob_store.resolve_public_url(blob_store.put_calls[0])
        assert row["brokenTilesPhoto"] == [expected_url]
        assert row["clientName"] == "A. Smith"
        assert row["claddingType"] == "Metal"
        assert [key for key in row if key in BUCKET_NAMES] == ["brokenTilesPhoto"]

    def test_put_count_equals_total_files(self, session, blob_store, record_store, orchestrator):
        session.add_images("overviewPhoto", [make_image("o1.jpg"), make_image("o2.jpg")])
        session.add_images("defectPhoto", [make_image("d1.jpg")])
        session.add_images("guttersPhoto", [make_image("g1.jpg"), make_image("g2.jpg"), make_image("g3.jpg")])

        result = orchestrator.submit(session)

        assert len(blob_store.put_calls) == 6
        assert {bucket: len(urls) for bucket, urls in result.uploaded.items()} == {
            "overviewPhoto": 2,
            "defectPhoto": 1,
            "guttersPhoto": 3,
        }
        assert record_store.rows[0]["guttersPhoto"] == result.uploaded["guttersPhoto"]

    def test_repeat_submission_does_not_collide(self, record_store):
        clock = MagicMock(side_effect=[
            datetime(2024, 6, 10, 9, 0, 0),
            datetime(2024, 6, 10, 9, 0, 1),
            datetime(2024, 6, 10, 9, 0, 2),
        ])
        session = InspectionSession(clock=clock)
        session.add_images("defectPhoto", [make_image("a.jpg")])
        blob_store = FakeBlobStore()
        orchestrator = SubmissionOrchestrator(blob_store, record_store, COLLECTION)

        assert orchestrator.submit(session).succeeded
        assert orchestrator.submit(session).succeeded
        assert len(blob_store.objects) == 2


class TestSubmitFailures:
    """Failure propagation."""

    def test_upload_failure_makes_no_insert(self, session, record_store):
        blob_store = FakeBlobStore(fail_on={"bad.jpg": "The object exceeded the maximum allowed size"})
        orchestrator = SubmissionOrchestrator(blob_store, record_store, COLLECTION)
        session.add_images("overviewPhoto", [make_image("ok.jpg")])
        session.add_images("flashingPhoto", [make_image("bad.jpg")])

        result = orchestrator.submit(session)

        assert session.state == SubmissionState.FAILED
        assert isinstance(result.error, UploadError)
        assert result.error_message == "The object exceeded the maximum allowed size"
        assert record_store.rows == []

    def test_upload_failure_reports_orphans(self, session, record_store):
        blob_store = FakeBlobStore(fail_on={"bad.jpg": "quota exceeded"})
        orchestrator = SubmissionOrchestrator(blob_store, record_store, COLLECTION)
        session.add_images("overviewPhoto", [make_image("ok.jpg")])
        session.add_images("defectPhoto", [make_image("bad.jpg")])

        result = orchestrator.submit(session)

        assert isinstance(result.error, UploadError)
        assert list(result.uploaded) == ["overviewPhoto"]
        assert result.to_dict()["uploaded"]["overviewPhoto"][0].endswith("_0_ok.jpg")
        assert record_store.rows == []

    def test_insert_failure_is_verbatim_and_form_kept(self, session, blob_store):
        message = "Could not find the 'roofSpacePhoto' column of 'roof_inspections' in the schema cache"
        record_store = FakeRecordStore(error=SchemaMismatchError(message, COLLECTION, ["roofSpacePhoto"], 400))
        orchestrator = SubmissionOrchestrator(blob_store, record_store, COLLECTION)
        session.set_field("clientName", "A. Smith")
        session.add_images("roofSpacePhoto", [make_image("r.jpg")])

        result = orchestrator.submit(session)

        assert result.error_code == "SchemaMismatchError"
        assert result.error_message == message
        assert result.to_dict()["error"]["details"]["columns"] == ["roofSpacePhoto"]
        # Uploaded objects are reported as orphans, form is not reset
        assert len(result.uploaded["roofSpacePhoto"]) == 1
        assert session.form_state.get("clientName") == "A. Smith"
        assert len(session.image_buckets.files("roofSpacePhoto")) == 1

    def test_schema_mismatch_distinct_from_transport(self, session, blob_store):
        record_store = FakeRecordStore(columns={"clientName"})
        orchestrator = SubmissionOrchestrator(blob_store, record_store, COLLECTION)

        result = orchestrator.submit(session)

        assert isinstance(result.error, SchemaMismatchError)
        assert not isinstance(result.error, TransportError)

    def test_other_insert_rejection(self, session, blob_store, insert_rejecting_store):
        orchestrator = SubmissionOrchestrator(blob_store, insert_rejecting_store, COLLECTION)

        result = orchestrator.submit(session)

        assert isinstance(result.error, RecordInsertError)
        assert result.error.store_code == "23514"

    def test_retry_after_failure(self, session, blob_store):
        record_store = FakeRecordStore(error=TransportError("connection refused", store="record"))
        orchestrator = SubmissionOrchestrator(blob_store, record_store, COLLECTION)

        assert orchestrator.submit(session).status == SubmissionState.FAILED

        record_store.error = None
        result = orchestrator.submit(session)

        assert result.succeeded
        assert session.last_result is result

    def test_unexpected_error_marks_failed_and_propagates(self, session, blob_store):
        record_store = MagicMock()
        record_store.insert.side_effect = RuntimeError("boom")
        orchestrator = SubmissionOrchestrator(blob_store, record_store, COLLECTION)

        with pytest.raises(RuntimeError):
            orchestrator.submit(session)

        assert session.state == SubmissionState.FAILED
        assert session.last_result.error_message == "boom"


class TestSnapshots:
    """Edits during an attempt do not reach it."""

    def test_edits_while_in_flight_do_not_affect_attempt(self, session, blob_store, record_store, orchestrator):
        session.set_field("clientName", "A. Smith")
        snapshot = session.begin_submission()

        session.set_field("clientName", "B. Jones")
        session.add_images("defectPhoto", [make_image("late.jpg")])

        result = orchestrator.run(session, snapshot)

        assert result.succeeded
        assert record_store.rows[0]["clientName"] == "A. Smith"
        assert "defectPhoto" not in record_store.rows[0]
        assert blob_store.put_calls == []

    def test_second_submit_while_in_flight_rejected(self, session, orchestrator):
        session.begin_submission()

        with pytest.raises(PreconditionError) as exc_info:
            orchestrator.submit(session)

        assert exc_info.value.operation == "submit"

    def test_cancel_before_insert(self, session, record_store, orchestrator):
        snapshot = session.begin_submission()
        assert session.cancel() is True

        result = orchestrator.run(session, snapshot)

        assert result.error_code == "SubmissionCancelledError"
        assert record_store.rows == []


class TestSubmissionService:
    """Background thread per attempt."""

    def test_start_runs_and_auto_resets(self, blob_store, record_store):
        clock = MagicMock(side_effect=[FIXED_NOW, FIXED_NOW, datetime(2024, 6, 10, 11, 45)])
        session = InspectionSession(clock=clock)
        session.set_field("clientName", "A. Smith")
        service = SubmissionService(SubmissionOrchestrator(blob_store, record_store, COLLECTION))

        submission_id = service.start(session)
        service.join(submission_id, timeout=5)

        assert not service.is_pending(submission_id)
        assert record_store.rows[0]["clientName"] == "A. Smith"
        assert session.state == SubmissionState.IDLE
        assert session.form_state.get("clientName") == ""
        assert session.form_state.get(TIME_FIELD) == "11:45"

    def test_no_auto_reset_keeps_result(self, session, blob_store, record_store):
        service = SubmissionService(
            SubmissionOrchestrator(blob_store, record_store, COLLECTION),
            auto_reset=False,
        )

        submission_id = service.start(session)
        service.join(submission_id, timeout=5)

        assert session.state == SubmissionState.SUCCEEDED
        assert session.last_result.submission_id == submission_id

    def test_start_rejects_second_attempt_synchronously(self, session, blob_store, record_store):
        service = SubmissionService(SubmissionOrchestrator(blob_store, record_store, COLLECTION))
        session.begin_submission()

        with pytest.raises(PreconditionError):
            service.start(session)

    def test_failure_is_not_reset(self, session, blob_store, insert_rejecting_store):
        service = SubmissionService(SubmissionOrchestrator(blob_store, insert_rejecting_store, COLLECTION))
        session.set_field("clientName", "A. Smith")

        submission_id = service.start(session)
        service.join(submission_id, timeout=5)

        assert session.state == SubmissionState.FAILED
        assert session.form_state.get("clientName") == "A. Smith"

    def test_shutdown_cancels_live_attempt(self, session, record_store):
        blob_store = FakeBlobStore(delays={"slow.jpg": 0.3})
        service = SubmissionService(SubmissionOrchestrator(blob_store, record_store, COLLECTION))
        session.set_field("clientName", "A. Smith")
        session.add_images("overviewPhoto", [make_image("slow.jpg")])
        session.add_images("defectPhoto", [make_image("d.jpg")])

        submission_id = service.start(session)
        deadline = time.monotonic() + 2
        while not blob_store.put_calls and time.monotonic() < deadline:
            time.sleep(0.01)

        service.shutdown()

        assert not service.is_pending(submission_id)
        assert session.state == SubmissionState.FAILED
        assert session.last_result.error_code == "SubmissionCancelledError"
        assert list(session.last_result.uploaded) == ["overviewPhoto"]
        assert not any(name.startswith("defectPhoto/") for name in blob_store.put_calls)
        assert record_store.rows == []

    def test_shutdown_without_threads(self, blob_store, record_store):
        service = SubmissionService(SubmissionOrchestrator(blob_store, record_store, COLLECTION))
        service.shutdown()


def test_every_declared_field_reaches_the_record(session, record_store, orchestrator):
    orchestrator.submit(session)

    row = record_store.rows[0]
    assert set(row) == set(FIELD_NAMES)
    assert row[DATE_FIELD] == "2024-06-10"
