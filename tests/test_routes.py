"""
Integration tests for the Flask routes using the local stores.
"""

import io

import pytest

from app import create_app
from core.exceptions import SchemaMismatchError

from conftest import FakeBlobStore, FakeRecordStore


COLLECTION = "roof_inspections"


@pytest.fixture
def app(tmp_path):
    return create_app("config.TestingConfig", {"LOCAL_STORAGE_PATH": str(tmp_path)})


@pytest.fixture
def client(app):
    return app.test_client()


def upload(client, bucket, *names):
    files = [(io.BytesIO(b"jpeg-bytes"), name) for name in names]
    return client.post(f"/form/images/{bucket}", data={"files": files}, content_type="multipart/form-data")


def form_session(app, client):
    session_id = client.get("/form").get_json()["session_id"]
    return app.config["SESSION_REGISTRY"].get(session_id)


class TestAppFactory:
    """Startup wiring."""

    def test_health(self, client):
        data = client.get("/health").get_json()
        assert data["status"] == "ok"
        assert data["storage_backend"] == "local"

    def test_schema_drift_stops_startup(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "app.build_stores",
            lambda config: (FakeBlobStore(), FakeRecordStore(columns={"clientName"})),
        )

        with pytest.raises(SchemaMismatchError) as exc_info:
            create_app("config.TestingConfig", {"LOCAL_STORAGE_PATH": str(tmp_path)})

        assert "roofSpacePhoto" in exc_info.value.columns

    def test_unknown_route_is_json(self, client):
        response = client.get("/nowhere")
        assert response.status_code == 404
        assert response.get_json()["error"]["message"]


class TestFormRoutes:
    """Field edits and photo selection."""

    def test_schema_lists_sections_and_buckets(self, client):
        data = client.get("/form/schema").get_json()

        assert data["sections"][0]["title"] == "Job Details"
        assert len(data["image_buckets"]) == 9

    def test_new_form_has_date_and_time(self, client):
        fields = client.get("/form").get_json()["fields"]
        assert fields["inspectionDate"]
        assert fields["inspectionTime"]
        assert fields["clientName"] == ""

    def test_set_fields(self, client):
        response = client.post("/form/fields", json={
            "clientName": "A. Smith",
            "claddingType": "Metal",
            "claddingNotes": "<b>Rusty</b> screws",
        })

        assert response.status_code == 200
        fields = client.get("/form").get_json()["fields"]
        assert fields["clientName"] == "A. Smith"
        assert fields["claddingNotes"] == "Rusty screws"

    def test_text_is_stored_as_typed(self, app, client):
        response = client.post("/form/fields", json={"clientName": "Smith & Sons", "ridgeNotes": "gap < 5mm"})

        assert response.get_json()["fields"] == {"clientName": "Smith & Sons", "ridgeNotes": "gap < 5mm"}

        session = form_session(app, client)
        assert session.form_state.get("clientName") == "Smith & Sons"
        assert session.form_state.get("ridgeNotes") == "gap < 5mm"

    def test_invalid_field_leaves_form_untouched(self, client):
        response = client.post("/form/fields", json={"clientName": "A. Smith", "claddingType": "Straw"})

        assert response.status_code == 400
        assert response.get_json()["error"]["code"] == "InvalidFieldError"
        assert client.get("/form").get_json()["fields"]["clientName"] == ""

    def test_non_object_body(self, client):
        assert client.post("/form/fields", json=["clientName"]).status_code == 400

    def test_add_and_remove_images(self, client):
        response = upload(client, "defectPhoto", "a.jpg", "b.png")
        assert response.status_code == 201
        assert response.get_json()["count"] == 2

        response = client.delete("/form/images/defectPhoto/0")
        assert response.status_code == 200
        assert response.get_json()["removed"]["filename"] == "a.jpg"
        assert response.get_json()["count"] == 1

    def test_remove_missing_image(self, client):
        assert client.delete("/form/images/defectPhoto/3").status_code == 404

    def test_unknown_bucket(self, client):
        assert upload(client, "chimneyPhoto", "a.jpg").status_code == 400
        assert client.delete("/form/images/chimneyPhoto/0").status_code == 400

    def test_unsupported_file_type(self, client):
        assert upload(client, "defectPhoto", "notes.txt").status_code == 400

    def test_teardown(self, client):
        client.get("/form")
        assert client.delete("/form").get_json()["discarded"] is True
        assert client.get("/status").status_code == 404


class TestSubmitRoutes:
    """Submission, status and reset."""

    def test_status_without_session(self, client):
        assert client.get("/status").status_code == 404

    def test_submit_records_report_and_resets(self, app, client):
        client.post("/form/fields", json={"clientName": "A. Smith", "claddingType": "Metal"})
        upload(client, "brokenTilesPhoto", "tile.jpg")

        response = client.post("/submit")
        assert response.status_code == 202
        submission_id = response.get_json()["submission_id"]
        app.config["SUBMISSION_SERVICE"].join(submission_id, timeout=5)

        status = client.get("/status").get_json()
        assert status["complete"] is True
        assert status["result"]["status"] == "succeeded"

        rows = app.config["RECORD_STORE"].rows(COLLECTION)
        assert len(rows) == 1
        assert rows[0]["clientName"] == "A. Smith"
        assert len(rows[0]["brokenTilesPhoto"]) == 1

        # Stored photo is served back by the local media route
        url = rows[0]["brokenTilesPhoto"][0]
        assert client.get(url).data == b"jpeg-bytes"

        # Form was reset after success
        form = client.get("/form").get_json()
        assert form["fields"]["clientName"] == ""
        assert form["images"]["brokenTilesPhoto"] == []

    def test_second_submit_while_in_flight(self, app, client):
        session = form_session(app, client)
        session.begin_submission()

        response = client.post("/submit")

        assert response.status_code == 409
        assert response.get_json()["error"]["code"] == "PreconditionError"
        assert client.post("/reset").status_code == 409
        assert client.get("/status").get_json()["complete"] is False

    def test_reset(self, client):
        client.post("/form/fields", json={"clientName": "A. Smith"})

        response = client.post("/reset")

        assert response.status_code == 200
        assert response.get_json()["fields"]["clientName"] == ""
