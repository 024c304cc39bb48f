"""
Submission routes.

POST /submit starts an attempt on a dedicated thread and returns at once.
GET /status is polled until the session leaves IN_FLIGHT.
POST /reset returns the form to a fresh baseline.
"""

from flask import Blueprint, current_app

from logging_config import get_logger
from models.submission import SubmissionState

from .form import current_form_session


# Module logger
logger = get_logger(__name__)

submit_bp = Blueprint("submit", __name__)


@submit_bp.route("/submit", methods=["POST"])
def submit():
    """
    Start a submission attempt for the current form session.

    The session snapshots form and photos before the thread starts, so
    edits made while the attempt runs do not affect it. A second submit
    while IN_FLIGHT raises PreconditionError (409).
    """
    submission_service = current_app.config.get("SUBMISSION_SERVICE")
    if not submission_service:
        return {"error": {"code": "ServiceUnavailable", "message": "Submission service unavailable"}}, 503

    form_session = current_form_session()
    submission_id = submission_service.start(form_session)

    logger.info(f"Submission {submission_id[:8]} accepted")
    return {"submission_id": submission_id, "state": SubmissionState.IN_FLIGHT.value}, 202


@submit_bp.route("/status", methods=["GET"])
def status():
    """
    Poll the submission state of the current form session.

    On failure the result carries the error code and the store's raw
    message, e.g. a schema mismatch naming the offending column.
    """
    form_session = current_form_session(create=False)
    if form_session is None:
        return {"error": {"code": "NotFound", "message": "No active form session"}}, 404

    result = form_session.last_result
    return {
        "state": form_session.state.value,
        "complete": form_session.state != SubmissionState.IN_FLIGHT,
        "result": result.to_dict() if result else None,
    }


@submit_bp.route("/reset", methods=["POST"])
def reset():
    """Reset the form (allowed when idle or after a successful submission)."""
    form_session = current_form_session()
    form_state = form_session.reset()
    logger.info(f"Session {form_session.session_id[:8]} reset")
    return {"state": form_session.state.value, "fields": form_state.to_dict()}
