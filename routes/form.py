"""
Form editing routes.

Field edits and photo selection for the current form session. These are
pure state mutations; nothing here talks to the stores.
"""

from __future__ import annotations

import html
from typing import Optional

import bleach
from flask import Blueprint, current_app, request, session

from logging_config import get_logger
from models.form_state import FIELDS, FORM_SECTIONS, normalize_value
from models.image_buckets import IMAGE_BUCKETS, ImageFile
from models.session import InspectionSession


# Module logger
logger = get_logger(__name__)

form_bp = Blueprint("form", __name__)

# Constants
SESSION_KEY = "form_session_id"
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "heic", "heif"}
MAX_FILENAME_LENGTH = 255
MAX_TEXT_LENGTH = 2000


def current_form_session(create: bool = True) -> Optional[InspectionSession]:
    """Look up (or create) the form session bound to this browser session."""
    registry = current_app.config["SESSION_REGISTRY"]
    session_id = session.get(SESSION_KEY)

    if not create:
        return registry.get(session_id)

    form_session = registry.get_or_create(session_id)
    if form_session.session_id != session_id:
        session[SESSION_KEY] = form_session.session_id
        session.modified = True
    return form_session


def _allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _sanitize_text(text: str, max_length: int = None) -> str:
    """
    Strip markup from free-text answers.

    Args:
        text: Raw input text
        max_length: Optional maximum length to enforce

    Returns:
        Text with markup removed, otherwise as entered
    """
    if not text:
        return ""

    # bleach escapes &, < and > in what it keeps; store the text as typed
    text = html.unescape(bleach.clean(text.strip(), tags=[], strip=True))

    if max_length and len(text) > max_length:
        text = text[:max_length]

    return text


@form_bp.route("/form/schema", methods=["GET"])
def schema():
    """Declared sections, fields and image buckets."""
    return {
        "sections": [
            {"title": title, "fields": [d.to_dict() for d in definitions]}
            for title, definitions in FORM_SECTIONS
        ],
        "image_buckets": [{"name": name, "label": label} for name, label in IMAGE_BUCKETS.items()],
    }


@form_bp.route("/form", methods=["GET"])
def show():
    """Current values, selected images and submission state."""
    return current_form_session().to_dict()


@form_bp.route("/form", methods=["DELETE"])
def teardown():
    """Discard the form session, cancelling any in-flight submission."""
    registry = current_app.config["SESSION_REGISTRY"]
    session_id = session.pop(SESSION_KEY, None)
    discarded = registry.discard(session_id) if session_id else False
    return {"discarded": discarded}


@form_bp.route("/form/fields", methods=["POST"])
def set_fields():
    """
    Apply a JSON object of field updates.

    All keys are validated before any value is applied, so a bad request
    leaves the form untouched.
    """
    updates = request.get_json(silent=True)
    if not isinstance(updates, dict):
        return {"error": {"code": "BadRequest", "message": "Expected a JSON object of field values"}}, 400

    form_session = current_form_session()

    cleaned = {}
    for key, value in updates.items():
        definition = FIELDS.get(key)
        if definition is not None and definition.kind == "text" and isinstance(value, str):
            value = _sanitize_text(value, max_length=MAX_TEXT_LENGTH)
        cleaned[key] = value

    # Validate everything first (raises InvalidFieldError -> 400)
    for key, value in cleaned.items():
        normalize_value(key, value)

    stored = {key: form_session.set_field(key, value) for key, value in cleaned.items()}
    logger.debug(f"Session {form_session.session_id[:8]} updated {len(stored)} field(s)")
    return {"fields": stored}


@form_bp.route("/form/images/<bucket>", methods=["POST"])
def add_images(bucket: str):
    """Append uploaded photos (multipart field 'files') to a bucket."""
    if bucket not in IMAGE_BUCKETS:
        return {"error": {"code": "InvalidFieldError", "message": f"Unknown image bucket: {bucket}"}}, 400

    uploads = [f for f in request.files.getlist("files") if f and f.filename]
    if not uploads:
        return {"error": {"code": "BadRequest", "message": "Please choose at least one photo"}}, 400

    max_bytes = current_app.config.get("MAX_IMAGE_BYTES", 15 * 1024 * 1024)
    images = []
    for upload in uploads:
        if len(upload.filename) > MAX_FILENAME_LENGTH:
            return {"error": {"code": "BadRequest", "message": f"Filename too long: {upload.filename[:40]}..."}}, 400
        if not _allowed_file(upload.filename):
            return {"error": {"code": "BadRequest", "message": f"Unsupported file type: {upload.filename}"}}, 400

        data = upload.read()
        if len(data) > max_bytes:
            max_mb = max_bytes / (1024 * 1024)
            return {"error": {"code": "BadRequest", "message": f"{upload.filename} is larger than {max_mb:.0f} MB"}}, 400

        images.append(ImageFile(
            filename=upload.filename,
            data=data,
            content_type=upload.mimetype or "application/octet-stream",
        ))

    form_session = current_form_session()
    count = form_session.add_images(bucket, images)
    logger.info(f"Session {form_session.session_id[:8]} added {len(images)} photo(s) to {bucket}")
    return {"bucket": bucket, "count": count}, 201


@form_bp.route("/form/images/<bucket>/<int:index>", methods=["DELETE"])
def remove_image(bucket: str, index: int):
    """Remove the photo at index from a bucket."""
    form_session = current_form_session()
    try:
        removed = form_session.remove_image(bucket, index)
    except IndexError as e:
        return {"error": {"code": "NotFound", "message": str(e)}}, 404

    return {
        "bucket": bucket,
        "removed": removed.to_dict(),
        "count": len(form_session.image_buckets.files(bucket)),
    }
