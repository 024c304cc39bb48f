"""
Main routes (index, health, local media).
"""

from flask import Blueprint, abort, current_app, send_from_directory

from core.local_store import LocalBlobStore

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def index():
    """Service description and entry points."""
    return {
        "service": "roof-inspection",
        "endpoints": ["/form/schema", "/form", "/form/fields", "/form/images/<bucket>", "/submit", "/status", "/reset"],
    }


@main_bp.route("/health", methods=["GET"])
def health():
    """Health check with the configured backend."""
    return {
        "status": "ok",
        "storage_backend": current_app.config.get("STORAGE_BACKEND"),
        "active_sessions": len(current_app.config["SESSION_REGISTRY"]),
    }


@main_bp.route("/media/<path:object_name>", methods=["GET"])
def media(object_name: str):
    """Serve objects of the local Blob Store (local backend only)."""
    blob_store = current_app.config.get("BLOB_STORE")
    if not isinstance(blob_store, LocalBlobStore):
        abort(404)
    return send_from_directory(blob_store.root, object_name)
