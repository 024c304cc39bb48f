"""
Roof Inspection Service - Flask Application Entry Point.

This is a slim app factory that:
1. Builds the Blob Store and Record Store adapters from config
2. Verifies the Record Store schema against the declared report columns
   (fail-fast, schema drift stops startup)
3. Creates the submission service (thread-per-submission)
4. Registers route blueprints and JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Store setup and schema check
    ├── Flask request handling (form edits are pure state mutations)
    └── Cleanup on shutdown (cancel in-flight submissions)

    Submission Threads (one per attempt)
    └── Upload pool per bucket, then one Record Store insert
"""

from __future__ import annotations

import atexit
import logging
import os
from typing import Any, Mapping, Optional

from flask import Flask
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import setup_logging, get_logger
from core.exceptions import InspectionServiceError, InvalidFieldError, PreconditionError, StoreError
from core.store_factory import build_stores
from models.report import check_schema
from services.session_registry import SessionRegistry
from services.submission_service import SubmissionOrchestrator, SubmissionService
from services.upload_coordinator import ImageUploadCoordinator
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def create_app(
    config_object: str = "config.Config",
    overrides: Optional[Mapping[str, Any]] = None
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    FAIL-FAST: If the Record Store lacks a declared report column (and
    VERIFY_SCHEMA_ON_STARTUP is on), or cannot be reached, the app will
    not start.

    Args:
        config_object: Import path of the config class
        overrides: Extra config values applied last (tests)

    Returns:
        Configured Flask application

    Raises:
        SchemaMismatchError: If the store schema drifted from the report
        TransportError: If the Record Store cannot be reached
    """
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(log_level=log_level, enable_file_logging=enable_file_logging)
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting roof inspection service in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # STORES (FAIL-FAST)
    # =========================================================================

    blob_store, record_store = build_stores(app.config)
    collection = app.config["REPORTS_TABLE"]

    if app.config.get("VERIFY_SCHEMA_ON_STARTUP"):
        try:
            check_schema(record_store.describe_columns(collection), collection)
            logger.info(f"Record store schema verified for {collection}")
        except StoreError as e:
            logger.error(f"FATAL: Cannot start application - {e}")
            raise

    app.config["BLOB_STORE"] = blob_store
    app.config["RECORD_STORE"] = record_store

    # =========================================================================
    # SERVICES
    # =========================================================================

    coordinator = ImageUploadCoordinator(
        blob_store,
        max_workers=app.config.get("UPLOAD_MAX_WORKERS", 4),
        cache_control=app.config.get("CACHE_CONTROL", "3600"),
    )
    orchestrator = SubmissionOrchestrator(blob_store, record_store, collection, coordinator)
    submission_service = SubmissionService(
        orchestrator,
        auto_reset=app.config.get("AUTO_RESET_AFTER_SUBMIT", True),
    )
    session_registry = SessionRegistry(idle_seconds=app.config.get("SESSION_IDLE_SECONDS"))

    app.config["SUBMISSION_SERVICE"] = submission_service
    app.config["SESSION_REGISTRY"] = session_registry

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        submission_service.shutdown()
        session_registry.close_all()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(PreconditionError)
    def handle_precondition(e: PreconditionError):
        logger.warning(f"Rejected: {e.message}")
        return {"error": {"code": e.code, "message": e.message, "details": e.details}}, 409

    @app.errorhandler(InvalidFieldError)
    def handle_invalid_field(e: InvalidFieldError):
        return {"error": {"code": e.code, "message": e.message, "details": e.details}}, 400

    @app.errorhandler(InspectionServiceError)
    def handle_service_error(e: InspectionServiceError):
        logger.error(f"{e.code}: {e}")
        return {"error": {"code": e.code, "message": e.message, "details": e.details}}, 500

    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 64 * 1024 * 1024) / (1024 * 1024)
        return {"error": {"code": "RequestEntityTooLarge", "message": f"Upload too large. Maximum request size is {max_mb:.0f} MB."}}, 413

    @app.errorhandler(HTTPException)
    def handle_http(e: HTTPException):
        return {"error": {"code": e.name, "message": e.description}}, e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"error": {"code": "InternalServerError", "message": "An unexpected error occurred"}}, 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode)
