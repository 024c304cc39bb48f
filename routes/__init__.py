"""
Flask route blueprints for the roof inspection service.

This module contains all route handlers organized by functionality:
- main: Index, health check, local media
- form: Field edits and photo selection
- submit: Submission, status polling, reset

Each blueprint is registered with the Flask app in create_app().
"""

from .main import main_bp
from .form import form_bp
from .submit import submit_bp

__all__ = [
    "main_bp",
    "form_bp",
    "submit_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(main_bp)
    app.register_blueprint(form_bp)
    app.register_blueprint(submit_bp)
