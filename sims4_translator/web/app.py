"""Flask application configuration and blueprint registration."""

from __future__ import annotations

from typing import Callable, Optional

from flask import Flask, jsonify

from sims4_translator.ai.exceptions import TranslationError
from sims4_translator.logger import get_logger
from sims4_translator.project.workspace import Workspace
from sims4_translator.translation.orchestrator import OrchestratorStateError

from .routes.documents import documents_bp
from .routes.jobs import jobs_bp
from .routes.settings import settings_bp
from .routes.translations import translations_bp
from .tasks import TranslationJobs, default_backend_factory

logger = get_logger(__name__)


def build_app(
    workspace: Optional[Workspace] = None,
    backend_factory: Optional[Callable] = None,
) -> Flask:
    """Create and configure the Flask application.

    Without a workspace the saved project is restored from the database.
    """
    app = Flask(__name__)

    # Ensure JSON responses keep Unicode data.
    app.json.ensure_ascii = False
    app.json.sort_keys = False

    if workspace is None:
        workspace = Workspace.load()
    app.extensions["workspace"] = workspace
    app.extensions["translation_jobs"] = TranslationJobs(
        workspace, backend_factory or default_backend_factory
    )

    register_blueprints(app)
    register_default_routes(app)
    register_error_handlers(app)

    return app


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints."""
    app.register_blueprint(documents_bp, url_prefix="/api/documents")
    app.register_blueprint(translations_bp, url_prefix="/api/translations")
    app.register_blueprint(jobs_bp, url_prefix="/api/translation-job")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")


def register_default_routes(app: Flask) -> None:
    """Register the health route."""

    @app.get("/health")
    def health_check():
        logger.debug("Health check requested")
        return jsonify({"status": "ok"})


def register_error_handlers(app: Flask) -> None:
    """Map domain errors to JSON error bodies."""

    @app.errorhandler(OrchestratorStateError)
    def invalid_state(e: OrchestratorStateError):
        logger.warning("Rejected command: %s", e)
        return jsonify({"error": str(e), "code": e.code}), 409

    @app.errorhandler(TranslationError)
    def translation_error(e: TranslationError):
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found", "code": "not_found"}), 404

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("Internal server error: %s", e)
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500
