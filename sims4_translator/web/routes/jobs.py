"""Translation job API routes - start, pause, resume, cancel and status."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from sims4_translator.ai.exceptions import TranslationError
from sims4_translator.config import MAX_BATCH_SIZE
from sims4_translator.logger import get_logger

jobs_bp = Blueprint("translation_job", __name__)
logger = get_logger(__name__)


def _jobs():
    return current_app.extensions["translation_jobs"]


def _job_response(job, status_code: int = 200):
    return jsonify(job.to_dict()), status_code


@jobs_bp.get("/")
def get_job():
    """Return the state of the current translation job."""
    job = _jobs().current
    if job is None:
        return jsonify({"job_id": None, "state": "idle"})
    return _job_response(job)


@jobs_bp.post("/start")
def start_job():
    """Start translating the whole project from the first batch."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    batch_size = data.get("batch_size")
    if batch_size is not None:
        if isinstance(batch_size, bool) or not isinstance(batch_size, int):
            return jsonify({"error": "batch_size must be an integer", "code": "invalid_input"}), 400
        if batch_size < 1 or batch_size > MAX_BATCH_SIZE:
            return jsonify({
                "error": f"batch_size must be between 1 and {MAX_BATCH_SIZE}",
                "code": "invalid_input",
            }), 400

    if not current_app.extensions["workspace"].records():
        return jsonify({"error": "No strings loaded", "code": "no_strings"}), 400

    try:
        job = _jobs().start(
            batch_size=batch_size,
            ai_provider=data.get("ai_provider"),
            model_override=data.get("model"),
            instruction=data.get("instruction") or "",
        )
    except TranslationError as e:
        logger.warning("Translation job not started: %s", e)
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 400
    except ValueError as e:
        return jsonify({"error": str(e), "code": "invalid_input"}), 400

    return _job_response(job, 202)


@jobs_bp.post("/pause")
def pause_job():
    return _job_response(_jobs().pause())


@jobs_bp.post("/resume")
def resume_job():
    return _job_response(_jobs().resume(), 202)


@jobs_bp.post("/cancel")
def cancel_job():
    return _job_response(_jobs().cancel())
