"""Translation map API routes - read, edit, manual JSON exchange and reset."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from sims4_translator.ai.exceptions import TranslationFormatError
from sims4_translator.logger import get_logger

translations_bp = Blueprint("translations", __name__)
logger = get_logger(__name__)


def _workspace():
    return current_app.extensions["workspace"]


@translations_bp.get("/")
def get_translations():
    """Return every string with its source text and current translation."""
    workspace = _workspace()
    translations = workspace.translations()
    strings = [
        {"id": record.id, "source": record.source, "translation": translations.get(record.id, "")}
        for record in workspace.records()
    ]
    return jsonify({"strings": strings, "stats": workspace.stats()})


@translations_bp.put("/<string_id>")
def update_translation(string_id: str):
    """Manually edit one translation."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    text = data.get("translation")
    if not isinstance(text, str):
        return jsonify({"error": "translation must be a string", "code": "invalid_input"}), 400

    try:
        _workspace().update_translation(string_id, text)
    except KeyError:
        return jsonify({"error": f"Unknown string id: {string_id}", "code": "not_found"}), 404

    logger.debug("Translation for %s edited manually", string_id)
    return jsonify({"id": string_id, "translation": text})


@translations_bp.get("/source-json")
def get_source_json():
    """The ``{"id": "source"}`` object to paste into an external AI tool."""
    workspace = _workspace()
    return jsonify({"json": workspace.source_json(), "count": len(workspace.records())})


@translations_bp.post("/apply")
def apply_translation_json():
    """Apply a pasted ``{"id": "translation"}`` object."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    text = data.get("json")
    if not isinstance(text, str) or not text.strip():
        return jsonify({"error": "json must be a non-empty string", "code": "invalid_input"}), 400

    try:
        result = _workspace().apply_translation_json(text)
    except TranslationFormatError as e:
        return jsonify({"error": str(e), "code": e.code}), 400

    return jsonify({**result, "stats": _workspace().stats()})


@translations_bp.post("/clear")
def clear_translations():
    """Reset every translation to empty."""
    _workspace().clear_translations()
    return jsonify({"status": "cleared", "stats": _workspace().stats()})
