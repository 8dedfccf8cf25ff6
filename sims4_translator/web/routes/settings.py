"""Settings management API routes."""

from __future__ import annotations

import copy
import re
from typing import Any, Dict, Optional

from flask import Blueprint, jsonify, request

import sims4_translator.config as config
from sims4_translator.config import (
    BUILTIN_PROVIDERS,
    BUILTIN_PROVIDER_DISPLAY_NAMES,
    MAX_BATCH_SIZE,
    PROVIDER_DEFAULTS,
    PROVIDER_NAME_PATTERN,
)
from sims4_translator.language_codes import get_all_language_codes, normalize_locale
from sims4_translator.logger import LOG_FILE, clear_log_mode_cache, get_logger

settings_bp = Blueprint("settings", __name__)
logger = get_logger(__name__)

MASK_PREFIX = "****"
LOG_MODES = ("off", "info", "debug")
TOP_LEVEL_KEYS = ("ai_provider", "log_mode", "translation")


def mask_api_key(api_key: str) -> str:
    """Hide all but the last four characters of a key."""
    if not api_key or api_key == "YOUR_API_KEY_HERE":
        return api_key
    return MASK_PREFIX + api_key[-4:]


def _masked(current_config: Dict[str, Any]) -> Dict[str, Any]:
    masked = copy.deepcopy(current_config)
    for value in masked.values():
        if isinstance(value, dict) and "api_key" in value:
            value["api_key"] = mask_api_key(value["api_key"])
    return masked


@settings_bp.get("/")
def get_settings():
    """Return current configuration with API keys masked."""
    current_config = config.load_config()
    for provider in BUILTIN_PROVIDERS:
        defaults = config.DEFAULT_CONFIG.get(provider, {})
        provider_config = current_config.setdefault(provider, copy.deepcopy(defaults))
        if not provider_config.get("api_url"):
            provider_config["api_url"] = defaults.get("api_url", "")
        if not provider_config.get("models"):
            provider_config["models"] = list(defaults.get("models", []))

    return jsonify({
        "config": _masked(current_config),
        "meta": {
            "builtin_providers": [
                {"id": p, "name": BUILTIN_PROVIDER_DISPLAY_NAMES[p]}
                for p in BUILTIN_PROVIDERS
            ],
            "provider_defaults": PROVIDER_DEFAULTS,
            "provider_name_pattern": PROVIDER_NAME_PATTERN,
            "target_languages": get_all_language_codes(),
            "log_file": str(LOG_FILE),
        },
    })


@settings_bp.put("/")
def update_settings():
    """Update configuration. Masked API keys leave the stored key unchanged."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data.get("config"), dict):
        return jsonify({"error": "Request body must contain a config object", "code": "invalid_input"}), 400

    new_config = data["config"]
    validation_error = validate_config(new_config)
    if validation_error:
        return jsonify({"error": validation_error, "code": "invalid_input"}), 400

    current_config = config.load_config()
    for key, value in new_config.items():
        if key in TOP_LEVEL_KEYS:
            continue
        provider_config = current_config.setdefault(key, {})
        update = dict(value)
        if str(update.get("api_key", "")).startswith(MASK_PREFIX):
            update.pop("api_key")
        provider_config.update(update)

    if "ai_provider" in new_config:
        current_config["ai_provider"] = new_config["ai_provider"]
    if "log_mode" in new_config:
        current_config["log_mode"] = new_config["log_mode"]
    if "translation" in new_config:
        translation = dict(new_config["translation"])
        if "target_language" in translation:
            translation["target_language"] = normalize_locale(translation["target_language"])
        current_config["translation"].update(translation)

    config.save_config(current_config)
    clear_log_mode_cache()
    logger.info("Settings updated")
    return jsonify({"config": _masked(current_config)})


def validate_config(new_config: Dict[str, Any]) -> Optional[str]:
    """Return an error message for an invalid settings payload, or None."""
    for key, value in new_config.items():
        if key in TOP_LEVEL_KEYS:
            continue
        if not re.match(PROVIDER_NAME_PATTERN, key):
            return f"Invalid custom provider name: {key}. Only letters, numbers, hyphens, and underscores allowed."
        if not isinstance(value, dict):
            return f"Provider config for {key} must be an object"
        models = value.get("models")
        if models is not None and (not isinstance(models, list) or not all(isinstance(m, str) for m in models)):
            return f"models for {key} must be a list of strings"

    provider = new_config.get("ai_provider")
    if provider is not None and (not isinstance(provider, str) or not re.match(PROVIDER_NAME_PATTERN, provider)):
        return f"Invalid ai_provider: {provider}"

    log_mode = new_config.get("log_mode")
    if log_mode is not None and log_mode not in LOG_MODES:
        return f"log_mode must be one of {', '.join(LOG_MODES)}"

    translation = new_config.get("translation")
    if translation is not None:
        if not isinstance(translation, dict):
            return "translation must be an object"
        batch_size = translation.get("batch_size")
        if batch_size is not None:
            if isinstance(batch_size, bool) or not isinstance(batch_size, int) or not 1 <= batch_size <= MAX_BATCH_SIZE:
                return f"batch_size must be an integer between 1 and {MAX_BATCH_SIZE}"
        target_language = translation.get("target_language")
        if target_language is not None and (not isinstance(target_language, str) or not normalize_locale(target_language)):
            return f"Unknown target language: {target_language}"

    return None
