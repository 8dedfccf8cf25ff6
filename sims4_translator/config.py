import copy
import json
from typing import Dict, Any

from sims4_translator.core import database as db
from sims4_translator.core.schema import initialize_database
from sims4_translator.logger import get_logger

logger = get_logger(__name__)

# Translation configuration constants
DEFAULT_BATCH_SIZE = 50  # Strings per backend request
MAX_BATCH_SIZE = 1000
DEFAULT_TARGET_LANGUAGE = "CHS_CN"
DEFAULT_SYSTEM_MESSAGE = (
    "You are a translator for The Sims 4 mods. Translate the values, keep the keys unchanged. "
    "Return strictly valid JSON."
)

# Provider configuration constants
BUILTIN_PROVIDERS = ["openai", "deepseek", "gemini"]

BUILTIN_PROVIDER_DISPLAY_NAMES = {
    "openai": "OpenAI",
    "deepseek": "DeepSeek",
    "gemini": "Gemini"
}

PROVIDER_DEFAULTS = {
    "timeout": 120
}

PROVIDER_NAME_PATTERN = r"^[a-zA-Z0-9_-]+$"

# Default prompts
DEFAULT_PROMPTS = {
    "batch_translation_prompt": {
        "version": "1.0",
        "description": "Id-keyed batch prompt sent for every batch of string-table entries",
        "prompt": """Translate the values of the following JSON object to {target_language_name} ({target_language_code}).
Keep every key unchanged and return exactly {text_count} entries.
{instruction_section}
CRITICAL REQUIREMENTS:
- Preserve game tokens EXACTLY as they appear, e.g. {{0.SimFirstName}}, {{M0.he}}{{F0.she}}, \\n
- Preserve any markup such as <b>...</b> or <i>...</i>
- Do not add, remove, or rename keys

JSON to translate:
{texts_json}

Return ONLY the JSON object. Do not include explanations or markdown code blocks."""
    }
}

# Default configuration templates
DEFAULT_CONFIG = {
    "ai_provider": "openai",
    "openai": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["gpt-4o-mini", "gpt-4o"],  # First is default
        "timeout": 120,
        "api_url": "https://api.openai.com/v1/chat/completions"
    },
    "deepseek": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["deepseek-chat"],
        "timeout": 120,
        "api_url": "https://api.deepseek.com/chat/completions"
    },
    "gemini": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["gemini-2.5-flash"],
        "timeout": 120,
        "api_url": "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions"
    },
    "translation": {
        "batch_size": DEFAULT_BATCH_SIZE,
        "target_language": DEFAULT_TARGET_LANGUAGE,
        "system_message": DEFAULT_SYSTEM_MESSAGE,
        "instruction": ""
    },
    "log_mode": "off"
}


def initialize_app():
    """
    Initialize the application.
    Creates the database and stores the default configuration on first run.
    """
    logger.info("Initializing application...")

    initialize_database()
    logger.info("Database initialized")

    if not db.get_app_config('config'):
        logger.info("No config in database, initializing default config")
        save_config(DEFAULT_CONFIG)

    logger.info("Application initialization complete")


def load_config() -> Dict[str, Any]:
    """Load the configuration from database, falling back to defaults."""
    try:
        config_json = db.get_app_config('config')
    except Exception as e:
        logger.error(f"Failed to load config from database: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)

    if not config_json:
        logger.debug("No config in database, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        config = json.loads(config_json)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config from database: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)

    # Sections added after the config was first saved
    translation = copy.deepcopy(DEFAULT_CONFIG["translation"])
    translation.update(config.get("translation") or {})
    config["translation"] = translation
    logger.debug("Configuration loaded from database")
    return config


def save_config(config: Dict[str, Any]):
    """Save the configuration to database."""
    try:
        config_json = json.dumps(config, ensure_ascii=False)
        db.set_app_config('config', config_json)
        logger.info("Configuration saved to database")
    except Exception as e:
        logger.error(f"Failed to save config to database: {e}")
        raise


def get_prompt(prompt_name: str = "batch_translation_prompt") -> Dict[str, Any]:
    """Get a specific prompt by name.

    Prompts are part of the code base and are never stored in the database.
    """
    return DEFAULT_PROMPTS.get(prompt_name, DEFAULT_PROMPTS["batch_translation_prompt"])


def get_batch_size(config: Dict[str, Any]) -> int:
    """Configured batch size, clamped to a sane positive range."""
    try:
        batch_size = int(config.get("translation", {}).get("batch_size", DEFAULT_BATCH_SIZE))
    except (TypeError, ValueError):
        return DEFAULT_BATCH_SIZE
    return max(1, min(batch_size, MAX_BATCH_SIZE))
