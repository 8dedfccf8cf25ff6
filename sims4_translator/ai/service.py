"""
AI Translation Service Module

This module provides the translation backend used by batch runs:
- AIService: builds the batch prompt and calls the configured provider
- Configuration validation

For provider-specific API implementations, see ai/providers.py
"""

import json
from typing import Dict, Any, Optional

import httpx

from sims4_translator.config import (
    BUILTIN_PROVIDERS,
    BUILTIN_PROVIDER_DISPLAY_NAMES,
    DEFAULT_SYSTEM_MESSAGE,
    DEFAULT_TARGET_LANGUAGE,
    get_prompt,
    load_config,
)
from sims4_translator.logger import get_logger
from sims4_translator import language_codes as lc
from sims4_translator.ai.exceptions import TranslationError

logger = get_logger(__name__)


def _provider_display_name(provider: str) -> str:
    if provider in BUILTIN_PROVIDER_DISPLAY_NAMES:
        return BUILTIN_PROVIDER_DISPLAY_NAMES[provider]
    return provider.replace('-', ' ').replace('_', ' ').title()


def validate_ai_config(config: Optional[Dict[str, Any]] = None, provider_override: Optional[str] = None) -> None:
    """
    Validate that AI provider configuration is properly set up.

    Args:
        config: Configuration to check; loaded from the database when omitted.
        provider_override: Optional provider to validate instead of the default.

    Raises:
        TranslationError: If configuration is invalid or missing, with code and details.
    """
    config = config if config is not None else load_config()
    provider = provider_override if provider_override else config.get('ai_provider', 'openai')
    display_name = _provider_display_name(provider)

    provider_config = config.get(provider)
    if not isinstance(provider_config, dict) or not provider_config:
        kind = "AI provider" if provider in BUILTIN_PROVIDERS else "Custom AI provider"
        raise TranslationError(
            f"{kind} '{provider}' configuration not found",
            code="ai_config_missing",
            details={"provider": provider}
        )

    api_key = provider_config.get('api_key', '')
    if not api_key or api_key == "YOUR_API_KEY_HERE":
        raise TranslationError(
            f"{display_name} API key not configured. Please set it in Settings.",
            code="ai_config_missing",
            details={"provider": provider, "missing_field": "api_key"}
        )

    if not provider_config.get('api_url'):
        raise TranslationError(
            f"{display_name} API URL not configured",
            code="ai_config_missing",
            details={"provider": provider, "missing_field": "api_url"}
        )

    models = provider_config.get('models', [])
    valid_models = [m for m in models if m and isinstance(m, str)] if isinstance(models, list) else []
    if not valid_models and not provider_config.get('model'):
        raise TranslationError(
            f"{display_name} model not configured",
            code="ai_config_missing",
            details={"provider": provider, "missing_field": "models"}
        )


class AIService:
    """
    Translation backend talking to an LLM over HTTP.

    Implements ``translate_batch(batch, instruction, token)`` for the
    BatchOrchestrator. Each call is a single request: failures are reported,
    never retried.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        model_override: Optional[str] = None,
        provider_override: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config if config is not None else load_config()
        self.provider = provider_override if provider_override else self.config.get('ai_provider', 'openai')
        self.model_override = model_override
        self.translation_config = self.config.get('translation', {})
        self.transport = transport
        # Token usage tracking
        self._last_token_usage = {'prompt_tokens': 0, 'completion_tokens': 0}
        self.total_prompt_tokens = 0
        self.total_completion_tokens = 0
        if model_override or provider_override:
            logger.info(f"Initialized AI service with provider: {self.provider}, model override: {model_override}")
        else:
            logger.info(f"Initialized AI service with provider: {self.provider}")

    def provider_display_name(self) -> str:
        return _provider_display_name(self.provider)

    def _get_model(self, provider_config: Dict[str, Any], default_model: str = "") -> str:
        """
        Get the model to use for translation.

        Priority:
        1. model_override (if set)
        2. First model from 'models' array
        3. 'model' field (legacy)
        4. default_model
        """
        if self.model_override:
            return self.model_override

        models = provider_config.get('models', [])
        if models and isinstance(models, list) and models[0]:
            return models[0]

        return provider_config.get('model', default_model)

    def get_last_token_usage(self) -> Dict[str, int]:
        """Get token usage from the last API call."""
        return self._last_token_usage.copy()

    def get_total_token_usage(self) -> Dict[str, int]:
        """Get accumulated token usage."""
        return {
            'prompt_tokens': self.total_prompt_tokens,
            'completion_tokens': self.total_completion_tokens,
        }

    def record_token_usage(self, prompt_tokens: int = 0, completion_tokens: int = 0):
        """Store the last call's usage and add it to the totals."""
        self._last_token_usage = {
            'prompt_tokens': prompt_tokens or 0,
            'completion_tokens': completion_tokens or 0,
        }
        self.total_prompt_tokens += self._last_token_usage['prompt_tokens']
        self.total_completion_tokens += self._last_token_usage['completion_tokens']

    def _get_system_message(self, default: str = DEFAULT_SYSTEM_MESSAGE) -> str:
        """Get system message from config or use default."""
        return self.translation_config.get('system_message') or default

    def target_language(self) -> str:
        return self.translation_config.get('target_language') or DEFAULT_TARGET_LANGUAGE

    def build_prompt(self, batch: Dict[str, str], instruction: str = "") -> str:
        """Build the batch prompt using the configured template."""
        target_language = self.target_language()
        target_language_name = lc.get_language_name(target_language) or target_language

        instruction = instruction or self.translation_config.get('instruction', '')
        instruction_section = f"\nAdditional instructions: {instruction}\n" if instruction else ""

        prompt_template = get_prompt('batch_translation_prompt')['prompt']
        return prompt_template.format(
            target_language_name=target_language_name,
            target_language_code=lc.normalize_locale(target_language) or target_language,
            instruction_section=instruction_section,
            text_count=len(batch),
            texts_json=json.dumps(batch, ensure_ascii=False, indent=2),
        )

    def translate_batch(self, batch: Dict[str, str], instruction: str = "", token=None) -> str:
        """
        Send one batch and return the raw model text.

        The caller extracts the id -> text object from the returned text.

        Raises:
            BackendError: the request failed.
            AbortError: ``token`` was cancelled while the request was in flight.
        """
        if not batch:
            return "{}"

        prompt = self.build_prompt(batch, instruction)
        logger.debug(f"  Input to AI (prompt):\n{prompt}")

        response_text = self._call_ai_api_text(prompt, token)
        logger.debug(f"  Output from AI (response):\n{response_text}")
        return response_text

    def _call_ai_api_text(self, prompt: str, token=None) -> str:
        """Call the configured provider and return raw text response."""
        from sims4_translator.ai.providers import call_chat_completions_api

        return call_chat_completions_api(self, prompt, token)
