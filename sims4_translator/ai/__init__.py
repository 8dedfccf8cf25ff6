"""
AI Module

This module provides the HTTP translation backend and its error types.
"""

from sims4_translator.ai.exceptions import (
    AbortError,
    BackendError,
    TranslationError,
    TranslationFormatError,
)
from sims4_translator.ai.service import AIService, validate_ai_config

__all__ = [
    'AbortError',
    'BackendError',
    'TranslationError',
    'TranslationFormatError',
    'AIService',
    'validate_ai_config',
]
