"""Route blueprints for the web application."""

from .documents import documents_bp
from .jobs import jobs_bp
from .settings import settings_bp
from .translations import translations_bp

__all__ = [
    "documents_bp",
    "jobs_bp",
    "settings_bp",
    "translations_bp",
]
