"""Translate The Sims 4 string-table XML files with an AI backend."""

__version__ = "0.1.0"
