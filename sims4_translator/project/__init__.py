"""
Project module - The files and translations being worked on

This module provides:
- Workspace: loaded files, merged records and the translation map
- LoadedFile: one uploaded string-table file
"""

from sims4_translator.project.workspace import LoadedFile, Workspace

__all__ = ['LoadedFile', 'Workspace']
