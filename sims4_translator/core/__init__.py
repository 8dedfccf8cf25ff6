"""
Core module - Persistence of the translation project

This module provides:
- database: CRUD operations for documents, translations and app config
- schema: Database initialization and migrations
"""

from sims4_translator.core.database import (
    DB_FILE,
    get_connection,
    # Document operations
    create_document,
    get_all_documents,
    delete_all_documents,
    # Translation operations
    upsert_translations,
    get_all_translations,
    clear_translations,
    # App config operations
    get_app_config,
    set_app_config,
)

from sims4_translator.core.schema import (
    DB_VERSION,
    get_db_version,
    set_db_version,
    initialize_database,
    ensure_all_schemas,
    migrate_database,
)
