"""
Database Schema Management Module

This module handles database initialization, schema validation, and migrations.
For CRUD operations, see core/database.py
"""

import sqlite3

# Import database module to use DB_FILE and get_connection dynamically
# This ensures monkeypatching in tests works correctly
import sims4_translator.core.database as db

DB_VERSION = 1


def get_connection():
    """Get a database connection using the database module's DB_FILE."""
    return db.get_connection()


def get_db_version() -> int:
    """Get current database version."""
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT version FROM db_version LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else 0
    except sqlite3.OperationalError:
        return 0


def set_db_version(version: int):
    """Set database version."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("CREATE TABLE IF NOT EXISTS db_version (version INTEGER)")
        cursor.execute("DELETE FROM db_version")
        cursor.execute("INSERT INTO db_version (version) VALUES (?)", (version,))
        conn.commit()


def initialize_database():
    """Initializes the database and creates the tables."""
    from sims4_translator.logger import get_logger
    logger = get_logger(__name__)

    if db.DB_FILE.exists():
        current_version = get_db_version()
        if current_version < DB_VERSION:
            migrate_database(current_version, DB_VERSION)
        else:
            ensure_all_schemas()
        return

    logger.info(f"Creating database at {db.DB_FILE}")
    ensure_all_schemas()
    set_db_version(DB_VERSION)


def ensure_all_schemas():
    """Create any missing table or index."""
    with get_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS documents (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            position INTEGER NOT NULL,
            file_name TEXT NOT NULL,
            content TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)

        # Keyed by string-table id; ids are shared across the project's files
        cursor.execute("""
        CREATE TABLE IF NOT EXISTS translations (
            string_id TEXT PRIMARY KEY,
            translated_text TEXT NOT NULL DEFAULT '',
            updated_at TIMESTAMP
        )
        """)

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS app_config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_documents_position ON documents(position)")
        conn.commit()


# ============================================================
# Database Migration
# ============================================================

def migrate_database(from_version: int, to_version: int):
    """
    Migrate database from one version to another.

    Only schema completion exists so far; add versioned steps here when the
    layout changes.
    """
    from sims4_translator.logger import get_logger
    logger = get_logger(__name__)

    logger.info(f"Migrating database from version {from_version} to {to_version}")
    ensure_all_schemas()
    set_db_version(to_version)
    logger.info(f"Database migration completed: now at version {to_version}")
