"""
Database CRUD Operations Module

This module handles all database CRUD operations for:
- Documents (uploaded string-table XML files, kept verbatim)
- Translations (the project's id -> translated text map)
- App Config

For schema management and migrations, see core/schema.py
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any

DB_FILE = Path(__file__).parent.parent / "translations.db"


def get_connection():
    """Get a database connection."""
    return sqlite3.connect(DB_FILE)


# ============================================================
# Document CRUD Operations
# ============================================================

def create_document(file_name: str, content: str) -> int:
    """Store an uploaded XML file at the end of the load order."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT COALESCE(MAX(position), -1) + 1 FROM documents")
        position = cursor.fetchone()[0]
        cursor.execute("""
            INSERT INTO documents (position, file_name, content, created_at)
            VALUES (?, ?, ?, ?)
        """, (position, file_name, content, datetime.now()))
        conn.commit()
        return cursor.lastrowid


def get_all_documents() -> List[Dict[str, Any]]:
    """Get all documents in load order."""
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM documents ORDER BY position")
        return [dict(row) for row in cursor.fetchall()]


def delete_all_documents():
    """Delete every document and every translation."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM translations")
        cursor.execute("DELETE FROM documents")
        conn.commit()


# ============================================================
# Translation CRUD Operations
# ============================================================

def upsert_translations(translations: Dict[str, str]):
    """Insert or overwrite translations in a single transaction."""
    if not translations:
        return
    now = datetime.now()
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.executemany("""
            INSERT OR REPLACE INTO translations (string_id, translated_text, updated_at)
            VALUES (?, ?, ?)
        """, [(string_id, text, now) for string_id, text in translations.items()])
        conn.commit()


def get_all_translations() -> Dict[str, str]:
    """Get the whole translation map."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT string_id, translated_text FROM translations")
        return {row[0]: row[1] for row in cursor.fetchall()}


def clear_translations():
    """Reset every stored translation to an empty string."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("UPDATE translations SET translated_text = '', updated_at = ?", (datetime.now(),))
        conn.commit()


# ============================================================
# App Config CRUD Operations
# ============================================================

def get_app_config(key: str) -> Optional[str]:
    """Get a configuration value by key."""
    if not Path(DB_FILE).exists():
        return None
    with get_connection() as conn:
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT value FROM app_config WHERE key = ?", (key,))
        except sqlite3.OperationalError:
            # Table not created yet
            return None
        row = cursor.fetchone()
        return row[0] if row else None


def set_app_config(key: str, value: str):
    """Set a configuration value."""
    with get_connection() as conn:
        cursor = conn.cursor()
        # Ensure app_config table exists
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS app_config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            INSERT OR REPLACE INTO app_config (key, value, updated_at)
            VALUES (?, ?, ?)
        """, (key, value, datetime.now()))
        conn.commit()
