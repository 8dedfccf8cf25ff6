"""
Translation workspace.

Holds everything the user works on between page loads: the uploaded
string-table files (kept verbatim for export), their parsed records and the
project-wide translation map keyed by string id. Several files can be loaded
at once; they share one map, so the same id is translated once.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sims4_translator.ai.exceptions import TranslationFormatError
from sims4_translator.core import database as db
from sims4_translator.logger import get_logger
from sims4_translator.stbl.codec import (
    ParseError,
    StringRecord,
    export_file_name,
    parse_xml,
    render_xml,
)
from sims4_translator.translation.utils import build_source_json, safe_parse_json_object

logger = get_logger(__name__)


@dataclass
class LoadedFile:
    """An uploaded XML file and the records parsed from it."""
    file_name: str
    content: str
    records: List[StringRecord] = field(default_factory=list)
    document_id: Optional[int] = None

    def summary(self, translations: Dict[str, str]) -> Dict[str, object]:
        translated = sum(1 for r in self.records if translations.get(r.id))
        return {
            "file_name": self.file_name,
            "string_count": len(self.records),
            "translated_count": translated,
        }


class Workspace:
    """
    Files, records and the translation map of the current project.

    All mutations go through a lock, so the translation map can be merged
    from a background run while the web handlers read it.
    """

    def __init__(self, persist: bool = False):
        self._lock = threading.RLock()
        self._files: List[LoadedFile] = []
        self._translations: Dict[str, str] = {}
        self._persist = persist

    @classmethod
    def load(cls) -> "Workspace":
        """Restore the saved project from the database."""
        workspace = cls(persist=True)
        for document in db.get_all_documents():
            try:
                records = parse_xml(document["content"])
            except ParseError as e:
                logger.error(f"Stored document '{document['file_name']}' no longer parses: {e}")
                continue
            workspace._files.append(LoadedFile(
                file_name=document["file_name"],
                content=document["content"],
                records=records,
                document_id=document["id"],
            ))

        stored = db.get_all_translations()
        for record in workspace.records():
            workspace._translations[record.id] = stored.get(record.id, "")

        logger.info(
            f"Workspace restored: {len(workspace._files)} files, "
            f"{len(workspace._translations)} strings"
        )
        return workspace

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    @property
    def files(self) -> List[LoadedFile]:
        with self._lock:
            return list(self._files)

    def get_file(self, index: int) -> LoadedFile:
        with self._lock:
            if index < 0 or index >= len(self._files):
                raise IndexError(f"No file at index {index}")
            return self._files[index]

    def add_file(self, file_name: str, content: str) -> LoadedFile:
        """
        Parse and add a file to the project.

        Strings seen for the first time start untranslated (empty string);
        translations already present for an id are kept.

        Raises:
            ParseError: the file is not well-formed XML. Nothing is changed.
        """
        try:
            records = parse_xml(content)
        except ParseError as e:
            e.file_name = file_name
            logger.warning(f"Failed to load '{file_name}': {e}")
            raise

        loaded = LoadedFile(file_name=file_name, content=content, records=records)
        with self._lock:
            new_ids = {}
            for record in records:
                if record.id not in self._translations and record.id not in new_ids:
                    new_ids[record.id] = ""
            if self._persist:
                loaded.document_id = db.create_document(file_name, content)
                db.upsert_translations(new_ids)
            self._files.append(loaded)
            self._translations.update(new_ids)

        logger.info(f"Loaded '{file_name}': {len(records)} strings ({len(new_ids)} new)")
        return loaded

    def clear_project(self):
        """Drop every file and translation. Settings are not touched."""
        with self._lock:
            self._files = []
            self._translations = {}
            if self._persist:
                db.delete_all_documents()
        logger.info("Project cleared")

    # ------------------------------------------------------------------
    # Records and translations
    # ------------------------------------------------------------------

    def records(self) -> List[StringRecord]:
        """Records of every file in load order; the first occurrence of an id wins."""
        with self._lock:
            seen = set()
            records = []
            for loaded in self._files:
                for record in loaded.records:
                    if record.id in seen:
                        continue
                    seen.add(record.id)
                    records.append(record)
            return records

    def translations(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._translations)

    def update_translation(self, string_id: str, text: str):
        """Manual edit of a single string."""
        with self._lock:
            if string_id not in self._translations:
                raise KeyError(string_id)
            self._translations[string_id] = text
            if self._persist:
                db.upsert_translations({string_id: text})

    def merge_translations(self, updates: Dict[str, str]) -> int:
        """
        Merge a batch of translations in one step.

        Only the given ids change; the whole batch becomes visible at once.
        """
        if not updates:
            return 0
        with self._lock:
            if self._persist:
                db.upsert_translations(updates)
            self._translations.update(updates)
        logger.debug(f"Merged {len(updates)} translations")
        return len(updates)

    def apply_translation_json(self, text: str) -> Dict[str, int]:
        """
        Apply a pasted ``{"id": "translation"}`` object (manual mode).

        Ids that are not part of the project and values that are not strings
        are ignored; everything else is applied.

        Raises:
            TranslationFormatError: no JSON object could be read.
        """
        parsed = safe_parse_json_object(text)
        if parsed is None:
            raise TranslationFormatError(
                "No JSON object found in pasted text",
                details={"response_preview": (text or "")[:200]},
            )
        with self._lock:
            known = {
                key: value for key, value in parsed.items()
                if key in self._translations and isinstance(value, str)
            }
            self.merge_translations(known)
        ignored = len(parsed) - len(known)
        if ignored:
            logger.warning(f"Ignored {ignored} pasted entries (unknown id or non-string value)")
        return {"applied": len(known), "ignored": ignored}

    def clear_translations(self):
        """Reset every translation to an empty string."""
        with self._lock:
            self._translations = {key: "" for key in self._translations}
            if self._persist:
                db.clear_translations()
        logger.info("Translations cleared")

    def source_json(self) -> str:
        return build_source_json(self.records())

    def stats(self) -> Dict[str, int]:
        with self._lock:
            total = len(self._translations)
            translated = sum(1 for value in self._translations.values() if value)
            return {
                "file_count": len(self._files),
                "total": total,
                "translated": translated,
                "untranslated": total - translated,
            }

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_file(self, index: int) -> Tuple[str, str]:
        """
        Render one file with its own translations.

        Untranslated strings keep the file's original ``Dest`` text.

        Returns:
            (download file name, XML text)
        """
        with self._lock:
            loaded = self.get_file(index)
            subset = {
                record.id: self._translations[record.id]
                for record in loaded.records
                if self._translations.get(record.id)
            }
        logger.info(f"Exporting '{loaded.file_name}' with {len(subset)} translations")
        return export_file_name(loaded.file_name), render_xml(loaded.content, subset)

    def export_all(self) -> List[Tuple[str, str]]:
        """Render every loaded file; download names are made unique."""
        with self._lock:
            count = len(self._files)
        exported = []
        used = set()
        for index in range(count):
            file_name, xml_text = self.export_file(index)
            if file_name in used:
                stem = file_name[:-len(".xml")]
                file_name = f"{stem}_{index + 1}.xml"
            used.add(file_name)
            exported.append((file_name, xml_text))
        return exported
