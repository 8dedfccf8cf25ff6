"""Document API routes - upload, list, clear and export string-table files."""

from __future__ import annotations

import io
import zipfile

from flask import Blueprint, current_app, jsonify, request, send_file

from sims4_translator.logger import get_logger
from sims4_translator.stbl.codec import ParseError
from sims4_translator.translation.orchestrator import RunStatus

documents_bp = Blueprint("documents", __name__)
logger = get_logger(__name__)


def _workspace():
    return current_app.extensions["workspace"]


@documents_bp.get("/")
def list_documents():
    """Return every loaded file with its translation counts."""
    workspace = _workspace()
    translations = workspace.translations()
    documents = [
        {"index": index, **loaded.summary(translations)}
        for index, loaded in enumerate(workspace.files)
    ]
    return jsonify({"documents": documents, "stats": workspace.stats()})


@documents_bp.post("/")
def upload_documents():
    """
    Load one or more uploaded XML files into the project.

    A file that fails to parse is reported in its own result entry; the other
    files are still loaded.
    """
    uploads = request.files.getlist("files")
    if not uploads:
        return jsonify({"error": "No files uploaded", "code": "no_files"}), 400

    workspace = _workspace()
    results = []
    for upload in uploads:
        file_name = upload.filename or "strings.xml"
        try:
            content = upload.read().decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Upload '%s' is not UTF-8 encoded", file_name)
            results.append({"file_name": file_name, "error": "File is not UTF-8 encoded"})
            continue

        try:
            loaded = workspace.add_file(file_name, content)
        except ParseError as e:
            results.append({"file_name": file_name, "error": str(e)})
            continue
        results.append({"file_name": file_name, "string_count": len(loaded.records)})

    loaded_count = sum(1 for result in results if "error" not in result)
    status = 201 if loaded_count else 400
    return jsonify({"results": results, "stats": workspace.stats()}), status


@documents_bp.delete("/")
def clear_documents():
    """Drop every file and translation of the project."""
    jobs = current_app.extensions["translation_jobs"]
    job = jobs.current
    if job and job.orchestrator and job.orchestrator.status in (RunStatus.RUNNING, RunStatus.PAUSED):
        jobs.cancel()
    _workspace().clear_project()
    return jsonify({"status": "cleared"})


@documents_bp.get("/export")
def export_all_documents():
    """Download every file with its translations applied, as one zip archive."""
    exported = _workspace().export_all()
    if not exported:
        return jsonify({"error": "No documents loaded", "code": "not_found"}), 404

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for file_name, xml_text in exported:
            archive.writestr(file_name, xml_text.encode("utf-8"))
    buffer.seek(0)

    logger.info("Exported %s documents as zip", len(exported))
    return send_file(
        buffer,
        mimetype="application/zip",
        as_attachment=True,
        download_name="translated_strings.zip",
    )


@documents_bp.get("/<int:index>/export")
def export_document(index: int):
    """Download one file with its translations applied."""
    try:
        file_name, xml_text = _workspace().export_file(index)
    except IndexError:
        return jsonify({"error": f"No document at index {index}", "code": "not_found"}), 404

    return send_file(
        io.BytesIO(xml_text.encode("utf-8")),
        mimetype="application/xml",
        as_attachment=True,
        download_name=file_name,
    )
