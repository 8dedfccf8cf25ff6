# tests/test_routes.py
import io
import threading
import zipfile

import pytest

from sims4_translator.project.workspace import Workspace
from sims4_translator.translation.orchestrator import RunStatus
from sims4_translator.web.app import build_app


class ReverseBackend:
    """Reverses every source text; optionally blocks until its token trips."""

    def __init__(self):
        self.block = False
        self.entered = threading.Event()
        self.calls = 0

    def translate_batch(self, batch, instruction="", token=None):
        self.calls += 1
        if self.block:
            self.entered.set()
            token.wait(5)
            token.raise_if_cancelled()
        return {key: value[::-1] for key, value in batch.items()}


@pytest.fixture
def backend():
    return ReverseBackend()


@pytest.fixture
def app(temp_db, backend):
    app = build_app(
        workspace=Workspace.load(),
        backend_factory=lambda config, provider, model: backend,
    )
    app.config["TESTING"] = True
    yield app
    jobs = app.extensions["translation_jobs"]
    job = jobs.current
    if job and job.orchestrator.status.value in ("running", "paused"):
        jobs.cancel()
    jobs.wait(5)


@pytest.fixture
def client(app):
    return app.test_client()


def upload(client, *files):
    return client.post(
        "/api/documents/",
        data={"files": [(io.BytesIO(content.encode("utf-8")), name) for name, content in files]},
        content_type="multipart/form-data",
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


# ------------------------------------------------------------------
# Documents
# ------------------------------------------------------------------

class TestDocuments:

    def test_upload_and_list(self, client, sample_xml):
        response = upload(client, ("Strings.xml", sample_xml))

        assert response.status_code == 201
        assert response.get_json()["results"] == [{"file_name": "Strings.xml", "string_count": 3}]

        listing = client.get("/api/documents/").get_json()
        assert listing["documents"][0]["file_name"] == "Strings.xml"
        assert listing["stats"]["total"] == 3

    def test_bad_file_reported_per_file(self, client, sample_xml):
        response = upload(client, ("Good.xml", sample_xml), ("Bad.xml", "<Table>"))

        assert response.status_code == 201
        results = response.get_json()["results"]
        assert "error" not in results[0]
        assert results[1]["file_name"] == "Bad.xml"
        assert "error" in results[1]

    def test_only_bad_files(self, client):
        assert upload(client, ("Bad.xml", "<Table>")).status_code == 400

    def test_no_files(self, client):
        response = client.post("/api/documents/", data={}, content_type="multipart/form-data")
        assert response.status_code == 400

    def test_export(self, client, sample_xml):
        upload(client, ("Strings.xml", sample_xml))
        client.put("/api/translations/0x0001", json={"translation": "Bonjour"})

        response = client.get("/api/documents/0/export")

        assert response.status_code == 200
        assert "Strings_translated.xml" in response.headers["Content-Disposition"]
        assert "<Dest>Bonjour</Dest>" in response.get_data(as_text=True)

    def test_export_all_as_zip(self, client, sample_xml):
        upload(client, ("Strings.xml", sample_xml), ("Other.xml", sample_xml))
        client.put("/api/translations/0x0001", json={"translation": "Bonjour"})

        response = client.get("/api/documents/export")

        assert response.status_code == 200
        assert response.mimetype == "application/zip"
        with zipfile.ZipFile(io.BytesIO(response.get_data())) as archive:
            assert archive.namelist() == ["Strings_translated.xml", "Other_translated.xml"]
            assert "<Dest>Bonjour</Dest>" in archive.read("Other_translated.xml").decode("utf-8")

    def test_export_all_without_documents(self, client):
        assert client.get("/api/documents/export").status_code == 404

    def test_export_missing_index(self, client):
        assert client.get("/api/documents/4/export").status_code == 404

    def test_clear(self, client, sample_xml):
        upload(client, ("Strings.xml", sample_xml))
        assert client.delete("/api/documents/").status_code == 200
        assert client.get("/api/documents/").get_json()["documents"] == []


# ------------------------------------------------------------------
# Translations
# ------------------------------------------------------------------

class TestTranslations:

    def test_edit_and_read(self, client, sample_xml):
        upload(client, ("Strings.xml", sample_xml))

        assert client.put("/api/translations/0x0002", json={"translation": "x"}).status_code == 200

        data = client.get("/api/translations/").get_json()
        by_id = {s["id"]: s for s in data["strings"]}
        assert by_id["0x0002"]["translation"] == "x"
        assert data["stats"]["translated"] == 1

    def test_edit_unknown_id(self, client, sample_xml):
        upload(client, ("Strings.xml", sample_xml))
        assert client.put("/api/translations/0xBAD", json={"translation": "x"}).status_code == 404

    def test_edit_requires_string(self, client, sample_xml):
        upload(client, ("Strings.xml", sample_xml))
        assert client.put("/api/translations/0x0001", json={"translation": 3}).status_code == 400

    def test_source_json_and_apply(self, client, sample_xml):
        upload(client, ("Strings.xml", sample_xml))

        source = client.get("/api/translations/source-json").get_json()
        assert source["count"] == 3
        assert '"0x0001": "Hello"' in source["json"]

        response = client.post("/api/translations/apply", json={"json": '{"0x0001": "Hola"}'})
        assert response.get_json()["applied"] == 1

        bad = client.post("/api/translations/apply", json={"json": "nope"})
        assert bad.status_code == 400
        assert bad.get_json()["code"] == "format_error"

    def test_clear(self, client, sample_xml):
        upload(client, ("Strings.xml", sample_xml))
        client.put("/api/translations/0x0001", json={"translation": "x"})

        response = client.post("/api/translations/clear")

        assert response.get_json()["stats"]["translated"] == 0


# ------------------------------------------------------------------
# Translation job
# ------------------------------------------------------------------

class TestTranslationJob:

    def test_run_to_completion(self, app, client, sample_xml):
        upload(client, ("Strings.xml", sample_xml))

        response = client.post("/api/translation-job/start", json={"batch_size": 2})
        assert response.status_code == 202
        assert app.extensions["translation_jobs"].wait(5)

        status = client.get("/api/translation-job/").get_json()
        assert status["state"] == "completed"
        assert status["run"]["total_batches"] == 2
        translations = client.get("/api/translations/").get_json()["strings"]
        assert translations[0]["translation"] == "olleH"

    def test_pause_resume(self, app, client, backend, sample_xml):
        upload(client, ("Strings.xml", sample_xml))
        backend.block = True

        client.post("/api/translation-job/start", json={"batch_size": 1})
        assert backend.entered.wait(5)

        paused = client.post("/api/translation-job/pause")
        assert paused.status_code == 200
        assert paused.get_json()["state"] == "paused"
        assert app.extensions["translation_jobs"].wait(5)
        assert client.get("/api/translation-job/").get_json()["run"]["current_batch_index"] == 0

        backend.block = False
        assert client.post("/api/translation-job/resume").status_code == 202
        assert app.extensions["translation_jobs"].wait(5)
        assert client.get("/api/translation-job/").get_json()["state"] == "completed"

    def test_late_pause_finish_does_not_overwrite_resumed_state(self, app, client, backend, sample_xml):
        upload(client, ("Strings.xml", sample_xml))
        backend.block = True
        jobs = app.extensions["translation_jobs"]

        client.post("/api/translation-job/start", json={"batch_size": 1})
        assert backend.entered.wait(5)
        client.post("/api/translation-job/pause")
        assert jobs.wait(5)

        backend.entered.clear()
        client.post("/api/translation-job/resume")
        assert backend.entered.wait(5)

        jobs._on_finish(jobs.current, RunStatus.PAUSED)

        assert jobs.current.state == "running"
        assert jobs.current.finished_at is None

    def test_cancel(self, app, client, backend, sample_xml):
        upload(client, ("Strings.xml", sample_xml))
        backend.block = True
        client.post("/api/translation-job/start", json={"batch_size": 1})
        assert backend.entered.wait(5)

        response = client.post("/api/translation-job/cancel")

        assert response.get_json()["state"] == "cancelled"
        assert client.post("/api/translation-job/resume").status_code == 409

    def test_commands_without_job_conflict(self, client):
        for command in ("pause", "resume", "cancel"):
            response = client.post(f"/api/translation-job/{command}")
            assert response.status_code == 409
            assert response.get_json()["code"] == "invalid_state"

    def test_status_without_job(self, client):
        assert client.get("/api/translation-job/").get_json()["state"] == "idle"

    def test_start_without_strings(self, client):
        assert client.post("/api/translation-job/start", json={}).status_code == 400

    @pytest.mark.parametrize("batch_size", [0, "10", 1001, True])
    def test_start_with_bad_batch_size(self, client, sample_xml, batch_size):
        upload(client, ("Strings.xml", sample_xml))
        response = client.post("/api/translation-job/start", json={"batch_size": batch_size})
        assert response.status_code == 400

    def test_start_while_running_conflicts(self, client, backend, sample_xml):
        upload(client, ("Strings.xml", sample_xml))
        backend.block = True
        client.post("/api/translation-job/start", json={"batch_size": 1})
        assert backend.entered.wait(5)

        assert client.post("/api/translation-job/start", json={}).status_code == 409


def test_start_reports_missing_api_key(temp_db, sample_xml):
    app = build_app(workspace=Workspace.load())
    client = app.test_client()
    upload(client, ("Strings.xml", sample_xml))

    response = client.post("/api/translation-job/start", json={})

    assert response.status_code == 400
    assert response.get_json()["code"] == "ai_config_missing"


# ------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------

class TestSettings:

    def test_api_key_is_masked(self, client):
        response = client.put("/api/settings/", json={"config": {"openai": {"api_key": "sk-secret-9876"}}})
        assert response.status_code == 200

        config = client.get("/api/settings/").get_json()["config"]
        assert config["openai"]["api_key"] == "****9876"

    def test_masked_key_does_not_overwrite(self, client):
        client.put("/api/settings/", json={"config": {"openai": {"api_key": "sk-secret-9876"}}})
        client.put("/api/settings/", json={"config": {"openai": {"api_key": "****9876", "timeout": 30}}})

        from sims4_translator.config import load_config
        stored = load_config()["openai"]
        assert stored["api_key"] == "sk-secret-9876"
        assert stored["timeout"] == 30

    def test_translation_section(self, client):
        response = client.put("/api/settings/", json={
            "config": {"translation": {"batch_size": 20, "target_language": "de"}},
        })
        translation = response.get_json()["config"]["translation"]
        assert translation["batch_size"] == 20
        assert translation["target_language"] == "GER_DE"

    @pytest.mark.parametrize("config", [
        {"log_mode": "loud"},
        {"translation": {"batch_size": 0}},
        {"translation": {"target_language": "xx"}},
        {"bad name!": {"api_key": "k"}},
    ])
    def test_invalid_settings(self, client, config):
        assert client.put("/api/settings/", json={"config": config}).status_code == 400

    def test_missing_body(self, client):
        assert client.put("/api/settings/", json={}).status_code == 400
