"""
Background translation jobs.

One job at a time drives the project's records through a BatchOrchestrator on
a worker thread; the HTTP handlers only issue commands and read its state.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Optional

from sims4_translator.ai.service import AIService, validate_ai_config
from sims4_translator.config import get_batch_size, load_config
from sims4_translator.logger import get_logger
from sims4_translator.project.workspace import Workspace
from sims4_translator.translation.orchestrator import (
    BatchOrchestrator,
    OrchestratorStateError,
    RunStatus,
)
from sims4_translator.translation.progress import BatchProgress

logger = get_logger(__name__)

_PROGRESS_HISTORY_LIMIT = 200


@dataclass
class JobState:
    """In-memory representation of a translation job."""

    job_id: str
    batch_size: int
    total_items: int = 0
    ai_provider: Optional[str] = None
    model_override: Optional[str] = None
    instruction: str = ""
    state: str = RunStatus.IDLE.value
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    progress: Dict[str, Any] = field(default_factory=dict)
    progress_history: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None
    last_update: float = field(default_factory=time.time)
    orchestrator: Optional[BatchOrchestrator] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "orchestrator"
        }
        if self.orchestrator is not None:
            snapshot = self.orchestrator.snapshot()
            payload["state"] = snapshot["status"]
            payload["run"] = snapshot
        return payload


def default_backend_factory(config: Dict[str, Any], ai_provider: Optional[str], model_override: Optional[str]):
    """Build the HTTP backend for a job after checking its configuration."""
    validate_ai_config(config, provider_override=ai_provider)
    return AIService(config=config, model_override=model_override, provider_override=ai_provider)


class TranslationJobs:
    """Owns the current translation job of a workspace."""

    def __init__(
        self,
        workspace: Workspace,
        backend_factory: Callable[..., Any] = default_backend_factory,
    ):
        self._workspace = workspace
        self._backend_factory = backend_factory
        self._lock = threading.Lock()
        self._job: Optional[JobState] = None

    @property
    def current(self) -> Optional[JobState]:
        return self._job

    def start(
        self,
        batch_size: Optional[int] = None,
        ai_provider: Optional[str] = None,
        model_override: Optional[str] = None,
        instruction: str = "",
    ) -> JobState:
        """
        Start translating every record of the workspace from the first batch.

        Raises:
            OrchestratorStateError: a job is already running.
            TranslationError: the AI provider is not configured.
            ValueError: invalid batch size.
        """
        with self._lock:
            if self._job and self._job.orchestrator and self._job.orchestrator.status == RunStatus.RUNNING:
                raise OrchestratorStateError("start", RunStatus.RUNNING)
            if self._job and self._job.orchestrator and self._job.orchestrator.status == RunStatus.PAUSED:
                # Starting over abandons the paused run
                self._job.orchestrator.cancel()

            config = load_config()
            if batch_size is None:
                batch_size = get_batch_size(config)
            backend = self._backend_factory(config, ai_provider, model_override)
            records = self._workspace.records()

            job = JobState(
                job_id=uuid.uuid4().hex,
                batch_size=batch_size,
                total_items=len(records),
                ai_provider=ai_provider,
                model_override=model_override,
                instruction=instruction,
            )
            job.orchestrator = BatchOrchestrator(
                backend=backend,
                sink=self._workspace.merge_translations,
                progress_callback=lambda progress: self._on_progress(job, progress),
                instruction=instruction,
            )
            job.orchestrator.start_in_background(
                records,
                batch_size,
                on_finish=lambda status: self._on_finish(job, status),
            )
            job.started_at = time.time()
            job.state = RunStatus.RUNNING.value
            self._job = job

        logger.info(
            "Translation job %s started (strings=%s, batch_size=%s, provider=%s)",
            job.job_id,
            job.total_items,
            batch_size,
            ai_provider or "default",
        )
        return job

    def pause(self) -> JobState:
        job = self._require_job("pause")
        job.orchestrator.pause()
        self._touch(job, RunStatus.PAUSED)
        return job

    def resume(self) -> JobState:
        job = self._require_job("resume")
        job.orchestrator.resume_in_background(on_finish=lambda status: self._on_finish(job, status))
        job.finished_at = None
        self._touch(job, RunStatus.RUNNING)
        logger.info("Translation job %s resumed", job.job_id)
        return job

    def cancel(self) -> JobState:
        job = self._require_job("cancel")
        job.orchestrator.cancel()
        self._touch(job, RunStatus.CANCELLED)
        job.finished_at = job.last_update
        logger.info("Translation job %s cancelled", job.job_id)
        return job

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current job's run loop has stopped."""
        job = self._job
        if not job or not job.orchestrator:
            return True
        return job.orchestrator.wait_until_stopped(timeout)

    def _require_job(self, command: str) -> JobState:
        job = self._job
        if not job or not job.orchestrator:
            raise OrchestratorStateError(command, RunStatus.IDLE)
        return job

    def _touch(self, job: JobState, status: RunStatus):
        with self._lock:
            job.state = status.value
            job.last_update = time.time()

    def _on_progress(self, job: JobState, progress: BatchProgress):
        with self._lock:
            serialized = progress.to_dict()
            job.progress = serialized
            job.progress_history.append(serialized)
            del job.progress_history[:-_PROGRESS_HISTORY_LIMIT]
            job.last_update = time.time()

    def _on_finish(self, job: JobState, status: RunStatus):
        with self._lock:
            if status != job.orchestrator.status:
                # A paused loop finishing after resume() already restarted the run
                logger.debug("Translation job %s: stale %s finish ignored", job.job_id, status.value)
                return
            job.state = status.value
            job.last_update = time.time()
            if status != RunStatus.PAUSED:
                job.finished_at = job.last_update
            error = job.orchestrator.last_error if status == RunStatus.FAILED else None
            if error is not None:
                job.error = {
                    "message": str(error),
                    "code": error.code,
                    "batch_number": error.batch_number,
                    "total_batches": error.total_batches,
                }

        if error is not None:
            logger.error("✗ Translation job %s failed: %s", job.job_id, error)
        else:
            logger.info("Translation job %s stopped (%s)", job.job_id, status.value)
