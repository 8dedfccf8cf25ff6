"""
Batch Translation Orchestrator

Drives an ordered list of string records through a translation backend one
batch at a time:

- batches are strictly sequential, never concurrent
- each batch's result is committed to the translation map before the next
  batch is requested
- pause/resume/cancel are explicit commands; ``current_batch_index`` is the
  only resume pointer

``start()`` and ``resume()`` block in the calling (worker) thread until the
run stops; ``pause()`` and ``cancel()`` may be called from any other thread.
"""

import threading
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, Tuple, Union

from sims4_translator.ai.exceptions import (
    AbortError,
    BackendError,
    TranslationError,
    TranslationFormatError,
)
from sims4_translator.logger import get_logger
from sims4_translator.stbl.codec import StringRecord
from sims4_translator.translation.cancellation import AbortReason, CancelToken
from sims4_translator.translation.progress import BatchProgress
from sims4_translator.translation.utils import (
    batch_bounds,
    build_source_payload,
    count_batches,
    extract_translation_map,
)

logger = get_logger(__name__)


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"


class OrchestratorStateError(Exception):
    """A command was issued in a state that does not accept it."""

    def __init__(self, command: str, status: RunStatus):
        super().__init__(f"Cannot {command} while {status.value}")
        self.command = command
        self.status = status
        self.code = "invalid_state"


class TranslationBackend(Protocol):
    def translate_batch(
        self,
        batch: Dict[str, str],
        instruction: str,
        token: CancelToken,
    ) -> Union[str, Dict[str, str]]:
        ...


@dataclass
class BatchJob:
    """Transient state of one translation run."""
    items: Tuple[StringRecord, ...]
    batch_size: int
    current_batch_index: int = 0
    status: RunStatus = RunStatus.IDLE

    @property
    def total_batches(self) -> int:
        return count_batches(len(self.items), self.batch_size)


class BatchOrchestrator:
    """
    Finite-state machine over {IDLE, RUNNING, PAUSED, CANCELLED, FAILED, COMPLETED}.

    Args:
        backend: object implementing ``translate_batch(batch, instruction, token)``
        sink: called with each batch's ``{id: translation}`` updates; the only
            writer of the translation map during a run
        progress_callback: called with a BatchProgress after every commit
        instruction: free-form instruction passed to the backend with every batch
    """

    def __init__(
        self,
        backend: TranslationBackend,
        sink: Callable[[Dict[str, str]], None],
        progress_callback: Optional[Callable[[BatchProgress], Any]] = None,
        instruction: str = "",
    ):
        self._backend = backend
        self._sink = sink
        self._progress_callback = progress_callback
        self._instruction = instruction or ""

        self._lock = threading.RLock()
        self._loop_done = threading.Event()
        self._loop_done.set()
        self._status = RunStatus.IDLE
        self._job: Optional[BatchJob] = None
        self._token: Optional[CancelToken] = None
        self._translated_count = 0
        self.last_error: Optional[TranslationError] = None

    # ------------------------------------------------------------------
    # State inspection
    # ------------------------------------------------------------------

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def current_batch_index(self) -> int:
        with self._lock:
            return self._job.current_batch_index if self._job else 0

    @property
    def total_batches(self) -> int:
        with self._lock:
            return self._job.total_batches if self._job else 0

    def snapshot(self) -> Dict[str, Any]:
        """JSON-friendly view of the run state."""
        with self._lock:
            error = None
            if self.last_error is not None:
                error = {
                    "message": str(self.last_error),
                    "code": self.last_error.code,
                    "batch_number": self.last_error.batch_number,
                    "total_batches": self.last_error.total_batches,
                }
            return {
                "status": self._status.value,
                "current_batch_index": self._job.current_batch_index if self._job else 0,
                "total_batches": self._job.total_batches if self._job else 0,
                "total_items": len(self._job.items) if self._job else 0,
                "batch_size": self._job.batch_size if self._job else None,
                "translated_count": self._translated_count,
                "can_resume": self._status == RunStatus.PAUSED,
                "error": error,
            }

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self, records: Iterable[StringRecord], batch_size: int) -> RunStatus:
        """
        Begin a new run from batch 0 and drive it until it stops.

        Allowed from any state except RUNNING. Starting over a paused run
        discards its resume point.

        Returns:
            The status the run stopped in (COMPLETED, PAUSED or CANCELLED).

        Raises:
            TranslationError: a batch failed; the run is FAILED and the error
                carries ``batch_number`` / ``total_batches``.
        """
        return self._run(self._begin_start(records, batch_size))

    def start_in_background(
        self,
        records: Iterable[StringRecord],
        batch_size: int,
        on_finish: Optional[Callable[[RunStatus], Any]] = None,
    ) -> threading.Thread:
        """Like start(), but the run loop executes on a daemon thread.

        The state is already RUNNING when this returns.
        """
        return self._spawn(self._begin_start(records, batch_size), on_finish)

    def resume(self) -> RunStatus:
        """Continue a paused run from the batch that was interrupted."""
        return self._run(self._begin_resume())

    def resume_in_background(self, on_finish: Optional[Callable[[RunStatus], Any]] = None) -> threading.Thread:
        return self._spawn(self._begin_resume(), on_finish)

    def pause(self):
        """Abort the in-flight request and keep the position at the interrupted batch."""
        with self._lock:
            if self._status != RunStatus.RUNNING:
                raise OrchestratorStateError("pause", self._status)
            self._set_status(RunStatus.PAUSED)
            # Under the lock so a late result can never be committed after this
            self._token.cancel(AbortReason.PAUSE)
            index = self._job.current_batch_index
            total = self._job.total_batches
        logger.info(f"Translation run paused at batch {index + 1} of {total}")

    def cancel(self):
        """Abandon the run; committed batches stay, the position goes back to 0."""
        with self._lock:
            if self._status not in (RunStatus.RUNNING, RunStatus.PAUSED):
                raise OrchestratorStateError("cancel", self._status)
            self._set_status(RunStatus.CANCELLED)
            self._job.current_batch_index = 0
            self._token.cancel(AbortReason.CANCEL)
        logger.info("Translation run cancelled")

    def wait_until_stopped(self, timeout: Optional[float] = None) -> bool:
        """Block until the run loop has exited."""
        return self._loop_done.wait(timeout)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    def _begin_start(self, records: Iterable[StringRecord], batch_size: int) -> CancelToken:
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
            raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")

        items = tuple(records)
        seen = set()
        duplicates = []
        for record in items:
            if record.id in seen:
                duplicates.append(record.id)
            seen.add(record.id)
        if duplicates:
            raise ValueError(f"Duplicate record ids: {', '.join(duplicates[:5])}")

        self._wait_for_previous_loop("start", lambda status: status != RunStatus.RUNNING)
        with self._lock:
            if self._status == RunStatus.RUNNING:
                raise OrchestratorStateError("start", self._status)
            self._job = BatchJob(items=items, batch_size=batch_size)
            self._translated_count = 0
            self.last_error = None
            token = self._begin_run()
            total = self._job.total_batches

        logger.info(f"Translation run started: {len(items)} strings in {total} batches of {batch_size}")
        return token

    def _begin_resume(self) -> CancelToken:
        self._wait_for_previous_loop("resume", lambda status: status == RunStatus.PAUSED)
        with self._lock:
            if self._status != RunStatus.PAUSED:
                raise OrchestratorStateError("resume", self._status)
            token = self._begin_run()
            index = self._job.current_batch_index
            total = self._job.total_batches

        logger.info(f"Translation run resumed at batch {index + 1} of {total}")
        return token

    def _wait_for_previous_loop(self, command: str, allowed: Callable[[RunStatus], bool]):
        """Reject the command early, otherwise let a stopping loop finish first."""
        with self._lock:
            if not allowed(self._status):
                raise OrchestratorStateError(command, self._status)
        self._loop_done.wait()

    def _spawn(self, token: CancelToken, on_finish) -> threading.Thread:
        def target():
            try:
                status = self._run(token)
            except TranslationError:
                # Already recorded in last_error and logged
                status = RunStatus.FAILED
            if on_finish:
                on_finish(status)

        thread = threading.Thread(target=target, name="batch-translation-run", daemon=True)
        thread.start()
        return thread

    def _begin_run(self) -> CancelToken:
        # Caller holds the lock
        self._set_status(RunStatus.RUNNING)
        self._token = CancelToken()
        self._loop_done.clear()
        return self._token

    def _set_status(self, status: RunStatus):
        self._status = status
        if self._job is not None:
            self._job.status = status

    def _run(self, token: CancelToken) -> RunStatus:
        try:
            while True:
                with self._lock:
                    if token.cancelled:
                        return self._status
                    job = self._job
                    index = job.current_batch_index
                    total = job.total_batches
                    if index >= total:
                        self._set_status(RunStatus.COMPLETED)
                        job.current_batch_index = 0
                        break

                start, end = batch_bounds(index, len(job.items), job.batch_size)
                payload = build_source_payload(job.items[start:end])
                batch_number = index + 1
                logger.debug(f"Batch {batch_number}/{total}: requesting {len(payload)} strings")

                try:
                    token.raise_if_cancelled()
                    response = self._backend.translate_batch(payload, self._instruction, token)
                    updates, missing = self._read_response(response, payload, batch_number, total)
                    committed = self._commit(token, index, updates)
                except Exception as e:
                    error = self._fail(e, batch_number, total, token)
                    if error is None:
                        # Paused or cancelled: the abort is not a failure
                        reason = e.reason.value if isinstance(e, AbortError) else type(e).__name__
                        logger.debug(f"Batch {batch_number}/{total}: request aborted ({reason})")
                        return self._status
                    if error is e:
                        raise
                    raise error from e

                if not committed:
                    logger.debug(f"Batch {batch_number}/{total}: result discarded after {token.reason.value}")
                    return self._status

                logger.info(f"Batch {batch_number}/{total} committed ({len(updates)} translations)")
                self._report(BatchProgress(
                    completed_batches=batch_number,
                    total_batches=total,
                    total_items=len(job.items),
                    batch_keys_count=len(payload),
                    translated_count=self._translated_count,
                    missing_count=missing,
                    token_usage=self._last_token_usage(),
                ))

            logger.info(f"Translation run completed: {self._translated_count} translations in {total} batches")
            self._report(BatchProgress(
                completed_batches=total,
                total_batches=total,
                total_items=len(job.items),
                translated_count=self._translated_count,
                phase="completed",
                token_usage=self._total_token_usage(),
            ))
            return RunStatus.COMPLETED
        finally:
            self._loop_done.set()

    def _read_response(self, response, payload: Dict[str, str], batch_number: int, total: int):
        """Turn a backend response into this batch's updates and the count of ids left out."""
        if isinstance(response, Mapping):
            invalid = [key for key, value in response.items() if not isinstance(value, str)]
            if invalid:
                raise TranslationFormatError(
                    "Response values must be strings",
                    details={"invalid_keys": invalid},
                )
            translations = dict(response)
        else:
            translations = extract_translation_map(response)

        updates = {key: value for key, value in translations.items() if key in payload}
        extra = len(translations) - len(updates)
        missing = len(payload) - len(updates)
        if extra:
            logger.warning(f"Batch {batch_number}/{total}: ignored {extra} ids that were not requested")
        if missing:
            logger.warning(f"Batch {batch_number}/{total}: {missing} ids missing from response")
        return updates, missing

    def _commit(self, token: CancelToken, index: int, updates: Dict[str, str]) -> bool:
        """Apply one batch atomically, unless the run was paused or cancelled meanwhile."""
        with self._lock:
            if token.cancelled:
                return False
            self._sink(updates)
            self._job.current_batch_index = index + 1
            self._translated_count += len(updates)
            return True

    def _fail(self, error: Exception, batch_number: int, total: int,
              token: CancelToken) -> Optional[TranslationError]:
        """Move to FAILED and return the error to raise, or None if the run was already stopped."""
        with self._lock:
            if token.cancelled:
                return None
            if not isinstance(error, TranslationError):
                error = BackendError(f"{type(error).__name__}: {error}")
            error.attach_batch(batch_number, total)
            self._set_status(RunStatus.FAILED)
            self._job.current_batch_index = 0
            self.last_error = error
        logger.error(str(error))
        return error

    def _report(self, progress: BatchProgress):
        if not self._progress_callback:
            return
        try:
            self._progress_callback(progress)
        except Exception:
            logger.exception("Progress callback failed")

    def _last_token_usage(self) -> Optional[Dict[str, int]]:
        getter = getattr(self._backend, "get_last_token_usage", None)
        return getter() if callable(getter) else None

    def _total_token_usage(self) -> Optional[Dict[str, int]]:
        getter = getattr(self._backend, "get_total_token_usage", None)
        return getter() if callable(getter) else None
