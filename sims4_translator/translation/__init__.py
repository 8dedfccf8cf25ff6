"""
Translation module - Batch translation runs

This module provides:
- BatchOrchestrator: sequential, pausable, cancellable batch runs
- CancelToken / AbortReason: cancellation of in-flight backend requests
- BatchProgress: progress reported after every committed batch
- Batching and JSON extraction utilities
"""

from sims4_translator.translation.cancellation import AbortReason, CancelToken
from sims4_translator.translation.progress import BatchProgress
from sims4_translator.translation.orchestrator import (
    BatchJob,
    BatchOrchestrator,
    OrchestratorStateError,
    RunStatus,
)
from sims4_translator.translation.utils import (
    batch_bounds,
    build_source_json,
    build_source_payload,
    count_batches,
    extract_translation_map,
    find_json_object,
    safe_parse_json_object,
)
