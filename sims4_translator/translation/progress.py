"""
Batch Progress Data Class

Contains the BatchProgress dataclass reported after every committed batch.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass
class BatchProgress:
    """Progress information for an ongoing batch run."""
    completed_batches: int           # Batches committed so far
    total_batches: int
    total_items: int
    batch_keys_count: int = 0        # Records in the batch just committed
    translated_count: int = 0        # Translations committed by this run
    missing_count: int = 0           # Batch ids the backend left out
    phase: str = "batch_done"        # "batch_done", "completed"
    token_usage: Optional[Dict[str, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
