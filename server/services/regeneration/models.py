"""Regeneration cycle value types.

Per-record outcomes and the cycle summary are ephemeral: they are logged and
returned to the caller, never persisted.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from constants import DEFAULT_CAPTION_MODEL, DEFAULT_CAPTION_PERSONA, DEFAULT_CAPTION_PROMPT_TEMPLATE
from core.config import Settings


class OutcomeStatus(str, Enum):
    """What happened to one record during a cycle."""
    UPDATED = "updated"
    SKIPPED_EMPTY_GENERATION = "skipped-empty-generation"
    SKIPPED_MISSING_FROM_CACHE = "skipped-missing-from-cache"
    FAILED = "failed"


@dataclass
class CycleOutcome:
    """Outcome for a single record id."""
    record_id: str
    status: OutcomeStatus
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"record_id": self.record_id, "status": self.status.value}
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class RegenerationOptions:
    """Policy values for one controller.

    Collapses the per-variant knobs into a single structure: cache TTL,
    pacing delay, bulk-load page size, model, prompt template, persona and
    the per-call timeouts.
    """
    cache_ttl: int = 86400
    inter_record_delay: float = 1.5  # seconds between records
    batch_size: int = 100
    model: str = DEFAULT_CAPTION_MODEL
    prompt_template: str = DEFAULT_CAPTION_PROMPT_TEMPLATE
    persona: str = DEFAULT_CAPTION_PERSONA
    generation_timeout: float = 60.0
    store_timeout: float = 30.0

    def __post_init__(self):
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.inter_record_delay < 0:
            raise ValueError("inter_record_delay must not be negative")
        if self.generation_timeout <= 0 or self.store_timeout <= 0:
            raise ValueError("timeouts must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RegenerationOptions":
        return cls(
            cache_ttl=settings.cache_ttl,
            inter_record_delay=settings.inter_record_delay,
            batch_size=settings.batch_size,
            model=settings.ai_model,
            prompt_template=settings.caption_prompt_template,
            persona=settings.caption_persona,
            generation_timeout=float(settings.ai_timeout),
            store_timeout=settings.store_timeout,
        )


@dataclass
class CycleSummary:
    """Aggregate result of one regeneration cycle.

    ``keys_captured`` is the size of the key snapshot taken at cycle start.
    For a cycle that ran to completion the four category counts sum to it;
    an aborted cycle leaves the remaining ids unvisited.
    """
    keys_captured: int = 0
    outcomes: List[CycleOutcome] = field(default_factory=list)
    cycle_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    aborted: bool = False
    abort_reason: Optional[str] = None

    def record(self, record_id: str, status: OutcomeStatus,
               error: Optional[str] = None) -> CycleOutcome:
        outcome = CycleOutcome(record_id=record_id, status=status, error=error)
        self.outcomes.append(outcome)
        return outcome

    def finish(self) -> None:
        self.finished_at = datetime.now(timezone.utc)

    def abort(self, reason: str) -> None:
        self.aborted = True
        self.abort_reason = reason

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def visited(self) -> int:
        return len(self.outcomes)

    @property
    def updated(self) -> int:
        return self._count(OutcomeStatus.UPDATED)

    @property
    def skipped_empty(self) -> int:
        return self._count(OutcomeStatus.SKIPPED_EMPTY_GENERATION)

    @property
    def skipped_missing(self) -> int:
        return self._count(OutcomeStatus.SKIPPED_MISSING_FROM_CACHE)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def counts(self) -> Dict[str, int]:
        """Outcome counts keyed by status value (zero counts included)."""
        return {status.value: self._count(status) for status in OutcomeStatus}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "cycle_id": self.cycle_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "keys_captured": self.keys_captured,
            "visited": self.visited,
            "updated": self.updated,
            "counts": self.counts(),
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
        }
