"""shipline.framework.run

The :class:`PipelineRun` record: one per invocation.

Lifecycle::

    pending -> running -> failed
                       -> completed

A run is *sealed* the moment it reaches ``failed`` or ``completed``; after that
its results are frozen and :meth:`PipelineRun.append` raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from shipline.context import BuildContext

from .stage import (
    FAILURE_CANCELLED,
    FAILURE_FATAL,
    FAILURE_INFRASTRUCTURE,
    StageHistory,
    StageResult,
)

STATUS_PENDING = "pending"
STATUS_RUNNING = "running"
STATUS_FAILED = "failed"
STATUS_COMPLETED = "completed"

OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SealedRunError(RuntimeError):
    """Raised when a result is appended to a run that is already sealed."""


@dataclass
class PipelineRun:
    context: BuildContext
    status: str = STATUS_PENDING
    results: List[StageResult] = field(default_factory=list)

    cancelled: bool = False
    error: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    @property
    def sealed(self) -> bool:
        return self.status in (STATUS_FAILED, STATUS_COMPLETED)

    @property
    def outcome(self) -> Optional[str]:
        if not self.sealed:
            return None
        return OUTCOME_SUCCESS if self.status == STATUS_COMPLETED else OUTCOME_FAILURE

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def history(self) -> StageHistory:
        return StageHistory(self.results)

    def start(self) -> None:
        if self.status != STATUS_PENDING:
            raise SealedRunError(f"run already {self.status}")
        self.status = STATUS_RUNNING
        self.started_at = now_iso()

    def append(self, result: StageResult) -> None:
        if self.sealed:
            raise SealedRunError(f"run is sealed ({self.status}); cannot record stage '{result.name}'")
        if self.status != STATUS_RUNNING:
            raise SealedRunError("run has not been started")
        if any(r.name == result.name for r in self.results):
            raise ValueError(f"stage '{result.name}' already recorded")
        self.results.append(result)

    def complete(self) -> None:
        self._seal(STATUS_COMPLETED)

    def fail(
        self,
        error: str,
        *,
        remaining: Sequence[StageResult] = (),
        cancelled: bool = False,
    ) -> None:
        """Record the not-executed ``remaining`` stages, then seal as failed."""
        for r in remaining:
            self.append(r)
        self.error = error
        self.cancelled = self.cancelled or cancelled
        self._seal(STATUS_FAILED)

    def _seal(self, status: str) -> None:
        if self.sealed:
            raise SealedRunError(f"run already sealed ({self.status})")
        self.status = status
        self.finished_at = now_iso()

    def result_for(self, name: str) -> Optional[StageResult]:
        for r in self.results:
            if r.name == name:
                return r
        return None

    def first_fatal_failure(self) -> Optional[StageResult]:
        """The stage that halted the run (fatal, infrastructure, or cancelled)."""
        for r in self.results:
            if r.failure_kind in (FAILURE_FATAL, FAILURE_INFRASTRUCTURE, FAILURE_CANCELLED):
                return r
        return None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "outcome": self.outcome,
            "cancelled": self.cancelled,
            "error": self.error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "stages": [r.as_dict() for r in self.results],
        }
