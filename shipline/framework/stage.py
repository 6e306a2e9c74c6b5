from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from shipline.context import ENV_MODE_PRODUCTION, ENV_MODES, BuildContext
from shipline.models import ParameterSet
from tools.core_cmd import CommandRunner

StageBody = Callable[[BuildContext, CommandRunner], Optional[str]]

# Failure kinds recorded on a StageResult.
FAILURE_SOFT = "soft"
FAILURE_FATAL = "fatal"
FAILURE_INFRASTRUCTURE = "infrastructure"
FAILURE_CANCELLED = "cancelled"

# Why a stage did not execute.
SKIP_DISABLED = "disabled"
SKIP_HALTED = "halted"
SKIP_CANCELLED = "cancelled"


@dataclass(frozen=True)
class StageResult:
    """Execution record for one stage (also written for stages that never ran)."""

    name: str
    executed: bool
    succeeded: bool
    fatal: bool
    started_at: str
    finished_at: str

    output: str = ""
    duration_seconds: float = 0.0
    failure_kind: Optional[str] = None
    error: Optional[str] = None
    warnings: Tuple[str, ...] = ()
    skip_reason: Optional[str] = None

    @classmethod
    def skipped(cls, name: str, *, fatal: bool, reason: str, at: str) -> "StageResult":
        return cls(
            name=name,
            executed=False,
            succeeded=False,
            fatal=fatal,
            started_at=at,
            finished_at=at,
            skip_reason=reason,
        )

    @property
    def failed(self) -> bool:
        return self.executed and not self.succeeded

    def output_tail(self, lines: int = 20) -> str:
        return "\n".join((self.output or "").splitlines()[-lines:])

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "executed": self.executed,
            "succeeded": self.succeeded,
            "fatal": self.fatal,
            "failure_kind": self.failure_kind,
            "skip_reason": self.skip_reason,
            "error": self.error,
            "warnings": list(self.warnings),
            "duration_seconds": round(self.duration_seconds, 3),
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "output_tail": self.output_tail(),
        }


class StageHistory:
    """Read-only view of the results recorded so far in one run.

    This is what enablement predicates see; they cannot change the run.
    """

    def __init__(self, results: Sequence[StageResult] = ()) -> None:
        self._by_name: Dict[str, StageResult] = {r.name: r for r in results}

    def result(self, name: str) -> Optional[StageResult]:
        return self._by_name.get(name)

    def executed(self, name: str) -> bool:
        r = self.result(name)
        return bool(r and r.executed)

    def succeeded(self, name: str) -> bool:
        r = self.result(name)
        return bool(r and r.executed and r.succeeded)


Predicate = Callable[[ParameterSet, StageHistory], bool]


def _always(params: ParameterSet, history: StageHistory) -> bool:
    return True


@dataclass(frozen=True)
class Stage:
    """A named, conditionally-enabled unit of orchestrated work.

    ``when`` is evaluated immediately before the stage would run. ``fatal``
    is declared policy: a failing fatal stage halts the run.
    """

    name: str
    body: StageBody
    when: Predicate = field(default=_always)
    fatal: bool = False
    description: str = ""
    timeout_seconds: Optional[float] = None
    env_mode: str = ENV_MODE_PRODUCTION

    # clean-workspace and checkout run before the workdir exists.
    runs_in_workspace_root: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Stage name cannot be empty")
        if self.env_mode not in ENV_MODES:
            raise ValueError(f"Stage {self.name!r}: unknown env_mode {self.env_mode!r}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(f"Stage {self.name!r}: timeout_seconds must be positive")

    def enabled(self, params: ParameterSet, history: StageHistory) -> bool:
        return bool(self.when(params, history))

    @property
    def condition(self) -> str:
        """Human-readable form of the enablement predicate."""
        return str(getattr(self.when, "label", None) or getattr(self.when, "__name__", "custom"))
