"""shipline.framework

The stage orchestration engine.

- **Stage**: a named body plus its enablement predicate and failure policy
- **StageResult**: the immutable record of one stage in one run
- **PipelineRun**: the ordered results of one invocation, sealed on completion
- **PipelineEngine**: runs stages in order and applies the failure policy
- **PIPELINES**: named, ordered stage lists (stages register themselves via
  :func:`register_stage`)
"""

from .stage import (
    FAILURE_CANCELLED,
    FAILURE_FATAL,
    FAILURE_INFRASTRUCTURE,
    FAILURE_SOFT,
    SKIP_CANCELLED,
    SKIP_DISABLED,
    SKIP_HALTED,
    Predicate,
    Stage,
    StageBody,
    StageHistory,
    StageResult,
)
from .predicates import Condition, all_of, always, flag, stage_succeeded
from .run import (
    OUTCOME_FAILURE,
    OUTCOME_SUCCESS,
    STATUS_COMPLETED,
    STATUS_FAILED,
    PipelineRun,
    SealedRunError,
)
from .registry import get_stage, register_stage, resolve_stages
from .pipelines import DEFAULT_PIPELINE, PIPELINES
from .engine import PipelineEngine

__all__ = [
    "FAILURE_CANCELLED",
    "FAILURE_FATAL",
    "FAILURE_INFRASTRUCTURE",
    "FAILURE_SOFT",
    "SKIP_CANCELLED",
    "SKIP_DISABLED",
    "SKIP_HALTED",
    "Predicate",
    "Stage",
    "StageBody",
    "StageHistory",
    "StageResult",
    "Condition",
    "all_of",
    "always",
    "flag",
    "stage_succeeded",
    "OUTCOME_FAILURE",
    "OUTCOME_SUCCESS",
    "STATUS_COMPLETED",
    "STATUS_FAILED",
    "PipelineRun",
    "SealedRunError",
    "get_stage",
    "register_stage",
    "resolve_stages",
    "DEFAULT_PIPELINE",
    "PIPELINES",
    "PipelineEngine",
]
