"""shipline.framework.engine

Sequential stage execution and failure policy.

For each stage, in order:

1. If the run was cancelled, the remaining stages are recorded as skipped
   (``cancelled``) and the run is sealed as failed.
2. The enablement predicate is evaluated against the parameters and the
   results recorded so far. False means the stage is recorded as skipped
   (``disabled``). A predicate that raises fails the stage as ``fatal``
   without running it.
3. Otherwise the body runs through a stage-bound :class:`CommandRunner`
   (Build Context env for the stage's mode, stage cwd, stage deadline).

How a body failure is classified:

* :class:`CommandCancelled` -> ``cancelled``; run sealed failed + cancelled.
* :class:`InfrastructureError` -> ``infrastructure``; always fatal.
* anything else -> ``fatal`` if the stage is fatal, else ``soft``.

A fatal failure seals the run; every remaining stage is recorded as skipped
(``halted``) so the run always has one result per stage.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Sequence, Tuple

from shipkit.errors import (
    CommandCancelled,
    InfrastructureError,
    StageFatalFailure,
    StageSoftFailure,
)
from shipline.context import BuildContext
from tools.core_cmd import CommandRunner

from .run import PipelineRun, now_iso
from .stage import (
    FAILURE_CANCELLED,
    FAILURE_FATAL,
    FAILURE_INFRASTRUCTURE,
    FAILURE_SOFT,
    SKIP_CANCELLED,
    SKIP_DISABLED,
    SKIP_HALTED,
    Stage,
    StageResult,
)

logger = logging.getLogger(__name__)


class PipelineEngine:
    def __init__(self, stages: Sequence[Stage], *, quiet: bool = False) -> None:
        names = [s.name for s in stages]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate stage name(s): {', '.join(dupes)}")
        self.stages: Tuple[Stage, ...] = tuple(stages)
        self.quiet = quiet

    def _say(self, msg: str) -> None:
        if not self.quiet:
            print(msg)

    def run(self, ctx: BuildContext, runner: CommandRunner) -> PipelineRun:
        """Execute every stage in order and return the sealed run."""
        run = PipelineRun(context=ctx)
        run.start()
        token = runner.cancel_token
        total = len(self.stages)

        for i, stage in enumerate(self.stages):
            if token.cancelled:
                reason = token.reason or "cancelled"
                self._say(f"⏭  cancelled ({reason}); skipping {total - i} remaining stage(s)")
                run.fail(
                    f"run cancelled before stage '{stage.name}': {reason}",
                    remaining=self._skip_rest(i, SKIP_CANCELLED),
                    cancelled=True,
                )
                return run

            try:
                enabled = stage.enabled(ctx.params, run.history)
            except Exception as e:
                logger.debug("enablement check for %s raised", stage.name, exc_info=True)
                error = f"enablement check failed: {type(e).__name__}: {e}"
                at = now_iso()
                run.append(
                    StageResult(
                        name=stage.name,
                        executed=False,
                        succeeded=False,
                        fatal=stage.fatal,
                        started_at=at,
                        finished_at=at,
                        failure_kind=FAILURE_FATAL,
                        error=error,
                    )
                )
                self._say(f"❌ {stage.name} failed ({FAILURE_FATAL}): {error}")
                run.fail(
                    f"stage '{stage.name}' {error}",
                    remaining=self._skip_rest(i + 1, SKIP_HALTED),
                )
                return run

            if not enabled:
                self._say(f"⏭  [{i + 1}/{total}] {stage.name} (disabled: {stage.condition})")
                run.append(StageResult.skipped(stage.name, fatal=stage.fatal, reason=SKIP_DISABLED, at=now_iso()))
                continue

            self._say(f"\n▶ [{i + 1}/{total}] {stage.name}")
            result, failure = self._execute(stage, ctx, runner)
            run.append(result)

            if result.succeeded:
                suffix = f" ({len(result.warnings)} warning(s))" if result.warnings else ""
                self._say(f"✅ {stage.name} ({result.duration_seconds:.1f}s){suffix}")
                continue

            if result.failure_kind == FAILURE_SOFT:
                self._say(f"⚠️  {stage.name} failed; continuing: {result.error}")
                logger.info("%s", failure)
                continue

            self._say(f"❌ {stage.name} failed ({result.failure_kind}): {result.error}")
            run.fail(
                str(failure),
                remaining=self._skip_rest(
                    i + 1, SKIP_CANCELLED if result.failure_kind == FAILURE_CANCELLED else SKIP_HALTED
                ),
                cancelled=result.failure_kind == FAILURE_CANCELLED,
            )
            return run

        run.complete()
        return run

    def _skip_rest(self, start: int, reason: str) -> List[StageResult]:
        at = now_iso()
        return [StageResult.skipped(s.name, fatal=s.fatal, reason=reason, at=at) for s in self.stages[start:]]

    def _bind(self, stage: Stage, ctx: BuildContext, runner: CommandRunner) -> CommandRunner:
        deadline = time.monotonic() + stage.timeout_seconds if stage.timeout_seconds else None
        return runner.bind(
            cwd=ctx.workspace_root if stage.runs_in_workspace_root else ctx.workdir,
            env=ctx.environment(stage.env_mode),
            deadline=deadline,
        )

    def _execute(
        self, stage: Stage, ctx: BuildContext, runner: CommandRunner
    ) -> Tuple[StageResult, Optional[Exception]]:
        bound = self._bind(stage, ctx, runner)
        started = now_iso()
        t0 = time.monotonic()

        failure_kind: Optional[str] = None
        failure: Optional[Exception] = None
        returned: Optional[str] = None
        try:
            returned = stage.body(ctx, bound)
        except CommandCancelled as e:
            failure_kind, failure = FAILURE_CANCELLED, e
        except InfrastructureError as e:
            failure_kind, failure = FAILURE_INFRASTRUCTURE, StageFatalFailure(stage.name, e)
        except Exception as e:
            logger.debug("stage %s raised", stage.name, exc_info=True)
            if stage.fatal:
                failure_kind, failure = FAILURE_FATAL, StageFatalFailure(stage.name, e)
            else:
                failure_kind, failure = FAILURE_SOFT, StageSoftFailure(stage.name, e)

        duration = time.monotonic() - t0
        output = _join_output(*bound.transcript)
        if failure is None:
            return (
                StageResult(
                    name=stage.name,
                    executed=True,
                    succeeded=True,
                    fatal=stage.fatal,
                    started_at=started,
                    finished_at=now_iso(),
                    output=_join_output(output, returned or ""),
                    duration_seconds=duration,
                    warnings=tuple(bound.warnings),
                ),
                None,
            )

        cause = getattr(failure, "cause", failure)
        extra = getattr(cause, "output", "") or ""
        if extra and extra.strip() in output:
            extra = ""
        tail = _join_output(output, extra, str(cause))
        return (
            StageResult(
                name=stage.name,
                executed=True,
                succeeded=False,
                fatal=stage.fatal,
                started_at=started,
                finished_at=now_iso(),
                output=tail,
                duration_seconds=duration,
                failure_kind=failure_kind,
                error=str(cause),
                warnings=tuple(bound.warnings),
            ),
            failure,
        )


def _join_output(*parts: str) -> str:
    return "\n".join(p.rstrip("\n") for p in parts if p and p.strip())
