"""shipline.outcome

Post-run handlers.

Given a sealed :class:`~shipline.framework.PipelineRun`, the dispatcher calls
exactly one of ``on_success`` / ``on_failure``, then always ``on_always``.

Default handlers
----------------
* :func:`success_summary` - where the build ended up. A location is only
  reported when the stage that produces it executed and succeeded.
* :func:`failure_diagnostic` - the stage that halted the run and the tail of
  its output.
* :class:`AlwaysCleanup` - best-effort container/image cleanup, the run
  manifest, and (verbose only) a diagnostic dump.

Nothing here can change the recorded outcome: handler errors are logged and
reported, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from shipline.framework import PipelineRun
from shipline.identifiers import image_ref
from shipline.manifest import write_run_manifest
from tools import docker
from tools.core_cmd import CancelToken, CommandRunner
from tools.registry import registry_repository

logger = logging.getLogger(__name__)

OUTPUT_TAIL_LINES = 20

HANDLER_SUCCESS = "on_success"
HANDLER_FAILURE = "on_failure"

OutcomeHandler = Callable[[PipelineRun], List[str]]


@dataclass
class DispatchReport:
    """What the dispatcher did: the handler used and every line emitted."""

    handler: str
    lines: List[str] = field(default_factory=list)
    always_lines: List[str] = field(default_factory=list)
    cleanup_errors: List[str] = field(default_factory=list)
    manifest_path: Optional[Path] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "handler": self.handler,
            "lines": list(self.lines),
            "always_lines": list(self.always_lines),
            "cleanup_errors": list(self.cleanup_errors),
        }


def _executed_ok(run: PipelineRun, name: str) -> bool:
    r = run.result_for(name)
    return bool(r and r.executed and r.succeeded)


def success_summary(run: PipelineRun) -> List[str]:
    ctx = run.context
    lines = [f"🚀 Build {ctx.version_label} succeeded"]

    if _executed_ok(run, "build-image"):
        lines.append(f"  Image     : {ctx.image_ref}")
    if _executed_ok(run, "push"):
        repository = registry_repository(
            ctx.settings.registry_host, ctx.params.registry_username, ctx.params.image_name
        )
        lines.append(f"  Registry  : {image_ref(repository, ctx.image_tag)}")
    if _executed_ok(run, "deploy"):
        lines.append(f"  Container : {ctx.container_name}")
        lines.append(f"  Local URL : http://localhost:{ctx.params.deploy_port}")

    if len(lines) == 1:
        lines.append("  Nothing was deployed or pushed.")
    return lines


def failure_diagnostic(run: PipelineRun) -> List[str]:
    ctx = run.context
    verb = "cancelled" if run.cancelled else "failed"
    lines = [f"❌ Build {ctx.version_label} {verb}"]

    culprit = run.first_fatal_failure()
    if culprit is None:
        lines.append(f"  Reason : {run.error or 'unknown'}")
        return lines

    lines.append(f"  Stage  : {culprit.name} ({culprit.failure_kind})")
    if culprit.error:
        lines.append(f"  Error  : {culprit.error}")
    tail = culprit.output_tail(OUTPUT_TAIL_LINES)
    if tail:
        lines.append(f"  Last {OUTPUT_TAIL_LINES} lines of output:")
        lines.extend(f"    {line}" for line in tail.splitlines())
    return lines


class AlwaysCleanup:
    """Default on-always handler.

    Container cleanup only happens when the image build ran in this run;
    otherwise the run never touched the container engine.
    """

    def __init__(self, *, runs_root: Path, prune_images: bool = True, write_manifest: bool = True) -> None:
        self.runs_root = Path(runs_root)
        self.prune_images = prune_images
        self.write_manifest = write_manifest

    def __call__(self, run: PipelineRun, runner: CommandRunner, report: DispatchReport) -> None:
        ctx = run.context

        if run.history.executed("build-image"):
            self._step(report, "remove test container", lambda: runner.best_effort(
                docker.rm_command(ctx.test_container_name, force=True)
            ))
            if self.prune_images:
                self._step(report, "prune dangling images", lambda: runner.best_effort(
                    docker.prune_images_command()
                ))

        if ctx.params.verbose:
            report.always_lines.extend(stage_table(run))
            for cmd in (
                docker.list_images_command(ctx.params.image_name),
                docker.list_containers_command(ctx.params.image_name),
            ):
                res = self._step(report, " ".join(cmd), lambda c=cmd: runner.best_effort(c))
                if res is not None and res.output:
                    report.always_lines.extend(res.output.rstrip("\n").splitlines())

        if self.write_manifest:
            path = self._step(report, "write run manifest", lambda: write_run_manifest(
                run, runs_root=self.runs_root, report=report.as_dict()
            ))
            if path is not None:
                report.manifest_path = path
                report.always_lines.append(f"📝 Run manifest: {path}")

    @staticmethod
    def _step(report: DispatchReport, label: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except Exception as e:
            logger.warning("%s failed: %s", label, e)
            report.cleanup_errors.append(f"{label}: {e}")
            return None


def stage_table(run: PipelineRun) -> List[str]:
    width = max((len(r.name) for r in run.results), default=0)
    lines = ["Stage summary:"]
    for r in run.results:
        if r.failure_kind:
            state = f"failed ({r.failure_kind})"
        elif not r.executed:
            state = f"skipped ({r.skip_reason})"
        else:
            state = "ok"
        lines.append(f"  {r.name:<{width}}  {state:<24} {r.duration_seconds:6.1f}s")
    return lines


class OutcomeDispatcher:
    def __init__(
        self,
        *,
        on_success: OutcomeHandler = success_summary,
        on_failure: OutcomeHandler = failure_diagnostic,
        on_always: Optional[Callable[[PipelineRun, CommandRunner, DispatchReport], None]] = None,
        quiet: bool = False,
    ) -> None:
        self.on_success = on_success
        self.on_failure = on_failure
        self.on_always = on_always
        self.quiet = quiet

    def dispatch(self, run: PipelineRun, runner: CommandRunner) -> DispatchReport:
        if not run.sealed:
            raise ValueError(f"cannot dispatch an unsealed run (status={run.status})")

        if run.succeeded:
            name, handler = HANDLER_SUCCESS, self.on_success
        else:
            name, handler = HANDLER_FAILURE, self.on_failure

        report = DispatchReport(handler=name)
        try:
            report.lines.extend(handler(run))
        except Exception as e:
            logger.warning("%s handler failed: %s", name, e)
            report.cleanup_errors.append(f"{name}: {e}")
        self._emit(report.lines)

        if self.on_always is not None:
            # Cleanup must still run after a cancel, and is not bound by any stage deadline.
            cleanup_runner = replace(runner, cancel_token=CancelToken(), deadline=None, transcript=[], warnings=[])
            try:
                self.on_always(run, cleanup_runner, report)
            except Exception as e:
                logger.warning("on_always handler failed: %s", e)
                report.cleanup_errors.append(f"on_always: {e}")
            self._emit(report.always_lines)

        for err in report.cleanup_errors:
            self._emit([f"⚠️  {err}"])
        return report

    def _emit(self, lines: List[str]) -> None:
        if self.quiet:
            return
        for line in lines:
            print(line)
