"""shipline.pipeline

This module defines a *single, high-level* object that represents this repo's
primary capabilities.

Why this exists
---------------
A run touches several modules: the Parameter Set (:mod:`shipline.models`),
Build Context derivation (:mod:`shipline.context`), the stage catalogue
(:mod:`shipline.stages`), the engine (:mod:`shipline.framework`) and the
outcome handlers (:mod:`shipline.outcome`).

Callers (CLI, scripts, CI wrappers) should not wire those together
themselves. The :class:`ShiplinePipeline` facade gives them one front door:

- ``run(...)``: execute the stages for one run and dispatch its outcome
- ``plan(...)``: show which stages would run, without running anything
- ``stages``: the ordered stage catalogue
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from shipline.context import BuildContext, derive_build_context
from shipline.framework import FAILURE_INFRASTRUCTURE, PipelineEngine, PipelineRun, Stage
from shipline.models import ParameterSet
from shipline.outcome import AlwaysCleanup, DispatchReport, OutcomeDispatcher
from shipline.plan import PlannedStage, plan_stages
from shipline.settings import Settings
from shipline.stages import build_stages
from tools.core_cmd import CommandRunner

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_VALIDATION = 2
EXIT_INFRASTRUCTURE = 3
EXIT_CANCELLED = 130


def exit_code_for(run: PipelineRun) -> int:
    if run.succeeded:
        return EXIT_OK
    if run.cancelled:
        return EXIT_CANCELLED
    culprit = run.first_fatal_failure()
    if culprit is not None and culprit.failure_kind == FAILURE_INFRASTRUCTURE:
        return EXIT_INFRASTRUCTURE
    return EXIT_FAILED


@dataclass(frozen=True)
class RunOutcome:
    run: PipelineRun
    report: DispatchReport

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.run)


class ShiplinePipeline:
    """High-level facade over the orchestrator.

    Callers should prefer using this object (built via
    :func:`shipline.wiring.build_pipeline`) rather than importing low-level
    modules directly.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        stages: Optional[Sequence[Stage]] = None,
        dispatcher_factory: Optional[Callable[[Settings, bool], OutcomeDispatcher]] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.stages: List[Stage] = list(stages) if stages is not None else build_stages(self.settings)
        self._dispatcher_factory = dispatcher_factory or default_dispatcher

    def context(
        self,
        params: ParameterSet,
        run_number: int,
        *,
        now: Optional[datetime] = None,
    ) -> BuildContext:
        return derive_build_context(params, run_number, settings=self.settings, now=now)

    def plan(self, params: ParameterSet) -> List[PlannedStage]:
        return plan_stages(params, self.stages)

    def run(
        self,
        params: ParameterSet,
        run_number: int,
        *,
        runner: Optional[CommandRunner] = None,
        now: Optional[datetime] = None,
    ) -> RunOutcome:
        """Derive the Build Context, run every stage, then dispatch the outcome."""
        runner = runner or CommandRunner()
        ctx = self.context(params, run_number, now=now)

        if not runner.quiet:
            print(f"🚀 shipline run {ctx.run_number}: {ctx.version_label} ({params.repo_url})")
            print(f"  Image   : {ctx.image_ref}")
            print(f"  Workdir : {ctx.workdir}")

        run = PipelineEngine(self.stages, quiet=runner.quiet).run(ctx, runner)
        report = self._dispatcher_factory(self.settings, runner.quiet).dispatch(run, runner)
        return RunOutcome(run=run, report=report)


def default_dispatcher(settings: Settings, quiet: bool) -> OutcomeDispatcher:
    return OutcomeDispatcher(
        on_always=AlwaysCleanup(runs_root=settings.runs_root, prune_images=settings.prune_images),
        quiet=quiet,
    )
