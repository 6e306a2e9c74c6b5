"""shipline.plan

Pure "what would run" evaluation of a stage list.

Every enabled stage is assumed to succeed, so the plan shows the best case:
stages that depend on an earlier stage's success are listed as enabled when
that stage is enabled. No command runs and no clock is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from shipline.framework import Stage, StageHistory, StageResult
from shipline.models import ParameterSet


@dataclass(frozen=True)
class PlannedStage:
    name: str
    enabled: bool
    fatal: bool
    condition: str
    env_mode: str
    timeout_seconds: Optional[float] = None


def plan_stages(params: ParameterSet, stages: Sequence[Stage]) -> List[PlannedStage]:
    assumed: List[StageResult] = []
    planned: List[PlannedStage] = []
    for stage in stages:
        enabled = stage.enabled(params, StageHistory(assumed))
        planned.append(
            PlannedStage(
                name=stage.name,
                enabled=enabled,
                fatal=stage.fatal,
                condition=stage.condition,
                env_mode=stage.env_mode,
                timeout_seconds=stage.timeout_seconds,
            )
        )
        if enabled:
            assumed.append(
                StageResult(
                    name=stage.name,
                    executed=True,
                    succeeded=True,
                    fatal=stage.fatal,
                    started_at="",
                    finished_at="",
                )
            )
    return planned


def format_plan(planned: Sequence[PlannedStage]) -> List[str]:
    width = max((len(p.name) for p in planned), default=0)
    lines = []
    for p in planned:
        mark = "✅" if p.enabled else "⏭ "
        policy = "fatal" if p.fatal else "soft"
        timeout = f"  timeout={p.timeout_seconds:g}s" if p.timeout_seconds else ""
        lines.append(f"  {mark} {p.name:<{width}}  {policy:<5}  env={p.env_mode:<10}  when: {p.condition}{timeout}")
    return lines
