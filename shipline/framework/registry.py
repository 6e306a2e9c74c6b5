from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

from shipkit.errors import ValidationError
from shipline.context import ENV_MODE_PRODUCTION

from .predicates import always
from .stage import Predicate, Stage, StageBody

_STAGE_REGISTRY: Dict[str, Stage] = {}


def register_stage(
    name: str,
    *,
    when: Predicate = always,
    fatal: bool = False,
    description: str = "",
    env_mode: str = ENV_MODE_PRODUCTION,
    runs_in_workspace_root: bool = False,
):
    """Decorator to register a stage body under ``name``."""

    def _decorator(fn: StageBody) -> StageBody:
        doc = (fn.__doc__ or "").strip()
        _STAGE_REGISTRY[name] = Stage(
            name=name,
            body=fn,
            when=when,
            fatal=fatal,
            description=description or (doc.splitlines()[0] if doc else ""),
            env_mode=env_mode,
            runs_in_workspace_root=runs_in_workspace_root,
        )
        return fn

    return _decorator


def get_stage(name: str) -> Stage:
    if name not in _STAGE_REGISTRY:
        raise KeyError(f"Unknown stage: {name}")
    return _STAGE_REGISTRY[name]


def resolve_stages(
    names: Sequence[str],
    *,
    timeouts: Optional[Mapping[str, float]] = None,
) -> List[Stage]:
    """Look up ``names`` in order, applying per-stage timeouts."""
    timeouts = timeouts or {}
    unknown = sorted(set(timeouts) - set(names))
    if unknown:
        raise ValidationError(
            f"stage_timeouts configured for unknown stage(s): {', '.join(unknown)}",
            field="stage_timeouts",
        )
    out: List[Stage] = []
    for n in names:
        stage = get_stage(n)
        if n in timeouts:
            stage = replace(stage, timeout_seconds=float(timeouts[n]))
        out.append(stage)
    return out
