"""shipline.framework.predicates

Composable stage-enablement predicates.

A predicate is any callable ``(ParameterSet, StageHistory) -> bool``. The
helpers here also carry a ``label`` so ``--mode plan`` and ``list-stages``
can show *why* a stage is (or is not) enabled.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from shipline.models import BOOLEAN_PARAMETERS, ParameterSet

from .stage import Predicate, StageHistory


@dataclass(frozen=True)
class Condition:
    label: str
    fn: Callable[[ParameterSet, StageHistory], bool]

    def __call__(self, params: ParameterSet, history: StageHistory) -> bool:
        return bool(self.fn(params, history))

    def __str__(self) -> str:
        return self.label


def flag(name: str) -> Condition:
    """True when the boolean parameter ``name`` is set."""
    if name not in BOOLEAN_PARAMETERS:
        raise ValueError(f"Unknown boolean parameter: {name}")
    return Condition(label=name, fn=lambda params, history: bool(getattr(params, name)))


def stage_succeeded(stage_name: str) -> Condition:
    """True when ``stage_name`` executed earlier in this run and succeeded."""
    return Condition(
        label=f"{stage_name} succeeded",
        fn=lambda params, history: history.succeeded(stage_name),
    )


def all_of(*predicates: Predicate) -> Condition:
    """Short-circuit conjunction, evaluated left to right."""
    if not predicates:
        return always
    label = " and ".join(str(getattr(p, "label", getattr(p, "__name__", "custom"))) for p in predicates)
    return Condition(
        label=label,
        fn=lambda params, history: all(p(params, history) for p in predicates),
    )


always = Condition(label="always", fn=lambda params, history: True)
