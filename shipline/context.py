"""shipline.context

The Build Context: the immutable metadata packet shared by every stage in a
run.

It is derived exactly once per run from the :class:`~shipline.models.ParameterSet`,
the host-supplied run number and a single clock reading. Stages read it; they
never rebuild names themselves (see :mod:`shipline.identifiers`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from shipkit.errors import ValidationError
from shipline import identifiers
from shipline.models import ParameterSet
from shipline.settings import Settings
from tools.core_git import get_repo_name

ENV_MODE_TEST = "test"
ENV_MODE_PRODUCTION = "production"
ENV_MODES = (ENV_MODE_TEST, ENV_MODE_PRODUCTION)


@dataclass(frozen=True)
class BuildContext:
    """Derived, deterministic metadata for one run.

    Attributes
    ----------
    version_label:
        ``<branch>-<run_number>``; exported to stages as ``BUILD_VERSION``.
    image_tags:
        Every tag applied by the image build, run-scoped tag first.
    container_name:
        Long-lived deployment container (one per image and branch).
    test_container_name:
        Transient image-test container, scoped to this run.
    workdir:
        Checkout directory, ``<workspace_root>/<repo name>-<branch>``.
    settings:
        Static settings the stage bodies need (ports, scanner, timeouts).
    """

    params: ParameterSet
    run_number: int
    version_label: str
    image_tag: str
    image_ref: str
    image_tags: Tuple[str, ...]
    container_name: str
    test_container_name: str
    timestamp: str
    workdir: Path
    settings: Settings = field(default_factory=Settings, compare=False)

    @property
    def workspace_root(self) -> Path:
        return Path(self.settings.workspace_root)

    def environment(self, mode: str = ENV_MODE_PRODUCTION) -> Dict[str, str]:
        """Variables injected into every command a stage runs."""
        if mode not in ENV_MODES:
            raise ValueError(f"Unknown environment mode: {mode!r}")
        return {
            "BUILD_VERSION": self.version_label,
            "BUILD_NUMBER": str(self.run_number),
            "BRANCH_NAME": self.params.branch,
            "NODE_ENV": mode,
            "APP_PORT": self.params.deploy_port,
            "BUILD_TIMESTAMP": self.timestamp,
        }

    def build_args(self) -> Dict[str, str]:
        return {
            "BUILD_NUMBER": str(self.run_number),
            "VERSION": self.version_label,
            "BRANCH": self.params.branch,
            "BUILD_TIMESTAMP": self.timestamp,
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "run_number": self.run_number,
            "version_label": self.version_label,
            "image_tag": self.image_tag,
            "image_ref": self.image_ref,
            "image_tags": list(self.image_tags),
            "container_name": self.container_name,
            "test_container_name": self.test_container_name,
            "timestamp": self.timestamp,
            "workdir": str(self.workdir),
        }


def derive_build_context(
    params: ParameterSet,
    run_number: int,
    *,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> BuildContext:
    """Derive the Build Context; reads the clock at most once (when ``now`` is None)."""
    if isinstance(run_number, bool) or not isinstance(run_number, int) or run_number < 1:
        raise ValidationError(
            f"run_number must be a positive integer, got {run_number!r}", field="run_number"
        )

    settings = settings or Settings()
    instant = now if now is not None else datetime.now(timezone.utc)

    repo_dir = identifiers.sanitize_name_fragment(get_repo_name(params.repo_url) or "repo")
    workdir = Path(settings.workspace_root) / f"{repo_dir}-{params.branch}"

    tag = identifiers.image_tag(run_number)
    return BuildContext(
        params=params,
        run_number=run_number,
        version_label=identifiers.version_label(params.branch, run_number),
        image_tag=tag,
        image_ref=identifiers.image_ref(params.image_name, tag),
        image_tags=identifiers.image_tags(run_number, params.branch),
        container_name=identifiers.container_name(params.image_name, params.branch),
        test_container_name=identifiers.test_container_name(params.image_name, run_number),
        timestamp=identifiers.format_timestamp(instant),
        workdir=workdir,
        settings=settings,
    )
