"""shipline.stages

Builtin stages.

Importing this package registers builtin stages in the global registry.
"""

from __future__ import annotations

from typing import List, Optional

from shipline.framework import DEFAULT_PIPELINE, PIPELINES, Stage, resolve_stages
from shipline.settings import Settings

# Import side-effect: stage registration decorators.
from . import source  # noqa: F401
from . import quality  # noqa: F401
from . import image  # noqa: F401
from . import release  # noqa: F401


def build_stages(settings: Optional[Settings] = None, *, pipeline: str = DEFAULT_PIPELINE) -> List[Stage]:
    """Ordered stages of ``pipeline`` with the configured timeouts applied."""
    if pipeline not in PIPELINES:
        raise KeyError(f"Unknown pipeline: {pipeline}")
    settings = settings or Settings()
    return resolve_stages(PIPELINES[pipeline], timeouts=settings.stage_timeouts)


__all__ = [
    "source",
    "quality",
    "image",
    "release",
    "build_stages",
]
