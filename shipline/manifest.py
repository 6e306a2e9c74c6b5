"""shipline.manifest

Writers for run *state files*:

- ``<runs_root>/<run_number>/run.json``  (per-run manifest)
- ``<runs_root>/LATEST``                 (pointer to the most recent run)

Both are written atomically. The manifest records parameters, derived build
context, per-stage results and the dispatcher report. Registry credentials
never reach this module: the Parameter Set has no password field and the
password is only ever held by the push stage.
"""

from __future__ import annotations

import logging
import platform
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from shipkit.io import write_json_atomic, write_text_atomic
from shipline.framework import PipelineRun

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "run.json"
LATEST_POINTER = "LATEST"


def runtime_environment() -> Dict[str, Any]:
    """Runtime provenance captured into manifests (safe, no secrets)."""
    return {
        "python_version": platform.python_version(),
        "platform": platform.platform(),
    }


def run_dir(runs_root: Path, run_number: int) -> Path:
    return Path(runs_root) / str(int(run_number))


def build_run_manifest(
    run: PipelineRun,
    *,
    report: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    ctx = run.context
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "runtime": runtime_environment(),
        "parameters": ctx.params.as_dict(),
        "context": ctx.as_dict(),
        "run": run.as_dict(),
        "dispatch": dict(report or {}),
    }


def write_run_manifest(
    run: PipelineRun,
    *,
    runs_root: Path,
    report: Optional[Mapping[str, Any]] = None,
) -> Path:
    """Write run.json for ``run`` and point LATEST at it."""
    out_dir = run_dir(runs_root, run.context.run_number)
    path = out_dir / MANIFEST_FILENAME
    write_json_atomic(path, build_run_manifest(run, report=report))
    update_latest_pointer(runs_root, run.context.run_number)
    logger.debug("wrote run manifest %s", path)
    return path


def update_latest_pointer(runs_root: Path, run_number: int) -> None:
    """Write/overwrite <runs_root>/LATEST with the run number."""
    write_text_atomic(Path(runs_root) / LATEST_POINTER, f"{int(run_number)}\n")

