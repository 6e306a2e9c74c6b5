"""Workspace preparation: clean-workspace and checkout."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from shipkit.errors import CommandFailed
from shipline.context import BuildContext
from shipline.framework import flag, register_stage
from tools.core_cmd import CommandRunner
from tools.core_git import checkout_branch, get_commit_author_info, get_git_commit

logger = logging.getLogger(__name__)


@register_stage(
    "clean-workspace",
    when=flag("clean_workspace"),
    runs_in_workspace_root=True,
)
def clean_workspace(ctx: BuildContext, runner: CommandRunner) -> Optional[str]:
    """Delete the checkout directory so the next checkout starts fresh."""
    workdir = Path(ctx.workdir)
    root = Path(ctx.workspace_root).resolve()
    if root not in workdir.resolve().parents:
        raise ValueError(f"Refusing to delete {workdir}: not under workspace root {root}")

    if not workdir.exists():
        return f"nothing to clean at {workdir}"
    if runner.dry_run:
        return f"dry-run: would remove {workdir}"

    shutil.rmtree(workdir)
    logger.info("removed %s", workdir)
    return f"removed {workdir}"


@register_stage("checkout", fatal=True, runs_in_workspace_root=True)
def checkout(ctx: BuildContext, runner: CommandRunner) -> Optional[str]:
    """Clone (or refresh) the repository at the requested branch."""
    if not runner.dry_run:
        ctx.workspace_root.mkdir(parents=True, exist_ok=True)

    checkout_branch(
        runner,
        repo_url=ctx.params.repo_url,
        branch=ctx.params.branch,
        dest=ctx.workdir,
    )
    commit = get_git_commit(runner, ctx.workdir)
    if runner.dry_run:
        return f"dry-run: {ctx.params.repo_url}@{ctx.params.branch}"
    if not commit:
        raise CommandFailed(f"checkout produced no commit at {ctx.workdir}")

    info = get_commit_author_info(runner, ctx.workdir, commit)
    lines = [f"commit: {commit}"]
    if info.get("commit_author_name"):
        lines.append(f"author: {info['commit_author_name']} <{info.get('commit_author_email') or ''}>")
    if info.get("commit_date"):
        lines.append(f"date: {info['commit_date']}")
    return "\n".join(lines)
