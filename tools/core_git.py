"""tools/core_git.py

Git helpers for the checkout stage.

Every function takes a :class:`~tools.core_cmd.CommandRunner` so the caller's
environment, working directory, deadline and cancellation apply to git too.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from .core_cmd import CommandRunner


def get_repo_name(repo_url: str) -> str:
    """Turn a Git URL (or local path) into a simple repo name.

    Examples:
      https://github.com/juice-shop/juice-shop.git -> "juice-shop"
      git@github.com:acme/web-app.git             -> "web-app"
      /srv/git/api/                               -> "api"
    """
    last = (repo_url or "").rstrip("/").replace(":", "/").split("/")[-1]
    return last[:-4] if last.endswith(".git") else last


def is_checkout(path: Path) -> bool:
    return (Path(path) / ".git").exists()


def clone_command(repo_url: str, branch: str, dest: Path, *, depth: int = 1) -> List[str]:
    cmd = ["git", "clone"]
    if depth > 0:
        cmd += ["--depth", str(depth)]
    cmd += ["--branch", branch, repo_url, str(dest)]
    return cmd


def checkout_branch(
    runner: CommandRunner,
    *,
    repo_url: str,
    branch: str,
    dest: Path,
    depth: int = 1,
) -> str:
    """Clone ``repo_url`` at ``branch`` into ``dest``, or refresh an existing checkout.

    An existing checkout is moved to the remote branch head and hard-reset, so
    stale local edits never leak into a build. Returns the combined git output.
    """
    dest = Path(dest)
    outputs: List[str] = []

    if is_checkout(dest):
        fetch = ["git", "-C", str(dest), "fetch", "origin", branch]
        if depth > 0:
            fetch[4:4] = ["--depth", str(depth)]
        outputs.append(runner.run(fetch).output)
        outputs.append(runner.run(["git", "-C", str(dest), "checkout", "-B", branch, "FETCH_HEAD"]).output)
        outputs.append(runner.run(["git", "-C", str(dest), "reset", "--hard", "FETCH_HEAD"]).output)
    else:
        dest.parent.mkdir(parents=True, exist_ok=True)
        outputs.append(runner.run(clone_command(repo_url, branch, dest, depth=depth)).output)

    return "".join(o for o in outputs if o)


def get_git_commit(runner: CommandRunner, repo_path: Path) -> Optional[str]:
    """Return the current commit SHA for the checkout at ``repo_path``.

    Checked: a checkout without a resolvable HEAD is a failed checkout.
    """
    res = runner.run(["git", "-C", str(repo_path), "rev-parse", "HEAD"])
    sha = (res.output or "").strip()
    return sha or None


def get_commit_author_info(runner: CommandRunner, repo_path: Path, commit: str) -> Dict[str, Optional[str]]:
    """Return author name/email/date for the given commit SHA.

    Best-effort: returns keys with None if unavailable.
    """
    res = runner.best_effort(
        ["git", "-C", str(repo_path), "show", "-s", "--format=%an%n%ae%n%aI", commit]
    )
    if res.exit_code != 0:
        return {
            "commit_author_name": None,
            "commit_author_email": None,
            "commit_date": None,
        }

    lines = (res.output or "").splitlines()
    return {
        "commit_author_name": lines[0].strip() if len(lines) > 0 and lines[0].strip() else None,
        "commit_author_email": lines[1].strip() if len(lines) > 1 and lines[1].strip() else None,
        "commit_date": lines[2].strip() if len(lines) > 2 and lines[2].strip() else None,
    }
