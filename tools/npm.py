"""tools/npm.py

Package-manager command builders (install / lint / test / coverage).

The orchestrator only cares about exit status, so these are plain argv lists.
``package_manager`` is configurable (``npm`` by default; ``pnpm``/``yarn``
accept the same ``run <script>`` form).
"""

from __future__ import annotations

from pathlib import Path
from typing import List


def dependencies_installed(workdir: Path) -> bool:
    return (Path(workdir) / "node_modules").is_dir()


def install_command(package_manager: str = "npm") -> List[str]:
    if package_manager == "npm":
        return ["npm", "ci"]
    if package_manager == "yarn":
        return ["yarn", "install", "--frozen-lockfile"]
    return [package_manager, "install", "--frozen-lockfile"]


def script_command(script: str, package_manager: str = "npm") -> List[str]:
    if package_manager == "npm" and script == "test":
        return ["npm", "test"]
    return [package_manager, "run", script]
