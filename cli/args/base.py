from __future__ import annotations

import argparse

MODES = ("run", "plan", "list-stages")


def add_base_args(parser: argparse.ArgumentParser) -> None:
    """Register CLI flags that are not run parameters.

    This includes:
    - mode selection
    - configuration sources (settings file, .env)
    - workspace / runs locations
    - run numbering
    - execution knobs
    """

    parser.add_argument(
        "--mode",
        choices=list(MODES),
        default="run",
        help=(
            "run = execute the stages, plan = show which stages would run (nothing executes), "
            "list-stages = show the stage catalogue"
        ),
    )

    parser.add_argument(
        "--config",
        help="Settings YAML (default: shipline.yaml at the repo root, if present).",
    )
    parser.add_argument(
        "--env-file",
        help="Load environment variables from this file instead of the repo-root .env.",
    )

    parser.add_argument(
        "--workspace-root",
        help="Parent directory for checkouts (overrides settings/SHIPLINE_WORKSPACE_ROOT).",
    )
    parser.add_argument(
        "--runs-root",
        help="Where run manifests and the run counter live (overrides settings/SHIPLINE_RUNS_ROOT).",
    )

    parser.add_argument(
        "--run-number",
        help=(
            "Run number for this build. If omitted, BUILD_NUMBER is used; "
            "otherwise the next number from <runs-root>/.run_number."
        ),
    )

    parser.add_argument(
        "--dry-run", action="store_true", help="Print commands but do not execute"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output (command output is still captured for the manifest)",
    )
