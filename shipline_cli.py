#!/usr/bin/env python3
"""
CLI for the shipline build/test/deploy orchestrator.

Modes:
  1) run         - execute the stages for one build (default)
  2) plan        - show which stages would run for the given parameters
  3) list-stages - show the stage catalogue

Usage:
  python shipline_cli.py --repo-url https://github.com/example/node-app.git --branch main
  python shipline_cli.py --mode plan --build-image false
  python shipline_cli.py --push-to-registry true --registry-username acme --run-number 42
  python shipline_cli.py --mode list-stages

Exit codes: 0 success, 1 failed run, 2 invalid parameters/settings,
3 infrastructure error, 130 cancelled.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from cli.args.base import add_base_args
from cli.args.parameters import add_parameter_args
from cli.common import settings_overrides
from cli.dispatch import dispatch
from shipkit.errors import InfrastructureError, ValidationError
from shipline.pipeline import EXIT_CANCELLED, EXIT_INFRASTRUCTURE, EXIT_VALIDATION
from shipline.settings import ENV_PATH
from shipline.wiring import build_pipeline, load_env_file


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="shipline",
        description="Parameterized build/test/deploy orchestrator for containerized Node.js apps.",
    )
    add_base_args(parser)
    add_parameter_args(parser)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)

    # Load .env from the repo root (or --env-file) before settings resolve.
    env_file = Path(args.env_file) if args.env_file else ENV_PATH
    if args.env_file and not env_file.exists():
        raise SystemExit(f"--env-file not found: {env_file}")
    load_env_file(env_file)

    try:
        pipeline = build_pipeline(
            config_path=Path(args.config) if args.config else None,
            load_env=False,
            overrides=settings_overrides(args),
        )
        code = dispatch(args, pipeline)
    except (ValidationError, ValueError, FileNotFoundError) as e:
        print(f"❌ {e}", file=sys.stderr)
        code = EXIT_VALIDATION
    except InfrastructureError as e:
        print(f"❌ {e}", file=sys.stderr)
        code = EXIT_INFRASTRUCTURE
    except KeyboardInterrupt:
        print("\n❌ Interrupted", file=sys.stderr)
        code = EXIT_CANCELLED

    raise SystemExit(code)


if __name__ == "__main__":
    main()
