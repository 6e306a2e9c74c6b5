"""cli.common

Small shared helpers for CLI command modules.
"""

from __future__ import annotations

import argparse
import os
import signal
from contextlib import contextmanager
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional

from shipkit.errors import ValidationError
from shipline.models import ParameterSet
from shipline.settings import Settings
from tools.core_cmd import CancelToken
from tools.run_utils import next_run_number, read_last_run_number, record_run_number


def parameter_values(args: argparse.Namespace) -> Dict[str, Any]:
    """Run parameters given on the command line (absent ones are None)."""
    return {f.name: getattr(args, f.name, None) for f in fields(ParameterSet)}


def settings_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Settings keys set by CLI flags; relative paths resolve against the cwd."""
    out: Dict[str, Any] = {}
    if args.workspace_root:
        out["workspace_root"] = Path(args.workspace_root).expanduser().resolve()
    if args.runs_root:
        out["runs_root"] = Path(args.runs_root).expanduser().resolve()
    return out


def _positive_int(raw: Any, *, source: str) -> int:
    try:
        value = int(str(raw).strip())
    except ValueError as e:
        raise ValidationError(f"{source}: {raw!r} is not an integer", field="run_number") from e
    if value < 1:
        raise ValidationError(f"{source}: run number must be positive, got {value}", field="run_number")
    return value


def explicit_run_number(
    args: argparse.Namespace,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[int]:
    """Run number from --run-number, then BUILD_NUMBER; None when neither is set."""
    env = os.environ if environ is None else environ
    if args.run_number is not None:
        return _positive_int(args.run_number, source="--run-number")
    if env.get("BUILD_NUMBER"):
        return _positive_int(env["BUILD_NUMBER"], source="BUILD_NUMBER")
    return None


def issue_run_number(
    args: argparse.Namespace,
    settings: Settings,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    """Resolve the run number and keep the run counter in step with it."""
    explicit = explicit_run_number(args, environ)
    if explicit is not None:
        record_run_number(settings.state_file, explicit)
        return explicit
    return next_run_number(settings.state_file)


def preview_run_number(
    args: argparse.Namespace,
    settings: Settings,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    """Like :func:`issue_run_number`, without touching the counter."""
    explicit = explicit_run_number(args, environ)
    if explicit is not None:
        return explicit
    return read_last_run_number(settings.state_file) + 1


@contextmanager
def cancel_on_signals(token: CancelToken) -> Iterator[CancelToken]:
    """Route SIGINT/SIGTERM to ``token`` for the duration of the block.

    A second SIGINT while cancelling falls back to KeyboardInterrupt.
    """

    def _handler(signum, frame) -> None:
        name = signal.Signals(signum).name
        if token.cancelled and signum == signal.SIGINT:
            raise KeyboardInterrupt
        print(f"\n⚠️  {name} received; cancelling the run...")
        token.cancel(f"received {name}")

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
