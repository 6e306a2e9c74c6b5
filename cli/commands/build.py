from __future__ import annotations

from shipkit.errors import ValidationError
from shipline.models import ParameterSet
from shipline.pipeline import ShiplinePipeline
from tools.core_cmd import CancelToken, CommandRunner
from tools.registry import PASSWORD_ENV_VARS, has_registry_password

from cli.common import cancel_on_signals, issue_run_number, preview_run_number


def preflight(params: ParameterSet) -> None:
    """Checks that must pass before any stage runs."""
    if params.push_to_registry and not has_registry_password():
        raise ValidationError(
            f"push_to_registry is true but no registry password is set ({' or '.join(PASSWORD_ENV_VARS)})",
            field="registry_password",
        )


def run_build(args, pipeline: ShiplinePipeline, *, params: ParameterSet) -> int:
    preflight(params)
    # A dry run does not consume a run number.
    if args.dry_run:
        run_number = preview_run_number(args, pipeline.settings)
    else:
        run_number = issue_run_number(args, pipeline.settings)

    token = CancelToken()
    runner = CommandRunner(
        cancel_token=token,
        dry_run=bool(args.dry_run),
        quiet=bool(args.quiet),
    )
    with cancel_on_signals(token):
        outcome = pipeline.run(params, run_number, runner=runner)
    return outcome.exit_code
