"""Image stages: build-image, test-image and security-scan.

Every stage after build-image requires it to have succeeded *in this run*,
so a disabled or failed build can never lead to testing or scanning a stale
image left over from an earlier run.
"""

from __future__ import annotations

import logging
from typing import Optional

from shipkit.errors import CommandCancelled, CommandFailed, ShiplineError
from shipline.context import ENV_MODE_TEST, BuildContext
from shipline.framework import all_of, flag, register_stage, stage_succeeded
from tools import docker
from tools.core_cmd import CommandRunner

logger = logging.getLogger(__name__)

BUILD_STAGE = "build-image"


@register_stage(BUILD_STAGE, when=flag("build_image"), fatal=True)
def build_image(ctx: BuildContext, runner: CommandRunner) -> Optional[str]:
    """Build the container image, tagged with run number, branch and latest."""
    runner.run(
        docker.build_command(
            image_name=ctx.params.image_name,
            tags=ctx.image_tags,
            build_args=ctx.build_args(),
            dockerfile=ctx.settings.dockerfile,
            context_dir=".",
        )
    )
    return "built " + ", ".join(f"{ctx.params.image_name}:{t}" for t in ctx.image_tags)


def remove_container(runner: CommandRunner, name: str) -> None:
    """Stop and remove ``name``; failures are logged, never raised."""
    try:
        runner.best_effort(docker.stop_command(name))
        runner.best_effort(docker.rm_command(name, force=True))
    except ShiplineError as e:
        logger.warning("could not remove container %s: %s", name, e)


@register_stage(
    "test-image",
    when=all_of(flag("build_image"), flag("run_tests"), stage_succeeded(BUILD_STAGE)),
    env_mode=ENV_MODE_TEST,
)
def smoke_test_image(ctx: BuildContext, runner: CommandRunner) -> Optional[str]:
    """Start the image in a throwaway container and check it stays up."""
    name = ctx.test_container_name
    try:
        runner.run(
            docker.run_detached_command(
                image_ref=ctx.image_ref,
                name=name,
                env={"NODE_ENV": "test"},
            )
        )
        if runner.dry_run:
            return f"dry-run: would check {name}"

        if runner.cancel_token.wait(ctx.settings.image_test_settle_seconds):
            raise CommandCancelled(f"cancelled while waiting for {name}")

        state = runner.run(docker.is_running_command(name))
        logs = runner.best_effort(docker.logs_command(name))
        if state.output.strip() != "true":
            raise CommandFailed(
                f"container {name} is not running after {ctx.settings.image_test_settle_seconds:g}s",
                command_str=state.command_str,
                output=logs.output,
            )
        return f"container {name} is running"
    finally:
        remove_container(runner, name)


@register_stage(
    "security-scan",
    when=all_of(flag("build_image"), stage_succeeded(BUILD_STAGE)),
)
def security_scan(ctx: BuildContext, runner: CommandRunner) -> Optional[str]:
    """Scan the image for HIGH/CRITICAL vulnerabilities (findings are warnings)."""
    res = runner.best_effort(
        docker.scan_command(
            ctx.image_ref,
            scanner_image=ctx.settings.scan_image,
            severity=ctx.settings.scan_severity,
        )
    )
    if res.warning:
        return f"scanner reported {ctx.settings.scan_severity} findings for {ctx.image_ref}"
    return f"no {ctx.settings.scan_severity} findings for {ctx.image_ref}"
