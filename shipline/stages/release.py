"""Release stages: push and deploy. Both are fatal."""

from __future__ import annotations

import logging
from typing import Optional

from shipkit.errors import CommandCancelled, CommandFailed, CommandTimeout
from shipline.context import BuildContext
from shipline.framework import all_of, flag, register_stage, stage_succeeded
from shipline.identifiers import image_ref
from tools import docker
from tools.core_cmd import CommandRunner
from tools.health import wait_for_http_ok
from tools.registry import fetch_registry_credentials, registry_repository, registry_session

from .image import BUILD_STAGE

logger = logging.getLogger(__name__)


@register_stage(
    "push",
    when=all_of(flag("push_to_registry"), stage_succeeded(BUILD_STAGE)),
    fatal=True,
)
def push(ctx: BuildContext, runner: CommandRunner) -> Optional[str]:
    """Push every tag of the image to the registry."""
    params = ctx.params
    credentials = fetch_registry_credentials(params.registry_username)
    host = ctx.settings.registry_host
    repository = registry_repository(host, params.registry_username, params.image_name)

    pushed = []
    with registry_session(runner, credentials, host=host):
        for tag in ctx.image_tags:
            target = image_ref(repository, tag)
            runner.run(docker.tag_command(image_ref(params.image_name, tag), target))
            runner.run(docker.push_command(target))
            pushed.append(target)
    return "pushed " + ", ".join(pushed)


def local_url(ctx: BuildContext) -> str:
    return f"http://localhost:{ctx.params.deploy_port}"


@register_stage(
    "deploy",
    when=all_of(flag("deploy_locally"), stage_succeeded(BUILD_STAGE)),
    fatal=True,
)
def deploy(ctx: BuildContext, runner: CommandRunner) -> Optional[str]:
    """Replace the branch's long-lived container and wait until it is healthy."""
    name = ctx.container_name
    settings = ctx.settings

    # The previous container may not exist.
    runner.best_effort(docker.stop_command(name))
    runner.best_effort(docker.rm_command(name))

    runner.run(
        docker.run_detached_command(
            image_ref=ctx.image_ref,
            name=name,
            ports={ctx.params.port: settings.container_port},
            env={
                "NODE_ENV": "production",
                "PORT": str(settings.container_port),
                "BUILD_VERSION": ctx.version_label,
            },
            restart="unless-stopped",
        )
    )

    if not settings.health_path or runner.dry_run:
        return f"deployed {ctx.image_ref} as {name} on {local_url(ctx)}"

    url = local_url(ctx) + settings.health_path
    try:
        health = wait_for_http_ok(
            url,
            timeout_seconds=settings.health_timeout_seconds,
            deadline=runner.deadline,
            cancel_token=runner.cancel_token,
        )
    except CommandFailed as e:
        if runner.cancel_token.cancelled:
            raise CommandCancelled(f"cancelled during health check: {url}") from e
        try:
            logs = runner.best_effort(docker.logs_command(name, tail=50)).output
        except CommandTimeout:
            # Stage deadline already spent.
            logs = ""
        raise type(e)(str(e), command_str=e.command_str, output=logs) from e

    return f"deployed {ctx.image_ref} as {name} on {local_url(ctx)}\n{health}"
