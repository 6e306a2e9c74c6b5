"""tools/registry.py

Container-registry credentials and login scope.

Credentials are looked up only when the push stage needs them, handed to
``docker login`` on stdin, and dropped when the ``with`` block exits. They are
never placed on a command line, in a build context, or in a log line.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Mapping, Optional

from shipkit.errors import ShiplineError, ValidationError

from .core_cmd import CommandRunner

logger = logging.getLogger(__name__)

PASSWORD_ENV_VARS = ("REGISTRY_PASSWORD", "DOCKER_PASSWORD")
DOCKER_HUB_HOSTS = {"", "docker.io", "index.docker.io", "registry-1.docker.io"}


@dataclass(frozen=True)
class RegistryCredentials:
    username: str
    password: str = field(repr=False)

    def __repr__(self) -> str:
        return f"RegistryCredentials(username={self.username!r}, password='***')"


def fetch_registry_credentials(
    username: str,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> RegistryCredentials:
    """Read the registry password from the environment."""
    env = os.environ if environ is None else environ
    if not username:
        raise ValidationError("registry_username is required to push images", field="registry_username")
    for var in PASSWORD_ENV_VARS:
        value = env.get(var)
        if value:
            return RegistryCredentials(username=username, password=value)
    raise ValidationError(
        f"Missing registry password. Set one of {', '.join(PASSWORD_ENV_VARS)} "
        "in the project .env (or export it in your shell).",
        field="registry_password",
    )


def has_registry_password(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return any(env.get(v) for v in PASSWORD_ENV_VARS)


def registry_repository(host: str, username: str, image_name: str) -> str:
    """Fully qualified repository name (without tag) for ``docker push``."""
    if (host or "").strip().lower() in DOCKER_HUB_HOSTS:
        return f"{username}/{image_name}"
    return f"{host.rstrip('/')}/{username}/{image_name}"


@contextmanager
def registry_session(
    runner: CommandRunner,
    credentials: RegistryCredentials,
    *,
    host: str = "docker.io",
) -> Iterator[None]:
    """Log in for the duration of the block; always log out afterwards."""
    login = ["docker", "login"]
    if host and host.strip().lower() not in DOCKER_HUB_HOSTS:
        login.append(host)
    login += ["-u", credentials.username, "--password-stdin"]

    runner.run(login, input_text=credentials.password)
    try:
        yield
    finally:
        logout = ["docker", "logout"]
        if host and host.strip().lower() not in DOCKER_HUB_HOSTS:
            logout.append(host)
        try:
            runner.best_effort(logout)
        except ShiplineError as e:
            logger.warning("docker logout failed: %s", e)
