"""shipline.models

The run's input vocabulary: the validated :class:`ParameterSet`.

Every value is checked against its declared domain when the object is built,
so nothing downstream (build context, stage predicates, stage bodies) has to
re-validate. Unknown names and out-of-domain values raise
:class:`~shipkit.errors.ValidationError` before any stage runs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from shipkit.errors import ValidationError

BRANCH_CHOICES: Tuple[str, ...] = ("main", "develop", "staging")
DEPLOY_PORT_CHOICES: Tuple[str, ...] = ("3000", "8080", "5000")

BOOLEAN_PARAMETERS: Tuple[str, ...] = (
    "run_tests",
    "run_linting",
    "build_image",
    "push_to_registry",
    "deploy_locally",
    "clean_workspace",
    "verbose",
)

# Declared defaults; a settings file may override them (see shipline.settings).
PARAMETER_DEFAULTS: Dict[str, Any] = {
    "repo_url": "https://github.com/example/node-app.git",
    "branch": "main",
    "run_tests": True,
    "run_linting": True,
    "build_image": True,
    "push_to_registry": False,
    "deploy_locally": True,
    "clean_workspace": False,
    "verbose": False,
    "deploy_port": "3000",
    "image_name": "node-app",
    "registry_username": "",
}

_TRUE = {"true", "yes", "y", "1", "on"}
_FALSE = {"false", "no", "n", "0", "off"}

_IMAGE_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
_USERNAME_RE = re.compile(r"^[A-Za-z0-9._-]*$")
_REMOTE_URL_PREFIXES = ("https://", "http://", "git@", "ssh://", "file://")


def parse_bool(value: Any, *, field: str = "value") -> bool:
    """Strict boolean coercion for CLI/env/YAML inputs."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
    raise ValidationError(f"{field}: expected a boolean, got {value!r}", field=field)


def _choice(value: Any, choices: Tuple[str, ...], *, field: str) -> str:
    s = str(value).strip() if value is not None else ""
    if s not in choices:
        raise ValidationError(
            f"{field}: {value!r} is not one of {', '.join(choices)}", field=field
        )
    return s


@dataclass(frozen=True)
class ParameterSet:
    """Validated, typed run configuration."""

    repo_url: str
    branch: str = "main"
    run_tests: bool = True
    run_linting: bool = True
    build_image: bool = True
    push_to_registry: bool = False
    deploy_locally: bool = True
    clean_workspace: bool = False
    verbose: bool = False
    deploy_port: str = "3000"
    image_name: str = "node-app"
    registry_username: str = ""

    def __post_init__(self) -> None:
        repo_url = str(self.repo_url or "").strip()
        if not repo_url:
            raise ValidationError("repo_url cannot be empty", field="repo_url")
        if not repo_url.startswith(_REMOTE_URL_PREFIXES):
            local = Path(repo_url).expanduser()
            if not local.exists():
                raise ValidationError(
                    f"repo_url: {repo_url!r} is neither a git URL nor an existing local path",
                    field="repo_url",
                )
            # Stages run git from the workdir, not from the caller's cwd.
            repo_url = str(local.resolve())
        object.__setattr__(self, "repo_url", repo_url)

        object.__setattr__(self, "branch", _choice(self.branch, BRANCH_CHOICES, field="branch"))
        object.__setattr__(
            self, "deploy_port", _choice(self.deploy_port, DEPLOY_PORT_CHOICES, field="deploy_port")
        )

        for name in BOOLEAN_PARAMETERS:
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ValidationError(
                    f"{name}: expected a boolean, got {type(value).__name__}", field=name
                )

        image_name = str(self.image_name or "").strip()
        if not _IMAGE_NAME_RE.match(image_name):
            raise ValidationError(
                f"image_name: {self.image_name!r} is not a valid image name "
                "(lowercase letters, digits, '.', '_' and '-')",
                field="image_name",
            )
        object.__setattr__(self, "image_name", image_name)

        username = str(self.registry_username or "").strip()
        if not _USERNAME_RE.match(username):
            raise ValidationError(
                f"registry_username: {self.registry_username!r} contains invalid characters",
                field="registry_username",
            )
        if self.push_to_registry and not username:
            raise ValidationError(
                "registry_username is required when push_to_registry is true",
                field="registry_username",
            )
        object.__setattr__(self, "registry_username", username)

    @property
    def port(self) -> int:
        return int(self.deploy_port)

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        *,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> "ParameterSet":
        """Build from loosely-typed named values (CLI, env, YAML).

        ``None`` means "absent" and falls back to ``defaults`` (or the declared
        :data:`PARAMETER_DEFAULTS`). Unknown names are rejected.
        """
        known = {f.name for f in fields(cls)}

        base = dict(PARAMETER_DEFAULTS)
        for source in (defaults or {}, values):
            unknown = sorted(k for k in source if k not in known)
            if unknown:
                raise ValidationError(
                    f"Unknown parameter(s): {', '.join(unknown)}", field=unknown[0]
                )
            base.update({k: v for k, v in source.items() if v is not None})

        kwargs: Dict[str, Any] = {}
        for name, value in base.items():
            if name in BOOLEAN_PARAMETERS:
                kwargs[name] = parse_bool(value, field=name)
            elif name == "deploy_port":
                kwargs[name] = str(value).strip()
            else:
                kwargs[name] = "" if value is None else str(value)
        return cls(**kwargs)

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
