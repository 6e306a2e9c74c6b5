"""shipline.settings

Static configuration for the orchestrator (as opposed to per-run parameters).

Sources, lowest to highest precedence:

1. built-in defaults (the dataclass fields below)
2. ``shipline.yaml`` at the repo root, or an explicit ``--config`` file
3. environment variables (``SHIPLINE_WORKSPACE_ROOT``, ``SHIPLINE_RUNS_ROOT``,
   ``SHIPLINE_REGISTRY_HOST``), typically provided through ``.env``

CLI flags are applied on top by the caller.

Example ``shipline.yaml``::

    workspace_root: build/workspace
    registry_host: ghcr.io
    container_port: 8080
    stage_timeouts:
      test: 900
      build-image: 1800
    defaults:
      image_name: storefront
      run_linting: false
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from shipkit.errors import ValidationError
from shipline.models import parse_bool

logger = logging.getLogger(__name__)

# Repo root = parent of shipline/
ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = ROOT_DIR / "shipline.yaml"
ENV_PATH = ROOT_DIR / ".env"

ENV_OVERRIDES: Dict[str, str] = {
    "SHIPLINE_WORKSPACE_ROOT": "workspace_root",
    "SHIPLINE_RUNS_ROOT": "runs_root",
    "SHIPLINE_REGISTRY_HOST": "registry_host",
}


@dataclass(frozen=True)
class Settings:
    """Orchestrator settings shared by every run.

    Attributes
    ----------
    workspace_root:
        Parent directory for checkouts (``<workspace_root>/<repo>-<branch>``).
    runs_root:
        Where run manifests, the LATEST pointer and the run counter live.
    registry_host:
        Registry used by the push stage (``docker.io`` means Docker Hub).
    container_port:
        Port the application listens on inside the container.
    health_path:
        Path checked after deploy. Empty disables the check.
    image_test_settle_seconds:
        How long the image-test container must stay up before it counts as
        healthy.
    stage_timeouts:
        Optional per-stage deadline in seconds, keyed by stage name.
    defaults:
        Parameter defaults that override the built-in ones.
    """

    workspace_root: Path = ROOT_DIR / "workspace"
    runs_root: Path = ROOT_DIR / "runs"

    registry_host: str = "docker.io"
    container_port: int = 3000
    health_path: str = "/health"
    health_timeout_seconds: float = 30.0
    image_test_settle_seconds: float = 5.0

    scan_image: str = "aquasec/trivy:latest"
    scan_severity: str = "HIGH,CRITICAL"
    package_manager: str = "npm"
    dockerfile: str = "Dockerfile"
    prune_images: bool = True

    stage_timeouts: Mapping[str, float] = field(default_factory=dict)
    defaults: Mapping[str, Any] = field(default_factory=dict)

    @property
    def state_file(self) -> Path:
        return Path(self.runs_root) / ".run_number"


def _coerce(name: str, value: Any, template: Any) -> Any:
    """Coerce a raw YAML/env value to the type of the field's default."""
    try:
        if isinstance(template, bool):
            return parse_bool(value, field=name)
        if isinstance(template, Path):
            # Anchor relative paths under the project root
            p = Path(str(value)).expanduser()
            return p if p.is_absolute() else ROOT_DIR / p
        if isinstance(template, int):
            return int(value)
        if isinstance(template, float):
            return float(value)
        if isinstance(template, str):
            return "" if value is None else str(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"settings.{name}: invalid value {value!r} ({e})", field=name) from e
    return value


def settings_from_mapping(raw: Mapping[str, Any], *, base: Optional[Settings] = None) -> Settings:
    base = base or Settings()
    known = {f.name: f for f in fields(Settings)}

    unknown = sorted(k for k in raw if k not in known)
    if unknown:
        raise ValidationError(f"Unknown settings key(s): {', '.join(unknown)}", field=unknown[0])

    updates: Dict[str, Any] = {}
    for name, value in raw.items():
        if name == "stage_timeouts":
            if not isinstance(value, Mapping):
                raise ValidationError("settings.stage_timeouts must be a mapping", field=name)
            timeouts: Dict[str, float] = {}
            for stage, seconds in value.items():
                try:
                    timeouts[str(stage)] = float(seconds)
                except (TypeError, ValueError) as e:
                    raise ValidationError(
                        f"settings.stage_timeouts.{stage}: invalid value {seconds!r}", field=name
                    ) from e
                if timeouts[str(stage)] <= 0:
                    raise ValidationError(
                        f"settings.stage_timeouts.{stage}: must be positive", field=name
                    )
            updates[name] = timeouts
        elif name == "defaults":
            if not isinstance(value, Mapping):
                raise ValidationError("settings.defaults must be a mapping", field=name)
            updates[name] = dict(value)
        else:
            updates[name] = _coerce(name, value, getattr(base, name))

    settings = replace(base, **updates)
    if not (0 < int(settings.container_port) < 65536):
        raise ValidationError(
            f"settings.container_port: {settings.container_port} is out of range", field="container_port"
        )
    return settings


def load_yaml_settings(path: Path) -> Dict[str, Any]:
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Settings file not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Failed to parse settings YAML {p}: {e}") from e
    if not isinstance(raw, dict):
        raise ValidationError(f"Settings YAML must be a mapping/object at top level: {p}")
    return raw


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Resolve settings from defaults, the YAML file, and the environment."""
    env = os.environ if environ is None else environ

    raw: Dict[str, Any] = {}
    if config_path is not None:
        raw = load_yaml_settings(Path(config_path))
        logger.info("Loaded settings from %s", config_path)
    elif DEFAULT_CONFIG_PATH.exists():
        raw = load_yaml_settings(DEFAULT_CONFIG_PATH)
        logger.info("Loaded settings from %s", DEFAULT_CONFIG_PATH)

    for var, key in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            raw[key] = value

    return settings_from_mapping(raw)
