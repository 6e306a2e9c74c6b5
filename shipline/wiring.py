"""shipline.wiring

This module is the **composition root** for the Python runtime.

"Composition root" means: the single place where we *assemble* the running
application from its building blocks:

- load configuration / environment variables (``.env``, ``shipline.yaml``)
- configure logging
- build the high-level pipeline facade object

Keeping this wiring in one place prevents configuration and dependency setup
from being duplicated across entrypoints (CLI, scripts, CI).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from shipline.pipeline import ShiplinePipeline
from shipline.settings import ENV_PATH, Settings, load_settings, settings_from_mapping

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def load_env_file(dotenv_path: Path = ENV_PATH) -> bool:
    """Load ``KEY=VALUE`` lines into ``os.environ`` without overriding the shell."""
    p = Path(dotenv_path)
    if not p.exists():
        return False
    return bool(load_dotenv(p, override=False))


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )


def build_pipeline(
    *,
    settings: Optional[Settings] = None,
    config_path: Optional[Path] = None,
    load_env: bool = True,
    env_file: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ShiplinePipeline:
    """Build the high-level pipeline facade.

    ``.env`` is loaded before settings are resolved so ``SHIPLINE_*``
    overrides placed there take effect. ``overrides`` (settings keys, e.g.
    from CLI flags) are applied last.
    """
    if load_env:
        load_env_file(Path(env_file) if env_file else ENV_PATH)
    if settings is None:
        settings = load_settings(config_path)
    if overrides:
        settings = settings_from_mapping(overrides, base=settings)
    logger.debug("settings: %s", settings)
    return ShiplinePipeline(settings=settings)
