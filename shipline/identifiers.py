"""shipline.identifiers

Pure naming helpers.

Build identity (version label, image tag) and deployment identity (container
names, image references) are derived here and nowhere else, so a stage that
builds an image and a stage that deploys it can never disagree on its name.

All functions are deterministic and side-effect free.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Tuple

__all__ = [
    "TIMESTAMP_FORMAT",
    "format_timestamp",
    "version_label",
    "image_tag",
    "image_ref",
    "image_tags",
    "container_name",
    "test_container_name",
    "sanitize_name_fragment",
]

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_NAME_ALLOWED = re.compile(r"[^a-zA-Z0-9_.-]")


def sanitize_name_fragment(value: str) -> str:
    """Make a string safe for container names and directory names.

    Container names allow ``[a-zA-Z0-9][a-zA-Z0-9_.-]``; anything else
    collapses to ``-``.

    Examples
    --------
    "node-app" -> "node-app"
    "feature/login" -> "feature-login"
    """
    v = _NAME_ALLOWED.sub("-", (value or "").strip())
    v = re.sub(r"-+", "-", v).strip("-.")
    if not v:
        raise ValueError("Empty name fragment after sanitization.")
    return v


def format_timestamp(instant: datetime) -> str:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def version_label(branch: str, run_number: int) -> str:
    return f"{branch}-{int(run_number)}"


def image_tag(run_number: int) -> str:
    return str(int(run_number))


def image_ref(image_name: str, tag: str) -> str:
    return f"{image_name}:{tag}"


def image_tags(run_number: int, branch: str) -> Tuple[str, str, str]:
    """Tags applied to every build, run-scoped tag first."""
    return (image_tag(run_number), sanitize_name_fragment(branch), "latest")


def container_name(image_name: str, branch: str) -> str:
    """Long-lived deployment container; one per image and branch."""
    return f"{sanitize_name_fragment(image_name)}-{sanitize_name_fragment(branch)}"


def test_container_name(image_name: str, run_number: int) -> str:
    """Transient image-test container; scoped to the run so runs never collide."""
    return f"{sanitize_name_fragment(image_name)}-test-{image_tag(run_number)}"
