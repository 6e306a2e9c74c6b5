"""tools/health.py

HTTP readiness check for a freshly deployed container.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import requests

from shipkit.errors import CommandFailed, CommandTimeout

from .core_cmd import CancelToken

logger = logging.getLogger(__name__)


def wait_for_http_ok(
    url: str,
    *,
    timeout_seconds: float = 30.0,
    interval_seconds: float = 2.0,
    request_timeout: float = 5.0,
    deadline: Optional[float] = None,
    cancel_token: Optional[CancelToken] = None,
) -> str:
    """Poll ``url`` until it answers with a 2xx/3xx status.

    Connection errors count as "not ready yet". ``deadline`` is an outer
    ``time.monotonic()`` limit (the stage deadline); the earlier of it and
    ``timeout_seconds`` applies. Running into the outer deadline raises
    :class:`CommandTimeout`, giving up otherwise raises :class:`CommandFailed`.
    A set ``cancel_token`` stops the polling at once.
    """
    own_deadline = time.monotonic() + max(0.0, float(timeout_seconds))
    stage_bound = deadline is not None and deadline < own_deadline
    until = deadline if stage_bound else own_deadline

    attempts = 0
    last_error = "no response"
    while True:
        attempts += 1
        remaining = until - time.monotonic()
        try:
            resp = requests.get(
                url,
                timeout=max(0.1, min(request_timeout, remaining)),
                allow_redirects=False,
            )
            if resp.status_code < 400:
                return f"health check ok: GET {url} -> {resp.status_code} (attempt {attempts})"
            last_error = f"HTTP {resp.status_code}"
        except requests.RequestException as e:
            last_error = f"{type(e).__name__}: {e}"

        logger.debug("health check %s attempt %d: %s", url, attempts, last_error)
        if cancel_token is not None and cancel_token.cancelled:
            break
        remaining = until - time.monotonic()
        if remaining <= 0:
            break
        pause = min(interval_seconds, remaining)
        if cancel_token is not None:
            if cancel_token.wait(pause):
                break
        else:
            time.sleep(pause)

    error = CommandTimeout if stage_bound and time.monotonic() >= until else CommandFailed
    raise error(
        f"health check failed after {attempts} attempt(s): GET {url} ({last_error})",
        command_str=f"GET {url}",
        output=last_error,
    )
