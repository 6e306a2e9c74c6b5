"""tools/core_cmd.py

Command execution for stage bodies.

This module deliberately avoids tool-specific knowledge. It provides:

* :class:`CancelToken` - a run-wide cancellation flag (safe to set from a
  signal handler or another thread).
* :class:`CommandRunner` - run subprocesses (argv lists, never ``shell=True``),
  capture combined stdout/stderr, and interpret the exit status in one of two
  modes:

  - ``run(...)``        checked: non-zero exit raises :class:`CommandFailed`
  - ``best_effort(...)`` non-zero exit becomes a result with a warning marker

Process lifetime
----------------
Every child is owned by the call that started it. On *any* exit path (normal
return, timeout, cancellation, ``KeyboardInterrupt``) the child is terminated
(SIGTERM, then SIGKILL after a grace period) and reaped before the call
returns.

Tests replace :meth:`CommandRunner._execute` to fake processes while keeping
the checked / best-effort / dry-run semantics real.
"""

from __future__ import annotations

import copy
import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from shipkit.errors import CommandCancelled, CommandFailed, CommandTimeout, InfrastructureError

logger = logging.getLogger(__name__)


class CancelToken:
    """Run-wide cancellation flag shared by the engine and its runners."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(max(0.0, float(timeout)))


@dataclass(frozen=True)
class CmdInvocation:
    """A fully resolved command, ready to spawn."""

    cmd: List[str]
    cwd: Optional[Path]
    env: Dict[str, str]
    input_text: Optional[str] = None
    deadline: Optional[float] = None  # time.monotonic() value

    @property
    def command_str(self) -> str:
        return " ".join(self.cmd)


@dataclass(frozen=True)
class CmdResult:
    exit_code: int
    elapsed_seconds: float
    command_str: str
    output: str = ""

    # Set only by best-effort invocations that exited non-zero.
    warning: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 or self.warning is not None


@dataclass
class CommandRunner:
    """Spawn external commands with an injected environment.

    ``env`` is layered *over* the caller-supplied ``env=`` of each call, which
    is layered over ``os.environ``. The engine binds the build-context
    variables here so a stage body cannot accidentally override them.
    """

    cwd: Optional[Path] = None
    env: Dict[str, str] = field(default_factory=dict)
    cancel_token: CancelToken = field(default_factory=CancelToken)
    deadline: Optional[float] = None
    dry_run: bool = False
    quiet: bool = False

    poll_interval: float = 0.2
    kill_grace_seconds: float = 5.0

    # Output and best-effort warnings of every command this runner completed.
    transcript: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def bind(
        self,
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        deadline: Optional[float] = None,
    ) -> "CommandRunner":
        """Return a scoped runner sharing this runner's cancel token.

        ``env`` is merged onto the current bound env; the earlier of the two
        deadlines wins.
        The scoped runner starts with an empty transcript.
        """
        bound = copy.copy(self)
        bound.transcript = []
        bound.warnings = []
        bound.env = {**self.env, **{str(k): str(v) for k, v in (env or {}).items()}}
        if cwd is not None:
            bound.cwd = Path(cwd)
        bound.deadline = _earliest(self.deadline, deadline)
        return bound

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        input_text: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> CmdResult:
        """Checked mode: raise :class:`CommandFailed` on a non-zero exit."""
        res = self._invoke(cmd, cwd=cwd, env=env, input_text=input_text, timeout_seconds=timeout_seconds)
        if res.exit_code != 0:
            raise CommandFailed(
                f"command exited with code {res.exit_code}: {res.command_str}",
                command_str=res.command_str,
                exit_code=res.exit_code,
                output=res.output,
            )
        return res

    def best_effort(
        self,
        cmd: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        input_text: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> CmdResult:
        """Best-effort mode: a non-zero exit is returned with a warning marker.

        Timeouts, cancellation and spawn failures still raise.
        """
        res = self._invoke(cmd, cwd=cwd, env=env, input_text=input_text, timeout_seconds=timeout_seconds)
        if res.exit_code != 0:
            res = replace(res, warning=f"exit code {res.exit_code}")
            self.warnings.append(f"{res.command_str}: {res.warning}")
            if not self.quiet:
                print(f"  ⚠️  continuing after {res.warning}: {res.command_str}")
        return res

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _invoke(
        self,
        cmd: Sequence[str],
        *,
        cwd: Optional[Path],
        env: Optional[Mapping[str, str]],
        input_text: Optional[str],
        timeout_seconds: Optional[float],
    ) -> CmdResult:
        argv = [str(c) for c in cmd]
        if not argv:
            raise ValueError("Refusing to run an empty command")

        inv = CmdInvocation(
            cmd=argv,
            cwd=Path(cwd) if cwd is not None else self.cwd,
            env=self._resolve_env(env),
            input_text=input_text,
            deadline=_earliest(
                self.deadline,
                time.monotonic() + float(timeout_seconds) if timeout_seconds else None,
            ),
        )

        if self.cancel_token.cancelled:
            raise CommandCancelled(
                f"run cancelled before starting: {inv.command_str}", command_str=inv.command_str
            )

        if not self.quiet:
            print("  Command :", inv.command_str)
        if self.dry_run:
            if not self.quiet:
                print("  (dry-run: not executing)")
            return CmdResult(exit_code=0, elapsed_seconds=0.0, command_str=inv.command_str)

        res = self._execute(inv)
        if res.output:
            self.transcript.append(res.output)
        return res

    def _resolve_env(self, call_env: Optional[Mapping[str, str]]) -> Dict[str, str]:
        env = os.environ.copy()
        env.setdefault("PYTHONUNBUFFERED", "1")
        if call_env:
            env.update({str(k): str(v) for k, v in call_env.items()})
        env.update(self.env)
        return env

    def _execute(self, inv: CmdInvocation) -> CmdResult:
        """Spawn the process, wait for it, and always reap it."""
        t0 = time.monotonic()
        logger.debug("spawn: %s (cwd=%s)", inv.command_str, inv.cwd)
        try:
            proc = subprocess.Popen(
                inv.cmd,
                cwd=str(inv.cwd) if inv.cwd else None,
                env=inv.env,
                stdin=subprocess.PIPE if inv.input_text is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=(os.name == "posix"),
            )
        except (OSError, ValueError) as e:
            raise InfrastructureError(
                f"could not start {inv.cmd[0]!r}: {e}", command_str=inv.command_str
            ) from e

        with proc:
            try:
                output = self._communicate(proc, inv)
            except (CommandTimeout, CommandCancelled) as e:
                _terminate(proc, grace_seconds=self.kill_grace_seconds)
                e.output = _drain(proc, timeout=self.kill_grace_seconds)
                if e.output:
                    self.transcript.append(e.output)
                raise
            finally:
                _terminate(proc, grace_seconds=self.kill_grace_seconds)

        return CmdResult(
            exit_code=int(proc.returncode),
            elapsed_seconds=time.monotonic() - t0,
            command_str=inv.command_str,
            output=output,
        )

    def _communicate(self, proc: subprocess.Popen, inv: CmdInvocation) -> str:
        # communicate() may be retried after TimeoutExpired without losing
        # output, but stdin may only be handed over on the first call.
        pending_input = inv.input_text
        while True:
            wait = self.poll_interval
            if inv.deadline is not None:
                wait = max(0.0, min(wait, inv.deadline - time.monotonic()))
            try:
                out, _ = proc.communicate(pending_input, timeout=wait)
                return out or ""
            except subprocess.TimeoutExpired:
                pending_input = None

            if self.cancel_token.cancelled:
                raise CommandCancelled(
                    f"cancelled while running: {inv.command_str}", command_str=inv.command_str
                )
            if inv.deadline is not None and time.monotonic() >= inv.deadline:
                raise CommandTimeout(
                    f"command timed out: {inv.command_str}",
                    command_str=inv.command_str,
                )


def _earliest(a: Optional[float], b: Optional[float]) -> Optional[float]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def _drain(proc: subprocess.Popen, *, timeout: float) -> str:
    """Output a terminated child wrote before it was stopped."""
    try:
        out, _ = proc.communicate(timeout=timeout)
    except (subprocess.TimeoutExpired, OSError, ValueError):
        logger.debug("could not drain output of pid=%s", proc.pid)
        return ""
    return out or ""


def _signal_process(proc: subprocess.Popen, sig: int) -> None:
    try:
        if os.name == "posix":
            os.killpg(proc.pid, sig)
        elif sig == getattr(signal, "SIGKILL", None):
            proc.kill()
        else:
            proc.terminate()
    except (ProcessLookupError, PermissionError):
        pass


def _terminate(proc: subprocess.Popen, *, grace_seconds: float) -> None:
    """Terminate (then kill) a child that is still running, and reap it."""
    if proc.poll() is not None:
        return
    logger.debug("terminating pid=%s", proc.pid)
    _signal_process(proc, signal.SIGTERM)
    try:
        proc.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        _signal_process(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        proc.wait()
