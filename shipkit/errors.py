"""shipkit.errors

Error taxonomy for a shipline run.

Where each error surfaces
-------------------------
* :class:`ValidationError` - bad parameters or settings. Raised before any
  stage executes.
* :class:`InfrastructureError` - an external process could not even be
  spawned. Always fatal, regardless of the stage's declared policy.
* :class:`CommandFailed` / :class:`CommandTimeout` - a checked command exited
  non-zero (or ran past its deadline). Stage bodies let these propagate; the
  engine turns them into a soft or fatal stage failure.
* :class:`CommandCancelled` - the run was cancelled while a child process was
  running.
* :class:`StageSoftFailure` / :class:`StageFatalFailure` - created by the
  engine to describe a failed stage. They are recorded on the run, not raised
  to the caller.
"""

from __future__ import annotations

from typing import Optional


class ShiplineError(Exception):
    """Base class for every error raised by shipline."""


class ValidationError(ShiplineError, ValueError):
    """A parameter or setting is missing, unknown, or outside its domain."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class InfrastructureError(ShiplineError):
    """The execution environment is broken (e.g. a binary is missing)."""

    def __init__(self, message: str, *, command_str: str = "") -> None:
        super().__init__(message)
        self.command_str = command_str


class CommandFailed(ShiplineError):
    """A checked command exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        *,
        command_str: str = "",
        exit_code: Optional[int] = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.command_str = command_str
        self.exit_code = exit_code
        self.output = output


class CommandTimeout(CommandFailed):
    """A command ran past its timeout or the stage deadline."""


class CommandCancelled(ShiplineError):
    """The run was cancelled while a command was in flight."""

    def __init__(self, message: str = "cancelled", *, command_str: str = "", output: str = "") -> None:
        super().__init__(message)
        self.command_str = command_str
        self.output = output


class StageFailure(ShiplineError):
    """A stage body failed. ``cause`` is the exception the body raised."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"stage '{stage}' failed: {cause}")
        self.stage = stage
        self.cause = cause


class StageSoftFailure(StageFailure):
    """A non-fatal stage failed; the run continues."""


class StageFatalFailure(StageFailure):
    """A fatal stage failed; the run is sealed as failed."""


__all__ = [
    "ShiplineError",
    "ValidationError",
    "InfrastructureError",
    "CommandFailed",
    "CommandTimeout",
    "CommandCancelled",
    "StageFailure",
    "StageSoftFailure",
    "StageFatalFailure",
]
