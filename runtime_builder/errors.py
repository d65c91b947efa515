"""Exception types raised by the build pipeline."""
from __future__ import annotations

from .command_runner import CommandResult


class BuildError(RuntimeError):
    """Base class for failures that abort a build."""

    def __init__(self, message: str, *, result: CommandResult | None = None) -> None:
        if result is not None:
            message = f"{message} (exit code {result.returncode})"
        super().__init__(message)
        self.result = result

    @property
    def returncode(self) -> int | None:
        return self.result.returncode if self.result is not None else None


class WorkspaceError(BuildError, OSError):
    """Filesystem failure while preparing, publishing or removing files."""


class FetchError(BuildError):
    """Cloning the upstream repository or resetting it failed."""


class PatchError(BuildError):
    """A patch is missing or did not apply cleanly."""


class CompileError(BuildError):
    """The native configure or build step failed."""


class ConfigurationError(ValueError):
    """Configuration or patch manifest is malformed."""
