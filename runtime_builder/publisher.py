"""Copying the compiled binary to its destination."""
from __future__ import annotations

from pathlib import Path
import os
import shutil
import stat

from .errors import WorkspaceError


def publish_artifact(source: Path, destination: Path) -> Path:
    """Copy ``source`` to ``destination``, replacing any previous artifact."""

    if not source.is_file():
        raise WorkspaceError(f"Build artifact not found: {source}")
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)
        if os.name == "posix":
            mode = destination.stat().st_mode
            destination.chmod(mode | stat.S_IXUSR)
    except OSError as exc:
        raise WorkspaceError(f"Unable to copy '{source}' to '{destination}': {exc}") from exc
    return destination
