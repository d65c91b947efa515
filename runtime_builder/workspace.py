"""Scratch workspace setup and teardown."""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
import shutil

from .errors import WorkspaceError


def prepare_workspace(path: Path) -> Path:
    """Delete anything at ``path`` and recreate it as an empty directory."""

    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        path.mkdir(parents=True)
    except OSError as exc:
        raise WorkspaceError(f"Unable to prepare workspace '{path}': {exc}") from exc
    return path


def remove_workspace(path: Path) -> None:
    if not path.exists() and not path.is_symlink():
        return
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as exc:
        raise WorkspaceError(f"Unable to remove workspace '{path}': {exc}") from exc


@contextmanager
def scratch_workspace(path: Path, *, keep: bool = False) -> Iterator[Path]:
    """Yield a freshly prepared workspace and remove it on every exit path.

    An error raised inside the block always wins over a cleanup failure.
    """

    prepare_workspace(path)
    try:
        yield path
    except BaseException:
        if not keep:
            try:
                remove_workspace(path)
            except WorkspaceError as cleanup_error:
                print(f"Warning: {cleanup_error}")
        raise
    if keep:
        print(f"Keeping workspace at {path}")
    else:
        remove_workspace(path)
