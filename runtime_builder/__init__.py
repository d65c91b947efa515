"""Build a patched runtime binary from upstream source."""
from __future__ import annotations

from .build import BuildPipeline, BuildRequest, BuildResult
from .cli import main

__all__ = ["BuildPipeline", "BuildRequest", "BuildResult", "main"]
