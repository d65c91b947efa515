"""Git operations for fetching the upstream source tree."""
from __future__ import annotations

from pathlib import Path
from typing import Mapping

from .command_runner import CommandError, CommandRunner
from .errors import FetchError


class SourceFetcher:
    def __init__(self, runner: CommandRunner, *, environment: Mapping[str, str] | None = None) -> None:
        self._runner = runner
        self._environment = dict(environment) if environment else None

    def fetch(self, *, url: str, workspace: Path, checkout_name: str, revision: str) -> Path:
        """Clone ``url`` into ``workspace/checkout_name`` and hard-reset it to ``revision``."""

        checkout = workspace / checkout_name
        try:
            self._runner.run(
                ["git", "clone", url, checkout_name],
                cwd=workspace,
                env=self._environment,
                note="Clone upstream",
                stream=True,
            )
        except CommandError as exc:
            raise FetchError(f"Unable to clone '{url}'", result=exc.result) from exc

        try:
            self._runner.run(
                ["git", "reset", "--hard", revision],
                cwd=checkout,
                env=self._environment,
                note="Reset to revision",
                stream=True,
            )
        except CommandError as exc:
            raise FetchError(
                f"Unable to reset '{checkout}' to revision '{revision}'",
                result=exc.result,
            ) from exc
        return checkout

    def current_commit(self, checkout: Path) -> str | None:
        result = self._runner.run(
            ["git", "rev-parse", "HEAD"],
            cwd=checkout,
            env=self._environment,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None
