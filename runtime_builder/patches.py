"""Applying the per-revision patch series to a checkout."""
from __future__ import annotations

from pathlib import Path
from typing import List, Mapping

from .command_runner import CommandError, CommandRunner
from .config_loader import PatchManifest
from .errors import PatchError


class PatchApplier:
    def __init__(
        self,
        runner: CommandRunner,
        *,
        manifest: PatchManifest,
        patches_dir: Path,
        strip_level: int = 1,
        strict: bool = False,
        environment: Mapping[str, str] | None = None,
    ) -> None:
        self._runner = runner
        self._manifest = manifest
        self._patches_dir = patches_dir
        self._strip_level = strip_level
        self._strict = strict
        self._environment = dict(environment) if environment else None

    def resolve(self, revision: str) -> List[Path]:
        """Return the patch files for ``revision`` in application order.

        A revision missing from the manifest yields no patches, or raises
        :class:`PatchError` when the applier is strict.
        """

        names = self._manifest.patches_for(revision)
        if names is None:
            if self._strict:
                known = ", ".join(sorted(self._manifest.revisions())) or "<none>"
                raise PatchError(f"No patches configured for revision '{revision}'. Known revisions: {known}")
            print(f"Warning: no patches configured for revision '{revision}'; building unpatched")
            return []
        return [self._patches_dir / name for name in names]

    def apply(self, checkout: Path, revision: str) -> List[Path]:
        patches = self.resolve(revision)
        for patch in patches:
            if not patch.is_file():
                raise PatchError(f"Patch file not found: {patch}")
            try:
                self._runner.run(
                    ["patch", f"-p{self._strip_level}", "-i", str(patch)],
                    cwd=checkout,
                    env=self._environment,
                    note=f"Apply {patch.name}",
                    stream=True,
                )
            except CommandError as exc:
                raise PatchError(f"Patch '{patch.name}' does not apply cleanly", result=exc.result) from exc
        return patches
