"""The clone, patch, compile and publish pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from .command_runner import CommandRunner
from .config_loader import BuilderConfig
from .errors import WorkspaceError
from .git_manager import SourceFetcher
from .patches import PatchApplier
from .publisher import publish_artifact
from .toolchains import Toolchain
from .workspace import scratch_workspace


@dataclass(frozen=True, slots=True)
class BuildRequest:
    destination: Path
    revision: str
    target: str

    def __post_init__(self) -> None:
        if not self.revision.strip():
            raise ValueError("revision must not be empty")
        if not self.target.strip():
            raise ValueError("target must not be empty")


@dataclass(frozen=True, slots=True)
class BuildResult:
    request: BuildRequest
    artifact: Path
    built: Path
    patches: Tuple[Path, ...]
    toolchain: str
    commit: str | None = None


class BuildPipeline:
    """Runs one build request against an injected configuration.

    The scratch workspace is recreated at the start of every run and removed
    afterwards whether or not the run succeeded; the first failing step's
    exception propagates to the caller. Only one pipeline may use a given
    scratch directory at a time.
    """

    def __init__(
        self,
        *,
        config: BuilderConfig,
        command_runner: CommandRunner,
        toolchain: Toolchain,
        keep_workspace: bool = False,
        dry_run: bool = False,
    ) -> None:
        self._config = config
        self._runner = command_runner
        self._toolchain = toolchain
        self._keep_workspace = keep_workspace
        self._dry_run = dry_run
        self._fetcher = SourceFetcher(command_runner, environment=config.environment)
        self._patcher = PatchApplier(
            command_runner,
            manifest=config.manifest,
            patches_dir=config.patches_dir,
            strip_level=config.strip_level,
            strict=config.strict_revisions,
            environment=config.environment,
        )

    @property
    def toolchain(self) -> Toolchain:
        return self._toolchain

    def run(self, request: BuildRequest) -> BuildResult:
        config = self._config
        destination = request.destination.expanduser().resolve()
        scratch = config.scratch_dir.expanduser().resolve()
        # The scratch tree is deleted after every run, taking the artifact with it.
        if destination == scratch or scratch in destination.parents:
            raise WorkspaceError(f"Destination '{destination}' is inside the scratch workspace '{scratch}'")

        if self._dry_run:
            return self._run_dry(request)

        with scratch_workspace(config.scratch_dir, keep=self._keep_workspace) as workspace:
            print(f"==> Fetching {config.repository_url} at {request.revision}")
            checkout = self._fetcher.fetch(
                url=config.repository_url,
                workspace=workspace,
                checkout_name=config.checkout_name,
                revision=request.revision,
            )
            commit = self._fetcher.current_commit(checkout)

            print(f"==> Applying patches for {request.revision}")
            patches = self._patcher.apply(checkout, request.revision)

            print(f"==> Compiling for {request.target} ({self._toolchain.name} toolchain)")
            artifact = self._toolchain.compile(checkout, request.target)

            print(f"==> Publishing {artifact.name} to {destination}")
            publish_artifact(artifact, destination)

        return BuildResult(
            request=request,
            artifact=destination,
            built=artifact,
            patches=tuple(patches),
            toolchain=self._toolchain.name,
            commit=commit,
        )

    def _run_dry(self, request: BuildRequest) -> BuildResult:
        config = self._config
        checkout = self._fetcher.fetch(
            url=config.repository_url,
            workspace=config.scratch_dir,
            checkout_name=config.checkout_name,
            revision=request.revision,
        )
        patches = self._patcher.apply(checkout, request.revision)
        built = self._toolchain.compile(checkout, request.target)
        return BuildResult(
            request=request,
            artifact=request.destination.expanduser().resolve(),
            built=built,
            patches=tuple(patches),
            toolchain=self._toolchain.name,
        )
