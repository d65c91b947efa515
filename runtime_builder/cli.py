"""Command line interface for the runtime builder."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable, List
import sys

from .build import BuildPipeline, BuildRequest
from .command_runner import RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import BuilderConfig
from .environment import detect_system
from .errors import BuildError, ConfigurationError
from .toolchains import available_toolchains, default_target, select_toolchain


def _make_runner(dry_run: bool) -> SubprocessCommandRunner | RecordingCommandRunner:
    return RecordingCommandRunner() if dry_run else SubprocessCommandRunner()


def _emit_dry_run_output(runner: RecordingCommandRunner, *, workspace: Path) -> None:
    for line in runner.iter_formatted(workspace=workspace):
        print(line)


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="runtime-builder", description="Build a patched runtime from upstream source")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser("build", help="Clone, patch, compile and publish a runtime binary")
    build_parser.add_argument("destination", help="Path the compiled binary is copied to")
    build_parser.add_argument("--revision", required=True, help="Upstream tag, branch or commit to build")
    build_parser.add_argument("--target", help="Target architecture (x86, x64, armv6, armv7, arm64); defaults to the host")
    build_parser.add_argument("--toolchain", choices=sorted(available_toolchains()), help="Force a toolchain instead of detecting it from the host")
    build_parser.add_argument("--repository", help="Override the upstream repository URL")
    build_parser.add_argument("--scratch-dir", help="Override the scratch workspace directory")
    build_parser.add_argument("--strict", action="store_true", help="Fail when the revision has no configured patches")
    build_parser.add_argument("--keep-workspace", action="store_true", help="Leave the scratch workspace in place after the build")
    build_parser.add_argument("--dry-run", action="store_true", help="Print commands without executing them")

    patches_parser = subparsers.add_parser("patches", help="List configured revisions or the patches for one revision")
    patches_parser.add_argument("revision", nargs="?", help="Revision to show patches for")

    subparsers.add_parser("validate", help="Check that every patch in the manifest exists")

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    workspace = Path.cwd()

    if args.command == "build":
        return _handle_build(args, workspace)
    if args.command == "patches":
        return _handle_patches(args, workspace)
    if args.command == "validate":
        return _handle_validate(args, workspace)
    raise ValueError(f"Unknown command: {args.command}")


def _load_config(args: Namespace, workspace: Path) -> BuilderConfig:
    config = BuilderConfig.from_directory(workspace)
    return config.with_overrides(
        scratch_dir=getattr(args, "scratch_dir", None),
        repository_url=getattr(args, "repository", None),
        strict=bool(getattr(args, "strict", False)),
    )


def _handle_build(args: Namespace, workspace: Path) -> int:
    try:
        config = _load_config(args, workspace)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 2

    system = detect_system()
    runner = _make_runner(args.dry_run)
    try:
        target = args.target or default_target(system.architecture)
        toolchain = select_toolchain(
            system.os_name,
            runner,
            name=getattr(args, "toolchain", None),
            environment=config.environment,
            extra_config_args=config.extra_config_args,
            extra_build_args=config.extra_build_args,
        )
    except BuildError as exc:
        print(f"Error: {exc}")
        return 2

    try:
        request = BuildRequest(destination=Path(args.destination), revision=args.revision, target=target)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 2
    pipeline = BuildPipeline(
        config=config,
        command_runner=runner,
        toolchain=toolchain,
        keep_workspace=args.keep_workspace,
        dry_run=args.dry_run,
    )

    try:
        result = pipeline.run(request)
    except BuildError as exc:
        print(f"Error: {exc}")
        return 1

    if args.dry_run and isinstance(runner, RecordingCommandRunner):
        print(f"[dry-run] Recreate workspace {config.scratch_dir}")
        _emit_dry_run_output(runner, workspace=workspace)
        print(f"[dry-run] Copy {result.built} to {result.artifact}")
        if not args.keep_workspace:
            print(f"[dry-run] Remove workspace {config.scratch_dir}")
        return 0

    summary = f"Built {result.artifact} from {request.revision}"
    if result.commit:
        summary = f"{summary} ({result.commit[:12]})"
    print(f"{summary} with {len(result.patches)} patch(es) using the {result.toolchain} toolchain")
    return 0


def _handle_patches(args: Namespace, workspace: Path) -> int:
    try:
        config = _load_config(args, workspace)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 2

    manifest = config.manifest
    if not args.revision:
        revisions = sorted(manifest.revisions())
        if not revisions:
            print("No revisions configured")
            return 0
        for revision in revisions:
            count = len(manifest.patches_for(revision) or ())
            print(f"{revision}  ({count} patch(es))")
        return 0

    names = manifest.patches_for(args.revision)
    if names is None:
        print(f"No patches configured for revision '{args.revision}'")
        return 1 if config.strict_revisions else 0
    for name in names:
        print(config.patches_dir / name)
    return 0


def _handle_validate(args: Namespace, workspace: Path) -> int:
    try:
        config = _load_config(args, workspace)
    except ConfigurationError as exc:
        print("Validation failed:")
        print(f"  [config] {exc}")
        return 1

    errors: List[tuple[str, str]] = []
    if not config.patches_dir.is_dir():
        errors.append(("config", f"Patches directory not found: {config.patches_dir}"))
    for revision in sorted(config.manifest.revisions()):
        names = config.manifest.patches_for(revision) or ()
        seen: set[str] = set()
        for name in names:
            if name in seen:
                errors.append((revision, f"Patch '{name}' is listed more than once"))
            seen.add(name)
            if not (config.patches_dir / name).is_file():
                errors.append((revision, f"Patch file not found: {config.patches_dir / name}"))

    if errors:
        print("Validation failed:")
        for revision, message in errors:
            print(f"  [{revision}] {message}")
        return 1

    print("Validation successful")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
