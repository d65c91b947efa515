"""Native toolchains that compile the patched checkout."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence

from .command_runner import CommandError, CommandRunner
from .errors import CompileError


# Target label -> value accepted by ``./configure --dest-cpu``.
UNIX_DEST_CPU: Dict[str, str] = {
    "x86": "ia32",
    "x64": "x64",
    "armv6": "arm",
    "armv7": "arm",
    "arm64": "arm64",
}

_MACHINE_TARGETS: Dict[str, str] = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "armv6l": "armv6",
    "armv7l": "armv7",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def default_target(machine: str) -> str:
    """Map a ``platform.machine()`` value to a target label."""

    key = machine.strip().lower()
    if key not in _MACHINE_TARGETS:
        raise CompileError(f"Cannot derive a target for host architecture '{machine}'; pass --target")
    return _MACHINE_TARGETS[key]


class Toolchain:
    """Compiles a checkout and reports where the produced binary lives."""

    name = "abstract"

    def __init__(
        self,
        runner: CommandRunner,
        *,
        environment: Mapping[str, str] | None = None,
        extra_config_args: Sequence[str] = (),
        extra_build_args: Sequence[str] = (),
    ) -> None:
        self._runner = runner
        self._environment = dict(environment) if environment else None
        self._extra_config_args = list(extra_config_args)
        self._extra_build_args = list(extra_build_args)

    def artifact_path(self, checkout: Path) -> Path:
        raise NotImplementedError

    def compile(self, checkout: Path, target: str) -> Path:
        raise NotImplementedError

    def _run_step(self, command: List[str], *, cwd: Path, note: str) -> None:
        try:
            self._runner.run(command, cwd=cwd, env=self._environment, note=note, stream=True)
        except CommandError as exc:
            raise CompileError(f"{note} failed for '{cwd}'", result=exc.result) from exc


class WindowsToolchain(Toolchain):
    """Drives the checkout's ``vcbuild.bat``."""

    name = "windows"

    def artifact_path(self, checkout: Path) -> Path:
        return checkout / "Release" / "node.exe"

    def compile(self, checkout: Path, target: str) -> Path:
        command = ["cmd", "/c", "vcbuild.bat", target, "nosign", *self._extra_build_args]
        self._run_step(command, cwd=checkout, note="Build (vcbuild)")
        return self.artifact_path(checkout)


class UnixToolchain(Toolchain):
    """``./configure --dest-cpu <cpu>`` followed by ``make``."""

    name = "unix"

    @staticmethod
    def dest_cpu(target: str) -> str:
        cpu = UNIX_DEST_CPU.get(target)
        if cpu is None:
            supported = ", ".join(sorted(UNIX_DEST_CPU))
            raise CompileError(f"Unsupported target '{target}'. Supported targets: {supported}")
        return cpu

    def artifact_path(self, checkout: Path) -> Path:
        return checkout / "out" / "Release" / "node"

    def compile(self, checkout: Path, target: str) -> Path:
        cpu = self.dest_cpu(target)
        self._run_step(
            ["./configure", "--dest-cpu", cpu, *self._extra_config_args],
            cwd=checkout,
            note="Configure",
        )
        self._run_step(["make", *self._extra_build_args], cwd=checkout, note="Build (make)")
        return self.artifact_path(checkout)


_TOOLCHAINS = {
    WindowsToolchain.name: WindowsToolchain,
    UnixToolchain.name: UnixToolchain,
}


def available_toolchains() -> Iterable[str]:
    return _TOOLCHAINS.keys()


def select_toolchain(
    os_name: str,
    runner: CommandRunner,
    *,
    name: str | None = None,
    environment: Mapping[str, str] | None = None,
    extra_config_args: Sequence[str] = (),
    extra_build_args: Sequence[str] = (),
) -> Toolchain:
    """Pick the Windows toolchain on Windows hosts and the Unix one elsewhere.

    ``name`` forces a specific toolchain regardless of the host.
    """

    if name:
        if name not in _TOOLCHAINS:
            supported = ", ".join(sorted(_TOOLCHAINS))
            raise CompileError(f"Unknown toolchain '{name}'. Available toolchains: {supported}")
        toolchain_cls = _TOOLCHAINS[name]
    else:
        toolchain_cls = WindowsToolchain if os_name.lower() == "windows" else UnixToolchain
    return toolchain_cls(
        runner,
        environment=environment,
        extra_config_args=extra_config_args,
        extra_build_args=extra_build_args,
    )
