from __future__ import annotations

from pathlib import Path

from runtime_builder.command_runner import CommandError, CommandResult, CommandRunner


class FakeBuildRunner(CommandRunner):
    """Simulates git, patch and the native build tools on the local filesystem."""

    def __init__(
        self,
        *,
        failing_patches: set[str] | None = None,
        fail_clone: bool = False,
        fail_reset: bool = False,
        fail_configure: bool = False,
        fail_make: bool = False,
        binary_contents: bytes = b"#!/bin/sh\necho patched\n",
        commit: str = "0123456789abcdef",
    ) -> None:
        self.history: list[dict] = []
        self.failing_patches = failing_patches or set()
        self.fail_clone = fail_clone
        self.fail_reset = fail_reset
        self.fail_configure = fail_configure
        self.fail_make = fail_make
        self.binary_contents = binary_contents
        self.commit = commit

    def commands(self) -> list[list[str]]:
        return [entry["command"] for entry in self.history]

    def run(self, command, *, cwd=None, env=None, check=True, note=None, stream=False):  # type: ignore[override]
        cmd_list = [str(part) for part in command]
        self.history.append({"command": cmd_list, "cwd": cwd, "env": env, "note": note, "stream": stream})
        returncode = 0
        stdout = ""

        if cmd_list[:2] == ["git", "clone"]:
            if self.fail_clone:
                returncode = 128
            else:
                (Path(cwd) / cmd_list[3]).mkdir(parents=True)
        elif cmd_list[:2] == ["git", "reset"]:
            returncode = 128 if self.fail_reset else 0
        elif cmd_list[:2] == ["git", "rev-parse"]:
            stdout = f"{self.commit}\n"
        elif cmd_list[0] == "patch":
            if Path(cmd_list[-1]).name in self.failing_patches:
                returncode = 1
        elif cmd_list[0] == "./configure":
            returncode = 1 if self.fail_configure else 0
        elif cmd_list[0] == "make":
            if self.fail_make:
                returncode = 2
            else:
                output = Path(cwd) / "out" / "Release" / "node"
                output.parent.mkdir(parents=True, exist_ok=True)
                output.write_bytes(self.binary_contents)

        result = CommandResult(command=cmd_list, returncode=returncode, stdout=stdout, stderr="", streamed=stream)
        if check and returncode != 0:
            raise CommandError(result)
        return result
