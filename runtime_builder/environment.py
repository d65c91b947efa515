"""Host system detection."""
from __future__ import annotations

from dataclasses import dataclass
import platform


@dataclass(slots=True)
class SystemContext:
    os_name: str
    architecture: str


def detect_system() -> SystemContext:
    return SystemContext(
        os_name=platform.system().lower(),
        architecture=platform.machine().lower(),
    )
