"""Configuration and patch manifest loading."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Tuple
import json
import tomllib

import yaml

from .errors import ConfigurationError


ConfigLoader = Callable[[Any], Any]

DEFAULT_REPOSITORY_URL = "https://github.com/nodejs/node"
DEFAULT_CHECKOUT_NAME = "node"
DEFAULT_SCRATCH_DIR = "temp"
DEFAULT_PATCHES_DIR = "patches"
DEFAULT_STRIP_LEVEL = 1

UNKNOWN_REVISION_POLICIES = ("allow", "error")

_FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}


def _load_config_file(path: Path) -> Mapping[str, Any]:
    suffix = path.suffix.lower()
    loader = _FILE_LOADERS.get(suffix)
    if loader is None:
        raise ConfigurationError(f"Unsupported configuration file extension: {suffix}")
    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"
    try:
        with path.open(mode, **kwargs) as handle:
            data = loader(handle)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to parse '{path}': {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration file '{path}' must contain a mapping at the root")
    return data


def _find_config_file(directory: Path, stem: str) -> Path | None:
    """Return the single ``<stem>.<ext>`` file in ``directory``, if any."""

    if not directory.is_dir():
        return None
    matches = [
        directory / f"{stem}{suffix}"
        for suffix in _FILE_LOADERS
        if (directory / f"{stem}{suffix}").is_file()
    ]
    if len(matches) > 1:
        names = ", ".join(f"'{path.name}'" for path in matches)
        raise ConfigurationError(
            f"Multiple configuration files found for '{stem}': {names}. "
            "Only one format per configuration entry is allowed."
        )
    return matches[0] if matches else None


def _normalize_string_list(value: Any, *, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        return [text] if text else []
    if isinstance(value, Sequence):
        result: List[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ConfigurationError(f"{field_name} entries must be strings")
            text = item.strip()
            if text:
                result.append(text)
        return result
    raise ConfigurationError(f"{field_name} must be a string or sequence of strings")


def _resolve_path(root: Path, value: str | Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return path


def _check_scratch_dir(scratch_dir: Path, *, root: Path, patches_dir: Path) -> Path:
    """Reject a scratch directory whose removal would delete project files."""

    scratch = scratch_dir.resolve()
    for protected in (root, root / "config", patches_dir):
        protected = protected.resolve()
        if scratch == protected or scratch in protected.parents:
            raise ConfigurationError(
                f"build.scratch_dir '{scratch}' must not contain or equal '{protected}'; "
                "it is deleted on every run"
            )
    return scratch


@dataclass(frozen=True, slots=True)
class PatchManifest:
    """Ordered patch filenames keyed by upstream revision."""

    entries: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PatchManifest":
        entries: Dict[str, Tuple[str, ...]] = {}
        for raw_revision, raw_patches in data.items():
            revision = str(raw_revision).strip()
            if not revision:
                raise ConfigurationError("Patch manifest contains an empty revision key")
            if isinstance(raw_patches, str) or not isinstance(raw_patches, Sequence):
                raise ConfigurationError(f"Patches for revision '{revision}' must be a list of filenames")
            patches: List[str] = []
            for item in raw_patches:
                if not isinstance(item, str) or not item.strip():
                    raise ConfigurationError(f"Patch entries for revision '{revision}' must be non-empty strings")
                patches.append(item.strip())
            entries[revision] = tuple(patches)
        return cls(entries=entries)

    @classmethod
    def from_file(cls, path: Path) -> "PatchManifest":
        return cls.from_mapping(_load_config_file(path))

    @classmethod
    def from_directory(cls, directory: Path) -> "PatchManifest":
        path = _find_config_file(directory, "patches")
        if path is None:
            return cls()
        return cls.from_file(path)

    def patches_for(self, revision: str) -> Tuple[str, ...] | None:
        return self.entries.get(revision)

    def revisions(self) -> Iterable[str]:
        return self.entries.keys()

    def __contains__(self, revision: object) -> bool:
        return revision in self.entries


@dataclass(frozen=True, slots=True)
class BuilderConfig:
    """Everything the pipeline needs besides the build request itself."""

    root: Path
    scratch_dir: Path
    patches_dir: Path
    manifest: PatchManifest
    repository_url: str = DEFAULT_REPOSITORY_URL
    checkout_name: str = DEFAULT_CHECKOUT_NAME
    strip_level: int = DEFAULT_STRIP_LEVEL
    unknown_revision: str = "allow"
    environment: Mapping[str, str] = field(default_factory=dict)
    extra_config_args: Tuple[str, ...] = ()
    extra_build_args: Tuple[str, ...] = ()

    @property
    def checkout_dir(self) -> Path:
        return self.scratch_dir / self.checkout_name

    @property
    def strict_revisions(self) -> bool:
        return self.unknown_revision == "error"

    @classmethod
    def from_mapping(cls, root: Path, data: Mapping[str, Any]) -> "BuilderConfig":
        section = data.get("build", {})
        if not isinstance(section, Mapping):
            raise ConfigurationError("[build] section must be a table")

        root = root.expanduser().resolve()
        patches_dir = _resolve_path(root, str(section.get("patches_dir", DEFAULT_PATCHES_DIR))).resolve()
        scratch_dir = _check_scratch_dir(
            _resolve_path(root, str(section.get("scratch_dir", DEFAULT_SCRATCH_DIR))),
            root=root,
            patches_dir=patches_dir,
        )

        strip_level = section.get("strip_level", DEFAULT_STRIP_LEVEL)
        if isinstance(strip_level, bool) or not isinstance(strip_level, int) or strip_level < 0:
            raise ConfigurationError("build.strip_level must be a non-negative integer")

        unknown_revision = str(section.get("unknown_revision", "allow")).strip().lower()
        if unknown_revision not in UNKNOWN_REVISION_POLICIES:
            choices = ", ".join(UNKNOWN_REVISION_POLICIES)
            raise ConfigurationError(f"build.unknown_revision must be one of: {choices}")

        checkout_name = str(section.get("checkout_name", DEFAULT_CHECKOUT_NAME)).strip()
        if not checkout_name or Path(checkout_name).name != checkout_name:
            raise ConfigurationError("build.checkout_name must be a plain directory name")

        environment: Dict[str, str] = {}
        environment_section = section.get("environment")
        if environment_section is not None:
            if not isinstance(environment_section, Mapping):
                raise ConfigurationError("build.environment must be a table")
            for key, value in environment_section.items():
                environment[str(key)] = str(value)

        return cls(
            root=root,
            scratch_dir=scratch_dir,
            patches_dir=patches_dir,
            manifest=PatchManifest.from_directory(patches_dir),
            repository_url=str(section.get("repository_url", DEFAULT_REPOSITORY_URL)),
            checkout_name=checkout_name,
            strip_level=strip_level,
            unknown_revision=unknown_revision,
            environment=environment,
            extra_config_args=tuple(
                _normalize_string_list(section.get("extra_config_args"), field_name="build.extra_config_args")
            ),
            extra_build_args=tuple(
                _normalize_string_list(section.get("extra_build_args"), field_name="build.extra_build_args")
            ),
        )

    @classmethod
    def from_directory(cls, root: Path) -> "BuilderConfig":
        """Load ``config/config.<ext>`` under ``root``; defaults apply when absent."""

        data: Mapping[str, Any] = {}
        config_path = _find_config_file(root / "config", "config")
        if config_path is not None:
            data = _load_config_file(config_path)
        return cls.from_mapping(root, data)

    def with_overrides(
        self,
        *,
        scratch_dir: str | Path | None = None,
        repository_url: str | None = None,
        strict: bool = False,
    ) -> "BuilderConfig":
        config = self
        if scratch_dir:
            resolved = _check_scratch_dir(
                _resolve_path(self.root, scratch_dir), root=self.root, patches_dir=self.patches_dir
            )
            config = replace(config, scratch_dir=resolved)
        if repository_url:
            config = replace(config, repository_url=repository_url)
        if strict:
            config = replace(config, unknown_revision="error")
        return config
