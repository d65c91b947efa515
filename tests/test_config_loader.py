from __future__ import annotations

from pathlib import Path
import json
import os
import tempfile
import textwrap
import unittest

from runtime_builder.config_loader import (
    DEFAULT_REPOSITORY_URL,
    BuilderConfig,
    PatchManifest,
)
from runtime_builder.errors import ConfigurationError


class PatchManifestTests(unittest.TestCase):
    def test_returns_configured_order(self) -> None:
        manifest = PatchManifest.from_mapping(
            {
                "v6.9.1": ["backport.patch", "node.v6.9.1.patch"],
                "v7.10.0": ["node.v7.10.0.patch"],
            }
        )
        self.assertEqual(manifest.patches_for("v6.9.1"), ("backport.patch", "node.v6.9.1.patch"))
        self.assertEqual(manifest.patches_for("v7.10.0"), ("node.v7.10.0.patch",))
        self.assertIn("v6.9.1", manifest)

    def test_unknown_revision_returns_none(self) -> None:
        manifest = PatchManifest.from_mapping({"v6.9.1": ["a.patch"]})
        self.assertIsNone(manifest.patches_for("v8.0.0"))
        self.assertNotIn("v8.0.0", manifest)

    def test_empty_patch_list_is_distinct_from_unknown(self) -> None:
        manifest = PatchManifest.from_mapping({"v4.8.7": []})
        self.assertEqual(manifest.patches_for("v4.8.7"), ())

    def test_rejects_non_list_entries(self) -> None:
        with self.assertRaises(ConfigurationError):
            PatchManifest.from_mapping({"v6.9.1": "a.patch"})
        with self.assertRaises(ConfigurationError):
            PatchManifest.from_mapping({"v6.9.1": ["a.patch", 3]})

    def test_missing_manifest_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as temp:
            manifest = PatchManifest.from_directory(Path(temp))
        self.assertEqual(list(manifest.revisions()), [])


class BuilderConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()
        self.config_dir = self.root / "config"
        self.config_dir.mkdir()
        self.patches_dir = self.root / "patches"
        self.patches_dir.mkdir()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_defaults_without_config_file(self) -> None:
        config = BuilderConfig.from_directory(self.root)
        self.assertEqual(config.repository_url, DEFAULT_REPOSITORY_URL)
        self.assertEqual(config.scratch_dir, self.root / "temp")
        self.assertEqual(config.patches_dir, self.root / "patches")
        self.assertEqual(config.checkout_dir, self.root / "temp" / "node")
        self.assertEqual(config.strip_level, 1)
        self.assertFalse(config.strict_revisions)
        self.assertEqual(config.extra_build_args, ())

    def test_loads_toml_config_and_json_manifest(self) -> None:
        (self.config_dir / "config.toml").write_text(
            textwrap.dedent(
                """
                [build]
                repository_url = "https://example.com/runtime.git"
                scratch_dir = "work/scratch"
                strip_level = 2
                unknown_revision = "error"
                extra_build_args = ["-j4"]

                [build.environment]
                CC = "clang"
                """
            )
        )
        (self.patches_dir / "patches.json").write_text(json.dumps({"v8.0.0": ["one.patch", "two.patch"]}))

        config = BuilderConfig.from_directory(self.root)
        self.assertEqual(config.repository_url, "https://example.com/runtime.git")
        self.assertEqual(config.scratch_dir, self.root / "work" / "scratch")
        self.assertEqual(config.strip_level, 2)
        self.assertTrue(config.strict_revisions)
        self.assertEqual(config.extra_build_args, ("-j4",))
        self.assertEqual(config.environment, {"CC": "clang"})
        self.assertEqual(config.manifest.patches_for("v8.0.0"), ("one.patch", "two.patch"))

    def test_loads_yaml_manifest(self) -> None:
        (self.patches_dir / "patches.yaml").write_text(
            textwrap.dedent(
                """
                v8.0.0:
                  - one.patch
                  - two.patch
                """
            )
        )
        config = BuilderConfig.from_directory(self.root)
        self.assertEqual(config.manifest.patches_for("v8.0.0"), ("one.patch", "two.patch"))

    def test_rejects_duplicate_manifest_formats(self) -> None:
        (self.patches_dir / "patches.json").write_text("{}")
        (self.patches_dir / "patches.toml").write_text("")
        with self.assertRaises(ConfigurationError):
            BuilderConfig.from_directory(self.root)

    def test_rejects_invalid_policy(self) -> None:
        (self.config_dir / "config.toml").write_text('[build]\nunknown_revision = "maybe"\n')
        with self.assertRaises(ConfigurationError):
            BuilderConfig.from_directory(self.root)

    def test_rejects_negative_strip_level(self) -> None:
        (self.config_dir / "config.json").write_text(json.dumps({"build": {"strip_level": -1}}))
        with self.assertRaises(ConfigurationError):
            BuilderConfig.from_directory(self.root)

    def test_rejects_malformed_file(self) -> None:
        (self.config_dir / "config.json").write_text("{not json")
        with self.assertRaises(ConfigurationError):
            BuilderConfig.from_directory(self.root)

    def test_overrides(self) -> None:
        config = BuilderConfig.from_directory(self.root).with_overrides(
            scratch_dir="other",
            repository_url="https://mirror.example.com/node",
            strict=True,
        )
        self.assertEqual(config.scratch_dir, self.root / "other")
        self.assertEqual(config.repository_url, "https://mirror.example.com/node")
        self.assertTrue(config.strict_revisions)

    def test_rejects_scratch_dir_that_would_delete_the_project(self) -> None:
        for value in (".", "", "..", "patches", "config", str(self.root.parent)):
            with self.subTest(scratch_dir=value):
                with self.assertRaises(ConfigurationError):
                    BuilderConfig.from_mapping(self.root, {"build": {"scratch_dir": value}})

    def test_rejects_scratch_dir_containing_patches_dir(self) -> None:
        data = {"build": {"scratch_dir": "work", "patches_dir": "work/patches"}}
        with self.assertRaises(ConfigurationError):
            BuilderConfig.from_mapping(self.root, data)

    def test_override_rejects_project_root_as_scratch_dir(self) -> None:
        config = BuilderConfig.from_directory(self.root)
        for value in (".", self.root, self.patches_dir):
            with self.subTest(scratch_dir=value):
                with self.assertRaises(ConfigurationError):
                    config.with_overrides(scratch_dir=value)
        self.assertTrue(self.patches_dir.is_dir())

    def test_relative_root_yields_absolute_paths(self) -> None:
        cwd = os.getcwd()
        os.chdir(self.root)
        try:
            config = BuilderConfig.from_directory(Path("."))
        finally:
            os.chdir(cwd)
        self.assertTrue(config.root.is_absolute())
        self.assertEqual(config.root, self.root)
        self.assertEqual(config.scratch_dir, self.root / "temp")
        self.assertEqual(config.patches_dir, self.root / "patches")


if __name__ == "__main__":
    unittest.main()
