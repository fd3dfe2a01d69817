"""Tests for PipelineConfig and YAML config loading."""

from __future__ import annotations

import logging
import textwrap
from pathlib import Path

import pytest

from weave_manifest.core.config import (
    PipelineConfig,
    discover_config,
    normalize_log_level,
    python_log_level,
)
from weave_manifest.core.scanner import DEFAULT_IGNORED_PACKAGES
from weave_manifest.errors import ConfigurationError


def _write_yaml(path: Path, text: str) -> Path:
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestPipelineConfig:
    def test_defaults(self, tmp_path: Path):
        config = PipelineConfig(manifest_dir=tmp_path, name="app")
        assert config.classpath == ()
        assert config.ignored_packages == DEFAULT_IGNORED_PACKAGES
        assert config.base_package is None
        assert config.log_level == "WARNING"
        assert config.weave is False
        assert config.source_dir == tmp_path
        assert config.target_dir == tmp_path

    def test_values_are_normalized(self, tmp_path: Path):
        config = PipelineConfig(
            manifest_dir=str(tmp_path),
            name="app",
            classpath=[str(tmp_path / "a.jar")],
            ignored_packages=["com.vendor"],
            log_level="finest",
        )
        assert config.manifest_dir == tmp_path
        assert config.classpath == (tmp_path / "a.jar",)
        assert config.ignored_packages == ("com.vendor",)
        assert config.log_level == "FINEST"

    def test_target_defaults_to_source(self, tmp_path: Path):
        config = PipelineConfig(manifest_dir=tmp_path, name="app", source=tmp_path / "src")
        assert config.target_dir == tmp_path / "src"

    def test_empty_name_is_rejected(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="name"):
            PipelineConfig(manifest_dir=tmp_path, name="")

    def test_bad_worker_count_is_rejected(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="max_workers"):
            PipelineConfig(manifest_dir=tmp_path, name="app", max_workers=0)

    def test_with_overrides_skips_none(self, tmp_path: Path):
        config = PipelineConfig(manifest_dir=tmp_path, name="app", base_package="com.acme")
        updated = config.with_overrides(base_package=None, name="other")
        assert updated.base_package == "com.acme"
        assert updated.name == "other"
        assert config.name == "app"


class TestLogLevels:
    def test_java_names_map_to_python_levels(self):
        assert python_log_level("SEVERE") == logging.ERROR
        assert python_log_level("fine") == logging.DEBUG
        assert python_log_level("OFF") > logging.CRITICAL

    def test_unknown_level_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError, match="unknown log level"):
            normalize_log_level("LOUD")


class TestFromYaml:
    def test_paths_resolve_against_the_file(self, tmp_path: Path):
        path = _write_yaml(
            tmp_path / ".weave-manifest.yaml",
            """\
            name: myapp
            manifest_dir: target/classes
            classpath:
              - target/classes
              - lib/model.jar
            base_package: com.acme
            log_level: info
            unknown_key: ignored
            """,
        )
        config = PipelineConfig.from_yaml(path)
        base = tmp_path.resolve()
        assert config.name == "myapp"
        assert config.manifest_dir == base / "target" / "classes"
        assert config.classpath == (base / "target" / "classes", base / "lib" / "model.jar")
        assert config.base_package == "com.acme"
        assert config.log_level == "INFO"

    def test_overrides_win(self, tmp_path: Path):
        path = _write_yaml(tmp_path / "c.yaml", "name: myapp\nmanifest_dir: out\n")
        config = PipelineConfig.from_yaml(path, name="override", base_package=None)
        assert config.name == "override"
        assert config.base_package is None

    def test_missing_required_keys(self, tmp_path: Path):
        path = _write_yaml(tmp_path / "c.yaml", "name: myapp\n")
        with pytest.raises(ConfigurationError, match="manifest_dir"):
            PipelineConfig.from_yaml(path)

    def test_invalid_yaml(self, tmp_path: Path):
        path = _write_yaml(tmp_path / "c.yaml", "name: [unclosed\n")
        with pytest.raises(ConfigurationError, match="invalid YAML"):
            PipelineConfig.from_yaml(path)

    def test_top_level_must_be_a_mapping(self, tmp_path: Path):
        path = _write_yaml(tmp_path / "c.yaml", "- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            PipelineConfig.from_yaml(path)

    def test_classpath_must_be_a_list(self, tmp_path: Path):
        path = _write_yaml(tmp_path / "c.yaml", "name: a\nmanifest_dir: out\nclasspath: lib.jar\n")
        with pytest.raises(ConfigurationError, match="classpath"):
            PipelineConfig.from_yaml(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="cannot read config"):
            PipelineConfig.from_yaml(tmp_path / "absent.yaml")


def test_discover_config(tmp_path: Path):
    assert discover_config(tmp_path) is None
    target = tmp_path / ".weave-manifest.yml"
    target.write_text("name: a\n")
    assert discover_config(tmp_path) == target
