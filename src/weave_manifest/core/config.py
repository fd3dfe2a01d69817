"""Pipeline configuration dataclass.

A single explicit value carries every input of a run; nothing is read from
ambient state.  It can be built programmatically, loaded from a
``.weave-manifest.yaml`` file, or both (CLI flags applied on top via
:meth:`PipelineConfig.with_overrides`).

Example ``.weave-manifest.yaml``::

    name: myapp
    manifest_dir: target/classes
    classpath:
      - target/classes
      - lib/domain-model.jar
    base_package: com.acme
    log_level: INFO
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from weave_manifest.core.scanner import DEFAULT_IGNORED_PACKAGES
from weave_manifest.errors import ConfigurationError

CONFIG_FILENAMES = (".weave-manifest.yaml", ".weave-manifest.yml")

# java.util.logging level names, as accepted by the weaver, mapped onto the
# closest Python logging level.
LOG_LEVELS: dict[str, int] = {
    "OFF": logging.CRITICAL + 10,
    "SEVERE": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "CONFIG": logging.INFO,
    "FINE": logging.DEBUG,
    "FINER": logging.DEBUG,
    "FINEST": logging.DEBUG,
    "ALL": logging.NOTSET,
}

_PATH_FIELDS = ("manifest_dir", "source", "target")


def normalize_log_level(name: str) -> str:
    """Upper-case and validate a log level name."""
    level = str(name).strip().upper()
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            f"unknown log level {name!r}; expected one of {', '.join(LOG_LEVELS)}"
        )
    return level


def python_log_level(name: str) -> int:
    return LOG_LEVELS[normalize_log_level(name)]


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable run configuration.

    ``source`` and ``target`` default to ``manifest_dir``, matching a build
    where classes are woven in place in the output directory.
    """

    manifest_dir: Path
    name: str
    classpath: tuple[Path, ...] = ()
    base_package: str | None = None
    boundary_aware: bool = False
    ignored_packages: tuple[str, ...] = DEFAULT_IGNORED_PACKAGES
    source: Path | None = None
    target: Path | None = None
    log_level: str = "WARNING"
    weave: bool = False
    max_workers: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "manifest_dir", Path(self.manifest_dir))
        object.__setattr__(self, "classpath", tuple(Path(p) for p in self.classpath))
        object.__setattr__(self, "ignored_packages", tuple(self.ignored_packages))
        for key in ("source", "target"):
            value = getattr(self, key)
            if value is not None:
                object.__setattr__(self, key, Path(value))
        object.__setattr__(self, "log_level", normalize_log_level(self.log_level))
        if not self.name:
            raise ConfigurationError("a manifest name is required")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")

    @property
    def source_dir(self) -> Path:
        return self.source if self.source is not None else self.manifest_dir

    @property
    def target_dir(self) -> Path:
        return self.target if self.target is not None else self.source_dir

    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "manifest_dir": self.manifest_dir,
            "name": self.name,
            "classpath": list(self.classpath),
            "base_package": self.base_package,
            "boundary_aware": self.boundary_aware,
            "ignored_packages": list(self.ignored_packages),
            "source": self.source_dir,
            "target": self.target_dir,
            "log_level": self.log_level,
            "weave": self.weave,
        }

    @classmethod
    def from_yaml(cls, path: Path, **overrides: Any) -> "PipelineConfig":
        """Load configuration from a YAML file.

        Relative paths are resolved against the file's directory; unknown
        keys are ignored.  *overrides* (non-None only) win over the file.
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as exc:
            raise ConfigurationError(f"cannot read config {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level")

        base = path.resolve().parent
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs: dict[str, Any] = {k: v for k, v in data.items() if k in known}
        for key in _PATH_FIELDS:
            if kwargs.get(key) is not None:
                kwargs[key] = base / str(kwargs[key])
        if "classpath" in kwargs:
            classpath = kwargs["classpath"]
            if not isinstance(classpath, list):
                raise ConfigurationError(f"{path}: 'classpath' must be a list")
            kwargs["classpath"] = tuple(base / str(p) for p in classpath)
        if "ignored_packages" in kwargs:
            kwargs["ignored_packages"] = tuple(str(p) for p in kwargs["ignored_packages"])

        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        missing = [k for k in ("manifest_dir", "name") if kwargs.get(k) is None]
        if missing:
            raise ConfigurationError(f"{path}: missing required key(s): {', '.join(missing)}")
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise ConfigurationError(f"{path}: {exc}") from exc


def discover_config(root: Path) -> Path | None:
    """Return the first config file found directly under *root*."""
    for name in CONFIG_FILENAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None
