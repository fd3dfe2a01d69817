"""
weave_manifest.api
==================

Programmatic entrypoints for using weave_manifest from build tooling.

Goals:
  - No argparse / CLI dependencies
  - Stable, JSON-friendly outputs that match the bundled schemas

Non-goals:
  - Owning logging setup — callers configure handlers
  - Performing the weaving itself — a ``Weaver`` receives the handoff

Usage::

    from weave_manifest.api import reconcile_manifest, scan_markers

    result, result_dict = reconcile_manifest(
        "target/classes", "myapp", classpath=["target/classes"]
    )
    index, index_dict = scan_markers(["target/classes", "lib/model.jar"])
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional

from weave_manifest.contracts.load import validate_instance
from weave_manifest.core.config import PipelineConfig
from weave_manifest.core.runner import PipelineResult, run_pipeline
from weave_manifest.core.scanner import (
    DEFAULT_IGNORED_PACKAGES,
    MarkerIndex,
    scan_classpath,
)
from weave_manifest.reconcile import Resolver
from weave_manifest.utils.json_norm import to_builtin
from weave_manifest.weaving import Weaver

RESULT_SCHEMA = "reconcile_result.schema.json"
INDEX_SCHEMA = "marker_index.schema.json"


def _to_path(p: str | Path) -> Path:
    return p if isinstance(p, Path) else Path(p)


def result_to_dict(result: PipelineResult) -> dict[str, Any]:
    """Schema-aligned dict for a pipeline result (validated)."""
    payload = to_builtin({"schema_version": "reconcile_result_v1", **result.to_dict()})
    validate_instance(payload, RESULT_SCHEMA)
    return payload


def index_to_dict(index: MarkerIndex) -> dict[str, Any]:
    """Schema-aligned dict for a marker index (validated)."""
    payload = to_builtin({"schema_version": "marker_index_v1", **index.to_dict()})
    validate_instance(payload, INDEX_SCHEMA)
    return payload


# ── reconcile_manifest ──────────────────────────────────────────────


def reconcile_manifest(
    manifest_dir: str | Path,
    name: str,
    *,
    classpath: Iterable[str | Path] = (),
    base_package: Optional[str] = None,
    boundary_aware: bool = False,
    ignored_packages: Iterable[str] = DEFAULT_IGNORED_PACKAGES,
    config: Optional[PipelineConfig] = None,
    resolver: Optional[Resolver] = None,
    weaver: Optional[Weaver] = None,
) -> tuple[PipelineResult, dict[str, Any]]:
    """Scan *classpath* and merge discovered entities into the manifest.

    Parameters
    ----------
    manifest_dir:
        Directory holding ``META-INF/persistence.xml``.
    name:
        Persistence-unit name used when the manifest must be created.
    classpath:
        Directories and archives to scan.
    base_package:
        Optional exact string prefix entities must start with.
    config:
        A complete configuration; when given, every other keyword except
        *resolver* and *weaver* is ignored.

    Returns
    -------
    ``(PipelineResult, result_dict)``
        The dataclass and the schema-aligned JSON dict.
    """
    if config is None:
        config = PipelineConfig(
            manifest_dir=_to_path(manifest_dir),
            name=name,
            classpath=tuple(_to_path(p) for p in classpath),
            base_package=base_package,
            boundary_aware=boundary_aware,
            ignored_packages=tuple(ignored_packages),
        )
    result = run_pipeline(config, resolver=resolver, weaver=weaver)
    return result, result_to_dict(result)


# ── scan_markers ────────────────────────────────────────────────────


def scan_markers(
    classpath: Iterable[str | Path],
    *,
    ignored_packages: Iterable[str] = DEFAULT_IGNORED_PACKAGES,
    max_workers: int = 1,
) -> tuple[MarkerIndex, dict[str, Any]]:
    """Build the marker index for *classpath* without touching any manifest."""
    index = scan_classpath(
        [_to_path(p) for p in classpath],
        tuple(ignored_packages),
        max_workers=max_workers,
    )
    return index, index_to_dict(index)
