"""Runner — scan, select, reconcile, append, save, hand off.

This is the **only** entry point that wires scanner → selector → reconciler
→ manifest store → weaver.  Everything runs in sequence within one call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from weave_manifest.core.config import PipelineConfig
from weave_manifest.core.scanner import MarkerIndex, scan_classpath
from weave_manifest.core.selector import ENTITY_MARKERS, select_entities
from weave_manifest.errors import ConfigurationError
from weave_manifest.manifest import store
from weave_manifest.reconcile import (
    ReconciliationReport,
    Resolver,
    default_resolver,
    reconcile,
)
from weave_manifest.weaving import NullWeaver, Weaver, build_request

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """What one run produced."""

    manifest_path: Path
    manifest: store.Manifest
    report: ReconciliationReport
    index: MarkerIndex
    created: bool
    written: bool

    @property
    def has_warnings(self) -> bool:
        """Stale entries, or undiscovered entries in a pre-existing manifest."""
        if self.report.stale_entries:
            return True
        return not self.created and bool(self.report.undiscovered_entries)

    def to_dict(self) -> dict:
        return {
            "manifest_path": self.manifest_path,
            "created": self.created,
            "written": self.written,
            **self.report.to_dict(),
        }


def validate_config(config: PipelineConfig) -> None:
    """Fail fast, before scanning, on an unusable configuration."""
    if config.manifest_dir.exists() and not config.manifest_dir.is_dir():
        raise ConfigurationError(
            f"Manifest location {config.manifest_dir} is not a directory"
        )
    if config.weave and not config.source_dir.is_dir():
        raise ConfigurationError(f"Source directory {config.source_dir} does not exist")


def run_pipeline(
    config: PipelineConfig,
    *,
    resolver: Resolver | None = None,
    weaver: Weaver | None = None,
) -> PipelineResult:
    """Execute one reconciliation run.

    Parameters
    ----------
    config:
        The run configuration.
    resolver:
        Resolution capability for stale-entry checks.  Defaults to the
        scanned index, falling back to membership in ``config.classpath``.
    weaver:
        Receives the handoff when ``config.weave`` is set.

    Raises
    ------
    ConfigurationError
        Before scanning, if the configuration is unusable.
    ManifestParseError
        If the existing manifest is malformed; nothing is written.
    ManifestWriteError
        If saving fails.
    WeaveError
        If the weaver fails.
    """
    validate_config(config)

    if config.base_package is not None:
        _logger.info(
            "Only entities from base package '%s' will be included in %s",
            config.base_package,
            store.MANIFEST_RELATIVE_PATH.as_posix(),
        )
    _logger.debug("Scanning class-path: %s", [str(p) for p in config.classpath])

    # ── 1. scan + select ─────────────────────────────────────────────
    index = scan_classpath(
        config.classpath,
        config.ignored_packages,
        max_workers=config.max_workers,
    )
    entities = select_entities(
        index,
        ENTITY_MARKERS,
        config.base_package,
        boundary_aware=config.boundary_aware,
    )
    _logger.info("Entities found : %d", len(entities))

    # ── 2. load manifest (fatal on parse error, before any mutation) ─
    path = store.manifest_path(config.manifest_dir)
    _logger.info("persistence.xml location: %s", path)
    manifest = store.load(path, config.name)

    # ── 3. reconcile ─────────────────────────────────────────────────
    resolve = resolver if resolver is not None else default_resolver(index, config.classpath)
    report = reconcile(store.existing_entries(manifest), entities, resolve)

    if not manifest.is_new:
        for name in report.stale_entries:
            _logger.warning("Class %s defined in %s does not exist", name, path)
        if report.undiscovered_entries:
            _logger.warning(
                "The following classes were not defined in %s even though they "
                "are available on the class path: %s",
                path,
                list(report.undiscovered_entries),
            )

    # ── 4. append + save ─────────────────────────────────────────────
    updated = store.append(manifest, report.delta)
    written = manifest.is_new or bool(report.delta)
    if written:
        store.save(updated, path)
        _logger.info("Appended %d class entries to %s", len(report.delta), path)
    else:
        _logger.debug("Manifest %s already up to date", path)

    # ── 5. hand off to the weaver ────────────────────────────────────
    if config.weave:
        weaver = weaver if weaver is not None else NullWeaver()
        _logger.info("Source classes dir: %s", config.source_dir)
        _logger.info("Target classes dir: %s", config.target_dir)
        weaver.weave(
            build_request(
                source=config.source_dir,
                target=config.target_dir,
                classpath=config.classpath,
                persistence_info=config.manifest_dir,
                log_level=config.log_level,
            )
        )

    return PipelineResult(
        manifest_path=path,
        manifest=updated,
        report=report,
        index=index,
        created=manifest.is_new,
        written=written,
    )
