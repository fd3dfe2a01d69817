"""Manifest/classpath reconciliation."""

from weave_manifest.reconcile.reconciler import (  # noqa: F401
    ReconciliationReport,
    Resolver,
    any_resolver,
    archive_resolver,
    classpath_resolver,
    default_resolver,
    reconcile,
)
