"""Exception hierarchy for the reconciliation pipeline.

Fatal conditions raise one of these; stale and undiscovered entries are
*not* errors and only ever show up in the
:class:`~weave_manifest.reconcile.ReconciliationReport`.
"""

from __future__ import annotations

from pathlib import Path


class WeaveManifestError(RuntimeError):
    """Base class for every fatal pipeline error."""


class ConfigurationError(WeaveManifestError):
    """Raised before scanning when the configuration cannot be used."""


class ClassFormatError(WeaveManifestError):
    """Raised when a binary unit is not a well-formed classfile."""


class ManifestParseError(WeaveManifestError):
    """Raised when an existing manifest cannot be parsed.

    The manifest is never rewritten after this error, so prior entries are
    not silently discarded.
    """

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"cannot parse manifest {path}: {detail}")


class ManifestWriteError(WeaveManifestError):
    """Raised when the manifest cannot be written back to disk."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"cannot write manifest {path}: {detail}")


class WeaveError(WeaveManifestError):
    """Raised when the downstream weaving step fails."""
