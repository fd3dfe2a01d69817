"""Reconciler — compare discovered entities with the manifest's entries.

Detection only: stale entries are reported but never removed, since a
manifest may deliberately list classes built in a module that is not on the
current classpath.
"""

from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Sequence

from weave_manifest.core.discover import class_entry_name, is_archive
from weave_manifest.core.scanner import MarkerIndex

Resolver = Callable[[str], bool]
"""Answers "is this type resolvable on the current classpath?"."""


@dataclass(frozen=True, slots=True)
class ReconciliationReport:
    """Outcome of one reconciliation.

    ``delta`` is what must be appended to the manifest, in discovery order.
    The two warning lists are sorted and purely diagnostic.
    """

    discovered: tuple[str, ...]
    stale_entries: tuple[str, ...] = ()
    undiscovered_entries: tuple[str, ...] = ()
    delta: tuple[str, ...] = ()
    existing_count: int = 0

    @property
    def has_warnings(self) -> bool:
        return bool(self.stale_entries or self.undiscovered_entries)

    def summary(self) -> str:
        parts = [
            f"Discovered: {len(self.discovered)}",
            f"Appended: {len(self.delta)}",
            f"Stale: {len(self.stale_entries)}",
            f"Undiscovered: {len(self.undiscovered_entries)}",
        ]
        return ", ".join(parts)

    def to_dict(self) -> dict:
        return {
            "counts": {
                "discovered": len(self.discovered),
                "existing": self.existing_count,
                "appended": len(self.delta),
                "stale": len(self.stale_entries),
                "undiscovered": len(self.undiscovered_entries),
            },
            "discovered": list(self.discovered),
            "stale_entries": list(self.stale_entries),
            "undiscovered_entries": list(self.undiscovered_entries),
            "appended": list(self.delta),
        }


def reconcile(
    existing: Iterable[str],
    discovered: Sequence[str],
    resolve: Resolver,
) -> ReconciliationReport:
    """Build the report and append-delta for one run.

    Parameters
    ----------
    existing:
        Entries already in the manifest.
    discovered:
        Freshly selected entity names, in their deterministic order.
    resolve:
        Resolution capability; consulted once per existing entry.
    """
    known = set(existing)
    stale = sorted(name for name in known if not resolve(name))

    delta: list[str] = []
    seen: set[str] = set()
    for name in discovered:
        if name in known or name in seen:
            continue
        seen.add(name)
        delta.append(name)

    return ReconciliationReport(
        discovered=tuple(discovered),
        stale_entries=tuple(stale),
        undiscovered_entries=tuple(sorted(seen)),
        delta=tuple(delta),
        existing_count=len(known),
    )


def classpath_resolver(index: MarkerIndex) -> Resolver:
    """Resolve against the types recorded while scanning."""
    types = index.types
    return lambda name: name in types


@dataclass
class _ArchiveResolver:
    roots: tuple[Path, ...]
    _members: dict[Path, frozenset[str]] = field(default_factory=dict)

    def _archive_members(self, archive: Path) -> frozenset[str]:
        if archive not in self._members:
            try:
                with zipfile.ZipFile(archive) as zf:
                    self._members[archive] = frozenset(zf.namelist())
            except (OSError, zipfile.BadZipFile):
                self._members[archive] = frozenset()
        return self._members[archive]

    def __call__(self, name: str) -> bool:
        entry = class_entry_name(name)
        for root in self.roots:
            if root.is_dir():
                if (root / entry).is_file():
                    return True
            elif is_archive(root) and root.is_file():
                if entry in self._archive_members(root):
                    return True
        return False


def archive_resolver(roots: Iterable[Path]) -> Resolver:
    """Resolve by membership of ``pkg/Name.class`` in the classpath roots.

    Independent of the scanner's ignore list, so an entry in an ignored
    package still resolves when its classfile is present.  Archive listings
    are read once and cached.
    """
    return _ArchiveResolver(roots=tuple(Path(r) for r in roots))


def any_resolver(*resolvers: Resolver) -> Resolver:
    """Resolve when any of *resolvers* does, consulted in order."""
    return lambda name: any(resolve(name) for resolve in resolvers)


def default_resolver(index: MarkerIndex, roots: Iterable[Path]) -> Resolver:
    """The scanned index first, then classpath membership.

    The index covers everything the scanner reached, nested archives
    included; membership covers types the ignore list kept out of it.
    """
    return any_resolver(classpath_resolver(index), archive_resolver(roots))
