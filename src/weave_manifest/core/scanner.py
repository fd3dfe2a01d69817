"""Classpath scanner — builds the marker index.

The index maps each type-level marker (annotation) name to the set of
fully-qualified type names carrying it.  It is built once per run and is
read-only afterwards.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Sequence

from weave_manifest.core.classfile import read_class_info
from weave_manifest.core.discover import iter_class_units
from weave_manifest.errors import ClassFormatError

_logger = logging.getLogger(__name__)

# Type-name prefixes never indexed.  Plain string prefixes: "java" also
# covers "javax".
DEFAULT_IGNORED_PACKAGES: tuple[str, ...] = ("java", "org.maven")

_EMPTY: frozenset[str] = frozenset()


class MarkerIndex(Mapping[str, frozenset[str]]):
    """Immutable ``marker name -> frozenset of type names`` mapping.

    ``types`` holds every type name that was indexed, marked or not.
    Looking up a marker nobody carries yields an empty set via :meth:`get`.
    """

    __slots__ = ("_markers", "_types")

    def __init__(
        self,
        markers: Mapping[str, Iterable[str]] | None = None,
        types: Iterable[str] = (),
    ) -> None:
        frozen = {name: frozenset(names) for name, names in (markers or {}).items()}
        self._markers = MappingProxyType(frozen)
        self._types = frozenset(types)

    def __getitem__(self, marker: str) -> frozenset[str]:
        return self._markers[marker]

    def __iter__(self) -> Iterator[str]:
        return iter(self._markers)

    def __len__(self) -> int:
        return len(self._markers)

    def get(self, marker: str, default: frozenset[str] = _EMPTY) -> frozenset[str]:  # type: ignore[override]
        return self._markers.get(marker, default)

    @property
    def types(self) -> frozenset[str]:
        return self._types

    def marker_names(self) -> list[str]:
        return sorted(self._markers)

    def to_dict(self) -> dict:
        return {
            "markers": {name: sorted(self._markers[name]) for name in self.marker_names()},
            "types_total": len(self._types),
        }

    @classmethod
    def merge(cls, *indexes: "MarkerIndex") -> "MarkerIndex":
        """Union several partial indexes into one.

        A type can appear in more than one root when the classpath holds
        duplicates, so entries are unioned, never appended.
        """
        markers: dict[str, set[str]] = defaultdict(set)
        types: set[str] = set()
        for index in indexes:
            for name, names in index.items():
                markers[name] |= names
            types |= index.types
        return cls(markers, types)

    def __repr__(self) -> str:
        return f"MarkerIndex(markers={len(self)}, types={len(self._types)})"


def is_ignored(type_name: str, ignored_packages: Sequence[str]) -> bool:
    """Return True when *type_name* starts with any ignored prefix."""
    return any(type_name.startswith(prefix) for prefix in ignored_packages)


def scan_root(
    root: Path,
    ignored_packages: Sequence[str] = DEFAULT_IGNORED_PACKAGES,
) -> MarkerIndex:
    """Index one directory or archive root."""
    markers: dict[str, set[str]] = defaultdict(set)
    types: set[str] = set()
    for unit in iter_class_units(root):
        try:
            info = read_class_info(unit.data)
        except ClassFormatError as exc:
            _logger.warning("Skipping malformed classfile %s: %s", unit.location, exc)
            continue
        if info.is_module or is_ignored(info.name, ignored_packages):
            continue
        types.add(info.name)
        for marker in info.markers:
            markers[marker].add(info.name)
    return MarkerIndex(markers, types)


def scan_classpath(
    roots: Iterable[Path],
    ignored_packages: Sequence[str] = DEFAULT_IGNORED_PACKAGES,
    *,
    max_workers: int = 1,
) -> MarkerIndex:
    """Scan every classpath root and return the merged :class:`MarkerIndex`.

    Parameters
    ----------
    roots:
        Directories and archives, in classpath order.  Order only affects
        scan time; results are set based.
    ignored_packages:
        Type-name prefixes to leave out of the index.
    max_workers:
        Scan up to this many roots concurrently.  Each worker builds its own
        partial index; partials are merged after every scan completes.
    """
    root_list = [Path(r) for r in roots]
    ignored = tuple(ignored_packages)
    if max_workers > 1 and len(root_list) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            partials = list(pool.map(lambda r: scan_root(r, ignored), root_list))
    else:
        partials = [scan_root(r, ignored) for r in root_list]
    index = MarkerIndex.merge(*partials)
    _logger.debug(
        "Indexed %d type(s) carrying %d marker(s) from %d root(s)",
        len(index.types),
        len(index),
        len(root_list),
    )
    return index
