"""Entity selection — pick persistence-relevant types out of the marker index."""

from __future__ import annotations

from typing import Iterable

from weave_manifest.core.scanner import MarkerIndex

# The four marker kinds, in both the javax and jakarta namespaces.
ENTITY = "Entity"
MAPPED_SUPERCLASS = "MappedSuperclass"
EMBEDDABLE = "Embeddable"
CONVERTER = "Converter"

MARKER_KINDS = (ENTITY, MAPPED_SUPERCLASS, EMBEDDABLE, CONVERTER)
PERSISTENCE_NAMESPACES = ("javax.persistence", "jakarta.persistence")

ENTITY_MARKERS: tuple[str, ...] = tuple(
    f"{namespace}.{kind}"
    for namespace in PERSISTENCE_NAMESPACES
    for kind in MARKER_KINDS
)


def matches_package(
    name: str,
    base_package: str | None,
    *,
    boundary_aware: bool = False,
) -> bool:
    """Return True when *name* falls under *base_package*.

    The default is a plain string prefix test, so ``com.foo`` also matches
    ``com.foobar.Thing``.  ``boundary_aware=True`` only matches the package
    itself and its subpackages.  An empty or missing prefix matches
    everything in both modes.
    """
    if not base_package:
        return True
    if not boundary_aware:
        return name.startswith(base_package)
    prefix = base_package.rstrip(".")
    return name == prefix or name.startswith(prefix + ".")


def select_entities(
    index: MarkerIndex,
    markers: Iterable[str] = ENTITY_MARKERS,
    base_package: str | None = None,
    *,
    boundary_aware: bool = False,
) -> list[str]:
    """Union the type sets of *markers*, filter by package, sort.

    A marker missing from the index contributes nothing.
    """
    selected: set[str] = set()
    for marker in markers:
        selected |= index.get(marker)
    return sorted(
        name
        for name in selected
        if matches_package(name, base_package, boundary_aware=boundary_aware)
    )
