"""Manifest store — ``META-INF/persistence.xml`` read/append/write.

The manifest is handled as an immutable value: :func:`append` returns a new
:class:`Manifest` and leaves its input untouched.  Only the ``<class>``
entry lists of ``persistence-unit`` sections are managed; everything else in
the document (properties, comments, namespaces) is carried through as-is.

Usage::

    path = manifest_path(Path("target/classes"))
    manifest = load(path, name="myapp")
    manifest = append(manifest, ["com.acme.Order", "com.acme.Customer"])
    save(manifest, path)
"""

from __future__ import annotations

import copy
import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

from lxml import etree

from weave_manifest.errors import ManifestParseError, ManifestWriteError

_logger = logging.getLogger(__name__)

MANIFEST_RELATIVE_PATH = Path("META-INF") / "persistence.xml"

PERSISTENCE_NS = "http://xmlns.jcp.org/xml/ns/persistence"
PERSISTENCE_VERSION = "2.1"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

ROOT_TAG = "persistence"
UNIT_TAG = "persistence-unit"
CLASS_TAG = "class"

# Children of a persistence-unit that the schema orders after <class>.
_AFTER_CLASS = frozenset(
    {"exclude-unlisted-classes", "shared-cache-mode", "validation-mode", "properties"}
)


def _local(element: etree._Element) -> str | None:
    """Local tag name, or None for comments and processing instructions."""
    if not isinstance(element.tag, str):
        return None
    return etree.QName(element).localname


def _qualify(root: etree._Element, local: str) -> str:
    namespace = etree.QName(root).namespace
    return f"{{{namespace}}}{local}" if namespace else local


class Manifest:
    """A loaded or synthesized persistence manifest.

    Parameters
    ----------
    tree:
        The parsed document.  Treat it as read-only.
    name:
        Identifying name used when a persistence-unit must be synthesized.
    is_new:
        True when the manifest was synthesized rather than loaded.
    """

    __slots__ = ("_tree", "name", "is_new")

    def __init__(self, tree: etree._ElementTree, *, name: str, is_new: bool = False) -> None:
        self._tree = tree
        self.name = name
        self.is_new = is_new

    @property
    def tree(self) -> etree._ElementTree:
        return self._tree

    def _units(self) -> list[etree._Element]:
        return [child for child in self._tree.getroot() if _local(child) == UNIT_TAG]

    @property
    def units(self) -> list[str]:
        """Names of the persistence-unit sections, in document order."""
        return [unit.get("name", "") for unit in self._units()]

    def unit_entries(self, unit_name: str) -> list[str]:
        for unit in self._units():
            if unit.get("name", "") == unit_name:
                return _class_entries(unit)
        raise KeyError(unit_name)

    def entries(self) -> list[str]:
        """Every class entry of every section, in document order."""
        out: list[str] = []
        for unit in self._units():
            out.extend(_class_entries(unit))
        return out

    def __repr__(self) -> str:
        return f"Manifest(name={self.name!r}, units={self.units!r}, is_new={self.is_new})"


def _class_entries(unit: etree._Element) -> list[str]:
    return [
        child.text.strip()
        for child in unit
        if _local(child) == CLASS_TAG and child.text and child.text.strip()
    ]


def manifest_path(location: Path) -> Path:
    """Manifest file inside a persistence-info *location* directory."""
    return location / MANIFEST_RELATIVE_PATH


def create(name: str) -> Manifest:
    """Synthesize an empty manifest with one persistence-unit named *name*."""
    root = etree.Element(
        f"{{{PERSISTENCE_NS}}}{ROOT_TAG}",
        nsmap={None: PERSISTENCE_NS, "xsi": XSI_NS},
    )
    root.set("version", PERSISTENCE_VERSION)
    root.set(
        f"{{{XSI_NS}}}schemaLocation",
        f"{PERSISTENCE_NS} {PERSISTENCE_NS}/persistence_2_1.xsd",
    )
    etree.SubElement(root, _qualify(root, UNIT_TAG), name=name)
    return Manifest(etree.ElementTree(root), name=name, is_new=True)


def load(path: Path, name: str) -> Manifest:
    """Load the manifest at *path*, or synthesize one when it does not exist.

    Raises
    ------
    ManifestParseError
        If the file exists but is unreadable, is not well-formed XML, or its
        root element is not ``persistence``.
    """
    if not path.exists():
        return create(name)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ManifestParseError(path, str(exc)) from exc

    parser = etree.XMLParser(
        remove_blank_text=True,
        resolve_entities=False,
        no_network=True,
    )
    try:
        tree = etree.parse(io.BytesIO(data), parser)
    except etree.XMLSyntaxError as exc:
        raise ManifestParseError(path, str(exc)) from exc

    root = tree.getroot()
    if _local(root) != ROOT_TAG:
        raise ManifestParseError(
            path, f"root element is <{_local(root)}>, expected <{ROOT_TAG}>"
        )
    return Manifest(tree, name=name, is_new=False)


def existing_entries(manifest: Manifest) -> set[str]:
    """Class entries across all sections; cross-section duplicates collapse."""
    return set(manifest.entries())


def _insertion_index(unit: etree._Element) -> int:
    children = list(unit)
    last_class = None
    for i, child in enumerate(children):
        if _local(child) == CLASS_TAG:
            last_class = i
    if last_class is not None:
        return last_class + 1
    for i, child in enumerate(children):
        if _local(child) in _AFTER_CLASS:
            return i
    return len(children)


def append(manifest: Manifest, entries: Iterable[str]) -> Manifest:
    """Return a manifest with every not-yet-present entry of *entries* added.

    New entries go to the first persistence-unit, after its existing
    ``<class>`` elements, in the order given.  An entry already present in
    any section is never added twice.  When nothing is new the input
    manifest itself is returned.
    """
    present = existing_entries(manifest)
    additions: list[str] = []
    for entry in entries:
        if entry in present:
            continue
        present.add(entry)
        additions.append(entry)
    if not additions:
        return manifest

    tree = copy.deepcopy(manifest.tree)
    root = tree.getroot()
    units = [child for child in root if _local(child) == UNIT_TAG]
    if units:
        unit = units[0]
    else:
        unit = etree.SubElement(root, _qualify(root, UNIT_TAG), name=manifest.name)

    position = _insertion_index(unit)
    for offset, entry in enumerate(additions):
        # SubElement picks up the in-scope namespace declarations; insert()
        # then moves the new element into place.
        element = etree.SubElement(unit, _qualify(root, CLASS_TAG))
        element.text = entry
        unit.insert(position + offset, element)
    return Manifest(tree, name=manifest.name, is_new=manifest.is_new)


def dumps(manifest: Manifest) -> bytes:
    """Serialize with a UTF-8 declaration, pretty-printed, newline at EOF."""
    data = etree.tostring(
        manifest.tree,
        pretty_print=True,
        xml_declaration=True,
        encoding="UTF-8",
    )
    return data if data.endswith(b"\n") else data + b"\n"


def save(manifest: Manifest, path: Path) -> Path:
    """Write *manifest* to *path* via a temp file and an atomic replace.

    Raises
    ------
    ManifestWriteError
        On any filesystem error.  The previous file, if any, stays intact.
    """
    data = dumps(manifest)
    tmp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        mode = path.stat().st_mode & 0o777 if path.exists() else 0o644
        with tempfile.NamedTemporaryFile(
            mode="wb",
            prefix=".persistence_tmp_",
            suffix=".xml",
            dir=str(path.parent),
            delete=False,
        ) as handle:
            tmp_path = Path(handle.name)
            handle.write(data)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise ManifestWriteError(path, str(exc)) from exc
    finally:
        # If tmp still exists (failure path), clean it up.
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                _logger.warning("Could not remove temporary file %s", tmp_path)
    return path
