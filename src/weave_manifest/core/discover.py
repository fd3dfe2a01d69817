"""Classpath discovery — enumerate classfiles in directories and archives."""

from __future__ import annotations

import io
import logging
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator

_logger = logging.getLogger(__name__)

CLASS_SUFFIX = ".class"

# Archive formats that may appear as classpath roots or be nested inside one
# (e.g. ``WEB-INF/lib/*.jar`` inside a ``.war``).
ARCHIVE_SUFFIXES = frozenset({".jar", ".war", ".ear", ".zip"})

# Skip classfiles bigger than this; no real class header needs it.
_MAX_CLASS_BYTES = 16 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class ClassUnit:
    """One binary unit found on the classpath.

    ``location`` is a filesystem path for directory roots and
    ``<archive>!/<entry>`` for archive members.
    """

    location: str
    data: bytes


def is_archive(path: Path | str) -> bool:
    """Return True when *path* has one of :data:`ARCHIVE_SUFFIXES`."""
    return Path(str(path)).suffix.lower() in ARCHIVE_SUFFIXES


def iter_class_units(root: Path) -> Iterator[ClassUnit]:
    """Yield every classfile under *root*.

    *root* may be a directory (walked recursively in sorted order) or an
    archive.  Missing or unreadable roots yield nothing; a partial classpath
    is normal in incremental builds.
    """
    if root.is_dir():
        yield from _iter_directory(root)
    elif root.is_file() and is_archive(root):
        try:
            with root.open("rb") as handle:
                yield from _iter_archive(handle, str(root))
        except OSError as exc:
            _logger.debug("Skipping unreadable archive %s: %s", root, exc)
    else:
        _logger.debug("Skipping classpath root %s: not a directory or archive", root)


def _iter_directory(root: Path) -> Iterator[ClassUnit]:
    try:
        candidates = sorted(root.rglob(f"*{CLASS_SUFFIX}"))
    except OSError as exc:
        _logger.debug("Skipping unreadable directory %s: %s", root, exc)
        return
    for path in candidates:
        try:
            if not path.is_file() or path.stat().st_size > _MAX_CLASS_BYTES:
                continue
            data = path.read_bytes()
        except OSError as exc:
            _logger.debug("Skipping unreadable classfile %s: %s", path, exc)
            continue
        yield ClassUnit(location=str(path), data=data)


def _iter_archive(handle: IO[bytes], label: str) -> Iterator[ClassUnit]:
    try:
        archive = zipfile.ZipFile(handle)
    except (zipfile.BadZipFile, ValueError) as exc:
        _logger.warning("Skipping corrupt archive %s: %s", label, exc)
        return
    with archive:
        for info in sorted(archive.infolist(), key=lambda item: item.filename):
            if info.is_dir():
                continue
            member = f"{label}!/{info.filename}"
            lowered = info.filename.lower()
            try:
                if lowered.endswith(CLASS_SUFFIX):
                    if info.file_size > _MAX_CLASS_BYTES:
                        continue
                    yield ClassUnit(location=member, data=archive.read(info))
                elif is_archive(lowered):
                    nested = io.BytesIO(archive.read(info))
                    yield from _iter_archive(nested, member)
            except (OSError, zipfile.BadZipFile, zlib.error, RuntimeError) as exc:
                # RuntimeError covers encrypted members.
                _logger.warning("Skipping unreadable archive member %s: %s", member, exc)


def class_entry_name(type_name: str) -> str:
    """``com.acme.Foo`` → ``com/acme/Foo.class`` (the archive member path)."""
    return type_name.replace(".", "/") + CLASS_SUFFIX
