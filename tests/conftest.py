"""Shared fixtures: synthesize classfiles, class directories and jars."""

from __future__ import annotations

import io
import struct
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Mapping, Sequence

import pytest

ENTITY = "javax.persistence.Entity"
MAPPED_SUPERCLASS = "javax.persistence.MappedSuperclass"
EMBEDDABLE = "javax.persistence.Embeddable"
CONVERTER = "javax.persistence.Converter"


class _Pool:
    """Minimal constant-pool writer."""

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self._next = 1
        self._utf8: dict[str, int] = {}

    def _add(self, chunk: bytes, slots: int = 1) -> int:
        index = self._next
        self._chunks.append(chunk)
        self._next += slots
        return index

    def utf8(self, text: str) -> int:
        if text not in self._utf8:
            raw = text.encode("utf-8")
            self._utf8[text] = self._add(b"\x01" + struct.pack(">H", len(raw)) + raw)
        return self._utf8[text]

    def cls(self, internal_name: str) -> int:
        return self._add(b"\x07" + struct.pack(">H", self.utf8(internal_name)))

    def integer(self, value: int) -> int:
        return self._add(b"\x03" + struct.pack(">i", value))

    def long(self, value: int) -> int:
        return self._add(b"\x05" + struct.pack(">q", value), slots=2)

    def to_bytes(self) -> bytes:
        return struct.pack(">H", self._next) + b"".join(self._chunks)


def _descriptor(annotation: str) -> str:
    return "L" + annotation.replace(".", "/") + ";"


def _annotations_attribute(pool: _Pool, attr_name: str, annotations: Sequence[str]) -> bytes:
    body = struct.pack(">H", len(annotations))
    for annotation in annotations:
        body += struct.pack(">H", pool.utf8(_descriptor(annotation)))
        # Every annotation carries element values so the reader must skip them:
        # a string, an int, an enum array and a nested annotation.
        body += struct.pack(">H", 4)
        body += struct.pack(">H", pool.utf8("name")) + b"s" + struct.pack(">H", pool.utf8("x"))
        body += struct.pack(">H", pool.utf8("size")) + b"I" + struct.pack(">H", pool.integer(7))
        body += struct.pack(">H", pool.utf8("modes")) + b"[" + struct.pack(">H", 2)
        for constant in ("READ", "WRITE"):
            body += b"e" + struct.pack(
                ">HH", pool.utf8("Lcom/acme/Mode;"), pool.utf8(constant)
            )
        body += struct.pack(">H", pool.utf8("meta")) + b"@"
        body += struct.pack(">HH", pool.utf8("Lcom/acme/Meta;"), 1)
        body += struct.pack(">H", pool.utf8("type")) + b"c" + struct.pack(
            ">H", pool.utf8("Ljava/lang/String;")
        )
    return struct.pack(">HI", pool.utf8(attr_name), len(body)) + body


def build_class(
    name: str,
    annotations: Iterable[str] = (),
    *,
    invisible: Iterable[str] = (),
    field_annotations: Iterable[str] = (),
    major: int = 52,
) -> bytes:
    """Return the bytes of a minimal, well-formed classfile.

    *name* is a dotted type name; annotation names are dotted too.
    ``field_annotations`` land on a single field, not on the type.
    """
    visible = list(annotations)
    hidden = list(invisible)
    on_field = list(field_annotations)

    pool = _Pool()
    pool.long(123456789)  # exercises the two-slot constant
    this_index = pool.cls(name.replace(".", "/"))
    super_index = pool.cls("java/lang/Object")

    fields = b""
    if on_field:
        fields += struct.pack(
            ">HHHH", 0x0002, pool.utf8("id"), pool.utf8("J"), 1
        ) + _annotations_attribute(pool, "RuntimeVisibleAnnotations", on_field)

    attributes: list[bytes] = [
        struct.pack(">HI", pool.utf8("SourceFile"), 2) + struct.pack(">H", pool.utf8("X.java"))
    ]
    if visible:
        attributes.append(_annotations_attribute(pool, "RuntimeVisibleAnnotations", visible))
    if hidden:
        attributes.append(_annotations_attribute(pool, "RuntimeInvisibleAnnotations", hidden))

    out = struct.pack(">IHH", 0xCAFEBABE, 0, major)
    out += pool.to_bytes()
    out += struct.pack(">HHH", 0x0021, this_index, super_index)
    out += struct.pack(">H", 0)  # interfaces
    out += struct.pack(">H", len(on_field) and 1) + fields
    out += struct.pack(">H", 0)  # methods
    out += struct.pack(">H", len(attributes)) + b"".join(attributes)
    return out


def class_entry(name: str) -> str:
    return name.replace(".", "/") + ".class"


def write_class_dir(root: Path, classes: Mapping[str, Sequence[str]]) -> Path:
    """Write ``{type name: [annotations]}`` as a directory of classfiles."""
    for name, annotations in classes.items():
        path = root / class_entry(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_class(name, annotations))
    return root


def jar_bytes(classes: Mapping[str, Sequence[str]], extra: Mapping[str, bytes] | None = None) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
        for name, annotations in classes.items():
            zf.writestr(class_entry(name), build_class(name, annotations))
        for entry, data in (extra or {}).items():
            zf.writestr(entry, data)
    return buf.getvalue()


def write_jar(
    path: Path,
    classes: Mapping[str, Sequence[str]],
    extra: Mapping[str, bytes] | None = None,
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(jar_bytes(classes, extra))
    return path


@pytest.fixture()
def make_class() -> Callable[..., bytes]:
    return build_class


@pytest.fixture()
def class_dir(tmp_path: Path) -> Callable[[Mapping[str, Sequence[str]]], Path]:
    def _make(classes: Mapping[str, Sequence[str]], name: str = "classes") -> Path:
        return write_class_dir(tmp_path / name, classes)

    return _make


@pytest.fixture()
def jar(tmp_path: Path) -> Callable[..., Path]:
    def _make(
        classes: Mapping[str, Sequence[str]],
        name: str = "lib.jar",
        extra: Mapping[str, bytes] | None = None,
    ) -> Path:
        return write_jar(tmp_path / name, classes, extra)

    return _make


@pytest.fixture()
def nested_jar_bytes() -> Callable[..., bytes]:
    return jar_bytes


@pytest.fixture()
def sample_classpath(tmp_path: Path) -> list[Path]:
    """A class directory plus a jar with one of each marker kind."""
    classes = write_class_dir(
        tmp_path / "classes",
        {
            "com.acme.Order": [ENTITY],
            "com.acme.Customer": [ENTITY],
            "com.acme.BaseEntity": [MAPPED_SUPERCLASS],
            "com.acme.service.OrderService": [],
        },
    )
    lib = write_jar(
        tmp_path / "lib" / "model.jar",
        {
            "com.acme.Address": [EMBEDDABLE],
            "com.acme.MoneyConverter": [CONVERTER],
            "org.other.Thing": [ENTITY],
        },
    )
    return [classes, lib]
