"""Classfile header reader — type name and type-level annotations only.

Walks the constant pool, skips fields and methods, and decodes the class
attribute table.  Nothing is loaded or executed.

Layout reference (JVMS §4)::

    magic u4, minor u2, major u2,
    constant_pool_count u2, cp_info[count - 1],
    access_flags u2, this_class u2, super_class u2,
    interfaces_count u2, u2[interfaces_count],
    fields_count u2, field_info[], methods_count u2, method_info[],
    attributes_count u2, attribute_info[]
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from weave_manifest.errors import ClassFormatError

MAGIC = 0xCAFEBABE
ACC_MODULE = 0x8000

ANNOTATION_ATTRIBUTES = frozenset(
    {"RuntimeVisibleAnnotations", "RuntimeInvisibleAnnotations"}
)

# Constant-pool tags.
_UTF8 = 1
_CLASS = 7
_LONG = 5
_DOUBLE = 6

# Payload size of every fixed-width constant-pool entry, keyed by tag.
_FIXED_CP_SIZES = {
    3: 4,   # Integer
    4: 4,   # Float
    5: 8,   # Long
    6: 8,   # Double
    7: 2,   # Class
    8: 2,   # String
    9: 4,   # Fieldref
    10: 4,  # Methodref
    11: 4,  # InterfaceMethodref
    12: 4,  # NameAndType
    15: 3,  # MethodHandle
    16: 2,  # MethodType
    17: 4,  # Dynamic
    18: 4,  # InvokeDynamic
    19: 2,  # Module
    20: 2,  # Package
}

_CONST_VALUE_TAGS = frozenset(b"BCDFIJSZs")


@dataclass(frozen=True, slots=True)
class ClassInfo:
    """Structural metadata of a single classfile."""

    name: str
    markers: frozenset[str]
    is_module: bool = False


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def u1(self) -> int:
        return self._unpack(">B", 1)

    def u2(self) -> int:
        return self._unpack(">H", 2)

    def u4(self) -> int:
        return self._unpack(">I", 4)

    def take(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise ClassFormatError(
                f"truncated classfile: wanted {n} bytes at offset {self._pos}"
            )
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def skip(self, n: int) -> None:
        self.take(n)

    def _unpack(self, fmt: str, size: int) -> int:
        try:
            (value,) = struct.unpack_from(fmt, self._data, self._pos)
        except struct.error:
            raise ClassFormatError(
                f"truncated classfile at offset {self._pos}"
            ) from None
        self._pos += size
        return value


def _decode_utf8(raw: bytes) -> str:
    # Modified UTF-8 encodes U+0000 as C0 80; everything a type name can hold
    # is otherwise plain UTF-8.
    return raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", errors="replace")


def _read_constant_pool(reader: _Reader) -> tuple[dict[int, str], dict[int, int]]:
    """Return ``(utf8 strings, class -> name index)`` keyed by pool index."""
    count = reader.u2()
    utf8: dict[int, str] = {}
    classes: dict[int, int] = {}
    index = 1
    while index < count:
        tag = reader.u1()
        if tag == _UTF8:
            utf8[index] = _decode_utf8(reader.take(reader.u2()))
        elif tag == _CLASS:
            classes[index] = reader.u2()
        elif tag in _FIXED_CP_SIZES:
            reader.skip(_FIXED_CP_SIZES[tag])
        else:
            raise ClassFormatError(
                f"unknown constant pool tag {tag} at entry {index}"
            )
        # Long and Double occupy two pool slots.
        index += 2 if tag in (_LONG, _DOUBLE) else 1
    return utf8, classes


def _utf8_at(pool: dict[int, str], index: int) -> str:
    try:
        return pool[index]
    except KeyError:
        raise ClassFormatError(f"constant pool entry {index} is not Utf8") from None


def _skip_members(reader: _Reader) -> None:
    """Skip a ``fields`` or ``methods`` table."""
    for _ in range(reader.u2()):
        reader.skip(6)  # access_flags, name_index, descriptor_index
        for _ in range(reader.u2()):
            reader.skip(2)
            reader.skip(reader.u4())


def _skip_element_value(reader: _Reader) -> None:
    tag = reader.u1()
    if tag in _CONST_VALUE_TAGS or tag == ord("c"):
        reader.skip(2)
    elif tag == ord("e"):
        reader.skip(4)
    elif tag == ord("@"):
        _read_annotation(reader)
    elif tag == ord("["):
        for _ in range(reader.u2()):
            _skip_element_value(reader)
    else:
        raise ClassFormatError(f"unknown element_value tag {tag!r}")


def _read_annotation(reader: _Reader) -> int:
    """Consume one ``annotation`` structure and return its type index."""
    type_index = reader.u2()
    for _ in range(reader.u2()):
        reader.skip(2)  # element_name_index
        _skip_element_value(reader)
    return type_index


def descriptor_to_name(descriptor: str) -> str:
    """``Lcom/acme/Entity;`` → ``com.acme.Entity``."""
    if descriptor.startswith("L") and descriptor.endswith(";"):
        descriptor = descriptor[1:-1]
    return descriptor.replace("/", ".")


def read_class_info(data: bytes) -> ClassInfo:
    """Parse *data* and return the type name and its type-level markers.

    Raises
    ------
    ClassFormatError
        If the bytes are not a well-formed classfile.
    """
    reader = _Reader(data)
    if reader.u4() != MAGIC:
        raise ClassFormatError("bad magic number")
    reader.skip(4)  # minor_version, major_version

    pool, classes = _read_constant_pool(reader)

    access_flags = reader.u2()
    this_class = reader.u2()
    if this_class not in classes:
        raise ClassFormatError(f"this_class {this_class} is not a Class entry")
    name = _utf8_at(pool, classes[this_class]).replace("/", ".")
    reader.skip(2)  # super_class
    reader.skip(2 * reader.u2())  # interfaces

    _skip_members(reader)  # fields
    _skip_members(reader)  # methods

    markers: set[str] = set()
    for _ in range(reader.u2()):
        attr_name = _utf8_at(pool, reader.u2())
        length = reader.u4()
        if attr_name not in ANNOTATION_ATTRIBUTES:
            reader.skip(length)
            continue
        body = _Reader(reader.take(length))
        for _ in range(body.u2()):
            markers.add(descriptor_to_name(_utf8_at(pool, _read_annotation(body))))

    return ClassInfo(
        name=name,
        markers=frozenset(markers),
        is_module=bool(access_flags & ACC_MODULE),
    )
