"""Tag domain models for the EIP bridge.

Tags are the named values exposed by the Logix controller. Each tag has:
- A declared CIP wire type
- A device-side handle (CIP symbol instance id)
- Optional array dimensions

The tag directory is built once from the device enumeration and never
changes afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class WireType(IntEnum):
    """CIP elementary and structured data type codes.

    Elementary types occupy 0xC1-0xDE, structured markers 0xA0-0xA3.
    """

    NULL = 0x00
    STRUCT = 0xA0
    ARRAY = 0xA1
    BOOL = 0xC1
    SINT = 0xC2
    INT = 0xC3
    DINT = 0xC4
    LINT = 0xC5
    USINT = 0xC6
    UINT = 0xC7
    UDINT = 0xC8
    ULINT = 0xC9
    REAL = 0xCA
    LREAL = 0xCB
    STRING = 0xD0
    BYTE = 0xD1
    WORD = 0xD2
    DWORD = 0xD3
    LWORD = 0xD4

    @classmethod
    def from_type_name(cls, name: str | None) -> WireType | None:
        """Look up a wire type by its CIP type name (e.g. ``"DINT"``)."""
        if not name:
            return None
        try:
            return cls[name.upper()]
        except KeyError:
            return None

    def is_integer(self) -> bool:
        return self in _INTEGER_RANGES

    def is_float(self) -> bool:
        return self in (WireType.REAL, WireType.LREAL)

    def integer_range(self) -> tuple[int, int]:
        """Get the inclusive (min, max) range of an integer wire type."""
        return _INTEGER_RANGES[self]


_INTEGER_RANGES: dict[WireType, tuple[int, int]] = {
    WireType.SINT: (-(2**7), 2**7 - 1),
    WireType.INT: (-(2**15), 2**15 - 1),
    WireType.DINT: (-(2**31), 2**31 - 1),
    WireType.LINT: (-(2**63), 2**63 - 1),
    WireType.USINT: (0, 2**8 - 1),
    WireType.UINT: (0, 2**16 - 1),
    WireType.UDINT: (0, 2**32 - 1),
    WireType.ULINT: (0, 2**64 - 1),
}


@dataclass(frozen=True, slots=True)
class Tag:
    """A device-resident tag as enumerated at startup.

    Attributes:
        name: Unique tag name (controller or program scoped)
        wire_type: Declared CIP type (element type for arrays)
        type_name: Type name reported by the device
        instance_id: CIP symbol instance id (device handle)
        dimensions: Array dimensions, all zero for scalars
    """

    name: str
    wire_type: WireType
    type_name: str = ""
    instance_id: int | None = None
    dimensions: tuple[int, ...] = field(default=(0, 0, 0))

    @property
    def is_array(self) -> bool:
        return any(dim > 0 for dim in self.dimensions)

    @property
    def element_count(self) -> int:
        """Number of elements (1 for scalars)."""
        count = 1
        for dim in self.dimensions:
            if dim > 0:
                count *= dim
        return count

    @classmethod
    def from_definition(cls, definition: Mapping[str, Any]) -> Tag:
        """Build a tag from a pycomm3 tag definition dictionary.

        Logix STRING is reported as a structure but is read and written as
        text, so it maps to ``WireType.STRING``. Any other structure, or a
        type name with no CIP code, maps to ``WireType.STRUCT``.
        """
        name = str(definition["tag_name"])
        type_name = definition.get("data_type_name") or definition.get("data_type")
        if not isinstance(type_name, str):
            type_name = ""

        wire_type = WireType.from_type_name(type_name)
        if wire_type is None or (
            definition.get("tag_type") == "struct" and wire_type != WireType.STRING
        ):
            if definition.get("tag_type") != "struct":
                logger.warning("Unknown tag data type", tag=name, data_type=type_name)
            wire_type = WireType.STRUCT

        dimensions = tuple(int(d) for d in definition.get("dimensions") or (0, 0, 0))
        return cls(
            name=name,
            wire_type=wire_type,
            type_name=type_name,
            instance_id=definition.get("instance_id"),
            dimensions=dimensions,
        )


class TagDirectory(Mapping[str, Tag]):
    """Read-only catalog of tag name to Tag.

    Keys are exactly the names enumerated from the device. There is no
    mutation API, so concurrent handlers share it without locking.
    """

    __slots__ = ("_tags",)

    def __init__(self, tags: Iterable[Tag] = ()) -> None:
        entries: dict[str, Tag] = {}
        for tag in tags:
            if tag.name in entries:
                logger.warning("Duplicate tag in enumeration ignored", tag=tag.name)
                continue
            entries[tag.name] = tag
        self._tags = entries

    @classmethod
    def from_definitions(cls, definitions: Iterable[Mapping[str, Any]]) -> TagDirectory:
        """Build a directory from pycomm3 tag definition dictionaries."""
        return cls(Tag.from_definition(d) for d in definitions)

    def __getitem__(self, name: str) -> Tag:
        return self._tags[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def __repr__(self) -> str:
        return f"TagDirectory({len(self._tags)} tags)"

    def names(self) -> list[str]:
        """Get all tag names, sorted."""
        return sorted(self._tags)
