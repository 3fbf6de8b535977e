"""Conversion between CIP wire values and JSON dynamic values.

Decoding narrows every 1/2/4-byte integer type onto a signed 32-bit
integer. 8-byte integers, floating point, bit strings, structures and
arrays are not decoded and always fail with the type code.

Encoding checks the value's shape and element types against the tag's
declared type before anything is sent to the device.

Elementary CIP type codes (CIP Vol. 1, C-6.1):
- BOOL   0xC1  1-bit, encoded in 1 byte
- SINT   0xC2  signed 8-bit       USINT 0xC6  unsigned 8-bit
- INT    0xC3  signed 16-bit      UINT  0xC7  unsigned 16-bit
- DINT   0xC4  signed 32-bit      UDINT 0xC8  unsigned 32-bit
- LINT   0xC5  signed 64-bit      ULINT 0xC9  unsigned 64-bit
- REAL   0xCA  32-bit float       LREAL 0xCB  64-bit float
- STRING 0xD0
- BYTE/WORD/DWORD/LWORD 0xD1-0xD4  bit strings
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from eip_bridge.domain.errors import (
    ConversionError,
    UnsupportedDataTypeError,
    ValueOutOfRangeError,
)
from eip_bridge.domain.model.messages import format_timestamp
from eip_bridge.domain.model.tags import Tag, WireType
from eip_bridge.domain.model.values import DynamicValue, ValueKind

# Integer types decoded onto the signed 32-bit representation
DECODABLE_INTEGERS = frozenset(
    {
        WireType.SINT,
        WireType.INT,
        WireType.DINT,
        WireType.USINT,
        WireType.UINT,
        WireType.UDINT,
    }
)

_FLOAT32_MAX = struct.unpack(">f", b"\x7f\x7f\xff\xff")[0]


@dataclass(frozen=True, slots=True)
class TagReading:
    """Decoded tag value and the time it was captured."""

    value: DynamicValue
    source_timestamp: str


def to_int32(value: int) -> int:
    """Reinterpret an integer as signed 32-bit (two's complement wrap)."""
    return ((value + 2**31) % 2**32) - 2**31


def decode(wire_type: WireType | int, raw: Any, *, now: datetime | None = None) -> TagReading:
    """Convert a raw device value of ``wire_type`` into a dynamic value.

    Args:
        wire_type: Declared CIP type code of the tag
        raw: Value returned by the device read
        now: Capture time (defaults to the current UTC time)

    Returns:
        TagReading stamped with the capture time

    Raises:
        UnsupportedDataTypeError: If the wire type is not decodable
        ConversionError: If the raw value does not fit the wire type
    """
    value = _decode_value(wire_type, raw)
    return TagReading(value=value, source_timestamp=format_timestamp(now or datetime.now(UTC)))


def decode_tag(tag: Tag, raw: Any, *, now: datetime | None = None) -> TagReading:
    """Decode a value read from ``tag``; array tags are not decodable."""
    if tag.is_array:
        raise UnsupportedDataTypeError(int(WireType.ARRAY))
    return decode(tag.wire_type, raw, now=now)


def _decode_value(wire_type: WireType | int, raw: Any) -> DynamicValue:
    if wire_type == WireType.NULL:
        return DynamicValue.null()

    if wire_type == WireType.BOOL:
        if isinstance(raw, bool):
            return DynamicValue.of_bool(raw)
        if isinstance(raw, int):
            return DynamicValue.of_bool(raw != 0)
        raise ConversionError(f"cannot decode {type(raw).__name__} as BOOL")

    if wire_type in DECODABLE_INTEGERS:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ConversionError(
                f"cannot decode {type(raw).__name__} as {WireType(wire_type).name}"
            )
        return DynamicValue.of_int(to_int32(raw))

    if wire_type == WireType.STRING:
        if not isinstance(raw, str):
            raise ConversionError(f"cannot decode {type(raw).__name__} as STRING")
        return DynamicValue.of_string(raw)

    raise UnsupportedDataTypeError(int(wire_type))


def encode(tag: Tag, value: DynamicValue) -> Any:
    """Convert a dynamic value into the payload written to ``tag``.

    Array values are only accepted for array tags and are converted element
    by element; the first failing element aborts the whole conversion.

    Returns:
        Python value (or list) accepted by the device driver

    Raises:
        ConversionError: On shape or element type mismatch
        ValueOutOfRangeError: If a number does not fit the declared type
        UnsupportedDataTypeError: If the declared type cannot be written
    """
    if value.kind == ValueKind.ARRAY:
        if not tag.is_array:
            raise ConversionError(f"array value cannot be written to scalar tag {tag.name}")
        items = value.items
        if len(items) > tag.element_count:
            raise ConversionError(
                f"array of {len(items)} elements exceeds {tag.element_count} "
                f"elements of tag {tag.name}"
            )
        converted: list[Any] = []
        for index, item in enumerate(items):
            try:
                converted.append(encode_scalar(tag.wire_type, item))
            except UnsupportedDataTypeError:
                raise
            except ConversionError as e:
                raise type(e)(f"element {index}: {e}") from e
        return converted

    if tag.is_array:
        raise ConversionError(f"scalar value cannot be written to array tag {tag.name}")
    return encode_scalar(tag.wire_type, value)


def encode_scalar(wire_type: WireType | int, value: DynamicValue) -> Any:
    """Convert one scalar dynamic value to the Python value for ``wire_type``."""
    if value.kind == ValueKind.ARRAY:
        raise ConversionError("nested arrays are not supported")

    if wire_type == WireType.BOOL:
        if value.kind != ValueKind.BOOL:
            raise _mismatch(wire_type, value)
        return value.value

    if wire_type == WireType.STRING:
        if value.kind != ValueKind.STRING:
            raise _mismatch(wire_type, value)
        return value.value

    try:
        wire: WireType | None = WireType(wire_type)
    except ValueError:
        wire = None

    if wire is not None and wire.is_integer():
        return _encode_integer(wire, value)

    if wire is not None and wire.is_float():
        if value.kind not in (ValueKind.INT, ValueKind.FLOAT):
            raise _mismatch(wire, value)
        number = float(value.value)  # type: ignore[arg-type]
        if wire == WireType.REAL and math.isfinite(number) and abs(number) > _FLOAT32_MAX:
            raise ValueOutOfRangeError(f"value {value.value} out of range for REAL")
        return number

    raise UnsupportedDataTypeError(int(wire_type))


def _encode_integer(wire_type: WireType, value: DynamicValue) -> int:
    if value.kind == ValueKind.INT:
        number = int(value.value)  # type: ignore[arg-type]
    elif value.kind == ValueKind.FLOAT and float(value.value).is_integer():  # type: ignore[arg-type]
        number = int(value.value)  # type: ignore[arg-type]
    elif value.kind == ValueKind.FLOAT:
        raise ConversionError(
            f"value {value.value} is not an integer, cannot write as {wire_type.name}"
        )
    else:
        raise _mismatch(wire_type, value)

    low, high = wire_type.integer_range()
    if not low <= number <= high:
        raise ValueOutOfRangeError(
            f"value {number} out of range for {wire_type.name} [{low}, {high}]"
        )
    return number


def _mismatch(wire_type: WireType | int, value: DynamicValue) -> ConversionError:
    name = wire_type.name if isinstance(wire_type, WireType) else str(wire_type)
    return ConversionError(f"cannot convert {value.kind.value} value to {name}")
