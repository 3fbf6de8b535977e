"""Dynamic values carried in JSON request and response bodies.

JSON payloads are loosely typed. ``DynamicValue`` tags each value with its
runtime kind so the codec can match on the kind explicitly instead of
probing untyped objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from eip_bridge.domain.errors import ConversionError

Scalar = bool | int | float | str | None


class ValueKind(str, Enum):
    """Runtime shape of a dynamic value."""

    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    ARRAY = "array"


@dataclass(frozen=True, slots=True)
class DynamicValue:
    """Tagged variant: null, bool, int, float, string, or array of scalars."""

    kind: ValueKind
    value: Scalar | tuple[DynamicValue, ...] = None

    @classmethod
    def null(cls) -> DynamicValue:
        return cls(ValueKind.NULL, None)

    @classmethod
    def of_bool(cls, value: bool) -> DynamicValue:
        return cls(ValueKind.BOOL, value)

    @classmethod
    def of_int(cls, value: int) -> DynamicValue:
        return cls(ValueKind.INT, value)

    @classmethod
    def of_float(cls, value: float) -> DynamicValue:
        return cls(ValueKind.FLOAT, value)

    @classmethod
    def of_string(cls, value: str) -> DynamicValue:
        return cls(ValueKind.STRING, value)

    @classmethod
    def of_array(cls, items: list[DynamicValue] | tuple[DynamicValue, ...]) -> DynamicValue:
        return cls(ValueKind.ARRAY, tuple(items))

    @classmethod
    def from_json(cls, raw: Any) -> DynamicValue:
        """Classify a decoded JSON value.

        Arrays may only contain scalars.

        Raises:
            ConversionError: For objects, nested arrays, or non-JSON types
        """
        if isinstance(raw, list | tuple):
            items: list[DynamicValue] = []
            for index, item in enumerate(raw):
                element = cls._scalar_from_json(item)
                if element is None:
                    raise ConversionError(
                        f"unexpected type for array element {index}: {type(item).__name__}"
                    )
                items.append(element)
            return cls.of_array(items)

        value = cls._scalar_from_json(raw)
        if value is None:
            raise ConversionError(f"unexpected type for write value: {type(raw).__name__}")
        return value

    @classmethod
    def _scalar_from_json(cls, raw: Any) -> DynamicValue | None:
        # bool is checked before int since bool is an int subclass
        if raw is None:
            return cls.null()
        if isinstance(raw, bool):
            return cls.of_bool(raw)
        if isinstance(raw, int):
            return cls.of_int(raw)
        if isinstance(raw, float):
            return cls.of_float(raw)
        if isinstance(raw, str):
            return cls.of_string(raw)
        return None

    @property
    def items(self) -> tuple[DynamicValue, ...]:
        """Array elements (empty for scalars)."""
        if self.kind == ValueKind.ARRAY and isinstance(self.value, tuple):
            return self.value
        return ()

    def to_json(self) -> Any:
        """Render as a JSON-serializable Python value."""
        if self.kind == ValueKind.ARRAY:
            return [item.to_json() for item in self.items]
        return self.value
