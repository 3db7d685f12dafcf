#!/usr/bin/env python3
"""
generic_record.py - In-memory values produced by the record reader

A Record only holds the fields that were actually set. Defaults declared in
the schema are visible through Record.get() but are never copied in.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List

from avro_schema import Schema, SchemaType


@dataclass(frozen=True)
class EnumSymbol:
    """A symbol of a named enum schema."""
    schema_name: str
    symbol: str

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class Fixed:
    """Bytes of a named fixed schema."""
    schema_name: str
    data: bytes

    def __len__(self) -> int:
        return len(self.data)


class Record:
    """Field values for one record schema."""

    def __init__(self, schema: Schema):
        if schema.type != SchemaType.RECORD:
            raise TypeError(f"Not a record schema: {schema}")
        self.schema = schema
        self._values: Dict[str, Any] = {}

    def set(self, name: str, value: Any) -> None:
        if self.schema.get_field(name) is None:
            raise KeyError(f"Not a field of {self.schema.fullname}: {name}")
        self._values[name] = value

    def get(self, name: str) -> Any:
        """Value of a field; the declared default when unset, else None."""
        if name in self._values:
            return self._values[name]
        fld = self.schema.get_field(name)
        if fld is not None and fld.has_default:
            return fld.default
        return None

    def is_set(self, name: str) -> bool:
        return name in self._values

    @property
    def fields_set(self) -> List[str]:
        return list(self._values)

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.schema is other.schema and self._values == other._values

    def __repr__(self) -> str:
        return f"Record({self.schema.fullname}, {self._values!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict of the set fields, nested records converted too."""
        return {k: _plain(v) for k, v in self._values.items()}


def _plain(value: Any) -> Any:
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def to_jsonable(value: Any) -> Any:
    """Render a converted value with JSON types only (bytes become hex)."""
    if isinstance(value, Record):
        return {k: to_jsonable(value[k]) for k in value}
    if isinstance(value, EnumSymbol):
        return value.symbol
    if isinstance(value, Fixed):
        return value.data.hex()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value
