#!/usr/bin/env python3
"""
json_record_reader.py - Schema-directed JSON to Avro record conversion

Walks a parsed JSON tree and an Avro schema in lock-step and produces typed
values: Records for records, lists for arrays, dicts for maps, EnumSymbols,
bytes/Fixed for bytes and fixed, and narrowed Python numbers.

Unions carry no type tag in the JSON. Each member is tried in declaration
order and the first one that accepts the value wins. A member can reject a
value in two ways:
    - shallow mismatch (a string where a number is expected): the member
      reports INCOMPATIBLE without raising
    - deep failure (a record member whose nested field is wrong): the error
      is caught and the next member is tried

Bytes and fixed values are read from JSON strings as UTF-8. When the schema
carries the decimal logical type the string is a decimal number ("12.34")
and is encoded through decimal_codec.

Usage:
    from avro_schema import load_schema
    from json_record_reader import JsonRecordReader

    reader = JsonRecordReader()
    record = reader.read(b'{"amount": "12.34"}', load_schema('payment.avsc'))
"""

import json
import logging
import math
import struct
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from avro_schema import Schema, SchemaType
from conversion_errors import (
    AvroTypeError, ConversionError, DecimalError, EnumSymbolError, MalformedInputError,
    TypeMismatchError, UnionResolutionError, UnsupportedSchemaError,
)
from decimal_codec import DecimalInputConversion
from generic_record import EnumSymbol, Fixed, Record

logger = logging.getLogger(__name__)

# (field_name, raw_json_value, context_path)
UnknownFieldListener = Callable[[str, Any, str], None]


def log_unknown_field(name: str, value: Any, context: str) -> None:
    """Unknown field listener that only logs."""
    logger.warning("Field '%s' is not in the schema, ignoring value %r", name, value)


class Outcome(Enum):
    MATCHED = 'matched'
    INCOMPATIBLE = 'incompatible'
    FAILED = 'failed'


@dataclass(frozen=True)
class Attempt:
    """Result of converting one value against one schema node."""
    outcome: Outcome
    value: Any = None
    error: Optional[AvroTypeError] = None

    @classmethod
    def matched(cls, value: Any) -> 'Attempt':
        return cls(Outcome.MATCHED, value)

    @classmethod
    def incompatible(cls) -> 'Attempt':
        return cls(Outcome.INCOMPATIBLE)

    @classmethod
    def failed(cls, error: AvroTypeError) -> 'Attempt':
        return cls(Outcome.FAILED, error=error)


class FieldPath:
    """Dotted path of the field being converted, for error messages."""

    def __init__(self):
        self._segments: List[str] = []

    @contextmanager
    def enter(self, name: Optional[str]):
        # Arrays, maps and union members re-enter the same field
        pushed = name is not None and (not self._segments or self._segments[-1] != name)
        if pushed:
            self._segments.append(name)
        try:
            yield self
        finally:
            if pushed:
                self._segments.pop()

    def __str__(self) -> str:
        return '.'.join(self._segments)


def _depth(path: str) -> int:
    return len(path.split('.')) if path else 0


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a JSON number
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def narrow_integer(value: Any, bits: int) -> int:
    """
    Narrow a JSON number to a signed integer of `bits` width.

    Floats truncate toward zero and saturate at the bounds (NaN is 0).
    Integers and finite Decimals keep their low-order bits (two's complement
    wrap). Non-finite Decimals behave like the matching float.
    """
    lo, hi = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if isinstance(value, Decimal) and not value.is_finite():
        if value.is_nan():
            return 0
        return hi if value > 0 else lo
    if isinstance(value, float):
        if math.isnan(value):
            return 0
        if math.isinf(value):
            return hi if value > 0 else lo
        return max(lo, min(hi, int(value)))

    n = int(value)
    n &= (1 << bits) - 1
    if n > hi:
        n -= 1 << bits
    return n


def _to_float(value: Any) -> float:
    # float() refuses signaling NaN
    if isinstance(value, Decimal) and value.is_nan():
        return math.nan
    return float(value)


def narrow_float(value: Any) -> float:
    """Round a JSON number to IEEE single precision."""
    try:
        return struct.unpack('>f', struct.pack('>f', _to_float(value)))[0]
    except OverflowError:
        return math.inf if value > 0 else -math.inf


def narrow_double(value: Any) -> float:
    try:
        return _to_float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf


def _utf8(value: str) -> bytes:
    # Lone surrogates are valid in JSON text but not in UTF-8; they become '?'
    return value.encode('utf-8', errors='replace')


class JsonRecordReader:
    """
    Converts JSON documents into Records for a given record schema.

    The reader keeps no state between calls, so one instance can serve
    several threads.
    """

    def __init__(self, unknown_field_listener: Optional[UnknownFieldListener] = None,
                 decimal_conversion: Optional[DecimalInputConversion] = None):
        self.unknown_field_listener = unknown_field_listener
        self.decimal_conversion = decimal_conversion or DecimalInputConversion()

        self._handlers: Dict[SchemaType, Callable[..., Attempt]] = {
            SchemaType.RECORD: self._on_record,
            SchemaType.ARRAY: self._on_array,
            SchemaType.MAP: self._on_map,
            SchemaType.UNION: self._on_union,
            SchemaType.INT: self._on_int,
            SchemaType.LONG: self._on_long,
            SchemaType.FLOAT: self._on_float,
            SchemaType.DOUBLE: self._on_double,
            SchemaType.BOOLEAN: self._on_boolean,
            SchemaType.ENUM: self._on_enum,
            SchemaType.STRING: self._on_string,
            SchemaType.BYTES: self._on_bytes,
            SchemaType.FIXED: self._on_fixed,
            SchemaType.NULL: self._on_null,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read(self, data, schema: Schema) -> Record:
        """
        Parse JSON text (bytes or str) and convert it to a Record.

        Raises:
            MalformedInputError: data is not a JSON object
            ConversionError: data does not match the schema
        """
        try:
            obj = json.loads(data)
        except ValueError as e:
            raise MalformedInputError("Failed to parse json to map format.") from e
        if not isinstance(obj, dict):
            raise MalformedInputError("Failed to parse json to map format.")
        return self.read_json(obj, schema)

    def read_json(self, obj: Mapping[str, Any], schema: Schema) -> Record:
        """Convert an already parsed JSON object to a Record."""
        if getattr(schema, 'type', None) != SchemaType.RECORD:
            raise ConversionError(f"Failed to convert JSON to Avro: Not a record schema: {schema}")
        if not isinstance(obj, Mapping):
            raise ConversionError(
                "Failed to convert JSON to Avro: top level value is expected to be an object")

        path = FieldPath()
        try:
            return self._read_record(obj, schema, path)
        except AvroTypeError as ex:
            raise self._conversion_error(ex) from ex

    def convert(self, value: Any, schema: Schema) -> Any:
        """Convert any JSON value against any schema node."""
        path = FieldPath()
        try:
            return self._read(None, schema, value, path, False).value
        except AvroTypeError as ex:
            raise self._conversion_error(ex) from ex

    @staticmethod
    def _conversion_error(ex: AvroTypeError) -> ConversionError:
        message = f"Failed to convert JSON to Avro: {ex}"
        if isinstance(ex, DecimalError) and ex.path:
            message += f" (field {ex.path})"
        return ConversionError(message, ex.path)

    # ------------------------------------------------------------------
    # Recursive descent
    # ------------------------------------------------------------------

    def _read_record(self, obj: Mapping[str, Any], schema: Schema, path: FieldPath) -> Record:
        record = Record(schema)
        for key, value in obj.items():
            fld = schema.get_field(key)
            if fld is not None:
                record.set(fld.name, self._read(fld.name, fld.schema, value, path, False).value)
            elif self.unknown_field_listener is not None:
                self.unknown_field_listener(key, value, '')
        return record

    def _read(self, field_name: Optional[str], schema: Schema, value: Any,
              path: FieldPath, silently: bool) -> Attempt:
        handler = self._handlers.get(getattr(schema, 'type', None))
        if handler is None:
            raise UnsupportedSchemaError(
                f"Unsupported type: {getattr(schema, 'type', schema)}", str(path))
        with path.enter(field_name):
            return handler(field_name, schema, value, path, silently)

    def _on_valid_type(self, value: Any, accepted: bool, expected: str, path: FieldPath,
                       silently: bool, convert: Callable[[Any], Any]) -> Attempt:
        if accepted:
            return Attempt.matched(convert(value))
        if silently:
            return Attempt.incompatible()
        raise TypeMismatchError(str(path), expected)

    def _on_record(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, isinstance(value, Mapping), 'object', path, silently,
                                   lambda obj: self._read_record(obj, schema, path))

    def _on_array(self, field_name, schema, value, path, silently):
        return self._on_valid_type(
            value, isinstance(value, (list, tuple)), 'array', path, silently,
            lambda items: [self._read(field_name, schema.items, item, path, False).value
                           for item in items])

    def _on_map(self, field_name, schema, value, path, silently):
        return self._on_valid_type(
            value, isinstance(value, Mapping), 'object', path, silently,
            lambda obj: {k: self._read(field_name, schema.values, v, path, False).value
                         for k, v in obj.items()})

    def _on_union(self, field_name, schema, value, path, silently):
        deepest = str(path)
        for member in schema.types:
            try:
                attempt = self._read(field_name, member, value, path, True)
            except AvroTypeError as e:
                # Raised only by complex members such as records
                attempt = Attempt.failed(e)

            if attempt.outcome == Outcome.MATCHED:
                return attempt
            if attempt.outcome == Outcome.FAILED:
                logger.debug("Union member %s rejected for field %s: %s",
                             member, field_name, attempt.error)
                if _depth(attempt.error.path) > _depth(deepest):
                    deepest = attempt.error.path

        raise UnionResolutionError(field_name or '', [t.type_name for t in schema.types], deepest)

    def _on_int(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, _is_number(value), 'number', path, silently,
                                   lambda n: narrow_integer(n, 32))

    def _on_long(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, _is_number(value), 'number', path, silently,
                                   lambda n: narrow_integer(n, 64))

    def _on_float(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, _is_number(value), 'number', path, silently,
                                   narrow_float)

    def _on_double(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, _is_number(value), 'number', path, silently,
                                   narrow_double)

    def _on_boolean(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, isinstance(value, bool), 'boolean', path, silently,
                                   lambda b: b)

    def _on_enum(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, isinstance(value, str), 'string', path, silently,
                                   lambda s: self._ensure_enum(schema, s, path))

    def _on_string(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, isinstance(value, str), 'string', path, silently,
                                   lambda s: s)

    def _on_bytes(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, isinstance(value, str), 'string', path, silently,
                                   lambda s: self._bytes_for_string(schema, s, path))

    def _on_fixed(self, field_name, schema, value, path, silently):
        if not isinstance(value, str):
            return self._on_valid_type(value, False, 'string', path, silently, None)

        if schema.logical_type is not None:
            data = self._with_path(path, lambda: self.decimal_conversion.to_fixed(
                self.decimal_conversion.from_bytes(_utf8(value), schema.logical_type),
                schema.logical_type, schema.size))
            return Attempt.matched(Fixed(schema.fullname, data))

        data = _utf8(value)
        if len(data) != schema.size:
            if silently:
                return Attempt.incompatible()
            raise TypeMismatchError(str(path), f"fixed({schema.size})")
        return Attempt.matched(Fixed(schema.fullname, data))

    def _on_null(self, field_name, schema, value, path, silently):
        return self._on_valid_type(value, value is None, 'null', path, silently, lambda v: None)

    # ------------------------------------------------------------------
    # Leaf helpers
    # ------------------------------------------------------------------

    def _ensure_enum(self, schema: Schema, value: str, path: FieldPath) -> EnumSymbol:
        if value in schema.symbols:
            return EnumSymbol(schema.fullname, value)
        raise EnumSymbolError(str(path), schema.symbols)

    def _bytes_for_string(self, schema: Schema, value: str, path: FieldPath) -> bytes:
        data = _utf8(value)
        decimal = schema.logical_type
        if decimal is None:
            return data
        return self._with_path(path, lambda: self.decimal_conversion.to_bytes(
            self.decimal_conversion.from_bytes(data, decimal), decimal))

    @staticmethod
    def _with_path(path: FieldPath, encode: Callable[[], bytes]) -> bytes:
        try:
            return encode()
        except DecimalError as e:
            e.path = str(path)
            raise


def read_record(data, schema: Schema,
                unknown_field_listener: Optional[UnknownFieldListener] = None) -> Record:
    """Convenience function to convert one JSON document."""
    return JsonRecordReader(unknown_field_listener).read(data, schema)
