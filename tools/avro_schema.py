#!/usr/bin/env python3
"""
avro_schema.py - Avro schema model and parser

Parses Avro schema definitions (the JSON form used in .avsc files, or the
same structure written as YAML) into a tree of Schema nodes that the
record reader walks.

Supports:
- Primitive types (null, boolean, int, long, float, double, bytes, string)
- Records (with namespaces, defaults and recursive references)
- Enums, arrays, maps, fixed
- Unions
- The decimal logical type on bytes and fixed

Usage:
    from avro_schema import load_schema, parse_schema

    schema = load_schema('payment.avsc')
    schema = parse_schema({'type': 'record', 'name': 'Point',
                           'fields': [{'name': 'x', 'type': 'int'}]})
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from conversion_errors import SchemaParseError

logger = logging.getLogger(__name__)


class SchemaType(Enum):
    RECORD = 'record'
    ENUM = 'enum'
    ARRAY = 'array'
    MAP = 'map'
    UNION = 'union'
    FIXED = 'fixed'
    STRING = 'string'
    BYTES = 'bytes'
    INT = 'int'
    LONG = 'long'
    FLOAT = 'float'
    DOUBLE = 'double'
    BOOLEAN = 'boolean'
    NULL = 'null'


PRIMITIVE_TYPES = {
    'null': SchemaType.NULL,
    'boolean': SchemaType.BOOLEAN,
    'int': SchemaType.INT,
    'long': SchemaType.LONG,
    'float': SchemaType.FLOAT,
    'double': SchemaType.DOUBLE,
    'bytes': SchemaType.BYTES,
    'string': SchemaType.STRING,
}

# 'error' is the record flavour used in Avro protocols
NAMED_TYPES = {
    'record': SchemaType.RECORD,
    'error': SchemaType.RECORD,
    'enum': SchemaType.ENUM,
    'fixed': SchemaType.FIXED,
}


@dataclass(frozen=True)
class DecimalLogicalType:
    """Decimal logical type: unscaled integer plus a decimal point shift."""
    precision: int
    scale: int = 0

    @property
    def name(self) -> str:
        return 'decimal'


@dataclass(eq=False)
class Field:
    """A named field of a record schema."""
    name: str
    schema: 'Schema'
    default: Any = None
    has_default: bool = False
    doc: Optional[str] = None

    def __repr__(self) -> str:
        return f"Field({self.name!r}, {self.schema.type_name})"


@dataclass(eq=False)
class Schema:
    """
    One node of a parsed schema tree.

    Which attributes are meaningful depends on `type`:
        record: name, namespace, fields
        enum:   name, namespace, symbols
        fixed:  name, namespace, size, logical_type
        array:  items
        map:    values
        union:  types
        bytes:  logical_type
    """
    type: SchemaType
    name: Optional[str] = None
    namespace: Optional[str] = None
    fields: List[Field] = field(default_factory=list)
    items: Optional['Schema'] = None
    values: Optional['Schema'] = None
    types: List['Schema'] = field(default_factory=list)
    symbols: List[str] = field(default_factory=list)
    size: Optional[int] = None
    logical_type: Optional[DecimalLogicalType] = None
    doc: Optional[str] = None

    def __post_init__(self):
        self._fields_by_name = {f.name: f for f in self.fields}

    @property
    def type_name(self) -> str:
        return self.type.value

    @property
    def fullname(self) -> Optional[str]:
        if self.name is None:
            return None
        if self.namespace:
            return f"{self.namespace}.{self.name}"
        return self.name

    def get_field(self, name: str) -> Optional[Field]:
        """Look up a record field by name."""
        return self._fields_by_name.get(name)

    def add_field(self, fld: Field) -> None:
        if fld.name in self._fields_by_name:
            raise SchemaParseError(f"Duplicate field '{fld.name}' in record {self.fullname}")
        self.fields.append(fld)
        self._fields_by_name[fld.name] = fld

    def __repr__(self) -> str:
        # Records may reference themselves, so never recurse here
        if self.name:
            return f"Schema({self.type_name}, {self.fullname!r})"
        return f"Schema({self.type_name})"

    def __str__(self) -> str:
        return self.fullname or self.type_name


def _split_fullname(name: str, namespace: Optional[str]):
    if '.' in name:
        ns, _, short = name.rpartition('.')
        return short, ns
    return name, namespace


def _full(name: str, namespace: Optional[str]) -> str:
    short, ns = _split_fullname(name, namespace)
    return f"{ns}.{short}" if ns else short


def max_precision_for_size(size: int) -> int:
    """Largest number of base-10 digits a signed `size`-byte integer holds."""
    if size <= 0:
        return 0
    return int(math.floor(math.log10(2 ** (8 * size - 1) - 1)))


class SchemaParser:
    """
    Parses schema definitions, tracking named types so later definitions
    can refer to earlier ones by name.
    """

    def __init__(self):
        self.names: Dict[str, Schema] = {}

    def parse(self, obj: Any, namespace: Optional[str] = None) -> Schema:
        if isinstance(obj, str):
            return self._parse_name(obj, namespace)
        if isinstance(obj, list):
            return self._parse_union(obj, namespace)
        if isinstance(obj, dict):
            return self._parse_object(obj, namespace)
        raise SchemaParseError(f"Cannot parse schema from {type(obj).__name__}: {obj!r}")

    def _parse_name(self, name: str, namespace: Optional[str]) -> Schema:
        if name in PRIMITIVE_TYPES:
            return Schema(type=PRIMITIVE_TYPES[name])
        full = _full(name, namespace)
        if full in self.names:
            return self.names[full]
        if name in self.names:
            return self.names[name]
        raise SchemaParseError(f"Unknown type: {name}")

    def _register(self, schema: Schema) -> None:
        full = schema.fullname
        if full in self.names:
            raise SchemaParseError(f"Can't redefine: {full}")
        self.names[full] = schema

    def _parse_union(self, members: List[Any], namespace: Optional[str]) -> Schema:
        if not members:
            raise SchemaParseError("Union must have at least one member type")
        types = []
        seen = set()
        for member in members:
            schema = self.parse(member, namespace)
            if schema.type == SchemaType.UNION:
                raise SchemaParseError("Nested union is not allowed")
            key = schema.fullname or schema.type_name
            if key in seen:
                raise SchemaParseError(f"Duplicate in union: {key}")
            seen.add(key)
            types.append(schema)
        return Schema(type=SchemaType.UNION, types=types)

    def _parse_object(self, obj: Dict[str, Any], namespace: Optional[str]) -> Schema:
        if 'type' not in obj:
            raise SchemaParseError(f"No type: {obj!r}")
        type_name = obj['type']

        # {"type": [...]} or {"type": {...}} just wrap another schema
        if not isinstance(type_name, str):
            return self.parse(type_name, namespace)

        if type_name in PRIMITIVE_TYPES:
            schema = Schema(type=PRIMITIVE_TYPES[type_name])
            schema.logical_type = self._parse_logical_type(obj, schema)
            return schema

        if type_name in NAMED_TYPES:
            return self._parse_named(obj, NAMED_TYPES[type_name], namespace)

        if type_name == 'array':
            if 'items' not in obj:
                raise SchemaParseError("Array has no items type")
            return Schema(type=SchemaType.ARRAY, items=self.parse(obj['items'], namespace))

        if type_name == 'map':
            if 'values' not in obj:
                raise SchemaParseError("Map has no values type")
            return Schema(type=SchemaType.MAP, values=self.parse(obj['values'], namespace))

        # Reference to an already defined named type
        return self._parse_name(type_name, namespace)

    def _parse_named(self, obj: Dict[str, Any], schema_type: SchemaType,
                     namespace: Optional[str]) -> Schema:
        raw_name = obj.get('name')
        if not isinstance(raw_name, str) or not raw_name:
            raise SchemaParseError(f"No name in schema: {obj!r}")
        name, ns = _split_fullname(raw_name, obj.get('namespace', namespace))
        schema = Schema(type=schema_type, name=name, namespace=ns or None, doc=obj.get('doc'))

        if schema_type == SchemaType.RECORD:
            fields = obj.get('fields')
            if not isinstance(fields, list):
                raise SchemaParseError(f"Record has no fields: {schema.fullname}")
            # Register first so fields can refer back to this record
            self._register(schema)
            for fdef in fields:
                schema.add_field(self._parse_field(fdef, schema.namespace))

        elif schema_type == SchemaType.ENUM:
            symbols = obj.get('symbols')
            if not isinstance(symbols, list):
                raise SchemaParseError(f"Enum has no symbols: {schema.fullname}")
            if len(set(symbols)) != len(symbols):
                raise SchemaParseError(f"Duplicate enum symbol in {schema.fullname}")
            schema.symbols = [str(s) for s in symbols]
            self._register(schema)

        else:
            size = obj.get('size')
            if not isinstance(size, int) or isinstance(size, bool) or size < 0:
                raise SchemaParseError(f"Invalid fixed size for {schema.fullname}: {size!r}")
            schema.size = size
            schema.logical_type = self._parse_logical_type(obj, schema)
            self._register(schema)

        return schema

    def _parse_field(self, fdef: Any, namespace: Optional[str]) -> Field:
        if not isinstance(fdef, dict):
            raise SchemaParseError(f"Field definition must be an object: {fdef!r}")
        name = fdef.get('name')
        if not isinstance(name, str) or not name:
            raise SchemaParseError(f"No field name: {fdef!r}")
        if 'type' not in fdef:
            raise SchemaParseError(f"No field type: {name}")
        return Field(
            name=name,
            schema=self.parse(fdef['type'], namespace),
            default=fdef.get('default'),
            has_default='default' in fdef,
            doc=fdef.get('doc'),
        )

    def _parse_logical_type(self, obj: Dict[str, Any],
                            schema: Schema) -> Optional[DecimalLogicalType]:
        logical = obj.get('logicalType')
        if logical is None:
            return None
        if logical != 'decimal':
            logger.debug("Logical type '%s' on %s is not interpreted", logical, schema)
            return None

        if schema.type not in (SchemaType.BYTES, SchemaType.FIXED):
            logger.warning("Ignoring decimal logical type on %s: only bytes and fixed are allowed",
                           schema.type_name)
            return None

        precision = obj.get('precision')
        scale = obj.get('scale', 0)
        if not isinstance(precision, int) or isinstance(precision, bool) or precision < 1:
            logger.warning("Ignoring decimal logical type: invalid precision %r", precision)
            return None
        if not isinstance(scale, int) or isinstance(scale, bool) or scale < 0:
            logger.warning("Ignoring decimal logical type: invalid scale %r", scale)
            return None
        if scale > precision:
            logger.warning("Ignoring decimal logical type: scale %d greater than precision %d",
                           scale, precision)
            return None
        if schema.type == SchemaType.FIXED:
            max_precision = max_precision_for_size(schema.size)
            if precision > max_precision:
                logger.warning("Ignoring decimal logical type: fixed(%d) holds at most %d digits, "
                               "precision is %d", schema.size, max_precision, precision)
                return None
        return DecimalLogicalType(precision=precision, scale=scale)


def parse_schema(obj: Any) -> Schema:
    """Parse a schema from its decoded JSON/YAML structure."""
    return SchemaParser().parse(obj)


def parse_schema_text(text: str) -> Schema:
    """Parse a schema from JSON or YAML text."""
    try:
        obj = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SchemaParseError(f"Schema text is not valid JSON/YAML: {e}") from e
    return parse_schema(obj)


def load_schema(path) -> Schema:
    """
    Load a schema file (.avsc, .json or .yaml).

    YAML files may wrap the schema with extra keys, in which case the schema
    is taken from the top-level 'schema' key (see json2avro.py check).
    """
    obj = yaml.safe_load(Path(path).read_text())
    if isinstance(obj, dict) and 'schema' in obj and 'type' not in obj:
        obj = obj['schema']
    return parse_schema(obj)
