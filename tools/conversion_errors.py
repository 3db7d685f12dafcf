"""
conversion_errors.py - Error types for JSON to Avro conversion

Everything raised by the schema parser, the decimal codec and the record
reader derives from ValueError, so callers that only care about "bad input"
can catch that.

Hierarchy:
    ConversionError           top-level failure of one read() call
        MalformedInputError   input text is not a JSON object
        UnsupportedSchemaError schema node type the reader cannot handle
    AvroTypeError             data does not fit the schema (carries .path)
        TypeMismatchError
        EnumSymbolError
        UnionResolutionError
        DecimalError
            DecimalFormatError
            DecimalScaleError
            DecimalPrecisionError
            DecimalOverflowError
    SchemaParseError          schema definition is invalid
"""

from typing import List, Optional


class ConversionError(ValueError):
    """A conversion call failed. Only one of these is raised per call."""

    def __init__(self, message: str, path: str = ''):
        super().__init__(message)
        self.path = path


class MalformedInputError(ConversionError):
    """Raw input could not be parsed into a JSON object."""


class UnsupportedSchemaError(ConversionError):
    """Schema node type is not handled. A schema problem, never retried."""


class AvroTypeError(ValueError):
    """JSON value does not match the schema node it is converted against."""

    def __init__(self, message: str, path: str = ''):
        super().__init__(message)
        self.path = path


class TypeMismatchError(AvroTypeError):
    def __init__(self, path: str, expected_type: str):
        super().__init__(f"Field {path} is expected to be type: {expected_type}", path)
        self.expected_type = expected_type


class EnumSymbolError(AvroTypeError):
    def __init__(self, path: str, symbols: List[str]):
        super().__init__(
            f"Field {path} is expected to be of enum type and be one of {', '.join(symbols)}",
            path)
        self.symbols = list(symbols)


class UnionResolutionError(AvroTypeError):
    def __init__(self, field_name: str, candidates: List[str], path: str):
        super().__init__(
            f"Could not evaluate union, field {field_name} is expected to be one of these: "
            f"{', '.join(candidates)}. If this is a complex type, check if offending field: "
            f"{path} adheres to schema.",
            path)
        self.field_name = field_name
        self.candidates = list(candidates)


class DecimalError(AvroTypeError):
    """Decimal value cannot be encoded for the declared scale/precision."""


class DecimalFormatError(DecimalError):
    pass


class DecimalScaleError(DecimalError):
    def __init__(self, value_scale: int, scale: int):
        super().__init__(
            f"Cannot encode decimal with scale {value_scale} as scale {scale} without rounding")
        self.value_scale = value_scale
        self.scale = scale


class DecimalPrecisionError(DecimalError):
    def __init__(self, value_precision: int, precision: int,
                 original_scale: Optional[int] = None, scale: Optional[int] = None):
        message = f"Cannot encode decimal with precision {value_precision} as max precision {precision}"
        if original_scale is not None:
            message += (f". This is after safely adjusting scale from {original_scale}"
                        f" to required {scale}")
        super().__init__(message)
        self.value_precision = value_precision
        self.precision = precision
        self.scale_adjusted = original_scale is not None


class DecimalOverflowError(DecimalError):
    def __init__(self, needed: int, size: int):
        super().__init__(f"Cannot encode decimal in {needed} bytes as fixed size {size}")
        self.needed = needed
        self.size = size


class SchemaParseError(ValueError):
    """Schema definition is malformed."""
