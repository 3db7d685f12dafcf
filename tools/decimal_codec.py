#!/usr/bin/env python3
"""
decimal_codec.py - Decimal logical type encoder/decoder

Converts between decimal strings and the byte layouts of the Avro decimal
logical type: the unscaled integer as big-endian two's complement, either
minimal length (bytes) or sign-extended to the declared size (fixed).

Scale and precision rules:
    - A value with a different scale is rescaled only if no digit is lost.
      '1.50' fits scale 1 ('1.5'), '1.55' does not. Nothing is ever rounded.
    - Digits of the unscaled value (after rescaling) must not exceed the
      declared precision.

Usage:
    from decimal_codec import DecimalConversion
    from avro_schema import DecimalLogicalType

    codec = DecimalConversion()
    decimal = DecimalLogicalType(precision=9, scale=2)
    data = codec.to_bytes('12.34', decimal)      # b'\\x04\\xd2'
    codec.from_bytes(data, decimal)              # '12.34'
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Tuple

from avro_schema import DecimalLogicalType
from conversion_errors import (
    DecimalFormatError, DecimalScaleError, DecimalPrecisionError, DecimalOverflowError,
)

logger = logging.getLogger(__name__)

# Plain decimal literals only: no NaN/Infinity, whitespace or underscores
DECIMAL_PATTERN = re.compile(r'[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')


def parse_decimal(text: str) -> Decimal:
    """Parse a decimal literal exactly, keeping its scale."""
    if not isinstance(text, str) or not DECIMAL_PATTERN.fullmatch(text):
        raise DecimalFormatError(f"Not a decimal number: {text!r}")
    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise DecimalFormatError(f"Not a decimal number: {text!r}") from e
    # Exponents beyond the decimal module's limits
    if not value.is_finite():
        raise DecimalFormatError(f"Not a decimal number: {text!r}")
    return value


def unscaled_value(value: Decimal) -> Tuple[int, int]:
    """Split a finite Decimal into (unscaled integer, scale)."""
    sign, digits, exponent = value.as_tuple()
    unscaled = int(''.join(map(str, digits)))
    return (-unscaled if sign else unscaled), -exponent


def digit_count(unscaled: int) -> int:
    """Number of significant digits; zero counts as one digit."""
    return len(str(abs(unscaled)))


def format_decimal(unscaled: int, scale: int) -> str:
    """Canonical string for unscaled * 10**-scale (scientific form when needed)."""
    digits = tuple(int(d) for d in str(abs(unscaled)))
    return str(Decimal((1 if unscaled < 0 else 0, digits, -scale)))


def int_to_bytes(value: int) -> bytes:
    """Minimal big-endian two's complement encoding (zero is one byte)."""
    if value >= 0:
        length = value.bit_length() // 8 + 1
    else:
        length = (~value).bit_length() // 8 + 1
    return value.to_bytes(length, 'big', signed=True)


def int_from_bytes(data: bytes) -> int:
    if len(data) == 0:
        raise DecimalFormatError("Zero length decimal bytes")
    return int.from_bytes(data, 'big', signed=True)


class DecimalConversion:
    """Decimal strings <-> decimal bytes/fixed for a DecimalLogicalType."""

    logical_type_name = 'decimal'

    def from_bytes(self, data: bytes, logical_type: DecimalLogicalType) -> str:
        return format_decimal(int_from_bytes(bytes(data)), logical_type.scale)

    def to_bytes(self, value: str, logical_type: DecimalLogicalType) -> bytes:
        unscaled = self.validate(logical_type, parse_decimal(value))
        return int_to_bytes(unscaled)

    def from_fixed(self, data: bytes, logical_type: DecimalLogicalType) -> str:
        return format_decimal(int_from_bytes(bytes(data)), logical_type.scale)

    def to_fixed(self, value: str, logical_type: DecimalLogicalType, size: int) -> bytes:
        unscaled = self.validate(logical_type, parse_decimal(value))
        minimal = int_to_bytes(unscaled)
        if len(minimal) > size:
            raise DecimalOverflowError(len(minimal), size)

        # Sign-extend into the leading bytes
        fill = b'\xff' if unscaled < 0 else b'\x00'
        return fill * (size - len(minimal)) + minimal

    @staticmethod
    def validate(logical_type: DecimalLogicalType, value: Decimal) -> int:
        """
        Rescale value to the declared scale and check its precision.

        Returns the unscaled integer at the declared scale.

        Raises:
            DecimalScaleError: rescaling would drop non-zero digits
            DecimalPrecisionError: too many digits for the declared precision
        """
        scale = logical_type.scale
        unscaled, value_scale = unscaled_value(value)
        precision = digit_count(unscaled)

        scale_adjusted = False
        if value_scale != scale:
            if unscaled == 0:
                pass
            elif value_scale > scale:
                if value_scale - scale >= precision:
                    # More digits to drop than there are digits
                    raise DecimalScaleError(value_scale, scale)
                quotient, remainder = divmod(abs(unscaled), 10 ** (value_scale - scale))
                if remainder:
                    raise DecimalScaleError(value_scale, scale)
                unscaled = -quotient if unscaled < 0 else quotient
                precision = digit_count(unscaled)
            else:
                # Appended zeros count as digits; check before building the number
                precision += scale - value_scale
                if precision <= logical_type.precision:
                    unscaled *= 10 ** (scale - value_scale)
            scale_adjusted = True
            logger.debug("Rescaled decimal %s from scale %d to %d", value, value_scale, scale)

        if precision > logical_type.precision:
            if scale_adjusted:
                raise DecimalPrecisionError(precision, logical_type.precision, value_scale, scale)
            raise DecimalPrecisionError(precision, logical_type.precision)

        return unscaled


class DecimalInputConversion:
    """
    Decimal conversion for values that arrive as text.

    JSON carries decimals as human-readable strings, so the "bytes" handed to
    from_bytes are the UTF-8 text of the number, not an encoded integer.
    """

    logical_type_name = 'decimal'

    def __init__(self, codec: DecimalConversion = None):
        self.codec = codec or DecimalConversion()

    def from_bytes(self, data: bytes, logical_type: DecimalLogicalType = None) -> str:
        try:
            return bytes(data).decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecimalFormatError(f"Decimal text is not valid UTF-8: {e}") from e

    def to_bytes(self, value: str, logical_type: DecimalLogicalType) -> bytes:
        return self.codec.to_bytes(value, logical_type)

    def to_fixed(self, value: str, logical_type: DecimalLogicalType, size: int) -> bytes:
        return self.codec.to_fixed(value, logical_type, size)
