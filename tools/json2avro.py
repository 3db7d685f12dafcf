#!/usr/bin/env python3
"""
json2avro.py - Convert JSON documents against an Avro schema

Usage:
    python tools/json2avro.py convert schema.avsc input.json
    python tools/json2avro.py convert schema.avsc events.jsonl --lines --warn-unknown
    cat input.json | python tools/json2avro.py convert schema.avsc
    python tools/json2avro.py check schemas/payment.yaml --verbose

Commands:
    convert  Convert one JSON document (or JSON Lines) and print the typed
             result as JSON (bytes and fixed are printed as hex)
    check    Run the test vectors embedded in a schema YAML file

Test vector file format (check):
    schema: { ...Avro schema... }
    test_vectors:
      - name: valid_payment
        input: {"id": 1, "amount": "12.34"}
        expected: {"id": 1, "amount": "04d2"}
      - name: bad_currency
        input: {"currency": "XXX"}
        error: "expected to be of enum type"
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from avro_schema import Schema, load_schema, parse_schema
from conversion_errors import ConversionError, SchemaParseError
from generic_record import to_jsonable
from json_record_reader import JsonRecordReader, log_unknown_field, narrow_float


@dataclass
class VectorResult:
    """Outcome of one test vector; it passed when no errors were recorded."""
    name: str
    description: str = ""
    actual: Any = None
    errors: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.errors


@dataclass
class CheckResult:
    """Schema parse errors plus the outcome of every test vector."""
    schema_errors: List[str] = field(default_factory=list)
    vectors: List[VectorResult] = field(default_factory=list)

    @property
    def schema_valid(self) -> bool:
        return not self.schema_errors

    @property
    def failed(self) -> List[VectorResult]:
        return [v for v in self.vectors if not v.passed]

    @property
    def all_passed(self) -> bool:
        return self.schema_valid and not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'schema_valid': self.schema_valid,
            'schema_errors': self.schema_errors,
            'total_vectors': len(self.vectors),
            'failed_vectors': [v.name for v in self.failed],
            'all_passed': self.all_passed,
            'vectors': [dict(asdict(v), passed=v.passed) for v in self.vectors],
        }


def values_match(expected: Any, actual: Any) -> Tuple[bool, str]:
    """
    Compare an expected value from a test vector with rendered output.

    Output only holds JSON types (bytes and fixed are hex strings), so values
    compare exactly. Objects may list a subset of the output keys. A float
    also matches its single precision rounding, the value of a float field.
    """
    if isinstance(expected, dict) and isinstance(actual, dict):
        for key, value in expected.items():
            if key not in actual:
                return False, f"missing key '{key}'"
            match, msg = values_match(value, actual[key])
            if not match:
                return False, f"{key}: {msg}"
        return True, ""

    if isinstance(expected, list) and isinstance(actual, list):
        if len(expected) != len(actual):
            return False, f"expected {len(expected)} items, got {len(actual)}"
        for i, (e, a) in enumerate(zip(expected, actual)):
            match, msg = values_match(e, a)
            if not match:
                return False, f"[{i}]: {msg}"
        return True, ""

    # True == 1 in Python, but not in JSON
    if isinstance(expected, bool) != isinstance(actual, bool) or expected != actual:
        if isinstance(expected, float) and isinstance(actual, float) \
                and narrow_float(expected) == actual:
            return True, ""
        return False, f"expected {expected!r}, got {actual!r}"
    return True, ""


def run_test_vector(reader: JsonRecordReader, schema: Schema, tv: Dict[str, Any]) -> VectorResult:
    """Convert one test vector input and compare with its expectation."""
    result = VectorResult(name=tv.get('name', 'unnamed'), description=tv.get('description', ''))
    data = tv.get('input', {})
    expected_error = tv.get('error')

    try:
        record = reader.read(data, schema) if isinstance(data, str) else reader.read_json(data, schema)
    except ConversionError as e:
        if expected_error is None:
            result.errors.append(f"Conversion failed: {e}")
        elif expected_error not in str(e):
            result.errors.append(f"Expected error containing '{expected_error}', got: {e}")
        return result

    result.actual = to_jsonable(record)
    if expected_error is not None:
        result.errors.append(f"Expected error containing '{expected_error}', conversion succeeded")
        return result

    match, msg = values_match(tv.get('expected', {}), result.actual)
    if not match:
        result.errors.append(msg)
    return result


def check_schema(document: Dict[str, Any]) -> CheckResult:
    """Parse the schema of a test vector document and run all its vectors."""
    if not isinstance(document, dict) or 'schema' not in document:
        return CheckResult(schema_errors=["Document has no 'schema' key"])

    try:
        schema = parse_schema(document['schema'])
    except SchemaParseError as e:
        return CheckResult(schema_errors=[str(e)])

    reader = JsonRecordReader()
    return CheckResult(vectors=[run_test_vector(reader, schema, tv)
                                for tv in document.get('test_vectors', [])])


def print_results(result: CheckResult, verbose: bool = False):
    """Print one line per vector, details for failures (or all with verbose)."""
    if not result.schema_valid:
        print("Schema: INVALID")
        for error in result.schema_errors:
            print(f"  - {error}")
        return
    print("Schema: VALID")

    for vector in result.vectors:
        print(f"  [{'PASS' if vector.passed else 'FAIL'}] {vector.name}")
        for error in vector.errors:
            print(f"      {error}")
        if verbose:
            if vector.description:
                print(f"      {vector.description}")
            print(f"      -> {json.dumps(vector.actual)}")

    total = len(result.vectors)
    if result.all_passed:
        print(f"PASSED: All {total} test vectors passed")
    else:
        print(f"FAILED: {len(result.failed)} of {total} test vectors failed")


def convert_documents(reader: JsonRecordReader, schema: Schema, text: str,
                      lines: bool = False) -> List[Any]:
    """Convert one JSON document, or one per non-empty line."""
    if not lines:
        return [to_jsonable(reader.read(text, schema))]

    results = []
    for number, line in enumerate(text.splitlines(), 1):
        if not line.strip():
            continue
        try:
            results.append(to_jsonable(reader.read(line, schema)))
        except ConversionError as e:
            raise ConversionError(f"Line {number}: {e}", e.path) from e
    return results


def cmd_convert(args) -> int:
    schema = load_schema(args.schema)
    listener = log_unknown_field if args.warn_unknown else None
    reader = JsonRecordReader(unknown_field_listener=listener)

    text = args.input.read_text() if args.input else sys.stdin.read()
    try:
        results = convert_documents(reader, schema, text, args.lines)
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for item in results:
        print(json.dumps(item, indent=None if args.lines else 2))
    return 0


def cmd_check(args) -> int:
    try:
        document = yaml.safe_load(args.schema.read_text())
    except (OSError, yaml.YAMLError) as e:
        print(f"Error loading schema: {e}", file=sys.stderr)
        return 1

    result = check_schema(document)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Checking: {args.schema}")
        print("=" * 50)
        print_results(result, args.verbose)

    return 0 if result.all_passed else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Convert JSON documents against an Avro schema')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: WARNING)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    conv = subparsers.add_parser('convert', help='Convert JSON to typed values')
    conv.add_argument('schema', type=Path, help='Avro schema file (.avsc, .json or .yaml)')
    conv.add_argument('input', type=Path, nargs='?', help='JSON input file (default: stdin)')
    conv.add_argument('--lines', action='store_true', help='Input is JSON Lines')
    conv.add_argument('--warn-unknown', action='store_true',
                      help='Log JSON fields that are not in the schema')

    chk = subparsers.add_parser('check', help='Run test vectors embedded in a schema YAML')
    chk.add_argument('schema', type=Path, help='Schema YAML with test_vectors')
    chk.add_argument('-v', '--verbose', action='store_true',
                     help='Show detailed output for all test vectors')
    chk.add_argument('--json', action='store_true', help='Output results as JSON')

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(levelname)s %(name)s: %(message)s')

    if args.command == 'convert':
        try:
            return cmd_convert(args)
        except (OSError, SchemaParseError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    return cmd_check(args)


if __name__ == '__main__':
    sys.exit(main())
