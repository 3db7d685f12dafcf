"""
pytest configuration and fixtures for the JSON to Avro converter tests.

Provides reusable fixtures for:
- Parsed schemas used across test modules
- Record readers, with and without an unknown field listener
- Hypothesis property-based testing configuration
"""

import os
import sys
from pathlib import Path

import pytest

# Add project paths
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from hypothesis import settings, Verbosity, Phase

from avro_schema import parse_schema
from json_record_reader import JsonRecordReader

# Configure Hypothesis profiles

# Default profile: balanced speed and coverage
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
)

# CI profile: more thorough testing
settings.register_profile(
    "ci",
    max_examples=500,
    deadline=None,
    suppress_health_check=[],
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)

# Dev profile: fast iteration
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
)

# Debug profile: verbose output
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

# Load profile from environment
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"


@pytest.fixture
def schemas_dir():
    return SCHEMAS_DIR


@pytest.fixture
def reader():
    return JsonRecordReader()


@pytest.fixture
def unknown_fields():
    """
    Collects unknown field notifications.

    Usage:
        def test_extra(unknown_fields):
            reader = JsonRecordReader(unknown_fields.listener)
            ...
            assert unknown_fields.calls == [('extra', 2, '')]
    """
    class Collector:
        def __init__(self):
            self.calls = []

        def listener(self, name, value, context):
            self.calls.append((name, value, context))

    return Collector()


@pytest.fixture
def nested_schema():
    """Three levels of records ending in a numeric field: a.b.c"""
    return parse_schema({
        'type': 'record', 'name': 'Root',
        'fields': [{
            'name': 'a',
            'type': {
                'type': 'record', 'name': 'A',
                'fields': [{
                    'name': 'b',
                    'type': {
                        'type': 'record', 'name': 'B',
                        'fields': [{'name': 'c', 'type': 'int'}],
                    },
                }],
            },
        }],
    })


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
