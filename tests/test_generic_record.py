"""
Tests for Record and the JSON rendering of converted values.
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'tools'))

from avro_schema import parse_schema
from generic_record import EnumSymbol, Fixed, Record, to_jsonable


@pytest.fixture
def user_schema():
    return parse_schema({
        'type': 'record', 'name': 'User', 'namespace': 'app',
        'fields': [
            {'name': 'id', 'type': 'long'},
            {'name': 'active', 'type': 'boolean', 'default': True},
            {'name': 'nick', 'type': ['null', 'string']},
        ],
    })


class TestRecord:

    def test_set_and_get(self, user_schema):
        record = Record(user_schema)
        record.set('id', 5)
        assert record.get('id') == 5
        assert record['id'] == 5
        assert 'id' in record
        assert record.is_set('id')

    def test_default_not_copied(self, user_schema):
        record = Record(user_schema)
        assert record.get('active') is True
        assert not record.is_set('active')
        assert 'active' not in record
        assert len(record) == 0

    def test_unset_without_default(self, user_schema):
        assert Record(user_schema).get('nick') is None

    def test_unknown_field_rejected(self, user_schema):
        record = Record(user_schema)
        with pytest.raises(KeyError):
            record.set('email', 'x@example.com')

    def test_fields_set_in_order(self, user_schema):
        record = Record(user_schema)
        record.set('nick', 'bo')
        record.set('id', 1)
        assert record.fields_set == ['nick', 'id']
        assert list(record) == ['nick', 'id']

    def test_equality(self, user_schema):
        a, b = Record(user_schema), Record(user_schema)
        a.set('id', 1)
        assert a != b
        b.set('id', 1)
        assert a == b

    def test_not_a_record_schema(self):
        with pytest.raises(TypeError):
            Record(parse_schema('string'))

    def test_repr(self, user_schema):
        record = Record(user_schema)
        record.set('id', 3)
        assert repr(record) == "Record(app.User, {'id': 3})"


class TestToJsonable:

    def test_bytes_as_hex(self):
        assert to_jsonable(b'\x04\xd2') == '04d2'

    def test_fixed_as_hex(self):
        assert to_jsonable(Fixed('Fee', b'\x00\x7d')) == '007d'

    def test_enum_symbol(self):
        assert to_jsonable(EnumSymbol('Color', 'RED')) == 'RED'
        assert str(EnumSymbol('Color', 'RED')) == 'RED'

    def test_nested(self, user_schema):
        record = Record(user_schema)
        record.set('id', 9)
        record.set('nick', None)
        assert to_jsonable({'users': [record], 'raw': b'a'}) == \
            {'users': [{'id': 9, 'nick': None}], 'raw': '61'}

    def test_to_dict_keeps_python_values(self, user_schema):
        record = Record(user_schema)
        record.set('id', 9)
        assert record.to_dict() == {'id': 9}
