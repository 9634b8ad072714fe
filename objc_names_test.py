#!/usr/bin/env python3
# Copyright 2024 The Pigweed Authors
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy of
# the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations under
# the License.
"""Tests for Objective-C naming of protobuf entities."""

import unittest

from google.protobuf import descriptor_pb2

from pw_protobuf_objc import objc_names
from pw_protobuf_objc.proto_tree import (
    Cardinality,
    ProtoFile,
    ProtoMessage,
    ProtoMessageField,
)

_FieldDescriptorProto = descriptor_pb2.FieldDescriptorProto

_PROTO_FILE = ProtoFile('pw/test/names.proto', 'pw.test', 'proto2', 'PWT')


def _field(
    name: str,
    field_type: int = _FieldDescriptorProto.TYPE_INT32,
    cardinality: Cardinality = Cardinality.SINGULAR,
    default_value: str | None = None,
    **kwargs,
) -> ProtoMessageField:
    message = ProtoMessage('Names', _PROTO_FILE)
    return ProtoMessageField(
        name,
        1,
        field_type,
        message,
        cardinality=cardinality,
        default_value=default_value,
        **kwargs,
    )


class CamelCaseTest(unittest.TestCase):
    """Tests for underscores_to_camel_case()."""

    def test_lower_first(self):
        self.assertEqual(
            objc_names.underscores_to_camel_case('foo_bar', True), 'fooBar'
        )

    def test_upper_first(self):
        self.assertEqual(
            objc_names.underscores_to_camel_case('foo_bar', False), 'FooBar'
        )

    def test_upper_segments(self):
        self.assertEqual(
            objc_names.underscores_to_camel_case('my_url', True), 'myURL'
        )
        self.assertEqual(
            objc_names.underscores_to_camel_case('server_http', True),
            'serverHTTP',
        )

    def test_digits(self):
        self.assertEqual(
            objc_names.underscores_to_camel_case('value2x', True), 'value2X'
        )

    def test_existing_camel_case(self):
        self.assertEqual(
            objc_names.underscores_to_camel_case('camelName', False),
            'CamelName',
        )


class FieldNameTest(unittest.TestCase):
    """Tests for the property names of fields."""

    def test_singular(self):
        self.assertEqual(objc_names.field_name(_field('rx_count')), 'rxCount')
        self.assertEqual(
            objc_names.field_name_capitalized(_field('rx_count')), 'RxCount'
        )

    def test_repeated(self):
        field = _field('item', cardinality=Cardinality.REPEATED)
        self.assertEqual(objc_names.field_name(field), 'itemArray')

    def test_singular_ending_in_array(self):
        self.assertEqual(
            objc_names.field_name(_field('byte_array')), 'byteArray_p'
        )

    def test_reserved_words(self):
        self.assertEqual(objc_names.field_name(_field('id')), 'id_p')
        self.assertEqual(
            objc_names.field_name(_field('description')), 'description_p'
        )
        self.assertEqual(objc_names.field_name(_field('hash')), 'hash_p')

    def test_retained_names(self):
        self.assertTrue(objc_names.is_retained_name('newValue'))
        self.assertTrue(objc_names.is_retained_name('copy'))
        self.assertTrue(objc_names.is_retained_name('mutableCopyData'))
        self.assertFalse(objc_names.is_retained_name('newsletter'))
        self.assertFalse(objc_names.is_retained_name('value'))

    def test_init_names(self):
        self.assertTrue(objc_names.is_init_name('initData'))
        self.assertTrue(objc_names.is_init_name('init'))
        self.assertFalse(objc_names.is_init_name('initials'))


class TextFormatNameTest(unittest.TestCase):
    """Tests for detecting names the runtime can't derive."""

    def test_derivable_names(self):
        for name in ('rx_count', 'id', 'value'):
            with self.subTest(name=name):
                self.assertFalse(
                    objc_names.needs_custom_text_format_name(_field(name))
                )

        repeated = _field('rx_samples', cardinality=Cardinality.REPEATED)
        self.assertFalse(objc_names.needs_custom_text_format_name(repeated))

    def test_custom_names(self):
        for name in ('camelName', 'HTTPPort', 'value_2'):
            with self.subTest(name=name):
                self.assertTrue(
                    objc_names.needs_custom_text_format_name(_field(name))
                )

    def test_un_camel_case(self):
        field = _field('rx_count')
        self.assertEqual(
            objc_names.un_camel_case_field_name('rxCount', field), 'rx_count'
        )
        self.assertEqual(
            objc_names.un_camel_case_field_name('id_p', field), 'id'
        )


class TypeNameTest(unittest.TestCase):
    """Tests for spelling field types."""

    def test_capitalized_types(self):
        expected = {
            _FieldDescriptorProto.TYPE_UINT32: 'UInt32',
            _FieldDescriptorProto.TYPE_SFIXED64: 'SFixed64',
            _FieldDescriptorProto.TYPE_BYTES: 'Bytes',
            _FieldDescriptorProto.TYPE_GROUP: 'Group',
        }
        for field_type, name in expected.items():
            with self.subTest(name=name):
                self.assertEqual(
                    objc_names.capitalized_type(_field('f', field_type)), name
                )

    def test_primitive_types(self):
        expected = {
            _FieldDescriptorProto.TYPE_SINT32: 'int32_t',
            _FieldDescriptorProto.TYPE_FIXED32: 'uint32_t',
            _FieldDescriptorProto.TYPE_SFIXED64: 'int64_t',
            _FieldDescriptorProto.TYPE_FIXED64: 'uint64_t',
            _FieldDescriptorProto.TYPE_FLOAT: 'float',
            _FieldDescriptorProto.TYPE_DOUBLE: 'double',
            _FieldDescriptorProto.TYPE_BOOL: 'BOOL',
            _FieldDescriptorProto.TYPE_STRING: 'NSString',
            _FieldDescriptorProto.TYPE_BYTES: 'NSData',
        }
        for field_type, name in expected.items():
            with self.subTest(name=name):
                self.assertEqual(
                    objc_names.primitive_type_name(_field('f', field_type)),
                    name,
                )

    def test_generic_value_names(self):
        self.assertEqual(
            objc_names.generic_value_name(
                _field('f', _FieldDescriptorProto.TYPE_SINT64)
            ),
            'valueInt64',
        )
        self.assertEqual(
            objc_names.generic_value_name(
                _field('f', _FieldDescriptorProto.TYPE_BYTES)
            ),
            'valueData',
        )

    def test_array_storage_types(self):
        self.assertEqual(
            objc_names.array_storage_type(
                _field('f', _FieldDescriptorProto.TYPE_FIXED64)
            ),
            'GPBUInt64Array',
        )
        self.assertEqual(
            objc_names.array_storage_type(
                _field('f', _FieldDescriptorProto.TYPE_BOOL)
            ),
            'GPBBoolArray',
        )
        self.assertEqual(
            objc_names.array_storage_type(
                _field('f', _FieldDescriptorProto.TYPE_STRING)
            ),
            'NSMutableArray',
        )

    def test_map_families(self):
        self.assertEqual(
            objc_names.map_key_family(
                _field('key', _FieldDescriptorProto.TYPE_STRING)
            ),
            'String',
        )
        self.assertEqual(
            objc_names.map_key_family(
                _field('key', _FieldDescriptorProto.TYPE_SFIXED32)
            ),
            'Int32',
        )
        self.assertEqual(
            objc_names.map_value_family(
                _field('value', _FieldDescriptorProto.TYPE_BYTES)
            ),
            'Object',
        )
        self.assertEqual(
            objc_names.map_value_family(
                _field('value', _FieldDescriptorProto.TYPE_DOUBLE)
            ),
            'Double',
        )


class DefaultValueTest(unittest.TestCase):
    """Tests for spelling field defaults as Objective-C literals."""

    def _default(self, field_type: int, value: str | None) -> str:
        return objc_names.default_value(
            _field('f', field_type, default_value=value)
        )

    def test_integers(self):
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_INT32, None), '0'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_UINT32, '7'), '7U'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_SINT64, '-7'), '-7LL'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_FIXED64, '9'), '9ULL'
        )

    def test_integer_minimums(self):
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_INT32, '-2147483648'),
            '-0x80000000',
        )
        self.assertEqual(
            self._default(
                _FieldDescriptorProto.TYPE_INT64, '-9223372036854775808'
            ),
            '-0x8000000000000000LL',
        )

    def test_floating_point(self):
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_FLOAT, '1.5'), '1.5f'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_DOUBLE, '2'), '2.'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_DOUBLE, None), '0.'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_DOUBLE, 'inf'), 'INFINITY'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_FLOAT, '-inf'),
            '-INFINITY',
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_DOUBLE, 'nan'), 'NAN'
        )

    def test_bool(self):
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_BOOL, 'true'), 'YES'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_BOOL, None), 'NO'
        )

    def test_string(self):
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_STRING, None), 'nil'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_STRING, 'a"b'),
            '@"a\\"b"',
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_STRING, 'why??'),
            '@"why\\?\\?"',
        )

    def test_bytes(self):
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_BYTES, None), 'nil'
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_BYTES, 'ab'),
            '(NSData*)"\\000\\000\\000\\002ab"',
        )
        self.assertEqual(
            self._default(_FieldDescriptorProto.TYPE_BYTES, '\\001'),
            '(NSData*)"\\000\\000\\000\\001\\001"',
        )


class DeprecatedAttributeTest(unittest.TestCase):
    def test_not_deprecated(self):
        self.assertEqual(objc_names.deprecated_attribute(_field('old')), '')

    def test_deprecated(self):
        self.assertEqual(
            objc_names.deprecated_attribute(_field('old', deprecated=True)),
            ' GPB_DEPRECATED_MSG("Names.old is deprecated '
            '(see pw/test/names.proto).")',
        )


if __name__ == '__main__':
    unittest.main()
