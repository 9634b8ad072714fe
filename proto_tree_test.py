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
"""Tests for the proto node tree."""

import unittest

from google.protobuf import descriptor_pb2, text_format

from pw_protobuf_objc.proto_tree import (
    Cardinality,
    ProtoEnum,
    ProtoExternal,
    ProtoFile,
    ProtoMessage,
    ProtoNode,
    ProtoPackage,
    build_node_tree,
    file_enums,
    file_messages,
)

_OUTER_PROTO = """\
name: "pw/test/outer.proto"
package: "pw.test"
syntax: "proto3"
options { objc_class_prefix: "PWT" }
enum_type {
  name: "Level"
  value { name: "LEVEL_LOW" number: 0 }
  value { name: "LEVEL_HIGH" number: 5 }
}
message_type {
  name: "Outer"
  field {
    name: "inner" number: 1 label: LABEL_OPTIONAL type: TYPE_MESSAGE
    type_name: ".pw.test.Outer.Inner"
  }
  field {
    name: "maybe" number: 2 label: LABEL_OPTIONAL type: TYPE_INT32
    oneof_index: 1 proto3_optional: true
  }
  field {
    name: "first" number: 3 label: LABEL_OPTIONAL type: TYPE_STRING
    oneof_index: 0
  }
  field {
    name: "second" number: 4 label: LABEL_OPTIONAL type: TYPE_BYTES
    oneof_index: 0
  }
  field { name: "plain" number: 5 label: LABEL_OPTIONAL type: TYPE_INT32 }
  field {
    name: "values" number: 6 label: LABEL_REPEATED type: TYPE_MESSAGE
    type_name: ".pw.test.Outer.ValuesEntry"
  }
  field {
    name: "remote" number: 7 label: LABEL_OPTIONAL type: TYPE_MESSAGE
    type_name: ".pw.remote.Thing"
  }
  field {
    name: "samples" number: 8 label: LABEL_REPEATED type: TYPE_INT32
    options { packed: false }
  }
  oneof_decl { name: "choice" }
  oneof_decl { name: "_maybe" }
  nested_type {
    name: "Inner"
    enum_type {
      name: "Kind"
      value { name: "KIND_A" number: 0 }
    }
  }
  nested_type {
    name: "ValuesEntry"
    field { name: "key" number: 1 label: LABEL_OPTIONAL type: TYPE_STRING }
    field { name: "value" number: 2 label: LABEL_OPTIONAL type: TYPE_INT64 }
    options { map_entry: true }
  }
}
"""

_LEGACY_PROTO = """\
name: "pw/test/legacy.proto"
package: "pw.legacy"
message_type {
  name: "Legacy"
  field { name: "count" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }
  field { name: "id" number: 2 label: LABEL_REQUIRED type: TYPE_UINT32 }
  field { name: "items" number: 3 label: LABEL_REPEATED type: TYPE_INT32 }
}
"""


def _parse(descriptor_text: str) -> descriptor_pb2.FileDescriptorProto:
    return text_format.Parse(
        descriptor_text, descriptor_pb2.FileDescriptorProto()
    )


class ProtoFileTest(unittest.TestCase):
    """Tests for the facts collected about a .proto file."""

    def test_from_descriptor(self):
        proto_file = ProtoFile.from_descriptor(_parse(_OUTER_PROTO))
        self.assertEqual(proto_file.name, 'pw/test/outer.proto')
        self.assertEqual(proto_file.package, 'pw.test')
        self.assertEqual(proto_file.objc_class_prefix, 'PWT')
        self.assertTrue(proto_file.is_proto3())
        self.assertFalse(proto_file.is_bundled())

    def test_missing_syntax_is_proto2(self):
        proto_file = ProtoFile.from_descriptor(_parse(_LEGACY_PROTO))
        self.assertEqual(proto_file.syntax, 'proto2')
        self.assertFalse(proto_file.is_proto3())

    def test_bundled(self):
        proto_file = ProtoFile('google/protobuf/any.proto', 'google.protobuf')
        self.assertTrue(proto_file.is_bundled())


class NodeTreeTest(unittest.TestCase):
    """Tests for building the node tree from file descriptors."""

    def setUp(self):
        self._root, self._package = build_node_tree(_parse(_OUTER_PROTO))
        outer = self._package.find('Outer')
        assert isinstance(outer, ProtoMessage)
        self._outer = outer

    def _field(self, name: str):
        for field in self._outer.fields():
            if field.field_name() == name:
                return field
        raise KeyError(name)

    def test_package_root(self):
        self.assertIsInstance(self._package, ProtoPackage)
        self.assertEqual(self._package.proto_path(), 'pw.test')
        self.assertIs(self._root.find('pw.test'), self._package)

    def test_objc_names(self):
        inner = self._package.find('Outer.Inner')
        kind = self._package.find('Outer.Inner.Kind')
        assert inner is not None and kind is not None
        self.assertEqual(self._outer.objc_name(), 'PWTOuter')
        self.assertEqual(inner.objc_name(), 'PWTOuter_Inner')
        self.assertEqual(kind.objc_name(), 'PWTOuter_Inner_Kind')
        self.assertEqual(kind.proto_path(), 'pw.test.Outer.Inner.Kind')

    def test_enum_values(self):
        level = self._package.find('Level')
        assert isinstance(level, ProtoEnum)
        self.assertEqual(level.values(), [('LEVEL_LOW', 0), ('LEVEL_HIGH', 5)])
        self.assertEqual(level.value_number('LEVEL_HIGH'), 5)
        self.assertFalse(level.is_closed())
        with self.assertRaises(ValueError):
            level.value_number('LEVEL_MISSING')

    def test_field_types_resolve(self):
        self.assertIs(
            self._field('inner').type_node(), self._package.find('Outer.Inner')
        )
        self.assertIsNone(self._field('plain').type_node())

    def test_unknown_type_is_external(self):
        remote = self._field('remote').type_node()
        assert remote is not None
        self.assertIsInstance(remote, ProtoExternal)
        self.assertIs(remote.type(), ProtoNode.Type.EXTERNAL)
        self.assertEqual(remote.proto_path(), 'pw.remote.Thing')
        self.assertEqual(remote.objc_name(), 'Thing')
        self.assertIsNone(remote.proto_file())

    def test_dependency_types_resolve(self):
        dependency = _parse(
            """\
name: "pw/remote/thing.proto"
package: "pw.remote"
options { objc_class_prefix: "REM" }
message_type { name: "Thing" }
"""
        )
        _, package = build_node_tree(_parse(_OUTER_PROTO), [dependency])
        outer = package.find('Outer')
        assert isinstance(outer, ProtoMessage)

        remote = outer.fields()[6].type_node()
        assert remote is not None
        self.assertIsInstance(remote, ProtoMessage)
        self.assertEqual(remote.objc_name(), 'REMThing')
        proto_file = remote.proto_file()
        assert proto_file is not None
        self.assertEqual(proto_file.name, 'pw/remote/thing.proto')

    def test_oneofs(self):
        choice, maybe = self._outer.oneofs()
        self.assertFalse(choice.is_synthetic())
        self.assertTrue(maybe.is_synthetic())
        self.assertEqual(self._outer.real_oneofs(), [choice])

        first = self._field('first')
        second = self._field('second')
        self.assertEqual(choice.fields(), [first, second])
        self.assertEqual(choice.position(second), 1)
        self.assertIs(second.real_oneof(), choice)

        self.assertIs(self._field('maybe').oneof(), maybe)
        self.assertIsNone(self._field('maybe').real_oneof())
        with self.assertRaises(ValueError):
            choice.position(self._field('plain'))

    def test_presence(self):
        self.assertTrue(self._field('inner').has_presence())
        self.assertTrue(self._field('maybe').has_presence())
        self.assertTrue(self._field('first').has_presence())
        self.assertFalse(self._field('plain').has_presence())
        self.assertFalse(self._field('values').has_presence())

    def test_maps(self):
        values = self._field('values')
        self.assertTrue(values.is_map())
        self.assertFalse(self._field('samples').is_map())

        entry = values.type_node()
        assert isinstance(entry, ProtoMessage)
        self.assertTrue(entry.is_map_entry())
        self.assertEqual(entry.map_key().field_name(), 'key')
        self.assertEqual(entry.map_value().field_name(), 'value')

    def test_packed(self):
        self.assertFalse(self._field('samples').is_packed())
        self.assertFalse(self._field('values').is_packed())
        self.assertFalse(self._field('plain').is_packed())

    def test_file_messages_skip_map_entries(self):
        proto_file = ProtoFile.from_descriptor(_parse(_OUTER_PROTO))
        self.assertEqual(
            [
                message.name()
                for message in file_messages(self._package, proto_file)
            ],
            ['Outer', 'Inner'],
        )

    def test_file_enums(self):
        proto_file = ProtoFile.from_descriptor(_parse(_OUTER_PROTO))
        self.assertEqual(
            [enum.name() for enum in file_enums(self._package, proto_file)],
            ['Level', 'Kind'],
        )


class ExtensionTest(unittest.TestCase):
    """Tests for extensions declared inside a message."""

    def test_extensions_are_added_as_fields(self):
        _, package = build_node_tree(
            _parse(
                """\
name: "pw/test/extended.proto"
package: "pw.test"
message_type {
  name: "Base"
  field { name: "id" number: 1 label: LABEL_OPTIONAL type: TYPE_UINT32 }
  extension_range { start: 100 end: 200 }
  extension {
    name: "note" number: 100 label: LABEL_OPTIONAL type: TYPE_STRING
    extendee: ".pw.test.Base"
  }
}
"""
            )
        )
        base = package.find('Base')
        assert isinstance(base, ProtoMessage)

        identifier, note = base.fields()
        self.assertFalse(identifier.is_extension())
        self.assertEqual(note.field_name(), 'note')
        self.assertTrue(note.is_extension())


class Proto2FieldTest(unittest.TestCase):
    """Tests for field semantics of proto2 files."""

    def setUp(self):
        _, package = build_node_tree(_parse(_LEGACY_PROTO))
        legacy = package.find('Legacy')
        assert isinstance(legacy, ProtoMessage)
        self._fields = legacy.fields()

    def test_cardinality(self):
        count, identifier, items = self._fields
        self.assertIs(count.cardinality(), Cardinality.SINGULAR)
        self.assertIs(identifier.cardinality(), Cardinality.REQUIRED)
        self.assertTrue(identifier.is_required())
        self.assertIs(items.cardinality(), Cardinality.REPEATED)

    def test_singular_fields_have_presence(self):
        count, identifier, items = self._fields
        self.assertTrue(count.has_presence())
        self.assertTrue(identifier.has_presence())
        self.assertFalse(items.has_presence())

    def test_not_packed_by_default(self):
        self.assertFalse(self._fields[2].is_packed())


if __name__ == '__main__':
    unittest.main()
