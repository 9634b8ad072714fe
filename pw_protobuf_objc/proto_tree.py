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
"""This module defines data structures for protobuf entities."""

import abc
import collections
from dataclasses import dataclass
import enum
import itertools
import logging
from typing import Callable, Iterable, Iterator, TypeVar
from typing import cast

from google.protobuf import descriptor_pb2

T = TypeVar('T')  # pylint: disable=invalid-name

_LOG = logging.getLogger(__name__)

_FieldDescriptorProto = descriptor_pb2.FieldDescriptorProto

# Types provided by the protobuf runtime library. Their generated classes ship
# with the runtime and are never forward declared by generated code.
BUNDLED_PROTO_PACKAGE = 'google.protobuf'


@dataclass(frozen=True)
class ProtoFile:
    """Facts about the .proto file in which a node is defined."""

    name: str
    package: str
    syntax: str = 'proto2'
    objc_class_prefix: str = ''

    def is_proto3(self) -> bool:
        return self.syntax == 'proto3'

    def is_bundled(self) -> bool:
        """True if the file is one of the runtime's well-known types."""
        return self.package == BUNDLED_PROTO_PACKAGE or self.name.startswith(
            'google/protobuf/'
        )

    @classmethod
    def from_descriptor(
        cls, proto_file: descriptor_pb2.FileDescriptorProto
    ) -> 'ProtoFile':
        return cls(
            name=proto_file.name,
            package=proto_file.package,
            # An absent syntax statement means proto2.
            syntax=proto_file.syntax or 'proto2',
            objc_class_prefix=proto_file.options.objc_class_prefix,
        )


class ProtoNode(abc.ABC):
    """A ProtoNode represents an entity in a .proto file.

    Nodes form a tree beginning at a top-level (global) scope, descending into a
    hierarchy of .proto packages and the messages and enums defined within them.
    """

    class Type(enum.Enum):
        """The type of a ProtoNode.

        PACKAGE maps to a .proto package.
        MESSAGE maps to an Objective-C GPBMessage subclass.
        ENUM maps to an Objective-C enum with a descriptor function.
        EXTERNAL represents a node that could not be resolved within any of the
        files given to the generator.
        """

        PACKAGE = 1
        MESSAGE = 2
        ENUM = 3
        EXTERNAL = 4

    def __init__(self, name: str, proto_file: ProtoFile | None = None):
        self._name: str = name
        self._proto_file: ProtoFile | None = proto_file
        self._children: dict[str, 'ProtoNode'] = collections.OrderedDict()
        self._parent: 'ProtoNode | None' = None

    @abc.abstractmethod
    def type(self) -> 'ProtoNode.Type':
        """The type of the node."""

    def children(self) -> list['ProtoNode']:
        return list(self._children.values())

    def name(self) -> str:
        return self._name

    def proto_file(self) -> ProtoFile | None:
        """The file in which this node is defined, if known."""
        return self._proto_file

    def proto_path(self) -> str:
        """Fully-qualified package path of the node."""
        path = '.'.join(self._attr_hierarchy(lambda node: node.name(), None))
        return path.lstrip('.')

    def objc_name(self) -> str:
        """The Objective-C symbol for this node.

        Nested types are joined with underscores and prefixed with their file's
        objc_class_prefix, e.g. `ABCOuter_Inner`.
        """
        if self.type() is ProtoNode.Type.EXTERNAL:
            # Without its file there is no way to tell packages from messages.
            return self._name

        names: list[str] = []
        node: ProtoNode | None = self
        while node is not None and node.type() is not ProtoNode.Type.PACKAGE:
            names.append(node.name())
            node = node.parent()

        prefix = self._proto_file.objc_class_prefix if self._proto_file else ''
        return prefix + '_'.join(reversed(names))

    def is_bundled(self) -> bool:
        if self._proto_file is not None:
            return self._proto_file.is_bundled()
        return self.proto_path().startswith(BUNDLED_PROTO_PACKAGE + '.')

    def add_child(self, child: 'ProtoNode') -> None:
        """Inserts a new node into the tree as a child of this node.

        Args:
          child: The node to insert.

        Raises:
          ValueError: This node does not allow nesting the given type of child.
        """
        if not self._supports_child(child):
            raise ValueError(
                'Invalid child %s for node of type %s'
                % (child.type(), self.type())
            )

        # pylint: disable=protected-access
        if child._parent is not None:
            del child._parent._children[child.name()]

        child._parent = self
        self._children[child.name()] = child
        # pylint: enable=protected-access

    def find(self, path: str) -> 'ProtoNode | None':
        """Finds a node within this node's subtree."""
        node = self

        # pylint: disable=protected-access
        for section in path.split('.'):
            child = node._children.get(section)
            if child is None:
                return None
            node = child
        # pylint: enable=protected-access

        return node

    def parent(self) -> 'ProtoNode | None':
        return self._parent

    def __iter__(self) -> Iterator['ProtoNode']:
        """Iterates depth-first through all nodes in this node's subtree."""
        yield self
        for child_iterator in self._children.values():
            for child in child_iterator:
                yield child

    def _attr_hierarchy(
        self,
        attr_accessor: Callable[['ProtoNode'], T],
        root: 'ProtoNode | None',
    ) -> Iterator[T]:
        """Fetches node attributes at each level of the tree from the root.

        Args:
          attr_accessor: Function which extracts attributes from a ProtoNode.
          root: The node at which to terminate.

        Returns:
          An iterator to a list of the selected attributes from the root to the
          current node.
        """
        hierarchy = []
        node: ProtoNode | None = self
        while node is not None and node != root:
            hierarchy.append(attr_accessor(node))
            node = node.parent()
        return reversed(hierarchy)

    @abc.abstractmethod
    def _supports_child(self, child: 'ProtoNode') -> bool:
        """Returns True if child is a valid child type for the current node."""


class ProtoPackage(ProtoNode):
    """A protobuf package."""

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.PACKAGE

    def _supports_child(self, child: ProtoNode) -> bool:
        return True


class ProtoEnum(ProtoNode):
    """Representation of an enum in a .proto file."""

    def __init__(self, name: str, proto_file: ProtoFile | None = None):
        super().__init__(name, proto_file)
        self._values: list[tuple[str, int]] = []

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.ENUM

    def values(self) -> list[tuple[str, int]]:
        return list(self._values)

    def add_value(self, name: str, value: int) -> None:
        self._values.append((name, value))

    def value_number(self, name: str) -> int:
        for value_name, number in self._values:
            if value_name == name:
                return number
        raise ValueError(f'{self.proto_path()} has no value named {name}')

    def is_closed(self) -> bool:
        """Closed enums reject values not defined in the .proto file."""
        return self._proto_file is None or not self._proto_file.is_proto3()

    def _supports_child(self, child: ProtoNode) -> bool:
        # Enums cannot have nested children.
        return False


class ProtoMessage(ProtoNode):
    """Representation of a message in a .proto file."""

    def __init__(
        self,
        name: str,
        proto_file: ProtoFile | None = None,
        map_entry: bool = False,
    ):
        super().__init__(name, proto_file)
        self._fields: list['ProtoMessageField'] = []
        self._oneofs: list['ProtoOneof'] = []
        self._map_entry: bool = map_entry

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.MESSAGE

    def fields(self) -> list['ProtoMessageField']:
        return list(self._fields)

    def add_field(self, field: 'ProtoMessageField') -> None:
        self._fields.append(field)

    def oneofs(self) -> list['ProtoOneof']:
        return list(self._oneofs)

    def real_oneofs(self) -> list['ProtoOneof']:
        """The oneofs declared in the .proto, excluding proto3 optionals."""
        return [oneof for oneof in self._oneofs if not oneof.is_synthetic()]

    def add_oneof(self, oneof: 'ProtoOneof') -> None:
        self._oneofs.append(oneof)

    def is_map_entry(self) -> bool:
        return self._map_entry

    def map_key(self) -> 'ProtoMessageField':
        assert self._map_entry
        return self._fields[0]

    def map_value(self) -> 'ProtoMessageField':
        assert self._map_entry
        return self._fields[1]

    def _supports_child(self, child: ProtoNode) -> bool:
        return (
            child.type() == self.Type.ENUM or child.type() == self.Type.MESSAGE
        )


class ProtoExternal(ProtoNode):
    """A node from an unknown compilation unit.

    An external node is one whose defining file was not provided to the
    generator. Its type is not known, so it does not have any members or
    additional data. Its purpose within the node graph is to provide namespace
    resolution.
    """

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.EXTERNAL

    def _supports_child(self, child: ProtoNode) -> bool:
        return True


class ProtoOneof:
    """A oneof group within a message."""

    def __init__(self, name: str, index: int, synthetic: bool = False):
        self._name = name
        self._index = index
        self._synthetic = synthetic
        self._fields: list['ProtoMessageField'] = []

    def name(self) -> str:
        return self._name

    def index(self) -> int:
        """The declaration index of the oneof within its message.

        protoc orders synthetic oneofs after all real ones, so for a real oneof
        this is also its index among the message's real oneofs.
        """
        return self._index

    def is_synthetic(self) -> bool:
        """True for the implicit oneof wrapping a proto3 `optional` field."""
        return self._synthetic

    def fields(self) -> list['ProtoMessageField']:
        return list(self._fields)

    def add_field(self, field: 'ProtoMessageField') -> None:
        self._fields.append(field)

    def position(self, field: 'ProtoMessageField') -> int:
        """The declaration-order position of a member within this oneof."""
        for i, member in enumerate(self._fields):
            if member is field:
                return i
        raise ValueError(
            f'{field.field_name()} is not a member of {self._name}'
        )


class FieldKind(enum.Enum):
    """The coarse declared kind of a field."""

    NUMERIC = 1
    BOOL = 2
    STRING = 3
    BYTES = 4
    MESSAGE = 5
    ENUM = 6
    GROUP = 7

    @classmethod
    def from_proto_type(cls, field_type: int) -> 'FieldKind':
        if field_type == _FieldDescriptorProto.TYPE_BOOL:
            return cls.BOOL
        if field_type == _FieldDescriptorProto.TYPE_STRING:
            return cls.STRING
        if field_type == _FieldDescriptorProto.TYPE_BYTES:
            return cls.BYTES
        if field_type == _FieldDescriptorProto.TYPE_MESSAGE:
            return cls.MESSAGE
        if field_type == _FieldDescriptorProto.TYPE_ENUM:
            return cls.ENUM
        if field_type == _FieldDescriptorProto.TYPE_GROUP:
            return cls.GROUP
        return cls.NUMERIC

    def is_message_typed(self) -> bool:
        return self in (FieldKind.MESSAGE, FieldKind.GROUP)


class Cardinality(enum.Enum):
    SINGULAR = 1
    REPEATED = 2
    REQUIRED = 3

    @classmethod
    def from_label(cls, label: int) -> 'Cardinality':
        if label == _FieldDescriptorProto.LABEL_REPEATED:
            return cls.REPEATED
        if label == _FieldDescriptorProto.LABEL_REQUIRED:
            return cls.REQUIRED
        return cls.SINGULAR


# This class is not a node and does not appear in the proto tree.
# Fields belong to proto messages and are processed separately.
class ProtoMessageField:
    """Representation of a field within a protobuf message."""

    def __init__(
        self,
        field_name: str,
        field_number: int,
        field_type: int,
        message: ProtoMessage,
        type_node: ProtoNode | None = None,
        cardinality: Cardinality = Cardinality.SINGULAR,
        oneof: ProtoOneof | None = None,
        default_value: str | None = None,
        is_extension: bool = False,
        packed: bool | None = None,
        deprecated: bool = False,
        proto3_optional: bool = False,
    ):
        self._field_name: str = field_name
        self._number: int = field_number
        self._type: int = field_type
        self._message: ProtoMessage = message
        self._type_node: ProtoNode | None = type_node
        self._cardinality: Cardinality = cardinality
        self._oneof: ProtoOneof | None = oneof
        self._default_value: str | None = default_value
        self._is_extension: bool = is_extension
        self._packed: bool | None = packed
        self._deprecated: bool = deprecated
        self._proto3_optional: bool = proto3_optional

    def field_name(self) -> str:
        """The field's name as written in the .proto file."""
        return self._field_name

    def number(self) -> int:
        return self._number

    def type(self) -> int:
        """The descriptor_pb2.FieldDescriptorProto type of the field."""
        return self._type

    def kind(self) -> FieldKind:
        return FieldKind.from_proto_type(self._type)

    def cardinality(self) -> Cardinality:
        return self._cardinality

    def message(self) -> ProtoMessage:
        """The message to which the field belongs."""
        return self._message

    def type_node(self) -> ProtoNode | None:
        return self._type_node

    def proto_file(self) -> ProtoFile | None:
        return self._message.proto_file()

    def is_repeated(self) -> bool:
        return self._cardinality is Cardinality.REPEATED

    def is_required(self) -> bool:
        return self._cardinality is Cardinality.REQUIRED

    def is_map(self) -> bool:
        return (
            self.is_repeated()
            and isinstance(self._type_node, ProtoMessage)
            and self._type_node.is_map_entry()
        )

    def oneof(self) -> ProtoOneof | None:
        """The oneof containing the field, including synthetic oneofs."""
        return self._oneof

    def real_oneof(self) -> ProtoOneof | None:
        """The oneof containing the field, if it was declared in the .proto."""
        if self._oneof is None or self._oneof.is_synthetic():
            return None
        return self._oneof

    def has_default_value(self) -> bool:
        return self._default_value is not None

    def default_value(self) -> str | None:
        """The explicit default from the .proto, as protoc spells it."""
        return self._default_value

    def is_extension(self) -> bool:
        return self._is_extension

    def is_deprecated(self) -> bool:
        return self._deprecated

    def is_packable(self) -> bool:
        return self.is_repeated() and self.kind() in (
            FieldKind.NUMERIC,
            FieldKind.BOOL,
            FieldKind.ENUM,
        )

    def is_packed(self) -> bool:
        if not self.is_packable():
            return False
        if self._packed is not None:
            return self._packed
        proto_file = self.proto_file()
        return proto_file is not None and proto_file.is_proto3()

    def has_presence(self) -> bool:
        """Whether the field tracks if it was explicitly set."""
        if self.is_repeated():
            return False
        if self.kind().is_message_typed() or self._oneof is not None:
            return True
        proto_file = self.proto_file()
        if proto_file is not None and proto_file.is_proto3():
            return self._proto3_optional
        return True


def _find_or_create_node(
    global_root: ProtoNode, package_root: ProtoNode, path: str
) -> ProtoNode:
    """Searches the proto tree for a node by path, creating it if not found."""

    if path[0] == '.':
        # Fully qualified path.
        root_relative_path = path[1:]
        search_root = global_root
    else:
        root_relative_path = path
        search_root = package_root

    node = search_root.find(root_relative_path)
    if node is None:
        # Create nodes for field types that don't exist within this
        # compilation context, such as those from files that were not
        # provided in the request.
        _LOG.debug('Type %s is not defined in any known file', path)
        node = search_root
        for part in root_relative_path.split('.'):
            child = node.find(part)
            if not child:
                child = ProtoExternal(part)
                node.add_child(child)
            node = child

    return node


def _add_enum_fields(enum_node: ProtoNode, proto_enum) -> None:
    """Adds values from a protobuf enum descriptor to an enum node."""
    assert enum_node.type() == ProtoNode.Type.ENUM
    enum_node = cast(ProtoEnum, enum_node)

    for value in proto_enum.value:
        enum_node.add_value(value.name, value.number)


def _add_message_fields(
    global_root: ProtoNode,
    package_root: ProtoNode,
    message: ProtoNode,
    proto_message,
) -> None:
    """Adds fields from a protobuf message descriptor to a message node."""
    assert message.type() == ProtoNode.Type.MESSAGE
    message = cast(ProtoMessage, message)

    oneofs: list[ProtoOneof] = []
    for index, oneof_decl in enumerate(proto_message.oneof_decl):
        # A oneof is synthetic when its only member is a proto3 optional field.
        synthetic = any(
            field.proto3_optional
            for field in proto_message.field
            if field.HasField('oneof_index') and field.oneof_index == index
        )
        oneof = ProtoOneof(oneof_decl.name, index, synthetic)
        oneofs.append(oneof)
        message.add_oneof(oneof)

    type_node: ProtoNode | None

    # Extensions declared in the message's scope are kept so that they are
    # rejected when the message is generated.
    for field in itertools.chain(proto_message.field, proto_message.extension):
        if field.type_name:
            # The "type_name" member contains the global .proto path of the
            # field's type object, for example ".pw.protobuf.test.KeyValuePair".
            # Try to find the node for this object within the current context.
            type_node = _find_or_create_node(
                global_root, package_root, field.type_name
            )
        else:
            type_node = None

        oneof = (
            oneofs[field.oneof_index] if field.HasField('oneof_index') else None
        )

        message_field = ProtoMessageField(
            field.name,
            field.number,
            field.type,
            message,
            type_node=type_node,
            cardinality=Cardinality.from_label(field.label),
            oneof=oneof,
            default_value=(
                field.default_value if field.HasField('default_value') else None
            ),
            is_extension=field.HasField('extendee'),
            packed=(
                field.options.packed
                if field.options.HasField('packed')
                else None
            ),
            deprecated=field.options.deprecated,
            proto3_optional=field.proto3_optional,
        )
        message.add_field(message_field)
        if oneof is not None:
            oneof.add_field(message_field)


def _populate_fields(
    proto_file, global_root: ProtoNode, package_root: ProtoNode
) -> None:
    """Traverses a proto file, adding all message and enum fields to a tree."""

    def populate_message(node, message):
        """Recursively populates nested messages and enums."""
        _add_message_fields(global_root, package_root, node, message)

        for proto_enum in message.enum_type:
            _add_enum_fields(node.find(proto_enum.name), proto_enum)
        for msg in message.nested_type:
            populate_message(node.find(msg.name), msg)

    # Iterate through the proto file, populating top-level objects.
    for proto_enum in proto_file.enum_type:
        enum_node = package_root.find(proto_enum.name)
        assert enum_node is not None
        _add_enum_fields(enum_node, proto_enum)

    for message in proto_file.message_type:
        populate_message(package_root.find(message.name), message)


def _build_hierarchy(proto_file, global_root: ProtoNode) -> ProtoNode:
    """Adds the nodes of a proto file to the tree, returning its package."""

    file_info = ProtoFile.from_descriptor(proto_file)

    package_root = global_root
    if proto_file.package:
        for part in proto_file.package.split('.'):
            package = package_root.find(part)
            if package is None:
                package = ProtoPackage(part)
                package_root.add_child(package)
            package_root = package

    def build_message_subtree(proto_message):
        node = ProtoMessage(
            proto_message.name, file_info, proto_message.options.map_entry
        )
        for proto_enum in proto_message.enum_type:
            node.add_child(ProtoEnum(proto_enum.name, file_info))
        for submessage in proto_message.nested_type:
            node.add_child(build_message_subtree(submessage))

        return node

    for proto_enum in proto_file.enum_type:
        package_root.add_child(ProtoEnum(proto_enum.name, file_info))

    for message in proto_file.message_type:
        package_root.add_child(build_message_subtree(message))

    return package_root


def build_node_tree(
    file_descriptor_proto,
    dependencies: Iterable = (),
) -> tuple[ProtoNode, ProtoNode]:
    """Constructs a tree of proto nodes from a file descriptor.

    Files in `dependencies` are added to the same tree so that types imported
    from them resolve to real nodes, carrying their own file's facts.

    Returns the root node of the entire proto package tree and the node
    representing the file's package.
    """
    global_root = ProtoPackage('')

    # Two passes are made through the files. The first builds the tree of all
    # message/enum nodes, then the second creates the fields in each. This is
    # done as non-primitive fields need their type nodes, which requires the
    # entire tree to have been parsed into memory.
    packages = []
    for proto_file in [*dependencies, file_descriptor_proto]:
        packages.append((proto_file, _build_hierarchy(proto_file, global_root)))

    for proto_file, package_root in packages:
        _populate_fields(proto_file, global_root, package_root)

    return global_root, packages[-1][1]


def file_messages(
    package_root: ProtoNode, proto_file: ProtoFile
) -> list[ProtoMessage]:
    """Lists the messages defined in a file, depth-first in declaration order.

    Map entry messages are synthesized by protoc and are skipped.
    """
    messages = []
    for node in package_root:
        if (
            node.type() is ProtoNode.Type.MESSAGE
            and node.proto_file() == proto_file
            and not cast(ProtoMessage, node).is_map_entry()
        ):
            messages.append(cast(ProtoMessage, node))
    return messages


def file_enums(
    package_root: ProtoNode, proto_file: ProtoFile
) -> list[ProtoEnum]:
    """Lists the enums defined in a file, depth-first in declaration order."""
    return [
        cast(ProtoEnum, node)
        for node in package_root
        if node.type() is ProtoNode.Type.ENUM
        and node.proto_file() == proto_file
    ]
