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
"""Per-field Objective-C code generation.

A FieldGenerator decides how a single message field is represented in the
generated Objective-C: its storage slot, its properties, how the runtime tracks
whether it is set, and the field's entry in the message's descriptor table.

Generators are built in two phases. Construction derives an immutable set of
variables from the field's descriptor. Allocation, run once for the whole
message by the FieldGeneratorMap, then records where the field's presence is
tracked. Emission reads both and never modifies either.
"""

import abc
from dataclasses import dataclass
import enum
import types
from typing import Mapping

from google.protobuf import descriptor_pb2

from pw_protobuf_objc import objc_names
from pw_protobuf_objc.output_file import OutputFile
from pw_protobuf_objc.proto_tree import FieldKind, ProtoEnum, ProtoMessageField
from pw_protobuf_objc.proto_tree import ProtoNode

_FieldDescriptorProto = descriptor_pb2.FieldDescriptorProto

# The has_index of a field whose presence is not tracked in a has bit.
NO_HAS_BIT = 'GPBNoHasBit'


class CodegenError(Exception):
    def __init__(
        self,
        error_message: str,
        node: ProtoNode | None = None,
        field: ProtoMessageField | None = None,
    ):
        super().__init__(f'pw_protobuf_objc codegen error: {error_message}')
        self.error_message = error_message
        self.node = node
        self.field = field

    def formatted_message(self) -> str:
        lines = [f'pw_protobuf_objc codegen error: {self.error_message}']

        if self.node is not None:
            lines.append(f'    at {self.node.proto_path()}')

        if self.field is not None:
            lines.append(f'    in field {self.field.field_name()}')

        return '\n'.join(lines)


class PreconditionError(CodegenError):
    """A generator was used out of order or with a field it does not own."""


class DispatchError(CodegenError):
    """No generator handles the field's combination of type and label."""


class FieldFlag(enum.Flag):
    """The GPBFieldFlags bitmask recorded in a field's description."""

    NONE = 0
    REQUIRED = enum.auto()
    REPEATED = enum.auto()
    PACKED = enum.auto()
    OPTIONAL = enum.auto()
    HAS_DEFAULT_VALUE = enum.auto()
    CLEAR_HAS_IVAR_ON_ZERO = enum.auto()
    TEXT_FORMAT_NAME_CUSTOM = enum.auto()
    HAS_ENUM_DESCRIPTOR = enum.auto()
    CLOSED_ENUM = enum.auto()
    MAP_KEY_INT32 = enum.auto()
    MAP_KEY_UINT32 = enum.auto()
    MAP_KEY_SINT32 = enum.auto()
    MAP_KEY_FIXED32 = enum.auto()
    MAP_KEY_SFIXED32 = enum.auto()
    MAP_KEY_INT64 = enum.auto()
    MAP_KEY_UINT64 = enum.auto()
    MAP_KEY_SINT64 = enum.auto()
    MAP_KEY_FIXED64 = enum.auto()
    MAP_KEY_SFIXED64 = enum.auto()
    MAP_KEY_BOOL = enum.auto()
    MAP_KEY_STRING = enum.auto()

    @classmethod
    def map_key(cls, key: ProtoMessageField) -> 'FieldFlag':
        return cls['MAP_KEY_' + objc_names.capitalized_type(key).upper()]

    def as_objc(self) -> str:
        """Spells the flags as a GPBFieldFlags expression."""
        names = [
            _FLAG_SPELLINGS[flag]
            for flag in FieldFlag
            if flag.value and flag in self
        ]
        if not names:
            return 'GPBFieldNone'
        if len(names) == 1:
            return names[0]
        return '(GPBFieldFlags)({})'.format(' | '.join(names))


def _flag_spelling(flag: FieldFlag) -> str:
    assert flag.name is not None
    if flag.name.startswith('MAP_KEY_'):
        suffix = flag.name[len('MAP_KEY_') :]
        return 'GPBFieldMapKey' + objc_names.underscores_to_camel_case(
            suffix, lower_first=False
        ).replace('Uint', 'UInt').replace('Sint', 'SInt').replace(
            'Sfixed', 'SFixed'
        )
    return 'GPBField' + objc_names.underscores_to_camel_case(
        flag.name, lower_first=False
    )


_FLAG_SPELLINGS = {
    flag: _flag_spelling(flag) for flag in FieldFlag if flag.value
}


class FieldPolicy(enum.Enum):
    """How a field is represented in generated code.

    Every field maps to exactly one policy; see classify_field().
    """

    PRIMITIVE = 1
    ENUM = 2
    PRIMITIVE_OBJ = 3
    MESSAGE = 4
    REPEATED_PRIMITIVE = 5
    REPEATED_ENUM = 6
    REPEATED_MESSAGE = 7
    MAP = 8


class Presence(enum.Enum):
    """How the runtime tells whether a field is set."""

    # A dedicated bit in the message's has bits.
    HAS_BIT = 1
    # The object storage is nil until set.
    NULL_CHECK = 2
    # The container is empty until an element is added.
    COUNT = 3
    # The oneof's case records which member is set.
    ONEOF_CASE = 4


def classify_field(field: ProtoMessageField) -> FieldPolicy:
    """Selects the generation policy for a field.

    Raises:
      DispatchError: No policy handles the field.
    """
    if field.is_extension():
        raise DispatchError(
            'extension fields are not generated as message members',
            field.message(),
            field,
        )

    kind = field.kind()
    if field.is_repeated():
        if field.is_map():
            return FieldPolicy.MAP
        if kind.is_message_typed():
            return FieldPolicy.REPEATED_MESSAGE
        if kind is FieldKind.ENUM:
            return FieldPolicy.REPEATED_ENUM
        return FieldPolicy.REPEATED_PRIMITIVE

    if kind.is_message_typed():
        return FieldPolicy.MESSAGE
    if kind is FieldKind.ENUM:
        return FieldPolicy.ENUM
    if kind in (FieldKind.STRING, FieldKind.BYTES):
        return FieldPolicy.PRIMITIVE_OBJ
    return FieldPolicy.PRIMITIVE


def field_presence(policy: FieldPolicy, in_oneof: bool) -> Presence:
    """Selects the presence mechanism for a policy.

    Membership in a oneof overrides the policy's own mechanism for all singular
    fields.
    """
    match policy:
        case FieldPolicy.PRIMITIVE | FieldPolicy.ENUM:
            return Presence.ONEOF_CASE if in_oneof else Presence.HAS_BIT
        case FieldPolicy.PRIMITIVE_OBJ | FieldPolicy.MESSAGE:
            return Presence.ONEOF_CASE if in_oneof else Presence.NULL_CHECK
        case (
            FieldPolicy.REPEATED_PRIMITIVE
            | FieldPolicy.REPEATED_ENUM
            | FieldPolicy.REPEATED_MESSAGE
            | FieldPolicy.MAP
        ):
            return Presence.COUNT

    raise ValueError(f'Unknown field policy {policy}')


@dataclass(frozen=True)
class HasBitAssignment:
    """The standard has bit of a field, or None if it has none."""

    index: int | None

    def has_index(self) -> str:
        return NO_HAS_BIT if self.index is None else str(self.index)


@dataclass(frozen=True)
class ExtraHasBitsAssignment:
    """A field's block of additional bits, after all standard has bits."""

    base: int
    count: int


@dataclass(frozen=True)
class OneofAssignment:
    """Where a oneof member's presence lives.

    Attributes:
      index_base: First slot after the message's has bits.
      case_index: index_base plus the member's position within its oneof.
      storage_slot: The slot holding the oneof's case, index_base plus the
          oneof's index.
    """

    index_base: int
    case_index: int
    storage_slot: int


class _VariableLookup:
    """Adapts a generator's variables to str.format_map()."""

    def __init__(self, generator: 'FieldGenerator'):
        self._generator = generator

    def __getitem__(self, key: str) -> str:
        return self._generator.variable(key)


def enum_default_value(field: ProtoMessageField, enum_node: ProtoNode) -> str:
    """Spells the default of an enum-valued field as an enum value name."""
    if not isinstance(enum_node, ProtoEnum) or not enum_node.values():
        raise CodegenError(
            f'values of enum {enum_node.proto_path()} are unknown',
            field.message(),
            field,
        )

    value_name = field.default_value()
    if value_name is None:
        value_name = enum_node.values()[0][0]
    return objc_names.enum_value_name(enum_node, value_name)


class FieldGenerator(abc.ABC):
    """Base class for generating the code of a single message field."""

    def __init__(self, field: ProtoMessageField):
        self._field: ProtoMessageField = field
        self._policy: FieldPolicy = classify_field(field)
        self._flags: FieldFlag = self._field_flags()

        variables = self._common_variables()
        self._set_variant_variables(variables)
        self.finish_initialization(variables)
        self._variables: Mapping[str, str] = types.MappingProxyType(variables)

        # Presence records, each written exactly once during allocation.
        self._has_bit: HasBitAssignment | None = None
        self._extra_has_bits: ExtraHasBitsAssignment | None = None
        self._oneof: OneofAssignment | None = None

    def _common_variables(self) -> dict[str, str]:
        field = self._field
        name = objc_names.field_name(field)
        capitalized_name = objc_names.field_name_capitalized(field)
        classname = objc_names.class_name(field)

        return {
            'name': name,
            'raw_field_name': objc_names.raw_field_name(field),
            'capitalized_name': capitalized_name,
            'classname': classname,
            'deprecated_attribute': objc_names.deprecated_attribute(field),
            'field_number_name': f'{classname}_FieldNumber_{capitalized_name}',
            'field_number': str(field.number()),
            'field_type': objc_names.capitalized_type(field),
            'fieldflags': self._flags.as_objc(),
            'default': objc_names.default_value(field),
            'default_name': objc_names.generic_value_name(field),
            'dataTypeSpecific_name': 'clazz',
            'dataTypeSpecific_value': 'Nil',
            'storage_type': objc_names.primitive_type_name(field),
            'property_type': objc_names.primitive_type_name(field),
            'storage_offset_value': (
                f'(uint32_t)offsetof({classname}__storage_, {name})'
            ),
            'storage_offset_comment': '',
            'storage_attribute': (
                ' NS_RETURNS_NOT_RETAINED'
                if objc_names.is_retained_name(name)
                else ''
            ),
        }

    def _field_flags(self) -> FieldFlag:
        field = self._field
        flags = FieldFlag.NONE

        if field.is_repeated():
            flags |= FieldFlag.REPEATED
        elif field.is_required():
            flags |= FieldFlag.REQUIRED
        else:
            flags |= FieldFlag.OPTIONAL

        if field.is_packed():
            flags |= FieldFlag.PACKED
        if field.has_default_value():
            flags |= FieldFlag.HAS_DEFAULT_VALUE
        if objc_names.needs_custom_text_format_name(field):
            flags |= FieldFlag.TEXT_FORMAT_NAME_CUSTOM

        type_node = field.type_node()
        if field.kind() is FieldKind.ENUM:
            flags |= FieldFlag.HAS_ENUM_DESCRIPTOR
            if isinstance(type_node, ProtoEnum) and type_node.is_closed():
                flags |= FieldFlag.CLOSED_ENUM

        # Without presence, setting the zero value is the same as clearing.
        if not field.is_repeated() and not field.has_presence():
            flags |= FieldFlag.CLEAR_HAS_IVAR_ON_ZERO

        return flags

    def _set_variant_variables(self, variables: dict[str, str]) -> None:
        """Adds or overrides the variables of a specific kind of field."""

    def finish_initialization(self, variables: dict[str, str]) -> None:
        """Last chance to adjust the variables before they are frozen."""

    def field(self) -> ProtoMessageField:
        return self._field

    def policy(self) -> FieldPolicy:
        return self._policy

    def presence(self) -> Presence:
        return field_presence(
            self._policy, self._field.real_oneof() is not None
        )

    def variable(self, key: str) -> str:
        """Looks up a generation variable.

        Raises:
          PreconditionError: The variable does not exist, or depends on an
              allocation that has not run yet.
        """
        value = self._variables.get(key)
        if value is not None:
            return value
        return self._allocated_variable(key)

    def _allocated_variable(self, key: str) -> str:
        if key == 'has_index':
            if self._field.real_oneof() is not None:
                if self._oneof is None:
                    raise PreconditionError(
                        'oneof index base read before it was set',
                        self._field.message(),
                        self._field,
                    )
                # Negative indices refer to a oneof's case slot.
                return f'-{self._oneof.storage_slot}'
            return self.has_bit().has_index()

        if key == 'oneof_index_base':
            oneof = self.oneof_assignment()
            if oneof is None:
                raise PreconditionError(
                    'field is not a member of a oneof',
                    self._field.message(),
                    self._field,
                )
            return str(oneof.index_base)

        if key in ('storage_offset_value', 'storage_offset_comment'):
            extra = self.extra_has_bits()
            if key == 'storage_offset_value':
                return str(extra.base)
            return '  // Stored in _has_storage_ to save space.'

        raise PreconditionError(
            f'unknown variable "{key}"', self._field.message(), self._field
        )

    def _format(self, template: str) -> str:
        return template.format_map(_VariableLookup(self))

    def generated_objc_name(self) -> str:
        return self.variable('name')

    def raw_field_name(self) -> str:
        return self.variable('raw_field_name')

    def needs_textformat_name_support(self) -> bool:
        return FieldFlag.TEXT_FORMAT_NAME_CUSTOM in self._flags

    def text_format_name_entry(self) -> tuple[int, str] | None:
        """The (number, raw name) pair for the runtime's text format table."""
        if not self.needs_textformat_name_support():
            return None
        return self._field.number(), self.raw_field_name()

    def wants_has_property(self) -> bool:
        """Whether the field exposes a has<Name> property."""
        return (
            self._field.has_presence() and self._field.real_oneof() is None
        )

    def has_non_zero_default(self) -> bool:
        """True if the field must be explicitly initialized to its default."""
        field = self._field
        if field.is_repeated() or field.real_oneof() is not None:
            return False
        if field.kind().is_message_typed():
            return False

        if field.kind() is FieldKind.ENUM:
            type_node = field.type_node()
            if not isinstance(type_node, ProtoEnum) or not type_node.values():
                # The value can't be checked, so initialize it explicitly.
                return True
            # Without a declared default, closed enums start at their first
            # value, which need not be 0.
            value_name = field.default_value()
            if value_name is None:
                return type_node.values()[0][1] != 0
            return type_node.value_number(value_name) != 0

        if not field.has_default_value():
            return False

        value = field.default_value()
        assert value is not None
        match field.kind():
            case FieldKind.NUMERIC:
                if field.type() in (
                    _FieldDescriptorProto.TYPE_FLOAT,
                    _FieldDescriptorProto.TYPE_DOUBLE,
                ):
                    return float(value) != 0.0
                return int(value) != 0
            case FieldKind.BOOL:
                return value == 'true'
            case FieldKind.STRING | FieldKind.BYTES:
                return bool(value)

        return False

    #
    # Has bits
    #

    def runtime_uses_has_bit(self) -> bool:
        return self.presence() is Presence.HAS_BIT

    def set_runtime_has_bit(self, has_index: int) -> None:
        if not self.runtime_uses_has_bit():
            raise PreconditionError(
                f'a has bit was assigned to a {self.presence().name} field',
                self._field.message(),
                self._field,
            )
        self._assign_has_bit(HasBitAssignment(has_index))

    def set_no_has_bit(self) -> None:
        if self.runtime_uses_has_bit():
            raise PreconditionError(
                'field requires a has bit',
                self._field.message(),
                self._field,
            )
        self._assign_has_bit(HasBitAssignment(None))

    def _assign_has_bit(self, assignment: HasBitAssignment) -> None:
        if self._has_bit is not None:
            raise PreconditionError(
                'has bit assigned twice', self._field.message(), self._field
            )
        self._has_bit = assignment

    def has_bit(self) -> HasBitAssignment:
        if self._has_bit is None:
            raise PreconditionError(
                'has bit read before has bits were calculated',
                self._field.message(),
                self._field,
            )
        return self._has_bit

    def extra_runtime_has_bits_needed(self) -> int:
        return 0

    def set_extra_runtime_has_bits_base(self, index_base: int) -> None:
        needed = self.extra_runtime_has_bits_needed()
        if needed == 0:
            raise PreconditionError(
                'extra has bits assigned to a field that needs none',
                self._field.message(),
                self._field,
            )
        if self._extra_has_bits is not None:
            raise PreconditionError(
                'extra has bits assigned twice',
                self._field.message(),
                self._field,
            )
        self._extra_has_bits = ExtraHasBitsAssignment(index_base, needed)

    def extra_has_bits(self) -> ExtraHasBitsAssignment:
        if self._extra_has_bits is None:
            raise PreconditionError(
                'extra has bits read before has bits were calculated',
                self._field.message(),
                self._field,
            )
        return self._extra_has_bits

    def set_oneof_index_base(self, index_base: int) -> None:
        oneof = self._field.real_oneof()
        if oneof is None:
            return

        if self._oneof is not None:
            raise PreconditionError(
                'oneof index base set twice',
                self._field.message(),
                self._field,
            )
        self._oneof = OneofAssignment(
            index_base=index_base,
            case_index=index_base + oneof.position(self._field),
            storage_slot=index_base + oneof.index(),
        )

    def oneof_assignment(self) -> OneofAssignment | None:
        """The oneof slots of the field, or None if it is not in a oneof."""
        if self._field.real_oneof() is None:
            return None
        if self._oneof is None:
            raise PreconditionError(
                'oneof index read before the base was set',
                self._field.message(),
                self._field,
            )
        return self._oneof

    def check_allocation_complete(self) -> None:
        """Raises PreconditionError unless every allocation has run."""
        self.has_bit()
        if self.extra_runtime_has_bits_needed():
            self.extra_has_bits()
        self.oneof_assignment()

    #
    # Forward declarations
    #

    def forward_declarations(
        self, include_external_types: bool
    ) -> set[str]:
        """The types the field's declaration mentions before they're defined.

        Types from other files are only included if include_external_types is
        set.
        """
        del include_external_types
        return set()

    def objc_class_definitions(self) -> set[str]:
        """The classes the field's implementation needs to reference."""
        return set()

    def determine_forward_declarations(
        self, fwd_decls: set[str], include_external_types: bool
    ) -> None:
        fwd_decls.update(self.forward_declarations(include_external_types))

    def determine_objc_class_definitions(self, fwd_decls: set[str]) -> None:
        fwd_decls.update(self.objc_class_definitions())

    #
    # Emission
    #

    @abc.abstractmethod
    def generate_field_storage_declaration(self, output: OutputFile) -> None:
        """Declares the field's member of the message's storage struct."""

    @abc.abstractmethod
    def generate_property_declaration(self, output: OutputFile) -> None:
        """Declares the field's properties in the message's @interface."""

    @abc.abstractmethod
    def generate_property_implementation(self, output: OutputFile) -> None:
        """Implements the field's properties in the @implementation."""

    def generate_c_function_declarations(self, output: OutputFile) -> None:
        """Declares free functions for the field, if it has any."""

    def generate_c_function_implementations(self, output: OutputFile) -> None:
        """Defines free functions for the field, if it has any."""

    def generate_field_description(
        self, output: OutputFile, include_default: bool
    ) -> None:
        """Writes the field's entry of the message's descriptor table."""
        if include_default:
            output.write_lines(
                self._format(
                    '{{\n'
                    '  .defaultValue.{default_name} = {default},\n'
                    '  .core.name = "{name}",\n'
                    '  .core.dataTypeSpecific.{dataTypeSpecific_name} = '
                    '{dataTypeSpecific_value},\n'
                    '  .core.number = {field_number_name},\n'
                    '  .core.hasIndex = {has_index},\n'
                    '  .core.offset = {storage_offset_value},'
                    '{storage_offset_comment}\n'
                    '  .core.flags = {fieldflags},\n'
                    '  .core.dataType = GPBDataType{field_type},\n'
                    '}},'
                )
            )
        else:
            output.write_lines(
                self._format(
                    '{{\n'
                    '  .name = "{name}",\n'
                    '  .dataTypeSpecific.{dataTypeSpecific_name} = '
                    '{dataTypeSpecific_value},\n'
                    '  .number = {field_number_name},\n'
                    '  .hasIndex = {has_index},\n'
                    '  .offset = {storage_offset_value},'
                    '{storage_offset_comment}\n'
                    '  .flags = {fieldflags},\n'
                    '  .dataType = GPBDataType{field_type},\n'
                    '}},'
                )
            )

    def generate_field_number_constant(self, output: OutputFile) -> None:
        output.write_line(self._format('{field_number_name} = {field_number},'))


class SingleFieldGenerator(FieldGenerator):
    """A field stored as a plain value in the message's storage struct."""

    def generate_field_storage_declaration(self, output: OutputFile) -> None:
        output.write_line(self._format('{storage_type} {name};'))

    def generate_property_declaration(self, output: OutputFile) -> None:
        output.write_line(
            self._format(
                '@property(nonatomic, readwrite) {property_type} '
                '{name}{deprecated_attribute};'
            )
        )
        if self.wants_has_property():
            output.write_line(
                self._format(
                    '@property(nonatomic, readwrite) BOOL '
                    'has{capitalized_name}{deprecated_attribute};'
                )
            )
        output.write_line()

    def generate_property_implementation(self, output: OutputFile) -> None:
        if self.wants_has_property():
            output.write_line(
                self._format('@dynamic has{capitalized_name}, {name};')
            )
        else:
            output.write_line(self._format('@dynamic {name};'))


class ObjCObjFieldGenerator(SingleFieldGenerator):
    """A field stored as an Objective-C object.

    The object's pointer is nil until the field is set. Setting the property
    either copies the value (immutable string and data values) or retains it
    (messages, which are owned by the message that autocreates them), so no
    two messages ever believe they exclusively own the same mutable storage.
    """

    def finish_initialization(self, variables: dict[str, str]) -> None:
        super().finish_initialization(variables)
        variables.setdefault('property_storage_attribute', 'strong')

    def generate_field_storage_declaration(self, output: OutputFile) -> None:
        output.write_line(self._format('{storage_type} *{name};'))

    def generate_property_declaration(self, output: OutputFile) -> None:
        output.write_line(
            self._format(
                '@property(nonatomic, readwrite, {property_storage_attribute}, '
                'null_resettable) {property_type} *{name}{storage_attribute}'
                '{deprecated_attribute};'
            )
        )
        if self.wants_has_property():
            output.write_line(
                self._format('/** Test to see if @c {name} has been set. */')
            )
            output.write_line(
                self._format(
                    '@property(nonatomic, readwrite) BOOL '
                    'has{capitalized_name}{deprecated_attribute};'
                )
            )
        if objc_names.is_init_name(self.generated_objc_name()):
            # Getters named init* would otherwise be treated as initializers
            # under ARC.
            output.write_line(
                self._format(
                    '- ({property_type} *){name} '
                    'GPB_METHOD_FAMILY_NONE{deprecated_attribute};'
                )
            )
        output.write_line()


class RepeatedFieldGenerator(ObjCObjFieldGenerator):
    """A field stored in a container which is created on first access."""

    def finish_initialization(self, variables: dict[str, str]) -> None:
        super().finish_initialization(variables)
        variables.setdefault(
            'array_property_type', variables['array_storage_type']
        )
        variables.setdefault('array_comment', '')

    def generate_field_storage_declaration(self, output: OutputFile) -> None:
        output.write_line(self._format('{array_storage_type} *{name};'))

    def emit_array_comment(self, output: OutputFile) -> None:
        """Describes the container's elements when its type doesn't."""
        comment = self.variable('array_comment')
        if comment:
            output.write_line(comment)

    def generate_property_declaration(self, output: OutputFile) -> None:
        # Repeated fields don't have has* properties. Their *_Count property
        # allows checking for elements without creating the container.
        self.emit_array_comment(output)
        output.write_line(
            self._format(
                '@property(nonatomic, readwrite, strong, null_resettable) '
                '{array_property_type} *{name}{storage_attribute}'
                '{deprecated_attribute};'
            )
        )
        output.write_line(
            self._format(
                '/** The number of items in @c {name} without causing the '
                'container to be created. */'
            )
        )
        output.write_line(
            self._format(
                '@property(nonatomic, readonly) NSUInteger '
                '{name}_Count{deprecated_attribute};'
            )
        )
        if objc_names.is_init_name(self.generated_objc_name()):
            output.write_line(
                self._format(
                    '- ({array_property_type} *){name} '
                    'GPB_METHOD_FAMILY_NONE{deprecated_attribute};'
                )
            )
        output.write_line()

    def generate_property_implementation(self, output: OutputFile) -> None:
        output.write_line(self._format('@dynamic {name}, {name}_Count;'))
