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
"""Field generators for each kind of message field."""

from typing import cast

from pw_protobuf_objc import objc_names
from pw_protobuf_objc.field_generator import (
    CodegenError,
    DispatchError,
    FieldFlag,
    FieldGenerator,
    FieldPolicy,
    ObjCObjFieldGenerator,
    RepeatedFieldGenerator,
    SingleFieldGenerator,
    classify_field,
    enum_default_value,
)
from pw_protobuf_objc.output_file import OutputFile
from pw_protobuf_objc.proto_tree import (
    FieldKind,
    ProtoEnum,
    ProtoMessage,
    ProtoMessageField,
    ProtoNode,
)


def _type_node(field: ProtoMessageField) -> ProtoNode:
    type_node = field.type_node()
    if type_node is None:
        raise CodegenError(
            f'type of field {field.field_name()} is unknown',
            field.message(),
            field,
        )
    return type_node


def _is_local_type(field: ProtoMessageField, type_node: ProtoNode) -> bool:
    return (
        type_node.proto_file() is not None
        and type_node.proto_file() == field.proto_file()
    )


def _message_forward_declarations(
    field: ProtoMessageField, include_external_types: bool
) -> set[str]:
    type_node = _type_node(field)
    if _is_local_type(field, type_node) or (
        include_external_types and not type_node.is_bundled()
    ):
        return {f'@class {type_node.objc_name()};'}
    return set()


def _enum_forward_declarations(
    field: ProtoMessageField, include_external_types: bool
) -> set[str]:
    type_node = _type_node(field)
    if (
        include_external_types
        and not _is_local_type(field, type_node)
        and not type_node.is_bundled()
    ):
        return {f'GPB_ENUM_FWD_DECLARE({type_node.objc_name()});'}
    return set()


def _set_enum_variables(
    field: ProtoMessageField, variables: dict[str, str]
) -> None:
    enum_node = _type_node(field)
    enum_name = enum_node.objc_name()
    variables['enum_name'] = enum_name
    variables['storage_type'] = enum_name
    variables['property_type'] = enum_name
    variables['dataTypeSpecific_name'] = 'enumDescFunc'
    variables['dataTypeSpecific_value'] = f'{enum_name}_EnumDescriptor'
    variables['default'] = enum_default_value(field, enum_node)


class PrimitiveFieldGenerator(SingleFieldGenerator):
    """Numeric and bool fields.

    Singular bools are stored in the message's has bits rather than in a
    member of their own.
    """

    def _is_bool(self) -> bool:
        return self._field.kind() is FieldKind.BOOL

    def _set_variant_variables(self, variables: dict[str, str]) -> None:
        if self._is_bool():
            # Resolved from the extra has bits once they are allocated.
            del variables['storage_offset_value']
            del variables['storage_offset_comment']

    def extra_runtime_has_bits_needed(self) -> int:
        return 1 if self._is_bool() else 0

    def generate_field_storage_declaration(self, output: OutputFile) -> None:
        if self._is_bool():
            return
        super().generate_field_storage_declaration(output)


class EnumFieldGenerator(SingleFieldGenerator):
    """Singular enum fields."""

    def _set_variant_variables(self, variables: dict[str, str]) -> None:
        _set_enum_variables(self._field, variables)
        variables['owning_message_class'] = variables['classname']

    def _is_open_enum(self) -> bool:
        return not cast(ProtoEnum, _type_node(self._field)).is_closed()

    def forward_declarations(self, include_external_types: bool) -> set[str]:
        return _enum_forward_declarations(self._field, include_external_types)

    def generate_c_function_declarations(self, output: OutputFile) -> None:
        if not self._is_open_enum():
            return

        output.write_lines(
            self._format(
                '/**\n'
                ' * Fetches the raw value of a @c {owning_message_class}\'s '
                '@c {name} property, even\n'
                ' * if the value was not defined by the enum at the time the '
                'code was generated.\n'
                ' **/\n'
                'int32_t {owning_message_class}_{capitalized_name}_RawValue'
                '({owning_message_class} *message){deprecated_attribute};\n'
                '/**\n'
                ' * Sets the raw value of an @c {owning_message_class}\'s '
                '@c {name} property, allowing\n'
                ' * it to be set to a value that was not defined by the enum '
                'at the time the code\n'
                ' * was generated.\n'
                ' **/\n'
                'void Set{owning_message_class}_{capitalized_name}_RawValue'
                '({owning_message_class} *message, int32_t value)'
                '{deprecated_attribute};'
            )
        )
        output.write_line()

    def generate_c_function_implementations(self, output: OutputFile) -> None:
        if not self._is_open_enum():
            return

        output.write_lines(
            self._format(
                'int32_t {owning_message_class}_{capitalized_name}_RawValue'
                '({owning_message_class} *message) {{\n'
                '  GPBDescriptor *descriptor = '
                '[{owning_message_class} descriptor];\n'
                '  GPBFieldDescriptor *field = [descriptor fieldWithNumber:'
                '{field_number_name}];\n'
                '  return GPBGetMessageRawEnumField(message, field);\n'
                '}}\n'
                '\n'
                'void Set{owning_message_class}_{capitalized_name}_RawValue'
                '({owning_message_class} *message, int32_t value) {{\n'
                '  GPBDescriptor *descriptor = '
                '[{owning_message_class} descriptor];\n'
                '  GPBFieldDescriptor *field = [descriptor fieldWithNumber:'
                '{field_number_name}];\n'
                '  GPBSetMessageRawEnumField(message, field, value);\n'
                '}}'
            )
        )
        output.write_line()


class PrimitiveObjFieldGenerator(ObjCObjFieldGenerator):
    """String and bytes fields."""

    def _set_variant_variables(self, variables: dict[str, str]) -> None:
        # Immutable values are copied so callers can't mutate them afterwards.
        variables['property_storage_attribute'] = 'copy'


class MessageFieldGenerator(ObjCObjFieldGenerator):
    """Singular message and group fields."""

    def _set_variant_variables(self, variables: dict[str, str]) -> None:
        message_name = _type_node(self._field).objc_name()
        variables['storage_type'] = message_name
        variables['property_type'] = message_name
        variables['property_storage_attribute'] = 'strong'
        variables['dataTypeSpecific_value'] = f'GPBObjCClass({message_name})'

    def forward_declarations(self, include_external_types: bool) -> set[str]:
        return _message_forward_declarations(
            self._field, include_external_types
        )

    def objc_class_definitions(self) -> set[str]:
        class_name = _type_node(self._field).objc_name()
        return {f'GPBObjCClassDeclaration({class_name});'}


class RepeatedPrimitiveFieldGenerator(RepeatedFieldGenerator):
    """Repeated numeric, bool, string and bytes fields."""

    def _set_variant_variables(self, variables: dict[str, str]) -> None:
        variables['array_storage_type'] = objc_names.array_storage_type(
            self._field
        )
        if self._field.kind() in (FieldKind.STRING, FieldKind.BYTES):
            variables['array_property_type'] = 'NSMutableArray<{}*>'.format(
                variables['storage_type']
            )


class RepeatedEnumFieldGenerator(RepeatedFieldGenerator):
    """Repeated enum fields, stored as raw int32 values."""

    def _set_variant_variables(self, variables: dict[str, str]) -> None:
        _set_enum_variables(self._field, variables)
        variables['array_storage_type'] = 'GPBEnumArray'
        variables['array_comment'] = '// |{}| contains |{}|'.format(
            variables['name'], variables['enum_name']
        )

    def forward_declarations(self, include_external_types: bool) -> set[str]:
        return _enum_forward_declarations(self._field, include_external_types)


class RepeatedMessageFieldGenerator(RepeatedFieldGenerator):
    """Repeated message and group fields."""

    def _set_variant_variables(self, variables: dict[str, str]) -> None:
        message_name = _type_node(self._field).objc_name()
        variables['storage_type'] = message_name
        variables['array_storage_type'] = 'NSMutableArray'
        variables['array_property_type'] = f'NSMutableArray<{message_name}*>'
        variables['dataTypeSpecific_value'] = f'GPBObjCClass({message_name})'

    def forward_declarations(self, include_external_types: bool) -> set[str]:
        return _message_forward_declarations(
            self._field, include_external_types
        )

    def objc_class_definitions(self) -> set[str]:
        class_name = _type_node(self._field).objc_name()
        return {f'GPBObjCClassDeclaration({class_name});'}


class MapFieldGenerator(RepeatedFieldGenerator):
    """Map fields, stored in a dictionary keyed by the entry's key type."""

    def _entry(self) -> ProtoMessage:
        return cast(ProtoMessage, _type_node(self._field))

    def _field_flags(self) -> FieldFlag:
        # The runtime identifies maps by their key flag, not as repeated.
        value = self._entry().map_value()
        flags = FieldFlag.map_key(self._entry().map_key())
        if value.kind() is FieldKind.ENUM:
            flags |= FieldFlag.HAS_ENUM_DESCRIPTOR
            value_enum = value.type_node()
            if isinstance(value_enum, ProtoEnum) and value_enum.is_closed():
                flags |= FieldFlag.CLOSED_ENUM
        return flags

    def _set_variant_variables(self, variables: dict[str, str]) -> None:
        key = self._entry().map_key()
        value = self._entry().map_value()

        variables['field_type'] = objc_names.capitalized_type(value)
        variables['default_name'] = objc_names.generic_value_name(value)

        value_kind = value.kind()
        if value_kind is FieldKind.ENUM:
            value_enum = _type_node(value)
            variables['default'] = enum_default_value(value, value_enum)
            variables['dataTypeSpecific_name'] = 'enumDescFunc'
            variables['dataTypeSpecific_value'] = (
                f'{value_enum.objc_name()}_EnumDescriptor'
            )
        else:
            variables['default'] = objc_names.default_value(value)
            if value_kind.is_message_typed():
                variables['dataTypeSpecific_value'] = 'GPBObjCClass({})'.format(
                    _type_node(value).objc_name()
                )

        value_family = objc_names.map_value_family(value)
        if key.kind() is FieldKind.STRING and value_family == 'Object':
            variables['array_storage_type'] = 'NSMutableDictionary'
            variables['array_property_type'] = (
                'NSMutableDictionary<NSString*, {}*>'.format(
                    objc_names.primitive_type_name(value)
                )
            )
        else:
            storage = 'GPB{}{}Dictionary'.format(
                objc_names.map_key_family(key), value_family
            )
            variables['array_storage_type'] = storage
            if value_family == 'Object':
                variables['array_property_type'] = '{}<{}*>'.format(
                    storage, objc_names.primitive_type_name(value)
                )

    def forward_declarations(self, include_external_types: bool) -> set[str]:
        value = self._entry().map_value()
        if value.kind().is_message_typed():
            return _message_forward_declarations(value, include_external_types)
        if value.kind() is FieldKind.ENUM:
            return _enum_forward_declarations(value, include_external_types)
        return set()

    def objc_class_definitions(self) -> set[str]:
        value = self._entry().map_value()
        if value.kind().is_message_typed():
            return {
                f'GPBObjCClassDeclaration({_type_node(value).objc_name()});'
            }
        return set()


FIELD_GENERATORS: dict[FieldPolicy, type[FieldGenerator]] = {
    FieldPolicy.PRIMITIVE: PrimitiveFieldGenerator,
    FieldPolicy.ENUM: EnumFieldGenerator,
    FieldPolicy.PRIMITIVE_OBJ: PrimitiveObjFieldGenerator,
    FieldPolicy.MESSAGE: MessageFieldGenerator,
    FieldPolicy.REPEATED_PRIMITIVE: RepeatedPrimitiveFieldGenerator,
    FieldPolicy.REPEATED_ENUM: RepeatedEnumFieldGenerator,
    FieldPolicy.REPEATED_MESSAGE: RepeatedMessageFieldGenerator,
    FieldPolicy.MAP: MapFieldGenerator,
}


def make_field_generator(field: ProtoMessageField) -> FieldGenerator:
    """Creates the generator for a field's policy.

    Raises:
      DispatchError: The field has no generator.
    """
    policy = classify_field(field)
    generator_class = FIELD_GENERATORS.get(policy)
    if generator_class is None:
        raise DispatchError(
            f'no generator is registered for {policy.name} fields',
            field.message(),
            field,
        )
    return generator_class(field)
