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
"""Objective-C naming and type spelling for protobuf fields."""

import math
import struct

from google.protobuf import descriptor_pb2
from google.protobuf import text_encoding

from pw_protobuf_objc.proto_tree import FieldKind, ProtoEnum, ProtoMessageField

_FieldDescriptorProto = descriptor_pb2.FieldDescriptorProto

# Segments that are spelled in all capitals when camel casing.
_UPPER_SEGMENTS = frozenset(['url', 'http', 'https'])

# Names which collide with C / Objective-C keywords or with NSObject and
# GPBMessage members. Fields named after them get a `_p` suffix.
_RESERVED_WORDS = frozenset([
    # C and Objective-C keywords.
    'auto', 'break', 'case', 'char', 'const', 'continue', 'default', 'do',
    'double', 'else', 'enum', 'extern', 'float', 'for', 'goto', 'if',
    'inline', 'int', 'long', 'register', 'restrict', 'return', 'short',
    'signed', 'sizeof', 'static', 'struct', 'switch', 'typedef', 'union',
    'unsigned', 'void', 'volatile', 'while', 'id', 'self', 'super', 'nil',
    'Nil', 'YES', 'NO', 'BOOL', 'SEL', 'IMP', 'Class', 'in', 'out', 'inout',
    'bycopy', 'byref', 'oneway', 'nonnull', 'nullable', 'assign', 'retain',
    'copy', 'readonly', 'readwrite', 'strong', 'weak', 'atomic', 'nonatomic',
    # NSObject protocol and GPBMessage methods.
    'autorelease', 'class', 'dealloc', 'debugDescription', 'description',
    'hash', 'init', 'isProxy', 'release', 'retainCount', 'superclass', 'zone',
    'data', 'delimitedData', 'descriptor', 'extensionRegistry',
    'extensionsCurrentlySet', 'initialized', 'isInitialized', 'serializedSize',
    'sortedExtensionsInUse', 'unknownFields',
])  # yapf: disable

# Method name prefixes with special memory management meaning under ARC.
_RETAINED_PREFIXES = ('new', 'alloc', 'copy', 'mutableCopy')
_INIT_PREFIXES = ('init',)

# GPBDataType suffix for each field type.
_CAPITALIZED_TYPES = {
    _FieldDescriptorProto.TYPE_INT32: 'Int32',
    _FieldDescriptorProto.TYPE_UINT32: 'UInt32',
    _FieldDescriptorProto.TYPE_SINT32: 'SInt32',
    _FieldDescriptorProto.TYPE_FIXED32: 'Fixed32',
    _FieldDescriptorProto.TYPE_SFIXED32: 'SFixed32',
    _FieldDescriptorProto.TYPE_INT64: 'Int64',
    _FieldDescriptorProto.TYPE_UINT64: 'UInt64',
    _FieldDescriptorProto.TYPE_SINT64: 'SInt64',
    _FieldDescriptorProto.TYPE_FIXED64: 'Fixed64',
    _FieldDescriptorProto.TYPE_SFIXED64: 'SFixed64',
    _FieldDescriptorProto.TYPE_FLOAT: 'Float',
    _FieldDescriptorProto.TYPE_DOUBLE: 'Double',
    _FieldDescriptorProto.TYPE_BOOL: 'Bool',
    _FieldDescriptorProto.TYPE_STRING: 'String',
    _FieldDescriptorProto.TYPE_BYTES: 'Bytes',
    _FieldDescriptorProto.TYPE_ENUM: 'Enum',
    _FieldDescriptorProto.TYPE_GROUP: 'Group',
    _FieldDescriptorProto.TYPE_MESSAGE: 'Message',
}

# Storage types and GPBGenericValue members for scalar types, keyed by the
# value's in-memory representation.
_INT32_TYPES = frozenset([
    _FieldDescriptorProto.TYPE_INT32,
    _FieldDescriptorProto.TYPE_SINT32,
    _FieldDescriptorProto.TYPE_SFIXED32,
])
_UINT32_TYPES = frozenset([
    _FieldDescriptorProto.TYPE_UINT32,
    _FieldDescriptorProto.TYPE_FIXED32,
])
_INT64_TYPES = frozenset([
    _FieldDescriptorProto.TYPE_INT64,
    _FieldDescriptorProto.TYPE_SINT64,
    _FieldDescriptorProto.TYPE_SFIXED64,
])
_UINT64_TYPES = frozenset([
    _FieldDescriptorProto.TYPE_UINT64,
    _FieldDescriptorProto.TYPE_FIXED64,
])
_INTEGER_TYPES = _INT32_TYPES | _UINT32_TYPES | _INT64_TYPES | _UINT64_TYPES
_FLOATING_TYPES = frozenset([
    _FieldDescriptorProto.TYPE_FLOAT,
    _FieldDescriptorProto.TYPE_DOUBLE,
])


def _value_family(field_type: int) -> str:
    """The runtime's capitalized name for a type's in-memory representation."""
    if field_type in _INT32_TYPES:
        return 'Int32'
    if field_type in _UINT32_TYPES:
        return 'UInt32'
    if field_type in _INT64_TYPES:
        return 'Int64'
    if field_type in _UINT64_TYPES:
        return 'UInt64'
    return {
        _FieldDescriptorProto.TYPE_FLOAT: 'Float',
        _FieldDescriptorProto.TYPE_DOUBLE: 'Double',
        _FieldDescriptorProto.TYPE_BOOL: 'Bool',
        _FieldDescriptorProto.TYPE_STRING: 'String',
        _FieldDescriptorProto.TYPE_BYTES: 'Data',
        _FieldDescriptorProto.TYPE_ENUM: 'Enum',
        _FieldDescriptorProto.TYPE_GROUP: 'Message',
        _FieldDescriptorProto.TYPE_MESSAGE: 'Message',
    }[field_type]


def underscores_to_camel_case(name: str, lower_first: bool) -> str:
    """Converts a .proto identifier to CamelCase.

    Words are split at underscores, at letter/digit boundaries and where a lower
    case letter is followed by an upper case one.
    """
    segments: list[str] = []
    current = ''
    last_was_digit = last_was_lower = False
    for char in name:
        if char.isdigit():
            if not last_was_digit:
                segments.append(current)
                current = ''
            current += char
            last_was_digit, last_was_lower = True, False
        elif char.islower():
            if last_was_digit:
                segments.append(current)
                current = ''
            current += char
            last_was_digit, last_was_lower = False, True
        elif char.isupper():
            if last_was_digit or last_was_lower:
                segments.append(current)
                current = ''
            current += char
            last_was_digit, last_was_lower = False, False
        else:
            segments.append(current)
            current = ''
            last_was_digit = last_was_lower = False
    segments.append(current)

    result = ''
    for segment in filter(None, segments):
        if not result and lower_first:
            result += segment.lower()
        elif segment.lower() in _UPPER_SEGMENTS:
            result += segment.upper()
        else:
            result += segment[0].upper() + segment[1:].lower()
    return result


def _has_special_prefix(name: str, prefixes: tuple[str, ...]) -> bool:
    for prefix in prefixes:
        if name.startswith(prefix) and (
            len(name) == len(prefix) or not name[len(prefix)].islower()
        ):
            return True
    return False


def is_retained_name(name: str) -> bool:
    """True if ARC would treat a getter with this name as returning +1."""
    return _has_special_prefix(name, _RETAINED_PREFIXES)


def is_init_name(name: str) -> bool:
    """True if ARC would put a getter with this name in the init family."""
    return _has_special_prefix(name, _INIT_PREFIXES)


def _name_source(field: ProtoMessageField) -> str:
    # Groups are named after their message type, not their field.
    type_node = field.type_node()
    if field.type() == _FieldDescriptorProto.TYPE_GROUP and type_node:
        return type_node.name()
    return field.field_name()


def raw_field_name(field: ProtoMessageField) -> str:
    """The field's name as the text format spells it."""
    return _name_source(field)


def field_name(field: ProtoMessageField) -> str:
    """The Objective-C property name of a field."""
    result = underscores_to_camel_case(_name_source(field), lower_first=True)
    if field.is_repeated() and not field.is_map():
        result += 'Array'
    elif result.endswith('Array'):
        # Keep singular fields from looking like the repeated naming scheme.
        result += '_p'

    if result in _RESERVED_WORDS:
        result += '_p'
    return result


def field_name_capitalized(field: ProtoMessageField) -> str:
    name = field_name(field)
    return name[0].upper() + name[1:]


def un_camel_case_field_name(name: str, field: ProtoMessageField) -> str:
    """Mechanically reverses field_name() back to a .proto style name."""
    if name.endswith('_p'):
        name = name[: -len('_p')]
    if field.is_repeated() and name.endswith('Array'):
        name = name[: -len('Array')]

    if field.type() == _FieldDescriptorProto.TYPE_GROUP:
        return name[:1].upper() + name[1:]

    result = ''
    for i, char in enumerate(name):
        if char.isupper():
            if i > 0:
                result += '_'
            result += char.lower()
        else:
            result += char
    return result


def needs_custom_text_format_name(field: ProtoMessageField) -> bool:
    """True when the text format name can't be derived from the ObjC name."""
    return un_camel_case_field_name(
        field_name(field), field
    ) != raw_field_name(field)


def class_name(field: ProtoMessageField) -> str:
    """The class name of the message which owns a field."""
    return field.message().objc_name()


def enum_value_name(enum: ProtoEnum, value_name: str) -> str:
    return '{}_{}'.format(
        enum.objc_name(), underscores_to_camel_case(value_name, False)
    )


def capitalized_type(field: ProtoMessageField) -> str:
    """The GPBDataType suffix for the field, e.g. `Int32`."""
    return _CAPITALIZED_TYPES[field.type()]


def generic_value_name(field: ProtoMessageField) -> str:
    """The GPBGenericValue member that holds the field's default."""
    return 'value' + _value_family(field.type())


def primitive_type_name(field: ProtoMessageField) -> str:
    """The Objective-C spelling of a single value of the field's type."""
    field_type = field.type()
    if field_type in _INT32_TYPES:
        return 'int32_t'
    if field_type in _UINT32_TYPES:
        return 'uint32_t'
    if field_type in _INT64_TYPES:
        return 'int64_t'
    if field_type in _UINT64_TYPES:
        return 'uint64_t'

    kind = field.kind()
    if kind is FieldKind.BOOL:
        return 'BOOL'
    if kind is FieldKind.STRING:
        return 'NSString'
    if kind is FieldKind.BYTES:
        return 'NSData'

    if field_type == _FieldDescriptorProto.TYPE_FLOAT:
        return 'float'
    if field_type == _FieldDescriptorProto.TYPE_DOUBLE:
        return 'double'

    type_node = field.type_node()
    assert type_node is not None, 'enum and message fields have a type'
    return type_node.objc_name()


def array_storage_type(field: ProtoMessageField) -> str:
    """The container class used for a repeated field."""
    kind = field.kind()
    if kind in (FieldKind.STRING, FieldKind.BYTES) or kind.is_message_typed():
        return 'NSMutableArray'
    return 'GPB{}Array'.format(_value_family(field.type()))


def map_key_family(field: ProtoMessageField) -> str:
    """The key component of a GPB*Dictionary class name."""
    if field.kind() is FieldKind.STRING:
        return 'String'
    return _value_family(field.type())


def map_value_family(field: ProtoMessageField) -> str:
    """The value component of a GPB*Dictionary class name."""
    kind = field.kind()
    if kind in (FieldKind.STRING, FieldKind.BYTES) or kind.is_message_typed():
        return 'Object'
    return _value_family(field.type())


def _escape(data: bytes) -> str:
    # Question marks are escaped so no default can form a C trigraph.
    return text_encoding.CEscape(data, as_utf8=False).replace('?', '\\?')


def _floating_literal(value: str, is_float: bool) -> str:
    number = float(value)
    if math.isinf(number):
        return 'INFINITY' if number > 0 else '-INFINITY'
    if math.isnan(number):
        return 'NAN'

    literal = repr(number)
    if literal.endswith('.0'):
        literal = literal[: -len('0')]
    if is_float:
        literal += 'f'
    return literal


def default_value(field: ProtoMessageField) -> str:
    """The field's default as an Objective-C initializer expression.

    Enum defaults are resolved by the enum generator, which owns the enum's
    value names.
    """
    field_type = field.type()
    value = field.default_value()

    if field_type in _INTEGER_TYPES:
        number = int(value) if value is not None else 0
        if field_type in _INT32_TYPES:
            # The minimum can't be spelled as a negated decimal literal.
            return '-0x80000000' if number == -(2**31) else str(number)
        if field_type in _UINT32_TYPES:
            return f'{number}U'
        if field_type in _INT64_TYPES:
            if number == -(2**63):
                return '-0x8000000000000000LL'
            return f'{number}LL'
        return f'{number}ULL'

    if field_type in _FLOATING_TYPES:
        return _floating_literal(
            value or '0', field_type == _FieldDescriptorProto.TYPE_FLOAT
        )

    if field_type == _FieldDescriptorProto.TYPE_BOOL:
        return 'YES' if value == 'true' else 'NO'

    if field_type == _FieldDescriptorProto.TYPE_STRING:
        # The empty string is the runtime default, so it is left as nil.
        if not value:
            return 'nil'
        return '@"{}"'.format(_escape(value.encode('utf-8')))

    if field_type == _FieldDescriptorProto.TYPE_BYTES:
        if not value:
            return 'nil'
        # Static initializers can't build an NSData, so a length prefixed C
        # string is stored in its place and decoded by the runtime.
        data = text_encoding.CUnescape(value)
        return '(NSData*)"{}"'.format(
            _escape(struct.pack('>I', len(data)) + data)
        )

    return 'nil'


def deprecated_attribute(field: ProtoMessageField) -> str:
    """A leading-space deprecation attribute, or the empty string."""
    if not field.is_deprecated():
        return ''

    proto_file = field.proto_file()
    file_name = proto_file.name if proto_file else 'unknown'
    return ' GPB_DEPRECATED_MSG("{}.{} is deprecated (see {}).")'.format(
        field.message().proto_path(), field.field_name(), file_name
    )
