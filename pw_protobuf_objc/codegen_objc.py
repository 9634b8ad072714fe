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
"""Generates Objective-C message classes from a .proto file."""

from dataclasses import dataclass
import logging
import posixpath
import sys
from typing import Iterable

from google.protobuf import descriptor_pb2
from google.protobuf import text_encoding

from pw_protobuf_objc import objc_names
from pw_protobuf_objc.field_generator import CodegenError
from pw_protobuf_objc.field_generator_map import FieldGeneratorMap
from pw_protobuf_objc.output_file import OutputFile
from pw_protobuf_objc.proto_tree import (
    ProtoEnum,
    ProtoFile,
    ProtoMessage,
    ProtoNode,
    ProtoOneof,
    build_node_tree,
    file_enums,
    file_messages,
)

_LOG = logging.getLogger(__name__)

PLUGIN_NAME = 'pw_protobuf_objc'
PLUGIN_VERSION = '0.1.0'

PROTO_H_EXTENSION = '.pbobjc.h'
PROTO_M_EXTENSION = '.pbobjc.m'

_HAS_BITS_PER_WORD = 32


@dataclass
class GeneratorOptions:
    # Use forward declarations instead of imports for types from other files.
    headers_use_forward_declarations: bool = False
    # Directory from which the protobuf runtime's headers are imported.
    runtime_import_prefix: str = ''


@dataclass
class MessageLayout:
    """A message's field generators after has bit allocation.

    Attributes:
      message: The message being generated.
      fields: Its field generators, with all presence allocations complete.
      oneof_index_base: The first _has_storage_ word holding a oneof case.
      has_storage_words: Total size of _has_storage_, including oneof cases.
    """

    message: ProtoMessage
    fields: FieldGeneratorMap
    oneof_index_base: int
    has_storage_words: int


def layout_message(message: ProtoMessage) -> MessageLayout:
    """Builds and allocates the field generators of a message."""
    fields = FieldGeneratorMap(message)
    has_bits = fields.calculate_has_bits()

    oneof_index_base = -(-has_bits // _HAS_BITS_PER_WORD)
    if message.real_oneofs() and oneof_index_base == 0:
        # A hasIndex of -0 would read as has bit 0.
        oneof_index_base = 1
    fields.set_oneof_index_base(oneof_index_base)
    fields.check_allocation_complete()

    has_storage_words = oneof_index_base + len(message.real_oneofs())
    _LOG.debug(
        '%s: %d has bits, %d _has_storage_ words',
        message.proto_path(),
        has_bits,
        has_storage_words,
    )
    return MessageLayout(message, fields, oneof_index_base, has_storage_words)


def _generated_file_base(proto_file_name: str) -> str:
    directory, basename = posixpath.split(proto_file_name)
    stem = basename.removesuffix('.proto')
    camel = objc_names.underscores_to_camel_case(stem, lower_first=False)
    if proto_file_name.startswith('google/protobuf/'):
        # The runtime ships the well-known types under its own naming.
        return 'GPB' + camel
    return posixpath.join(directory, camel)


def generated_header_name(proto_file_name: str) -> str:
    return _generated_file_base(proto_file_name) + PROTO_H_EXTENSION


def generated_source_name(proto_file_name: str) -> str:
    return _generated_file_base(proto_file_name) + PROTO_M_EXTENSION


def _runtime_import(options: GeneratorOptions, header: str) -> str:
    if options.runtime_import_prefix:
        prefix = options.runtime_import_prefix.rstrip('/')
        return f'#import "{prefix}/{header}"'
    return f'#import "{header}"'


def _root_class_name(proto_file: ProtoFile) -> str:
    stem = posixpath.basename(proto_file.name).removesuffix('.proto')
    return '{}{}Root'.format(
        proto_file.objc_class_prefix,
        objc_names.underscores_to_camel_case(stem, lower_first=False),
    )


def _oneof_enum_name(message: ProtoMessage, oneof: ProtoOneof) -> str:
    return '{}_{}_OneOfCase'.format(
        message.objc_name(),
        objc_names.underscores_to_camel_case(oneof.name(), lower_first=False),
    )


def _oneof_property_name(oneof: ProtoOneof) -> str:
    return (
        objc_names.underscores_to_camel_case(oneof.name(), lower_first=True)
        + 'OneOfCase'
    )


def _encode_varint(value: int) -> bytes:
    encoded = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            encoded.append(byte | 0x80)
        else:
            encoded.append(byte)
            return bytes(encoded)


def text_format_decode_data(entries: list[tuple[int, str]]) -> str:
    """Encodes the text format names the runtime can't derive by itself.

    Each name is stored verbatim, keyed by field number, as a NUL delimited
    string. Returns the data as the contents of a C string literal.
    """
    data = bytearray(_encode_varint(len(entries)))
    for number, raw_name in entries:
        data += _encode_varint(number)
        data += b'\0' + raw_name.encode('utf-8') + b'\0'
    return text_encoding.CEscape(bytes(data), as_utf8=False)


def _generate_enum_declaration(proto_enum: ProtoEnum, output: OutputFile):
    name = proto_enum.objc_name()
    output.write_line(f'#pragma mark - Enum {name}')
    output.write_line()
    output.write_line(f'typedef GPB_ENUM({name}) {{')
    with output.indent():
        if not proto_enum.is_closed():
            output.write_lines(
                '/**\n'
                ' * Value used if any message\'s field encounters a value '
                'that is not defined\n'
                ' * by this enum. The message will also have C functions to '
                'get/set the rawValue\n'
                ' * of the field.\n'
                ' **/'
            )
            output.write_line(
                f'{name}_GPBUnrecognizedEnumeratorValue = '
                'kGPBUnrecognizedEnumeratorValue,'
            )
        for value_name, number in proto_enum.values():
            output.write_line(
                '{} = {},'.format(
                    objc_names.enum_value_name(proto_enum, value_name), number
                )
            )
    output.write_line('};')
    output.write_line()
    output.write_line(f'GPBEnumDescriptor *{name}_EnumDescriptor(void);')
    output.write_line()
    output.write_lines(
        '/**\n'
        ' * Checks to see if the given value is defined by the enum or was '
        'not known at\n'
        ' * the time this source was generated.\n'
        ' **/'
    )
    output.write_line(f'BOOL {name}_IsValidValue(int32_t value);')
    output.write_line()


def _generate_enum_definition(proto_enum: ProtoEnum, output: OutputFile):
    name = proto_enum.objc_name()
    value_names = ''.join(
        objc_names.underscores_to_camel_case(value_name, lower_first=False)
        + '\\000'
        for value_name, _ in proto_enum.values()
    )
    flags = (
        'GPBEnumDescriptorInitializationFlag_IsClosed'
        if proto_enum.is_closed()
        else 'GPBEnumDescriptorInitializationFlag_None'
    )

    output.write_line(f'#pragma mark - Enum {name}')
    output.write_line()
    output.write_line(f'GPBEnumDescriptor *{name}_EnumDescriptor(void) {{')
    with output.indent():
        output.write_line(
            'static _Atomic(GPBEnumDescriptor*) descriptor = nil;'
        )
        output.write_line('if (!descriptor) {')
        with output.indent():
            output.write_line('GPB_DEBUG_CHECK_RUNTIME_VERSIONS();')
            output.write_line(
                f'static const char *valueNames = "{value_names}";'
            )
            output.write_line('static const int32_t values[] = {')
            with output.indent(4):
                for value_name, _ in proto_enum.values():
                    output.write_line(
                        objc_names.enum_value_name(proto_enum, value_name) + ','
                    )
            output.write_line('};')
            output.write_line('GPBEnumDescriptor *worker =')
            output.write_line(
                '    [GPBEnumDescriptor allocDescriptorForName:'
                f'GPBNSStringifySymbol({name})'
            )
            output.write_line(
                '                                   valueNames:valueNames'
            )
            output.write_line(
                '                                       values:values'
            )
            output.write_line(
                '                                        count:(uint32_t)'
                '(sizeof(values) / sizeof(int32_t))'
            )
            output.write_line(
                f'                                 enumVerifier:'
                f'{name}_IsValidValue'
            )
            output.write_line(
                f'                                        flags:{flags}];'
            )
            output.write_line('GPBEnumDescriptor *expected = nil;')
            output.write_line(
                'if (!atomic_compare_exchange_strong(&descriptor, &expected, '
                'worker)) {'
            )
            output.write_line('  [worker release];')
            output.write_line('}')
        output.write_line('}')
        output.write_line('return descriptor;')
    output.write_line('}')
    output.write_line()
    output.write_line(f'BOOL {name}_IsValidValue(int32_t value__) {{')
    with output.indent():
        output.write_line('switch (value__) {')
        with output.indent():
            for value_name, _ in proto_enum.values():
                output.write_line(
                    'case {}:'.format(
                        objc_names.enum_value_name(proto_enum, value_name)
                    )
                )
            with output.indent():
                output.write_line('return YES;')
            output.write_line('default:')
            with output.indent():
                output.write_line('return NO;')
        output.write_line('}')
    output.write_line('}')
    output.write_line()


def _generate_message_declaration(layout: MessageLayout, output: OutputFile):
    message = layout.message
    class_name = message.objc_name()

    output.write_line(f'#pragma mark - {class_name}')
    output.write_line()

    if len(layout.fields):
        output.write_line(f'typedef GPB_ENUM({class_name}_FieldNumber) {{')
        with output.indent():
            for generator in layout.fields:
                generator.generate_field_number_constant(output)
        output.write_line('};')
        output.write_line()

    for oneof in message.real_oneofs():
        enum_name = _oneof_enum_name(message, oneof)
        output.write_line(f'typedef GPB_ENUM({enum_name}) {{')
        with output.indent():
            output.write_line(f'{enum_name}_GPBUnsetOneOfCase = 0,')
            for field in oneof.fields():
                generator = layout.fields.get(field)
                output.write_line(
                    '{}_{} = {},'.format(
                        enum_name,
                        generator.variable('capitalized_name'),
                        field.number(),
                    )
                )
        output.write_line('};')
        output.write_line()

    output.write_line(f'GPB_FINAL @interface {class_name} : GPBMessage')
    output.write_line()
    for generator in layout.fields:
        generator.generate_property_declaration(output)
    for oneof in message.real_oneofs():
        output.write_line(
            '@property(nonatomic, readonly) {} {};'.format(
                _oneof_enum_name(message, oneof), _oneof_property_name(oneof)
            )
        )
        output.write_line()
    output.write_line('@end')
    output.write_line()

    for generator in layout.fields:
        generator.generate_c_function_declarations(output)

    for oneof in message.real_oneofs():
        output.write_line(
            f"/** Clears whatever value was set for the oneof '{oneof.name()}'."
            ' */'
        )
        output.write_line(
            'void {}_Clear{}OneOfCase({} *message);'.format(
                class_name,
                objc_names.underscores_to_camel_case(
                    oneof.name(), lower_first=False
                ),
                class_name,
            )
        )
        output.write_line()


def _generate_descriptor_method(
    layout: MessageLayout, root_class: str, output: OutputFile
) -> None:
    message = layout.message
    class_name = message.objc_name()
    fields = layout.fields
    with_defaults = fields.does_any_field_have_non_zero_default()
    description_type = (
        'GPBMessageFieldDescriptionWithDefault'
        if with_defaults
        else 'GPBMessageFieldDescription'
    )

    init_flags = [
        'GPBDescriptorInitializationFlag_UsesClassRefs',
        'GPBDescriptorInitializationFlag_Proto3OptionalKnown',
        'GPBDescriptorInitializationFlag_ClosedEnumSupportKnown',
    ]
    if with_defaults:
        init_flags.append('GPBDescriptorInitializationFlag_FieldsWithDefault')

    output.write_line('// This method is threadsafe because it is initially')
    output.write_line('// called in +initialize for each subclass.')
    output.write_line('+ (GPBDescriptor *)descriptor {')
    with output.indent():
        output.write_line('static GPBDescriptor *descriptor = nil;')
        output.write_line('if (!descriptor) {')
        with output.indent():
            output.write_line('GPB_DEBUG_CHECK_RUNTIME_VERSIONS();')
            if len(fields):
                output.write_line(f'static {description_type} fields[] = {{')
                with output.indent():
                    for generator in fields:
                        generator.generate_field_description(
                            output, include_default=with_defaults
                        )
                output.write_line('};')
                fields_arg = 'fields'
                count_arg = (
                    f'(uint32_t)(sizeof(fields) / sizeof({description_type}))'
                )
            else:
                fields_arg = 'NULL'
                count_arg = '0'

            output.write_line('GPBDescriptor *localDescriptor =')
            output.write_line(
                '    [GPBDescriptor allocDescriptorForClass:'
                f'GPBObjCClass({class_name})'
            )
            output.write_line(
                '                               messageName:'
                f'@"{message.name()}"'
            )
            output.write_line(
                '                           fileDescription:'
                f'&{root_class}_FileDescription'
            )
            output.write_line(
                f'                                    fields:{fields_arg}'
            )
            output.write_line(
                f'                                fieldCount:{count_arg}'
            )
            output.write_line(
                '                               storageSize:'
                f'sizeof({class_name}__storage_)'
            )
            output.write_line(
                '                                     flags:'
                '(GPBDescriptorInitializationFlags)({})];'.format(
                    ' | '.join(init_flags)
                )
            )

            if message.real_oneofs():
                output.write_line('static const char *oneofs[] = {')
                with output.indent():
                    for oneof in message.real_oneofs():
                        output.write_line(f'"{oneof.name()}",')
                output.write_line('};')
                output.write_line('[localDescriptor setupOneofs:oneofs')
                output.write_line(
                    '                       count:(uint32_t)(sizeof(oneofs) / '
                    'sizeof(char*))'
                )
                output.write_line(
                    f'               firstHasIndex:-{layout.oneof_index_base}];'
                )

            entries = [
                entry
                for entry in (
                    generator.text_format_name_entry() for generator in fields
                )
                if entry is not None
            ]
            if entries:
                output.write_line('static const char *extraTextFormatInfo =')
                output.write_line(f'    "{text_format_decode_data(entries)}";')
                output.write_line(
                    '[localDescriptor setupExtraTextInfo:extraTextFormatInfo];'
                )

            parent = message.parent()
            if parent is not None and parent.type() is ProtoNode.Type.MESSAGE:
                output.write_line(
                    '[localDescriptor setupContainingMessageClass:'
                    f'GPBObjCClass({parent.objc_name()})];'
                )

            output.write_line('#if defined(DEBUG) && DEBUG')
            output.write_line(
                '  NSAssert(descriptor == nil, @"Startup recursed!");'
            )
            output.write_line('#endif  // DEBUG')
            output.write_line('descriptor = localDescriptor;')
        output.write_line('}')
        output.write_line('return descriptor;')
    output.write_line('}')


def _generate_message_definition(
    layout: MessageLayout, root_class: str, output: OutputFile
) -> None:
    message = layout.message
    class_name = message.objc_name()

    output.write_line(f'#pragma mark - {class_name}')
    output.write_line()
    output.write_line(f'@implementation {class_name}')
    output.write_line()

    for oneof in message.real_oneofs():
        output.write_line(f'@dynamic {_oneof_property_name(oneof)};')
    for generator in layout.fields:
        generator.generate_property_implementation(output)
    output.write_line()

    output.write_line(f'typedef struct {class_name}__storage_ {{')
    with output.indent():
        if layout.has_storage_words:
            output.write_line(
                f'uint32_t _has_storage_[{layout.has_storage_words}];'
            )
        for generator in layout.fields:
            generator.generate_field_storage_declaration(output)
    output.write_line(f'}} {class_name}__storage_;')
    output.write_line()

    _generate_descriptor_method(layout, root_class, output)
    output.write_line()
    output.write_line('@end')
    output.write_line()

    for index, oneof in enumerate(message.real_oneofs()):
        output.write_line(
            'void {}_Clear{}OneOfCase({} *message) {{'.format(
                class_name,
                objc_names.underscores_to_camel_case(
                    oneof.name(), lower_first=False
                ),
                class_name,
            )
        )
        with output.indent():
            output.write_line(
                f'GPBDescriptor *descriptor = [{class_name} descriptor];'
            )
            output.write_line(
                'GPBOneofDescriptor *oneof = '
                f'[descriptor.oneofs objectAtIndex:{index}];'
            )
            output.write_line('GPBClearOneof(message, oneof);')
        output.write_line('}')
        output.write_line()

    for generator in layout.fields:
        generator.generate_c_function_implementations(output)


def _imported_headers(
    file_descriptor_proto: descriptor_pb2.FileDescriptorProto,
) -> list[str]:
    return [
        f'#import "{generated_header_name(dependency)}"'
        for dependency in file_descriptor_proto.dependency
    ]


class FileGenerator:
    """Generates the Objective-C header and source for one .proto file."""

    def __init__(
        self,
        file_descriptor_proto: descriptor_pb2.FileDescriptorProto,
        dependencies: Iterable[descriptor_pb2.FileDescriptorProto],
        options: GeneratorOptions,
    ):
        self._file_descriptor_proto = file_descriptor_proto
        self._options = options
        self._proto_file = ProtoFile.from_descriptor(file_descriptor_proto)

        _, package_root = build_node_tree(file_descriptor_proto, dependencies)
        self._enums = file_enums(package_root, self._proto_file)
        self._layouts = [
            layout_message(message)
            for message in file_messages(package_root, self._proto_file)
        ]
        self._root_class = _root_class_name(self._proto_file)

    def _write_preamble(self, output: OutputFile) -> None:
        output.write_line(
            f'// {posixpath.basename(output.name())} automatically '
            f'generated by {PLUGIN_NAME} {PLUGIN_VERSION}'
        )
        output.write_line(f'// source: {self._proto_file.name}')
        output.write_line()

    def generate_header(self) -> OutputFile:
        output = OutputFile(generated_header_name(self._proto_file.name))
        self._write_preamble(output)

        output.write_line(
            _runtime_import(self._options, 'GPBProtocolBuffers.h')
        )
        output.write_line()

        use_forward_declarations = (
            self._options.headers_use_forward_declarations
        )
        if not use_forward_declarations:
            imports = _imported_headers(self._file_descriptor_proto)
            if imports:
                output.write_lines('\n'.join(imports))
                output.write_line()

        output.write_line('#pragma clang diagnostic push')
        output.write_line(
            '#pragma clang diagnostic ignored "-Wdeprecated-declarations"'
        )
        output.write_line()
        output.write_line('CF_EXTERN_C_BEGIN')
        output.write_line()

        fwd_decls: set[str] = set()
        for layout in self._layouts:
            fwd_decls |= layout.fields.forward_declarations(
                include_external_types=use_forward_declarations
            )
        if fwd_decls:
            for fwd_decl in sorted(fwd_decls):
                output.write_line(fwd_decl)
            output.write_line()

        output.write_line('NS_ASSUME_NONNULL_BEGIN')
        output.write_line()

        for proto_enum in self._enums:
            _generate_enum_declaration(proto_enum, output)

        output.write_line(f'#pragma mark - {self._root_class}')
        output.write_line()
        output.write_line(
            f'GPB_FINAL @interface {self._root_class} : GPBRootObject'
        )
        output.write_line('@end')
        output.write_line()

        for layout in self._layouts:
            _generate_message_declaration(layout, output)

        output.write_line('NS_ASSUME_NONNULL_END')
        output.write_line()
        output.write_line('CF_EXTERN_C_END')
        output.write_line()
        output.write_line('#pragma clang diagnostic pop')
        return output

    def generate_source(self) -> OutputFile:
        output = OutputFile(generated_source_name(self._proto_file.name))
        self._write_preamble(output)

        output.write_line(
            _runtime_import(
                self._options, 'GPBProtocolBuffers_RuntimeSupport.h'
            )
        )
        output.write_line()
        output.write_line('#import <stdatomic.h>')
        output.write_line()
        output.write_line(
            f'#import "{generated_header_name(self._proto_file.name)}"'
        )
        if self._options.headers_use_forward_declarations:
            for imported in _imported_headers(self._file_descriptor_proto):
                output.write_line(imported)
        output.write_line()

        output.write_line('#pragma clang diagnostic push')
        output.write_line(
            '#pragma clang diagnostic ignored "-Wdeprecated-declarations"'
        )
        output.write_line()

        class_defs: set[str] = set()
        for layout in self._layouts:
            class_defs |= layout.fields.objc_class_definitions()
            class_defs.add(
                f'GPBObjCClassDeclaration({layout.message.objc_name()});'
            )
            parent = layout.message.parent()
            if parent is not None and parent.type() is ProtoNode.Type.MESSAGE:
                class_defs.add(
                    f'GPBObjCClassDeclaration({parent.objc_name()});'
                )

        if class_defs:
            output.write_line('#pragma mark - Objective-C Class declarations')
            output.write_line(
                '// Forward declarations of Objective-C classes that this file '
                'references.'
            )
            output.write_line()
            for class_def in sorted(class_defs):
                output.write_line(class_def)
            output.write_line()

        output.write_line(f'#pragma mark - {self._root_class}')
        output.write_line()
        output.write_line(f'@implementation {self._root_class}')
        output.write_line()
        output.write_line('@end')
        output.write_line()

        output.write_line(
            f'static GPBFileDescription {self._root_class}_FileDescription = {{'
        )
        with output.indent():
            output.write_line(f'.package = "{self._proto_file.package}",')
            if self._proto_file.objc_class_prefix:
                output.write_line(
                    f'.prefix = "{self._proto_file.objc_class_prefix}",'
                )
            else:
                output.write_line('.prefix = NULL,')
            output.write_line(
                '.syntax = {}'.format(
                    'GPBFileSyntaxProto3'
                    if self._proto_file.is_proto3()
                    else 'GPBFileSyntaxProto2'
                )
            )
        output.write_line('};')
        output.write_line()

        for proto_enum in self._enums:
            _generate_enum_definition(proto_enum, output)

        for layout in self._layouts:
            _generate_message_definition(layout, self._root_class, output)

        output.write_line('#pragma clang diagnostic pop')
        return output


def process_proto_file(
    file_descriptor_proto: descriptor_pb2.FileDescriptorProto,
    dependencies: Iterable[descriptor_pb2.FileDescriptorProto],
    options: GeneratorOptions,
) -> list[OutputFile] | None:
    """Generates code for a single .proto file.

    Returns None if the file could not be generated. The cause is printed to
    stderr, as protoc owns stdout.
    """
    _LOG.info('Generating Objective-C for %s', file_descriptor_proto.name)
    try:
        generator = FileGenerator(file_descriptor_proto, dependencies, options)
        return [generator.generate_header(), generator.generate_source()]
    except CodegenError as e:
        print(e.formatted_message(), file=sys.stderr)
        return None
