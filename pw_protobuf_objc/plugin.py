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
"""pw_protobuf_objc compiler plugin.

This file implements a protobuf compiler plugin which generates Objective-C
message classes for the Objective-C protobuf runtime.
"""

import logging
import sys
from argparse import ArgumentParser, Namespace
from shlex import shlex

from google.protobuf.compiler import plugin_pb2

import pw_cli.log

from pw_protobuf_objc import codegen_objc

_LOG = logging.getLogger(__name__)


def parse_parameter_options(parameter: str) -> Namespace:
    """Parses parameters passed through from protoc.

    These parameters come in via passing `--${NAME}_opt` parameters to protoc,
    where protoc-gen-${NAME} is the supplied name of the plugin.
    """
    parser = ArgumentParser()
    parser.add_argument(
        '--headers-use-forward-declarations',
        dest='headers_use_forward_declarations',
        action='store_true',
        help='Forward declare types from other files in generated headers '
        'instead of importing their headers',
    )
    parser.add_argument(
        '--runtime-import-prefix',
        dest='runtime_import_prefix',
        metavar='PREFIX',
        default='',
        help='Directory from which to import the protobuf runtime headers',
    )
    parser.add_argument(
        '--verbose',
        dest='verbose',
        action='store_true',
        help='Log allocation decisions and generated files to stderr',
    )

    # protoc passes the custom arguments in shell quoted form, separated by
    # commas. Use shlex to split them, correctly handling quoted sections, with
    # equivalent options to IFS=","
    lex = shlex(parameter)
    lex.whitespace_split = True
    lex.whitespace = ','
    lex.commenters = ''
    args = list(lex)

    return parser.parse_args(args)


def generator_options(args: Namespace) -> codegen_objc.GeneratorOptions:
    return codegen_objc.GeneratorOptions(
        headers_use_forward_declarations=args.headers_use_forward_declarations,
        runtime_import_prefix=args.runtime_import_prefix,
    )


def process_proto_request(
    req: plugin_pb2.CodeGeneratorRequest, res: plugin_pb2.CodeGeneratorResponse
) -> bool:
    """Handles a protoc CodeGeneratorRequest message.

    Generates code for the files in the request and writes the output to the
    specified CodeGeneratorResponse message.

    Args:
      req: A CodeGeneratorRequest for a proto compilation.
      res: A CodeGeneratorResponse to populate with the plugin's output.

    Returns:
      False if any file could not be generated.
    """
    args = parse_parameter_options(req.parameter)
    if args.verbose:
        pw_cli.log.install(logging.DEBUG, hide_timestamp=True)

    options = generator_options(args)
    _LOG.debug(
        'Generating %d files with %s', len(req.file_to_generate), options
    )
    files_by_name = {
        proto_file.name: proto_file for proto_file in req.proto_file
    }

    success = True
    for file_name in req.file_to_generate:
        proto_file = files_by_name[file_name]
        # protoc lists every file the generated ones import, directly or not.
        dependencies = [
            dependency
            for dependency in req.proto_file
            if dependency.name != file_name
        ]

        output_files = codegen_objc.process_proto_file(
            proto_file, dependencies, options
        )

        if output_files is not None:
            for output_file in output_files:
                fd = res.file.add()
                fd.name = output_file.name()
                fd.content = output_file.content()
        else:
            success = False

    return success


def main() -> int:
    """Protobuf compiler plugin entrypoint.

    Reads a CodeGeneratorRequest proto from stdin and writes a
    CodeGeneratorResponse to stdout.
    """
    pw_cli.log.install(logging.WARNING, hide_timestamp=True)

    data = sys.stdin.buffer.read()
    request = plugin_pb2.CodeGeneratorRequest.FromString(data)
    response = plugin_pb2.CodeGeneratorResponse()

    # Declare that this plugin supports optional fields in proto3.
    response.supported_features |= (  # type: ignore[attr-defined]
        response.FEATURE_PROTO3_OPTIONAL
    )  # type: ignore[attr-defined]

    if not process_proto_request(request, response):
        print('pw_protobuf_objc failed to generate code', file=sys.stderr)
        return 1

    sys.stdout.buffer.write(response.SerializeToString())
    return 0


if __name__ == '__main__':
    sys.exit(main())
