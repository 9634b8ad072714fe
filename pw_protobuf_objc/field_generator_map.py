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
"""The field generators of a single message."""

import logging
from typing import Iterator

from pw_protobuf_objc.field_generator import FieldGenerator, PreconditionError
from pw_protobuf_objc.field_types import make_field_generator
from pw_protobuf_objc.proto_tree import ProtoMessage, ProtoMessageField

_LOG = logging.getLogger(__name__)


class FieldGeneratorMap:
    """Owns a generator for each field of a message, in declaration order.

    The map runs the allocations which span all of a message's fields. They
    must complete, in order, before any field's code is emitted:

      1. calculate_has_bits()
      2. set_oneof_index_base()
    """

    def __init__(self, message: ProtoMessage):
        self._message = message
        self._generators: list[FieldGenerator] = [
            make_field_generator(field) for field in message.fields()
        ]
        self._by_field: dict[int, FieldGenerator] = {
            id(generator.field()): generator for generator in self._generators
        }

    def message(self) -> ProtoMessage:
        return self._message

    def get(self, field: ProtoMessageField) -> FieldGenerator:
        """Returns the generator for one of the message's fields.

        Raises:
          PreconditionError: The field belongs to a different message.
        """
        generator = self._by_field.get(id(field))
        if generator is None or generator.field() is not field:
            raise PreconditionError(
                f'field {field.field_name()} is not a member of this message',
                self._message,
                field,
            )
        return generator

    def __iter__(self) -> Iterator[FieldGenerator]:
        return iter(self._generators)

    def __len__(self) -> int:
        return len(self._generators)

    def calculate_has_bits(self) -> int:
        """Assigns has bits to every field, returning the total in use.

        Standard has bits are numbered from zero in declaration order. Extra
        bits follow all of them, so the two ranges never overlap.
        """
        total_bits = 0
        for generator in self._generators:
            if generator.runtime_uses_has_bit():
                generator.set_runtime_has_bit(total_bits)
                total_bits += 1
            else:
                generator.set_no_has_bit()

        for generator in self._generators:
            extra_bits = generator.extra_runtime_has_bits_needed()
            if extra_bits:
                generator.set_extra_runtime_has_bits_base(total_bits)
                total_bits += extra_bits

        _LOG.debug(
            '%s uses %d has bits', self._message.proto_path(), total_bits
        )
        return total_bits

    def set_oneof_index_base(self, index_base: int) -> None:
        for generator in self._generators:
            generator.set_oneof_index_base(index_base)

    def check_allocation_complete(self) -> None:
        for generator in self._generators:
            generator.check_allocation_complete()

    def does_any_field_have_non_zero_default(self) -> bool:
        return any(
            generator.has_non_zero_default() for generator in self._generators
        )

    def forward_declarations(self, include_external_types: bool) -> set[str]:
        fwd_decls: set[str] = set()
        for generator in self._generators:
            generator.determine_forward_declarations(
                fwd_decls, include_external_types
            )
        return fwd_decls

    def objc_class_definitions(self) -> set[str]:
        class_defs: set[str] = set()
        for generator in self._generators:
            generator.determine_objc_class_definitions(class_defs)
        return class_defs
