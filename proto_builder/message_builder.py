"""Writes the builder methods of one message, including flattened sub-fields."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import sys

from proto_builder.config import ProtoBuilderConfigManager
from proto_builder.const import MAX_SUB_FIELD_SETTER_DEPTH, Where
from proto_builder.core import CheckError
from proto_builder.field_builder import FieldBuilder, FieldData
from proto_builder.options_pb import (
    FieldBuilderOptions,
    MessageBuilderOptions,
    OutputMode,
)
from proto_builder.schema import FieldDescriptor, MessageDescriptor
from proto_builder.util import (
    camel_case_name,
    cpp_field_name,
    get_field_builder_options_or_default,
    get_field_type,
    get_options_type,
    is_non_repeated_message,
    maybe_get_map_value_descriptor,
)
from proto_builder.writer import (
    BuilderWriter,
    IndentWriter,
    NoDoubleEmptyLineWriter,
    OwnWrappedWriter,
)

_LOGGER = logging.getLogger(__name__)

UNLIMITED_FIELD_DEPTH = sys.maxsize


def get_package_and_class_name(descriptor: MessageDescriptor) -> tuple[str, str]:
    """`pkg.Outer.Inner` -> (`pkg`, `Outer_Inner`)."""
    name = descriptor.name
    while descriptor.containing_type is not None:
        descriptor = descriptor.containing_type
        name = f"{descriptor.name}_{name}"
    package, _, _ = descriptor.full_name.rpartition(".")
    return package, name


@dataclass
class MessageBuilderConfig:
    config: ProtoBuilderConfigManager
    writer: BuilderWriter
    descriptor: MessageDescriptor
    # 1 = only the fields of the message itself
    max_field_depth: int = UNLIMITED_FIELD_DEPTH
    use_validator: bool = False
    make_interface: bool = False
    max_depth: int = MAX_SUB_FIELD_SETTER_DEPTH


class MessageBuilder:
    def __init__(self, options: MessageBuilderConfig) -> None:
        self.options = options
        self.writer = OwnWrappedWriter(
            NoDoubleEmptyLineWriter, IndentWriter(options.writer, "  ")
        )
        self.root_descriptor = options.descriptor
        self.root_options = MessageBuilderOptions()
        if options.descriptor.annotation is not None:
            self.root_options.CopyFrom(options.descriptor.annotation)
        if not self.root_options.HasField("use_validator"):
            self.root_options.use_validator = options.use_validator
        self.class_name = (
            self.root_options.class_name
            or get_package_and_class_name(options.descriptor)[1] + "Builder"
        )
        if not self.class_name:
            raise CheckError(f"No class name for {options.descriptor.full_name}")

    @property
    def use_get_raw_data(self) -> bool:
        root_options = self.root_options
        if (
            root_options.HasField("use_build")
            or root_options.HasField("use_status")
            or root_options.HasField("use_validator")
        ):
            return (
                root_options.use_build
                or root_options.use_status
                or root_options.use_validator
            )
        return self.options.use_validator

    def write_builder(self) -> None:
        self.writer.code_info.add_include(Where.HEADER, self.root_descriptor)
        self.write_message(
            self.root_descriptor,
            self.root_options.root_data,
            self.root_options.root_name,
            depth=0,
            stack=frozenset(),
        )
        # Generated code ends with an empty line.
        for where in Where:
            self.writer.write(where, "")

    def make_field_data(
        self,
        options: FieldBuilderOptions,
        field: FieldDescriptor,
        data_parent: str,
        name_parent: str,
        first_method: bool = False,
    ) -> FieldData:
        return FieldData(
            config=self.options.config,
            writer=self.writer,
            raw_field_options=options,
            field=field,
            class_name=self.class_name,
            data_parent=data_parent,
            name_parent=name_parent,
            use_get_raw_data=self.use_get_raw_data,
            make_interface=self.options.make_interface,
            first_method=first_method,
            use_status=self.root_options.use_status,
        )

    def write_method(self, field_data: FieldData) -> None:
        FieldBuilder(field_data).write_field()

    def write_field(
        self, field: FieldDescriptor, data_parent: str, name_parent: str
    ) -> bool:
        """Write all methods of `field`, returns whether to recurse into it."""
        config = self.options.config
        automatic = config.get_automatic_type(get_field_type(field))
        recurse = self.options.max_field_depth > 1
        if not field.annotations:
            self.write_method(
                self.make_field_data(
                    FieldBuilderOptions(), field, data_parent, name_parent, True
                )
            )
            if automatic is not None:
                # TODO: let automatic types disable recursion via their `recurse`.
                self.write_method(
                    self.make_field_data(automatic, field, data_parent, name_parent)
                )
        for index, annotation in enumerate(field.annotations):
            options = config.merge_field_builder_options(annotation)
            if options.output == OutputMode.SKIP:
                continue
            if options.HasField("recurse"):
                recurse = recurse and options.recurse
            else:
                type_info = config.get_type_info(get_options_type(options, field))
                if type_info is not None and type_info.HasField("recurse"):
                    recurse = recurse and type_info.recurse
            self.write_method(
                self.make_field_data(
                    options, field, data_parent, name_parent, index == 0
                )
            )
        return recurse

    def write_message(
        self,
        descriptor: MessageDescriptor,
        data_parent: str,
        name_parent: str,
        depth: int,
        stack: frozenset[MessageDescriptor],
    ) -> None:
        """Write the fields of `descriptor` and recurse into message fields.

        `stack` holds the messages currently being expanded, a message is
        never expanded inside itself.
        """
        log_info = f"Message: {descriptor.full_name}[{depth}]"
        if depth > self.options.max_depth:
            _LOGGER.error("%s Max sub-field setter depth reached.", log_info)
            return
        if descriptor in stack:
            _LOGGER.info("%s Already used in sub-field setter stack.", log_info)
            return
        stack = stack | {descriptor}
        code_info = self.writer.code_info
        for include in self.root_options.include:
            code_info.add_include(Where.HEADER, include)
        for include in self.root_options.builder_include:
            code_info.add_include(Where.HEADER, include)
        for include in self.root_options.source_include:
            code_info.add_include(Where.SOURCE, include)
        for field in descriptor.fields:
            builder = get_field_builder_options_or_default(field)
            if builder.output == OutputMode.SKIP:
                continue
            recurse = self.write_field(field, data_parent, name_parent)
            if recurse and is_non_repeated_message(field):
                # Sub-messages are included so their types are available
                # transitively.
                code_info.add_include(Where.HEADER, field.message_type)
                self.write_message(
                    field.message_type,
                    f"{data_parent}mutable_{cpp_field_name(field)}()->",
                    name_parent + (builder.name or camel_case_name(field.name)),
                    depth + 1,
                    stack,
                )
            map_value_descriptor = maybe_get_map_value_descriptor(field)
            if map_value_descriptor is not None:
                code_info.add_include(Where.HEADER, map_value_descriptor)
