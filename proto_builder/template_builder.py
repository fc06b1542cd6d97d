"""Assemble the generated builders of several messages into complete files."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
import logging
import re

from proto_builder import templates
from proto_builder.config import ProtoBuilderConfigManager
from proto_builder.const import (
    EXPORT_PRAGMA,
    KEY_LOG_SOURCE_LOCATION,
    KEY_SOURCE_LOCATION,
    KEY_STATUS,
    KEY_STATUS_OR,
    Where,
)
from proto_builder.core import CheckError
from proto_builder.message_builder import (
    UNLIMITED_FIELD_DEPTH,
    MessageBuilder,
    MessageBuilderConfig,
    get_package_and_class_name,
)
from proto_builder.options_pb import MessageBuilderOptions
from proto_builder.schema import MessageDescriptor
from proto_builder.templates import TemplateDictionary
from proto_builder.util import absolute_cpp_type_name
from proto_builder.writer import BufferWriter, NoDoubleEmptyLineWriter, format_include

_LOGGER = logging.getLogger(__name__)

# Global types whose includes every status using builder needs.
STATUS_TYPES = (
    KEY_LOG_SOURCE_LOCATION,
    KEY_SOURCE_LOCATION,
    KEY_STATUS_OR,
    KEY_STATUS,
)


def use_build(options: MessageBuilderOptions) -> bool:
    return options.use_build or options.use_validator


def use_conversion(options: MessageBuilderOptions) -> bool:
    return options.use_conversion


def use_status(options: MessageBuilderOptions) -> bool:
    return options.use_status or options.use_build or options.use_validator


def use_validator(options: MessageBuilderOptions) -> bool:
    return options.use_validator


def strip_prefix_dir(path: str, prefix_dir_list: str) -> str:
    """Remove the first matching directory prefix from `path`.

    `prefix_dir_list` is a comma separated list of regular expressions that
    are anchored at the start. A trailing '/' of a prefix is optional and all
    slashes following a match are removed as well.
    """
    for prefix in prefix_dir_list.split(","):
        if prefix.endswith("/"):
            prefix = prefix[:-1]
        match = re.match(f"(?:{prefix})/*", path)
        if match is not None:
            return path[match.end() :]
    return path


def header_guard(path: str) -> str:
    """`foo_bar/baz.h` -> `FOO_BAR_BAZ_H_`."""
    return (
        "".join(
            char.upper() if char.isascii() and char.isalnum() else "_"
            for char in path
        )
        + "_"
    )


def interface_guard(path: str) -> str:
    guard = header_guard(path)
    if guard.endswith("_H_"):
        guard = guard[: -len("_H_")]
    return f"{guard}_INTERFACE_H_"


def get_package_for_descriptors(descriptors: list[MessageDescriptor]) -> list[str]:
    if not descriptors:
        raise CheckError("At least one descriptor required.")
    first_package = get_package_and_class_name(descriptors[0])[0]
    for descriptor in descriptors:
        if get_package_and_class_name(descriptor)[0] != first_package:
            raise CheckError("All proto descriptors must be in the same package.")
    return first_package.split(".") if first_package else []


@dataclass
class TemplateBuilderOptions:
    config: ProtoBuilderConfigManager
    writer: BufferWriter
    descriptors: list[MessageDescriptor]
    header: str
    max_field_depth: int = UNLIMITED_FIELD_DEPTH
    use_validator: bool = False
    validator_header: str = ""
    make_interface: bool = False
    interface_header: str = ""


class MessageOutput:
    """The builder of one message together with its private buffer."""

    def __init__(
        self,
        package_path: list[str],
        descriptor: MessageDescriptor,
        options: TemplateBuilderOptions,
    ) -> None:
        annotation = descriptor.annotation or MessageBuilderOptions()
        self.config = options.config.update(annotation)
        self.writer = BufferWriter(package_path)
        self.builder = MessageBuilder(
            MessageBuilderConfig(
                config=self.config,
                writer=self.writer,
                descriptor=descriptor,
                max_field_depth=options.max_field_depth,
                use_validator=options.use_validator,
                make_interface=options.make_interface,
            )
        )


class TemplateBuilder:
    def __init__(self, options: TemplateBuilderOptions) -> None:
        self.options = options
        self.package_path = get_package_for_descriptors(options.descriptors)
        self.header = options.header
        self.target_writer = NoDoubleEmptyLineWriter(options.writer)
        self.message_outputs = [
            MessageOutput(self.package_path, descriptor, options)
            for descriptor in options.descriptors
        ]

    def write_builder(self) -> None:
        for message in self.message_outputs:
            root_options = message.builder.root_options
            code_info = message.writer.code_info
            if use_status(root_options):
                for type_name in STATUS_TYPES:
                    self._add_includes_for_global_type(type_name, message)
            if use_validator(root_options) and self.options.validator_header:
                code_info.add_include(Where.HEADER, self.options.validator_header)
            code_info.add_include(Where.HEADER, "<utility>")
            _LOGGER.debug("Writing builder %s", message.builder.class_name)
            message.builder.write_builder()

        dictionary = self.fill_dictionary()
        targets = [Where.HEADER, Where.SOURCE]
        if self.options.make_interface:
            targets.append(Where.INTERFACE)
        for where in targets:
            for line in templates.render(where, dictionary).split("\n"):
                self.target_writer.write(where, line)
            # Files end with a new line.
            self.target_writer.write(where, "")

    @staticmethod
    def _add_includes_for_global_type(type_name: str, message: MessageOutput) -> None:
        type_options = message.config.get_type_info(type_name, special=True)
        if type_options is None:
            return
        code_info = message.writer.code_info
        for include in type_options.include:
            code_info.add_include(Where.HEADER, include)
        for include in type_options.source_include:
            code_info.add_include(Where.SOURCE, include)

    def fill_includes(
        self,
        section_name: str,
        wheres: Iterable[Where],
        strip_export: bool,
        drop_headers: set[str],
        dictionary: TemplateDictionary,
    ) -> None:
        """Add one `section_name` section per include line.

        System includes come first, separated from all other includes by an
        empty line.
        """
        all_includes: set[str] = set()
        for message in self.message_outputs:
            for where in wheres:
                all_includes.update(message.writer.code_info.get_includes(where))
        if self.options.make_interface:
            all_includes.add(f'"{self.options.interface_header}"')
        system_includes = []
        other_includes = []
        for include in sorted(all_includes):
            if strip_export and include.endswith(EXPORT_PRAGMA):
                include = include[: -len(EXPORT_PRAGMA)]
            if include in drop_headers:
                continue
            if include.startswith("<"):
                system_includes.append(f"#include {include}")
            else:
                other_includes.append(f"#include {include}")
        lines = list(system_includes)
        if system_includes and other_includes:
            lines.append("")
        lines.extend(other_includes)
        for line in lines:
            dictionary.add_section_dictionary(section_name).set_value("INCLUDE", line)

    def fill_dictionary_basics(
        self, message: MessageOutput, dictionary: TemplateDictionary
    ) -> None:
        builder = message.builder
        root_options = builder.root_options
        code_info = message.writer.code_info
        dictionary.set_value("CLASS_NAME", builder.class_name)
        dictionary.set_value("INTERFACE_NAME", f"{builder.class_name}Interface")
        base_classes = ""
        if root_options.base_class:
            base_classes = " : " + ", ".join(root_options.base_class)
        dictionary.set_value("BASE_CLASSES", base_classes)
        namespace = "::".join(self.package_path)
        dictionary.set_value("NAMESPACE", namespace)
        proto_type = code_info.relative_type(
            absolute_cpp_type_name(builder.root_descriptor.full_name)
        )
        for prefix in (f"::{namespace}::", f"{namespace}::"):
            if proto_type.startswith(prefix):
                proto_type = proto_type[len(prefix) :]
                break
        dictionary.set_value("PROTO_TYPE", proto_type)
        dictionary.set_value(
            "PROTO_TYPE_SHORT",
            code_info.relative_type(
                absolute_cpp_type_name(builder.root_descriptor.name)
            ),
        )
        root_data = root_options.root_data
        for suffix in (".", "->"):
            if root_data.endswith(suffix):
                root_data = root_data[: -len(suffix)]
                break
        dictionary.set_value("ROOT_DATA", root_data)
        dictionary.set_value(
            "VALIDATE_DATA", "ValidateData();" if use_validator(root_options) else ""
        )
        for key, value in message.config.get_expanded_types().items():
            dictionary.set_value(key, value)

    def maybe_add_section(
        self,
        message: MessageOutput,
        section: str,
        select: Callable[[MessageBuilderOptions], bool],
        dictionary: TemplateDictionary,
    ) -> None:
        """Add `USE_<X>` if `select` holds, `NOT_<X>` otherwise."""
        if select(message.builder.root_options):
            self.fill_dictionary_basics(
                message, dictionary.add_section_dictionary(section)
            )
        elif section.startswith("USE_"):
            self.fill_dictionary_basics(
                message,
                dictionary.add_section_dictionary(f"NOT_{section[len('USE_'):]}"),
            )

    def fill_dictionary(self) -> TemplateDictionary:
        dictionary = TemplateDictionary("ProtoBuilder")
        interface_header = self.options.interface_header
        dictionary.set_value("HEADER_GUARD", header_guard(self.header))
        dictionary.set_value("INTERFACE_GUARD", interface_guard(self.header))
        dictionary.set_value("HEADER_FILE", self.header)
        dictionary.set_value(
            "INTERFACE_FILE", interface_header if self.options.make_interface else ""
        )
        header_include = f'"{self.header}"'
        drop_interface_includes = {header_include, f'"{interface_header}"'}
        for message in self.message_outputs:
            for include in message.builder.root_options.builder_include:
                drop_interface_includes.add(format_include(include))
        self.fill_includes(
            "INCLUDES", (Where.HEADER, Where.SOURCE), False, set(), dictionary
        )
        self.fill_includes("HEADER_INCLUDES", (Where.HEADER,), False, set(), dictionary)
        self.fill_includes(
            "INTERFACE_INCLUDES",
            (Where.HEADER,),
            False,
            drop_interface_includes,
            dictionary,
        )
        self.fill_includes(
            "SOURCE_INCLUDES", (Where.SOURCE,), True, {header_include}, dictionary
        )
        for namespace in self.package_path:
            dictionary.add_section_dictionary("NAMESPACES").set_value(
                "NAMESPACE", namespace
            )
        if self.package_path:
            dictionary.add_section_dictionary("ALL_NAMESPACES").set_value(
                "NAMESPACE", "::".join(self.package_path)
            )
        for namespace in reversed(self.package_path):
            dictionary.add_section_dictionary("NAMESPACES_END").set_value(
                "NAMESPACE", namespace
            )
        for message in self.message_outputs:
            builder_dict = dictionary.add_section_dictionary("BUILDER")
            self.fill_dictionary_basics(message, builder_dict)
            for where, name in (
                (Where.HEADER, "GENERATED_HEADER_CODE"),
                (Where.INTERFACE, "GENERATED_INTERFACE_CODE"),
                (Where.SOURCE, "GENERATED_SOURCE_CODE"),
            ):
                builder_dict.set_value(name, message.writer.contents(where))
            self.maybe_add_section(message, "USE_BUILD", use_build, builder_dict)
            self.maybe_add_section(
                message, "USE_CONVERSION", use_conversion, builder_dict
            )
            self.maybe_add_section(message, "USE_STATUS", use_status, builder_dict)
            self.maybe_add_section(
                message, "USE_VALIDATOR", use_validator, builder_dict
            )
        return dictionary
