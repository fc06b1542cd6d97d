"""Writes the builder methods for a single field."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import NamedTuple

from google.protobuf.descriptor_pb2 import FieldDescriptorProto

from proto_builder.config import ProtoBuilderConfigManager
from proto_builder.const import (
    KEY_SOURCE_LOCATION,
    TOKEN_DEFAULT,
    TOKEN_SOURCE_LOCATION,
    TOKEN_TYPE,
    TOKEN_VALUE,
    Where,
)
from proto_builder.options_pb import (
    FieldBuilderOptions,
    OutputMode,
    output_mode_name,
    short_debug_string,
)
from proto_builder.schema import FieldDescriptor
from proto_builder.util import (
    camel_case_name,
    cpp_field_name,
    default_field_value_as_string,
    get_field_type,
    get_key_value_types,
    get_options_type,
    is_message,
    merge_field_builder_options,
    update_field_builder_options,
)
from proto_builder.writer import BuilderWriter

_LOGGER = logging.getLogger(__name__)


class ModeTraits(NamedTuple):
    template: bool
    foreach: bool
    foreach_add: bool
    initializer_list: bool
    header: bool
    source: bool


# template, foreach, foreach_add, initializer_list, header, source
MODE_TRAITS: dict[OutputMode, ModeTraits] = {
    OutputMode.SKIP: ModeTraits(False, False, False, False, False, False),
    OutputMode.HEADER: ModeTraits(False, False, False, False, True, False),
    OutputMode.SOURCE: ModeTraits(False, False, False, False, False, True),
    OutputMode.BOTH: ModeTraits(False, False, False, False, True, True),
    OutputMode.TEMPLATE: ModeTraits(True, False, False, False, True, False),
    OutputMode.FOREACH: ModeTraits(True, True, False, False, True, False),
    OutputMode.FOREACH_ADD: ModeTraits(True, True, True, False, True, False),
    OutputMode.INITIALIZER_LIST: ModeTraits(True, True, True, True, True, False),
}


def replace_all(text: str, replacements: list[tuple[str, str]]) -> str:
    """Replace all occurrences of the given tokens in a single pass.

    Replaced text is never scanned again, for tokens matching at the same
    position the first one in `replacements` wins.
    """
    lookup: dict[str, str] = {}
    for token, value in replacements:
        if token:
            lookup.setdefault(token, value)
    if not lookup:
        return text
    pattern = re.compile("|".join(re.escape(token) for token in lookup))
    return pattern.sub(lambda match: lookup[match.group(0)], text)


@dataclass(frozen=True)
class FieldData:
    config: ProtoBuilderConfigManager
    writer: BuilderWriter
    raw_field_options: FieldBuilderOptions
    field: FieldDescriptor
    class_name: str
    data_parent: str
    name_parent: str
    use_get_raw_data: bool = False
    make_interface: bool = False
    first_method: bool = False
    use_status: bool = False

    def debug_string(self) -> str:
        return "\n".join(
            [
                f"Field: {self.field.full_name}",
                f"Options: {short_debug_string(self.raw_field_options)}",
                f"class_name: {self.class_name}",
                f"data_parent: {self.data_parent}",
                f"name_parent: {self.name_parent}",
            ]
        )


class FieldBuilder:
    """Writes the code for one field and one set of options.

    The options of the field are merged with the type map entry of their
    `type` (or of the field type) before anything gets written.
    """

    def __init__(self, data: FieldData) -> None:
        self.data = data
        self.type_info = data.config.get_type_info(
            get_options_type(data.raw_field_options, data.field)
        )
        self.options = update_field_builder_options(
            merge_field_builder_options(
                data.raw_field_options, self.type_info or FieldBuilderOptions()
            ),
            data.field,
        )
        self._traits = MODE_TRAITS[OutputMode(self.options.output)]

    @property
    def use_template(self) -> bool:
        return self._traits.template

    @property
    def use_foreach(self) -> bool:
        return self._traits.foreach

    @property
    def use_foreach_add(self) -> bool:
        return self._traits.foreach_add

    @property
    def use_initializer_list(self) -> bool:
        return self._traits.initializer_list

    @property
    def use_header(self) -> bool:
        return self._traits.header

    @property
    def use_source(self) -> bool:
        return self._traits.source

    @property
    def use_set_from_builder(self) -> bool:
        if not self.data.first_method or not self.data.use_get_raw_data:
            return False
        if not self.data.field.is_map:
            return self.data.field.message_type is not None
        _, value_type = get_key_value_types(self.data.field)
        return value_type.message_type is not None

    @property
    def use_map_insert(self) -> bool:
        return self.data.field.is_map and (
            self.use_initializer_list or not self.use_foreach_add
        )

    def _write(self, to: Where, *parts: str) -> None:
        self.data.writer.write(to, "".join(parts))

    def camel_case_field_name(self, name: str = "") -> str:
        return self.data.name_parent + (name or camel_case_name(self.data.field.name))

    def get_relative_field_type(self) -> str:
        return self.data.writer.code_info.relative_type(get_field_type(self.data.field))

    def get_raw_cpp_type(self) -> str:
        return self.options.type or get_field_type(self.data.field)

    def apply_data(self, text: str, value: str) -> str:
        """Expand the `@...@` and `%key%` tokens of a conversion or predicate."""
        if not text:
            return value
        source_location_key = (
            f"{KEY_SOURCE_LOCATION}%param"
            if self.data.raw_field_options.add_source_location
            else f"{KEY_SOURCE_LOCATION}%value"
        )
        replacements = [
            (TOKEN_TYPE, self.get_relative_field_type()),
            (TOKEN_VALUE, value),
            (TOKEN_DEFAULT, default_field_value_as_string(self.data.field)),
            (
                TOKEN_SOURCE_LOCATION,
                self.data.config.get_expanded_type(source_location_key),
            ),
        ]
        replacements.extend(
            (f"%{key}%", data_value)
            for key, data_value in sorted(self.options.data.items())
        )
        return replace_all(text, replacements)

    @staticmethod
    def decorate(decorate: bool, cpp_type: str) -> str:
        """`T` -> `const T&` unless `T` is a view, a pointer or a reference."""
        decorate = (
            decorate
            and cpp_type != "absl::string_view"
            and not cpp_type.endswith(("*", "&"))
        )
        return f"const {cpp_type}&" if decorate else cpp_type

    def parameter_type(self, decorate: bool) -> str:
        if self.use_initializer_list:
            item_type = self.get_raw_cpp_type() if self.data.field.is_map else "Item"
            return f"std::initializer_list<{item_type}>"
        if self.use_template:
            return self.decorate(decorate, "Container" if self.use_foreach else "Value")
        if decorate and self.options.decorated_type:
            return self.options.decorated_type
        cpp_type = self.get_raw_cpp_type()
        decorate = (
            decorate
            and ("::" in cpp_type or cpp_type == "string")
            and self.data.field.type != FieldDescriptorProto.TYPE_ENUM
        )
        return self.decorate(
            decorate, self.data.writer.code_info.relative_type(cpp_type)
        )

    def method_name(self) -> str:
        name = self.camel_case_field_name(self.options.name)
        if self.data.field.is_map:
            return f"Insert{name}"
        if self.data.field.is_repeated:
            return f"Add{name}"
        return f"Set{name}"

    def _source_location_options(self) -> FieldBuilderOptions | None:
        return self.data.config.get_type_info(KEY_SOURCE_LOCATION, special=True)

    def method_param(self, to: Where) -> str:
        param = ""
        if not self.options.value:
            name = "key_value_pair" if self.data.field.is_map else "value"
            plural = "s" if self.use_foreach else ""
            param = f"{self.parameter_type(True)} {name}{plural}"
        if self.options.add_source_location:
            src_loc_options = self._source_location_options()
            if src_loc_options is not None:
                if param:
                    param += ", "
                param += (
                    f"{src_loc_options.type} "
                    f"{self.data.config.get_expanded_type(f'{KEY_SOURCE_LOCATION}%param')}"
                )
                if to == Where.HEADER and src_loc_options.value:
                    param += f" = {src_loc_options.value}"
        return param

    def set_value(self) -> str:
        """The expression that gets stored in the field."""
        if self.options.value:
            value = self.options.value
        elif self.use_map_insert and (
            not self.use_foreach or not self.options.conversion
        ):
            value = "key_value_pairs" if self.use_foreach else "key_value_pair"
        else:
            value = "v" if self.use_foreach else "value"
        return self.apply_data(self.options.conversion, value)

    def predicate(self) -> str:
        if self.options.value:
            value = self.options.value
        elif self.use_map_insert:
            value = "key_value_pairs" if self.use_foreach else "key_value_pair"
        else:
            value = "value"
        return self.apply_data(self.options.predicate, value)

    def write_template_line(self, to: Where) -> None:
        if self.use_initializer_list:
            # Map items are compound types and cannot be deduced from braces.
            if not self.data.field.is_map:
                self._write(to, "template <class Item>")
        elif self.use_template:
            parameter_type = self.parameter_type(False)
            if self.use_foreach:
                self._write(
                    to,
                    f"template <class {parameter_type}, class = typename "
                    f"std::enable_if<!std::is_convertible<{parameter_type}, "
                    f"{self.get_relative_field_type()}>::value>::type>",
                )
            else:
                self._write(to, f"template <class {parameter_type}>")

    def write_declaration(self, to: Where) -> None:
        self.write_template_line(to)
        make_interface = self.data.make_interface
        is_virtual = to == Where.INTERFACE and make_interface
        is_override = (
            to != Where.INTERFACE and make_interface
        ) or self.data.raw_field_options.override
        is_abstract = to == Where.INTERFACE and make_interface
        prefix = "virtual " if is_virtual else ""
        if is_override:
            suffix = " override"
        elif is_abstract:
            suffix = " =0"
        else:
            suffix = ""
        self._write(
            to,
            f"{prefix}{self.data.class_name}& {self.method_name()}"
            f"({self.method_param(Where.HEADER)}){suffix};",
        )
        if not make_interface:
            self.write_set_from_builder()

    def write_set_from_builder(self) -> None:
        """Overload that takes another builder and moves its data in."""
        if not self.use_set_from_builder:
            return
        cpp_type = self.get_raw_cpp_type()
        params = "Builder builder"
        args = "*std::move(value)"
        if self.data.field.is_map:
            key_type, value_type = get_key_value_types(self.data.field)
            cpp_type = get_field_type(value_type)
            decorate = key_type.type == FieldDescriptorProto.TYPE_STRING
            params = f"{self.decorate(decorate, get_field_type(key_type))} key, {params}"
            args = f"{{key, {args}}}"
        method_name = self.method_name()
        for line in (
            "",
            "template <",
            "    class Builder,",
            "    class = std::enable_if_t<std::is_same_v<",
            "        std::invoke_result_t<",
            "            decltype(&Builder::MaybeGetRawData), Builder>,",
            f"        absl::StatusOr<{cpp_type}>>>>",
            f"{self.data.class_name}& {method_name}({params}) {{",
            "  auto value = std::move(builder).MaybeGetRawData();",
            "  if (value.ok()) {",
            # Conversions and predicates are applied by the regular setter.
            f"    {method_name}({args});",
            "  } else {",
            "    UpdateStatus(value.status());",
            "  }",
            "  return *this;",
            "}",
            "",
        ):
            self._write(Where.HEADER, line)

    def write_body(self, to: Where) -> None:
        data = self.data
        field = data.field
        field_name = cpp_field_name(field)
        if self.use_map_insert:
            if not self.use_foreach:
                self._write(
                    to,
                    f"  {data.data_parent}mutable_{field_name}()->insert(",
                    f"{self.set_value()});",
                )
                return
            if not self.options.conversion:
                set_value = self.set_value()
                self._write(
                    to,
                    f"  {data.data_parent}mutable_{field_name}()->insert(",
                    f"{set_value}.begin(), {set_value}.end());",
                )
                return
        if field.is_repeated:
            add_method = f"{data.data_parent}add_{field_name}"
            if is_message(field):
                add_value = f"*{add_method}() = {self.set_value()};"
            else:
                add_value = f"{add_method}({self.set_value()});"
            if self.use_foreach or field.is_map:
                values = "key_value_pairs" if field.is_map else "values"
                self._write(to, f"  for (const auto& v : {values}) {{")
                if self.use_foreach_add:
                    source_location = ""
                    if self.options.add_source_location:
                        source_location = ", " + data.config.get_expanded_type(
                            f"{KEY_SOURCE_LOCATION}%param"
                        )
                    if field.is_map and not self.options.conversion:
                        set_value = self.set_value()
                        self._write(
                            to,
                            f"    Insert{self.camel_case_field_name()}(",
                            f"{get_field_type(field)}({set_value}.first, ",
                            f"{set_value}.second){source_location});",
                        )
                    else:
                        method = "Insert" if field.is_map else "Add"
                        self._write(
                            to,
                            f"    {method}{self.camel_case_field_name()}(",
                            f"{self.set_value()}{source_location});",
                        )
                else:
                    self._write(to, f"    {add_value}")
                self._write(to, "  }")
            else:
                self._write(to, f"  {add_value}")
        elif is_message(field):
            self._write(
                to,
                f"  *{data.data_parent}mutable_{field_name}() = {self.set_value()};",
            )
        else:
            self._write(
                to, f"  {data.data_parent}set_{field_name}({self.set_value()});"
            )

    def write_implementation(self, to: Where) -> None:
        method_name = self.method_name()
        function_name = (
            method_name if to == Where.HEADER else f"{self.data.class_name}::{method_name}"
        )
        self._write(to, "")
        self.write_template_line(to)
        suffix = (
            " override"
            if to == Where.HEADER and self.data.raw_field_options.override
            else ""
        )
        self._write(
            to,
            f"{self.data.class_name}& {function_name}({self.method_param(to)}){suffix} {{",
        )
        self.write_predicate(to)
        self.write_body(to)
        self._write(to, "  return *this;")
        self._write(to, "}")
        self._write(to, "")

    def write_predicate(self, to: Where) -> None:
        """Guard the body with the predicate of the field, if there is one.

        With `use_status` a failing predicate only records its status when the
        builder is still ok, so the first error sticks until `UpdateStatus`
        resets it. Without status the value is silently dropped.
        """
        if not self.data.raw_field_options.predicate:
            return
        predicate = self.predicate()
        if self.data.use_status:
            self._write(to, f"const auto status = {predicate};")
            self._write(to, "if (!status.ok()) {")
            self._write(to, "  if (status_.ok()) {")
            self._write(to, "    UpdateStatus(status);")
            self._write(to, "  }")
        else:
            self._write(to, f"if (!{predicate}.ok()) {{")
        self._write(to, "  return *this;")
        self._write(to, "}")

    def write_error(self, error: str) -> None:
        lines = [
            "",
            error,
            f"Field: {self.data.field.full_name}",
            f"FieldBuilderOptions: <{short_debug_string(self.options)}>",
            "",
        ]
        for line in lines:
            if line:
                _LOGGER.error(line)
                line = f"#error {line}"
            if self.use_header:
                self._write(Where.HEADER, line)
            if self.use_source:
                self._write(Where.SOURCE, line)
            if self.data.make_interface:
                self._write(Where.INTERFACE, line)

    def is_valid_or_write_error(self) -> bool:
        output = f"'output: {output_mode_name(self.options)}'"
        if self.use_foreach and not self.data.field.is_repeated:
            self.write_error(f"Cannot use {output} with a non repeated field.")
            return False
        if self.use_template and self.options.HasField("value"):
            self.write_error(f"Cannot use {output} and specify a value.")
            return False
        return True

    def _add_includes_from(self, options: FieldBuilderOptions) -> None:
        code_info = self.data.writer.code_info
        for include in options.include:
            code_info.add_include(Where.HEADER, include)
        for include in options.source_include:
            code_info.add_include(Where.SOURCE, include)

    def add_includes(self) -> None:
        field = self.data.field
        code_info = self.data.writer.code_info
        if field.message_type is not None:
            code_info.add_include(Where.HEADER, field.message_type)
        elif field.enum_type is not None:
            code_info.add_include(Where.HEADER, field.enum_type)
        elif field.type in (
            FieldDescriptorProto.TYPE_STRING,
            FieldDescriptorProto.TYPE_BYTES,
        ):
            # Only the plain std::string parameter needs <string>.
            if get_options_type(self.data.raw_field_options, field) == "std::string":
                code_info.add_include(Where.HEADER, "<string>")
        self._add_includes_from(self.options)
        if self.options.add_source_location:
            src_loc_options = self._source_location_options()
            if src_loc_options is not None:
                self._add_includes_from(src_loc_options)

    def write_field(self) -> None:
        if self.options.output == OutputMode.SKIP:
            return
        if not self.is_valid_or_write_error():
            return
        self.add_includes()
        if self.use_header:
            if self.use_template or self.use_foreach:
                self.write_implementation(Where.HEADER)
            else:
                self.write_declaration(Where.HEADER)
        if self.use_source:
            self.write_implementation(Where.SOURCE)
        if self.data.make_interface:
            self.write_declaration(Where.INTERFACE)
