"""Helpers translating schema elements into C++ type names."""

from __future__ import annotations

from google.protobuf.descriptor import FieldDescriptor as PbFieldDescriptor
from google.protobuf.descriptor_pb2 import FieldDescriptorProto

from proto_builder.const import TOKEN_TYPE
from proto_builder.core import CheckError
from proto_builder.helpers import c_escape, c_unescape
from proto_builder.options_pb import FieldBuilderOptions
from proto_builder.schema import FieldDescriptor, MessageDescriptor

INTEGER_TYPE_NAMES = {
    "int32": "int32_t",
    "int64": "int64_t",
    "uint32": "uint32_t",
    "uint64": "uint64_t",
    "sint32": "int32_t",
    "sint64": "int64_t",
    "fixed32": "uint32_t",
    "fixed64": "uint64_t",
    "sfixed32": "int32_t",
    "sfixed64": "int64_t",
}

# Identifiers protoc's C++ generator suffixes with an underscore.
CPP_KEYWORDS = frozenset(
    {
        "alignas",
        "alignof",
        "and",
        "and_eq",
        "asm",
        "auto",
        "bitand",
        "bitor",
        "bool",
        "break",
        "case",
        "catch",
        "char",
        "char8_t",
        "char16_t",
        "char32_t",
        "class",
        "co_await",
        "co_return",
        "co_yield",
        "compl",
        "concept",
        "const",
        "const_cast",
        "consteval",
        "constexpr",
        "constinit",
        "continue",
        "decltype",
        "default",
        "delete",
        "do",
        "double",
        "dynamic_cast",
        "else",
        "enum",
        "explicit",
        "export",
        "extern",
        "false",
        "float",
        "for",
        "friend",
        "goto",
        "if",
        "inline",
        "int",
        "long",
        "mutable",
        "namespace",
        "new",
        "noexcept",
        "not",
        "not_eq",
        "nullptr",
        "operator",
        "or",
        "or_eq",
        "private",
        "protected",
        "public",
        "register",
        "reinterpret_cast",
        "requires",
        "return",
        "short",
        "signed",
        "sizeof",
        "static",
        "static_assert",
        "static_cast",
        "struct",
        "switch",
        "template",
        "this",
        "thread_local",
        "throw",
        "true",
        "try",
        "typedef",
        "typeid",
        "typename",
        "union",
        "unsigned",
        "using",
        "virtual",
        "void",
        "volatile",
        "wchar_t",
        "while",
        "xor",
        "xor_eq",
    }
)


def absolute_cpp_type_name(cpp_type: str) -> str:
    """Turn a proto or C++ type name into a fully qualified C++ type name.

    Standard library names are kept as is, proto integer names are mapped to
    their <cstdint> names and everything else that has a scope gets the
    global `::` prefix.
    """
    if cpp_type.startswith("std::"):
        return cpp_type
    if cpp_type in INTEGER_TYPE_NAMES:
        return INTEGER_TYPE_NAMES[cpp_type]
    result = cpp_type.replace(".", "::")
    if result and result[0] != ":" and result.find(":", 2) != -1:
        result = "::" + result
    return result


def camel_case_name(name: str) -> str:
    """`foo_bar_3` -> `FooBar3`: capitalize after each `_`, then drop them."""
    result = []
    capitalize = True
    for char in name:
        if char == "_":
            capitalize = True
            continue
        result.append(char.upper() if capitalize else char)
        capitalize = False
    return "".join(result)


def cpp_field_name(field: FieldDescriptor) -> str:
    """The name protoc uses for the C++ accessors of a field."""
    result = field.name.lower()
    if result in CPP_KEYWORDS:
        result += "_"
    return result


def is_message(field: FieldDescriptor) -> bool:
    return field.cpp_type == PbFieldDescriptor.CPPTYPE_MESSAGE


def is_non_repeated_message(field: FieldDescriptor) -> bool:
    return is_message(field) and not field.is_repeated


def get_key_value_types(
    field: FieldDescriptor,
) -> tuple[FieldDescriptor, FieldDescriptor]:
    if not field.is_map:
        raise CheckError(f"Not a map field: {field.full_name}")
    entry = field.message_type
    return entry.find_field_by_name("key"), entry.find_field_by_name("value")


def maybe_get_map_value_descriptor(field: FieldDescriptor) -> MessageDescriptor | None:
    """Message type of the values of a map field, if any."""
    if not field.is_map:
        return None
    _, value = get_key_value_types(field)
    return value.message_type


def get_field_type(field: FieldDescriptor) -> str:
    """The C++ type of a single element of the field."""
    if field.is_map:
        key, value = get_key_value_types(field)
        return (
            f"::google::protobuf::Map<{get_field_type(key)}, "
            f"{get_field_type(value)}>::value_type"
        )
    if field.message_type is not None:
        return absolute_cpp_type_name(field.message_type.full_name)
    if field.enum_type is not None:
        return absolute_cpp_type_name(field.enum_type.full_name)
    if field.cpp_type == PbFieldDescriptor.CPPTYPE_STRING:
        return "std::string"
    return absolute_cpp_type_name(field.cpp_type_name)


def get_options_type(options: FieldBuilderOptions, field: FieldDescriptor) -> str:
    if options.HasField("type"):
        return options.type
    return get_field_type(field)


def merge_field_builder_options(
    from_field: FieldBuilderOptions, defaults: FieldBuilderOptions
) -> FieldBuilderOptions:
    """Merge field options onto type defaults.

    Field settings win except for `type`: a non-empty default type always
    replaces the one of the field, which is how type map keys like
    `@ToInt64Seconds` resolve into real C++ types.
    """
    result = FieldBuilderOptions()
    result.CopyFrom(defaults)
    result.MergeFrom(from_field)
    if defaults.type:
        result.type = defaults.type
    return result


def update_field_builder_options(
    options: FieldBuilderOptions, field: FieldDescriptor
) -> FieldBuilderOptions:
    """Replace `@type@` in the options type with the type of the field."""
    result = FieldBuilderOptions()
    result.CopyFrom(options)
    if TOKEN_TYPE in result.type:
        result.type = result.type.replace(TOKEN_TYPE, get_field_type(field))
    return result


def get_field_builder_options_or_default(
    field: FieldDescriptor, index: int = 0
) -> FieldBuilderOptions:
    if index < len(field.annotations):
        return field.annotations[index]
    return FieldBuilderOptions()


def _float_as_string(value: str) -> str:
    return f"{float(value):g}"


def default_field_value_as_string(field: FieldDescriptor) -> str:
    """C++ expression for the default value of a scalar field."""
    if not field.has_default_value:
        return "{}"
    field_type = field.type
    if field_type in (
        FieldDescriptorProto.TYPE_DOUBLE,
        FieldDescriptorProto.TYPE_FLOAT,
    ):
        return _float_as_string(field.default_value)
    if field_type == FieldDescriptorProto.TYPE_BOOL:
        return "true" if field.default_value == "true" else "false"
    if field_type == FieldDescriptorProto.TYPE_STRING:
        return f'"{c_escape(field.default_value)}"'
    if field_type == FieldDescriptorProto.TYPE_BYTES:
        # protoc stores bytes defaults escaped already
        return f'"{c_escape(c_unescape(field.default_value))}"'
    if field_type == FieldDescriptorProto.TYPE_ENUM:
        return field.default_value
    if field.cpp_type in (
        PbFieldDescriptor.CPPTYPE_INT32,
        PbFieldDescriptor.CPPTYPE_INT64,
        PbFieldDescriptor.CPPTYPE_UINT32,
        PbFieldDescriptor.CPPTYPE_UINT64,
    ):
        return str(int(field.default_value))
    return "{}"
