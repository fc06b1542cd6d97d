"""Protobuf messages describing builder annotations and the type map.

The messages mirror ``proto_builder/data/proto_builder.proto``. They are built
at import time from a FileDescriptorProto so the package does not need
generated ``_pb2`` modules.
"""

from __future__ import annotations

from enum import IntEnum

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory, text_format
from google.protobuf.descriptor_pb2 import FieldDescriptorProto

from proto_builder.const import FIELD_EXTENSION_NUMBER, MESSAGE_EXTENSION_NUMBER

_PACKAGE = "proto_builder"
_FILE_NAME = "proto_builder/proto_builder_options.proto"


class OutputMode(IntEnum):
    """How the methods for a field get generated."""

    SKIP = 0
    HEADER = 1
    SOURCE = 2
    BOTH = 3
    TEMPLATE = 4
    FOREACH = 5
    FOREACH_ADD = 6
    INITIALIZER_LIST = 7


def _field(
    name: str,
    number: int,
    field_type: int,
    *,
    repeated: bool = False,
    type_name: str | None = None,
    default: str | None = None,
) -> FieldDescriptorProto:
    field = FieldDescriptorProto(
        name=name,
        number=number,
        type=field_type,
        label=(
            FieldDescriptorProto.LABEL_REPEATED
            if repeated
            else FieldDescriptorProto.LABEL_OPTIONAL
        ),
    )
    if type_name is not None:
        field.type_name = type_name
    if default is not None:
        field.default_value = default
    return field


def _string(name: str, number: int, **kwargs) -> FieldDescriptorProto:
    return _field(name, number, FieldDescriptorProto.TYPE_STRING, **kwargs)


def _bool(name: str, number: int) -> FieldDescriptorProto:
    return _field(name, number, FieldDescriptorProto.TYPE_BOOL)


def _message(name: str, number: int, type_name: str, **kwargs) -> FieldDescriptorProto:
    return _field(
        name, number, FieldDescriptorProto.TYPE_MESSAGE, type_name=type_name, **kwargs
    )


def _map_entry(
    name: str, value: FieldDescriptorProto
) -> descriptor_pb2.DescriptorProto:
    entry = descriptor_pb2.DescriptorProto(name=name)
    entry.field.append(_string("key", 1))
    value.number = 2
    entry.field.append(value)
    entry.options.map_entry = True
    return entry


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file = descriptor_pb2.FileDescriptorProto(
        name=_FILE_NAME, package=_PACKAGE, syntax="proto2"
    )
    fbo_name = f".{_PACKAGE}.FieldBuilderOptions"

    fbo = file.message_type.add(name="FieldBuilderOptions")
    output_mode = fbo.enum_type.add(name="OutputMode")
    for mode in OutputMode:
        output_mode.value.add(name=mode.name, number=mode.value)
    fbo.nested_type.append(_map_entry("DataEntry", _string("value", 2)))
    fbo.field.extend(
        [
            _string("type", 1),
            _string("decorated_type", 2),
            _string("name", 3),
            _string("value", 4),
            _string("conversion", 5),
            _string("predicate", 6),
            _string("include", 7, repeated=True),
            _string("source_include", 8, repeated=True),
            _field(
                "output",
                9,
                FieldDescriptorProto.TYPE_ENUM,
                type_name=f"{fbo_name}.OutputMode",
                default=OutputMode.BOTH.name,
            ),
            _message("data", 10, f"{fbo_name}.DataEntry", repeated=True),
            _bool("add_source_location", 11),
            _bool("override", 12),
            _bool("recurse", 13),
            _bool("automatic", 14),
            _string("macro", 15),
            _string("param", 16),
            _string("dependency", 17, repeated=True),
        ]
    )

    mbo = file.message_type.add(name="MessageBuilderOptions")
    mbo.nested_type.append(_map_entry("TypeMapEntry", _message("value", 2, fbo_name)))
    mbo.field.extend(
        [
            _string("class_name", 1),
            _string("root_data", 2, default="data_."),
            _string("root_name", 3),
            _bool("use_build", 4),
            _bool("use_status", 5),
            _bool("use_validator", 6),
            _bool("use_conversion", 7),
            _string("include", 8, repeated=True),
            _string("builder_include", 9, repeated=True),
            _string("source_include", 10, repeated=True),
            _string("base_class", 11, repeated=True),
            _message(
                "type_map",
                12,
                f".{_PACKAGE}.MessageBuilderOptions.TypeMapEntry",
                repeated=True,
            ),
        ]
    )

    config = file.message_type.add(name="ProtoBuilderConfig")
    config.nested_type.append(_map_entry("TypeMapEntry", _message("value", 2, fbo_name)))
    config.field.append(
        _message(
            "type_map",
            1,
            f".{_PACKAGE}.ProtoBuilderConfig.TypeMapEntry",
            repeated=True,
        )
    )

    # Views on google.protobuf.FieldOptions / MessageOptions: parsing the
    # serialized options into these picks up the extension payloads.
    field_annotations = file.message_type.add(name="FieldAnnotations")
    field_annotations.field.append(
        _message("field", FIELD_EXTENSION_NUMBER, fbo_name, repeated=True)
    )
    message_annotations = file.message_type.add(name="MessageAnnotations")
    message_annotations.field.append(
        _message(
            "message",
            MESSAGE_EXTENSION_NUMBER,
            f".{_PACKAGE}.MessageBuilderOptions",
        )
    )
    return file


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(
        _POOL.FindMessageTypeByName(f"{_PACKAGE}.{name}")
    )


FieldBuilderOptions = _message_class("FieldBuilderOptions")
MessageBuilderOptions = _message_class("MessageBuilderOptions")
ProtoBuilderConfig = _message_class("ProtoBuilderConfig")
FieldAnnotations = _message_class("FieldAnnotations")
MessageAnnotations = _message_class("MessageAnnotations")


def short_debug_string(message) -> str:
    """Single line text format of a message."""
    return text_format.MessageToString(message, as_one_line=True)


def output_mode_name(options) -> str:
    return OutputMode(options.output).name


def parse_field_builder_options(text: str):
    return text_format.Parse(text, FieldBuilderOptions())


def parse_message_builder_options(text: str):
    return text_format.Parse(text, MessageBuilderOptions())


def parse_proto_builder_config(text: str):
    return text_format.Parse(text, ProtoBuilderConfig())
