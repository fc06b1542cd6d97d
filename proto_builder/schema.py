"""Resolved, read-only view of a set of .proto files.

The tree is loaded from a ``google.protobuf.FileDescriptorSet`` (as produced by
``protoc --include_imports -o``) and exposes the bits the generator needs:
qualified names, field kinds, references to nested types and the builder
annotations stored in the field and message options.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dc_field
import logging

from google.protobuf.descriptor import FieldDescriptor as PbFieldDescriptor
from google.protobuf.descriptor_pb2 import (
    DescriptorProto,
    EnumDescriptorProto,
    FieldDescriptorProto,
    FileDescriptorProto,
    FileDescriptorSet,
)

from proto_builder.core import DescriptorError
from proto_builder.options_pb import FieldAnnotations, MessageAnnotations

_LOGGER = logging.getLogger(__name__)

CPPTYPE_NAMES = {
    PbFieldDescriptor.CPPTYPE_INT32: "int32",
    PbFieldDescriptor.CPPTYPE_INT64: "int64",
    PbFieldDescriptor.CPPTYPE_UINT32: "uint32",
    PbFieldDescriptor.CPPTYPE_UINT64: "uint64",
    PbFieldDescriptor.CPPTYPE_DOUBLE: "double",
    PbFieldDescriptor.CPPTYPE_FLOAT: "float",
    PbFieldDescriptor.CPPTYPE_BOOL: "bool",
    PbFieldDescriptor.CPPTYPE_ENUM: "enum",
    PbFieldDescriptor.CPPTYPE_STRING: "string",
    PbFieldDescriptor.CPPTYPE_MESSAGE: "message",
}


def _join(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


@dataclass(eq=False)
class FileDescriptor:
    name: str
    package: str
    dependencies: list[str] = dc_field(default_factory=list)
    message_types: list[MessageDescriptor] = dc_field(default_factory=list)
    enum_types: list[EnumDescriptor] = dc_field(default_factory=list)

    def __repr__(self) -> str:
        return f"FileDescriptor({self.name!r})"


@dataclass(eq=False)
class EnumDescriptor:
    name: str
    full_name: str
    file: FileDescriptor
    containing_type: MessageDescriptor | None = None
    values: list[str] = dc_field(default_factory=list)

    def __repr__(self) -> str:
        return f"EnumDescriptor({self.full_name!r})"


@dataclass(eq=False)
class MessageDescriptor:
    name: str
    full_name: str
    file: FileDescriptor
    containing_type: MessageDescriptor | None = None
    fields: list[FieldDescriptor] = dc_field(default_factory=list)
    nested_types: list[MessageDescriptor] = dc_field(default_factory=list)
    enum_types: list[EnumDescriptor] = dc_field(default_factory=list)
    map_entry: bool = False
    annotation: object | None = None

    def __repr__(self) -> str:
        return f"MessageDescriptor({self.full_name!r})"

    def find_field_by_name(self, name: str) -> FieldDescriptor | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def has_annotation(self) -> bool:
        return self.annotation is not None


@dataclass(eq=False)
class FieldDescriptor:
    name: str
    full_name: str
    number: int
    type: int
    label: int
    containing_type: MessageDescriptor
    type_name: str = ""
    message_type: MessageDescriptor | None = None
    enum_type: EnumDescriptor | None = None
    has_default_value: bool = False
    default_value: str = ""
    annotations: list = dc_field(default_factory=list)

    def __repr__(self) -> str:
        return f"FieldDescriptor({self.full_name!r})"

    @property
    def file(self) -> FileDescriptor:
        return self.containing_type.file

    @property
    def is_repeated(self) -> bool:
        return self.label == FieldDescriptorProto.LABEL_REPEATED

    @property
    def is_map(self) -> bool:
        return self.message_type is not None and self.message_type.map_entry

    @property
    def cpp_type(self) -> int:
        return PbFieldDescriptor.ProtoTypeToCppProtoType(self.type)

    @property
    def cpp_type_name(self) -> str:
        return CPPTYPE_NAMES[self.cpp_type]


class SchemaPool:
    """All files of one FileDescriptorSet, with references resolved."""

    def __init__(self) -> None:
        self.files: dict[str, FileDescriptor] = {}
        self.messages: dict[str, MessageDescriptor] = {}
        self.enums: dict[str, EnumDescriptor] = {}

    def find_file_by_name(self, name: str) -> FileDescriptor | None:
        return self.files.get(name)

    def find_message_type_by_name(self, full_name: str) -> MessageDescriptor | None:
        return self.messages.get(full_name.lstrip("."))

    def find_enum_type_by_name(self, full_name: str) -> EnumDescriptor | None:
        return self.enums.get(full_name.lstrip("."))


class _Loader:
    def __init__(self) -> None:
        self.pool = SchemaPool()
        self._pending: list[tuple[FieldDescriptor, FieldDescriptorProto]] = []

    def add_file(self, proto: FileDescriptorProto) -> None:
        if proto.name in self.pool.files:
            _LOGGER.debug("Skipping duplicate file %s", proto.name)
            return
        file = FileDescriptor(
            name=proto.name,
            package=proto.package,
            dependencies=list(proto.dependency),
        )
        self.pool.files[file.name] = file
        for enum_proto in proto.enum_type:
            file.enum_types.append(self._add_enum(enum_proto, file, None, proto.package))
        for message_proto in proto.message_type:
            file.message_types.append(
                self._add_message(message_proto, file, None, proto.package)
            )

    def _add_enum(
        self,
        proto: EnumDescriptorProto,
        file: FileDescriptor,
        parent: MessageDescriptor | None,
        scope: str,
    ) -> EnumDescriptor:
        enum = EnumDescriptor(
            name=proto.name,
            full_name=_join(scope, proto.name),
            file=file,
            containing_type=parent,
            values=[value.name for value in proto.value],
        )
        self.pool.enums[enum.full_name] = enum
        return enum

    def _add_message(
        self,
        proto: DescriptorProto,
        file: FileDescriptor,
        parent: MessageDescriptor | None,
        scope: str,
    ) -> MessageDescriptor:
        message = MessageDescriptor(
            name=proto.name,
            full_name=_join(scope, proto.name),
            file=file,
            containing_type=parent,
            map_entry=proto.options.map_entry,
        )
        if proto.HasField("options"):
            annotations = MessageAnnotations.FromString(
                proto.options.SerializeToString()
            )
            if annotations.HasField("message"):
                message.annotation = annotations.message
        self.pool.messages[message.full_name] = message

        for enum_proto in proto.enum_type:
            message.enum_types.append(
                self._add_enum(enum_proto, file, message, message.full_name)
            )
        for nested_proto in proto.nested_type:
            message.nested_types.append(
                self._add_message(nested_proto, file, message, message.full_name)
            )
        for field_proto in proto.field:
            field = FieldDescriptor(
                name=field_proto.name,
                full_name=_join(message.full_name, field_proto.name),
                number=field_proto.number,
                type=field_proto.type,
                label=field_proto.label,
                containing_type=message,
                type_name=field_proto.type_name,
                has_default_value=field_proto.HasField("default_value"),
                default_value=field_proto.default_value,
            )
            if field_proto.HasField("options"):
                field.annotations = list(
                    FieldAnnotations.FromString(
                        field_proto.options.SerializeToString()
                    ).field
                )
            message.fields.append(field)
            self._pending.append((field, field_proto))
        return message

    def resolve(self) -> SchemaPool:
        for field, proto in self._pending:
            if proto.type in (
                FieldDescriptorProto.TYPE_MESSAGE,
                FieldDescriptorProto.TYPE_GROUP,
            ):
                field.message_type = self.pool.find_message_type_by_name(
                    proto.type_name
                )
                if field.message_type is None:
                    raise DescriptorError(
                        f"Message type '{proto.type_name}' of field "
                        f"'{field.full_name}' not found."
                    )
            elif proto.type == FieldDescriptorProto.TYPE_ENUM:
                field.enum_type = self.pool.find_enum_type_by_name(proto.type_name)
                if field.enum_type is None:
                    raise DescriptorError(
                        f"Enum type '{proto.type_name}' of field "
                        f"'{field.full_name}' not found."
                    )
        self._pending.clear()
        return self.pool


def load_file_descriptor_set(descriptor_set: FileDescriptorSet) -> SchemaPool:
    """Load and resolve all files of a FileDescriptorSet."""
    loader = _Loader()
    for file_proto in descriptor_set.file:
        loader.add_file(file_proto)
    return loader.resolve()


def load_file_descriptor_protos(*files: FileDescriptorProto) -> SchemaPool:
    descriptor_set = FileDescriptorSet()
    descriptor_set.file.extend(files)
    return load_file_descriptor_set(descriptor_set)
