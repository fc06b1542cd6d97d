"""
proto_builder Unittests
~~~~~~~~~~~~~~~~~~~~~~~

Configuration file for unit tests.

The schemas used by the tests are written as text format FileDescriptorProtos.
Builder annotations are attached the same way protoc stores them: as the
serialized extension payload inside the field and message options.

"""

from pathlib import Path
import sys

from google.protobuf import text_format
from google.protobuf.descriptor_pb2 import FileDescriptorProto
import pytest

here = Path(__file__).parent

# Configure location of package root
package_root = here.parent.parent
sys.path.insert(0, package_root.as_posix())

from proto_builder.config import reset_global_config  # noqa: E402
from proto_builder.options_pb import (  # noqa: E402
    FieldAnnotations,
    MessageAnnotations,
    parse_field_builder_options,
    parse_message_builder_options,
)
from proto_builder.schema import load_file_descriptor_protos  # noqa: E402

TEST_MESSAGE_PROTO = "proto_builder/tests/test_message.proto"
TEST_TYPES_PROTO = "proto_builder/tests/test_types.proto"
SOURCE_LOCATION_PROTO = "proto_builder/tests/source_location.proto"
IMPORT_PROTO = "proto_builder/tests/import.proto"
TEST_IMPORT_MESSAGE_PROTO = "proto_builder/tests/test_import_message.proto"
DURATION_PROTO = "google/protobuf/duration.proto"
AUTOMATIC_PROTO = "proto_builder/tests/automatic.proto"

_TEST_MESSAGE = f"""
name: "{TEST_MESSAGE_PROTO}"
package: "proto_builder"
dependency: "{IMPORT_PROTO}"
message_type {{
  name: "TestMessage"
  field {{ name: "one" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }}
  field {{ name: "two" number: 2 label: LABEL_REPEATED type: TYPE_INT32 }}
  field {{
    name: "three" number: 3 label: LABEL_OPTIONAL type: TYPE_MESSAGE
    type_name: ".proto_builder.TestMessage.Sub"
  }}
  field {{ name: "namespace" number: 4 label: LABEL_OPTIONAL type: TYPE_INT32 }}
  field {{ name: "and" number: 5 label: LABEL_REPEATED type: TYPE_INT32 }}
  field {{
    name: "eight" number: 8 label: LABEL_REPEATED type: TYPE_MESSAGE
    type_name: ".proto_builder.TestMessage.EightEntry"
  }}
  field {{
    name: "nine" number: 9 label: LABEL_REPEATED type: TYPE_MESSAGE
    type_name: ".proto_builder.TestMessage.NineEntry"
  }}
  field {{
    name: "imported" number: 10 label: LABEL_OPTIONAL type: TYPE_MESSAGE
    type_name: ".proto_builder.Imported"
  }}
  field {{ name: "string22" number: 22 label: LABEL_OPTIONAL type: TYPE_STRING }}
  field {{ name: "string24" number: 24 label: LABEL_OPTIONAL type: TYPE_STRING }}
  field {{ name: "bytes26" number: 26 label: LABEL_OPTIONAL type: TYPE_BYTES }}
  field {{
    name: "skipped" number: 27 label: LABEL_OPTIONAL type: TYPE_INT32
  }}
  field {{
    name: "seconds" number: 28 label: LABEL_OPTIONAL type: TYPE_INT64
  }}
  nested_type {{
    name: "Sub"
    field {{ name: "sub_one" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }}
    field {{ name: "__sub__3__" number: 3 label: LABEL_OPTIONAL type: TYPE_INT32 }}
  }}
  nested_type {{
    name: "EightEntry"
    field {{ name: "key" number: 1 label: LABEL_OPTIONAL type: TYPE_STRING }}
    field {{ name: "value" number: 2 label: LABEL_OPTIONAL type: TYPE_STRING }}
    options {{ map_entry: true }}
  }}
  nested_type {{
    name: "NineEntry"
    field {{ name: "key" number: 1 label: LABEL_OPTIONAL type: TYPE_STRING }}
    field {{
      name: "value" number: 2 label: LABEL_OPTIONAL type: TYPE_MESSAGE
      type_name: ".proto_builder.MapValue"
    }}
    options {{ map_entry: true }}
  }}
}}
"""

_IMPORT = f"""
name: "{IMPORT_PROTO}"
package: "proto_builder"
message_type {{
  name: "Imported"
  field {{ name: "value" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }}
}}
message_type {{
  name: "MapValue"
  field {{ name: "value" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }}
}}
"""

_TEST_TYPES = f"""
name: "{TEST_TYPES_PROTO}"
package: "proto_builder"
message_type {{
  name: "TestTypes"
  enum_type {{
    name: "Enum"
    value {{ name: "ENUM_A" number: 0 }}
    value {{ name: "ENUM_B" number: 1 }}
  }}
  nested_type {{
    name: "SubMsg"
    field {{ name: "value" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }}
  }}
  nested_type {{
    name: "Optional"
    field {{ name: "field_double" number: 1 label: LABEL_OPTIONAL type: TYPE_DOUBLE }}
    field {{ name: "field_float" number: 2 label: LABEL_OPTIONAL type: TYPE_FLOAT }}
    field {{ name: "field_int64" number: 3 label: LABEL_OPTIONAL type: TYPE_INT64 }}
    field {{ name: "field_uint64" number: 4 label: LABEL_OPTIONAL type: TYPE_UINT64 }}
    field {{ name: "field_int32" number: 5 label: LABEL_OPTIONAL type: TYPE_INT32 }}
    field {{ name: "field_fixed64" number: 6 label: LABEL_OPTIONAL type: TYPE_FIXED64 }}
    field {{ name: "field_fixed32" number: 7 label: LABEL_OPTIONAL type: TYPE_FIXED32 }}
    field {{ name: "field_bool" number: 8 label: LABEL_OPTIONAL type: TYPE_BOOL }}
    field {{ name: "field_string" number: 9 label: LABEL_OPTIONAL type: TYPE_STRING }}
    field {{
      name: "fieldgroup" number: 10 label: LABEL_OPTIONAL type: TYPE_GROUP
      type_name: ".proto_builder.TestTypes.Optional.FieldGroup"
    }}
    field {{
      name: "field_message" number: 11 label: LABEL_OPTIONAL type: TYPE_MESSAGE
      type_name: ".proto_builder.TestTypes.SubMsg"
    }}
    field {{ name: "field_bytes" number: 12 label: LABEL_OPTIONAL type: TYPE_BYTES }}
    field {{ name: "field_uint32" number: 13 label: LABEL_OPTIONAL type: TYPE_UINT32 }}
    field {{
      name: "field_enum" number: 14 label: LABEL_OPTIONAL type: TYPE_ENUM
      type_name: ".proto_builder.TestTypes.Enum"
    }}
    field {{ name: "field_sfixed32" number: 15 label: LABEL_OPTIONAL type: TYPE_SFIXED32 }}
    field {{ name: "field_sfixed64" number: 16 label: LABEL_OPTIONAL type: TYPE_SFIXED64 }}
    field {{ name: "field_sint32" number: 17 label: LABEL_OPTIONAL type: TYPE_SINT32 }}
    field {{ name: "field_sint64" number: 18 label: LABEL_OPTIONAL type: TYPE_SINT64 }}
    nested_type {{
      name: "FieldGroup"
      field {{ name: "value" number: 19 label: LABEL_OPTIONAL type: TYPE_INT32 }}
    }}
  }}
  nested_type {{
    name: "Defaults"
    field {{
      name: "d_double" number: 1 label: LABEL_OPTIONAL type: TYPE_DOUBLE
      default_value: "1.5"
    }}
    field {{
      name: "d_bool" number: 2 label: LABEL_OPTIONAL type: TYPE_BOOL
      default_value: "true"
    }}
    field {{
      name: "d_string" number: 3 label: LABEL_OPTIONAL type: TYPE_STRING
      default_value: "say \\"hi\\""
    }}
    field {{
      name: "d_enum" number: 4 label: LABEL_OPTIONAL type: TYPE_ENUM
      type_name: ".proto_builder.TestTypes.Enum" default_value: "ENUM_B"
    }}
    field {{
      name: "d_int64" number: 5 label: LABEL_OPTIONAL type: TYPE_INT64
      default_value: "-42"
    }}
    field {{ name: "d_none" number: 6 label: LABEL_OPTIONAL type: TYPE_INT32 }}
  }}
}}
"""

_SOURCE_LOCATION = f"""
name: "{SOURCE_LOCATION_PROTO}"
package: "proto_builder.tests"
message_type {{
  name: "SourceLocation"
  field {{ name: "target" number: 1 label: LABEL_REPEATED type: TYPE_STRING }}
}}
"""

_TEST_IMPORT_MESSAGE = f"""
name: "{TEST_IMPORT_MESSAGE_PROTO}"
package: "proto_builder"
dependency: "{IMPORT_PROTO}"
message_type {{
  name: "ImportImportMessage"
  field {{
    name: "sub" number: 1 label: LABEL_OPTIONAL type: TYPE_MESSAGE
    type_name: ".proto_builder.ImportImportMessage.Sub"
  }}
  field {{
    name: "rep" number: 2 label: LABEL_REPEATED type: TYPE_MESSAGE
    type_name: ".proto_builder.ImportImportMessage.Rep"
  }}
  field {{
    name: "values" number: 3 label: LABEL_REPEATED type: TYPE_MESSAGE
    type_name: ".proto_builder.ImportImportMessage.ValuesEntry"
  }}
  field {{
    name: "imported" number: 4 label: LABEL_REPEATED type: TYPE_MESSAGE
    type_name: ".proto_builder.Imported"
  }}
  nested_type {{
    name: "Sub"
    field {{
      name: "self" number: 1 label: LABEL_OPTIONAL type: TYPE_MESSAGE
      type_name: ".proto_builder.ImportImportMessage.Sub"
    }}
  }}
  nested_type {{
    name: "Rep"
    field {{ name: "value" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }}
  }}
  nested_type {{
    name: "Value"
    field {{ name: "value" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }}
  }}
  nested_type {{
    name: "ValuesEntry"
    field {{ name: "key" number: 1 label: LABEL_OPTIONAL type: TYPE_STRING }}
    field {{
      name: "value" number: 2 label: LABEL_OPTIONAL type: TYPE_MESSAGE
      type_name: ".proto_builder.ImportImportMessage.Value"
    }}
    options {{ map_entry: true }}
  }}
}}
"""

_DURATION = f"""
name: "{DURATION_PROTO}"
package: "google.protobuf"
message_type {{
  name: "Duration"
  field {{ name: "seconds" number: 1 label: LABEL_OPTIONAL type: TYPE_INT64 }}
  field {{ name: "nanos" number: 2 label: LABEL_OPTIONAL type: TYPE_INT32 }}
}}
"""

_AUTOMATIC = f"""
name: "{AUTOMATIC_PROTO}"
package: "proto_builder.tests"
dependency: "{DURATION_PROTO}"
message_type {{
  name: "Automatic"
  field {{
    name: "timeout" number: 1 label: LABEL_OPTIONAL type: TYPE_MESSAGE
    type_name: ".google.protobuf.Duration"
  }}
}}
"""


def parse_file(text: str) -> FileDescriptorProto:
    return text_format.Parse(text, FileDescriptorProto())


def find_message_proto(file_proto: FileDescriptorProto, path: str):
    """`Outer.Inner` -> the nested DescriptorProto."""
    messages = file_proto.message_type
    message = None
    for name in path.split("."):
        message = next(m for m in messages if m.name == name)
        messages = message.nested_type
    return message


def annotate_field(
    file_proto: FileDescriptorProto, path: str, field_name: str, *options: str
) -> None:
    """Attach field annotations like `[(proto_builder.field) = {...}]`."""
    message = find_message_proto(file_proto, path)
    field = next(f for f in message.field if f.name == field_name)
    annotations = FieldAnnotations()
    for text in options:
        annotations.field.append(parse_field_builder_options(text))
    field.options.SetInParent()
    field.options.MergeFromString(annotations.SerializeToString())


def annotate_message(file_proto: FileDescriptorProto, path: str, options: str) -> None:
    """Attach `option (proto_builder.message) = {...}`."""
    message = find_message_proto(file_proto, path)
    annotations = MessageAnnotations()
    annotations.message.CopyFrom(parse_message_builder_options(options))
    message.options.SetInParent()
    message.options.MergeFromString(annotations.SerializeToString())


def make_test_files() -> list[FileDescriptorProto]:
    test_message = parse_file(_TEST_MESSAGE)
    annotate_field(test_message, "TestMessage", "string22", 'type: "std::string"')
    annotate_field(
        test_message, "TestMessage", "string24", 'type: "@absl::string_view"'
    )
    annotate_field(test_message, "TestMessage", "bytes26", 'type: "std::string"')
    annotate_field(test_message, "TestMessage", "skipped", "output: SKIP")
    annotate_field(
        test_message,
        "TestMessage",
        "seconds",
        'type: "@ToInt64Seconds"',
        'type: "@ToInt64Milliseconds" name: "Millis"',
    )
    return [
        parse_file(_IMPORT),
        test_message,
        parse_file(_TEST_TYPES),
        parse_file(_SOURCE_LOCATION),
        parse_file(_TEST_IMPORT_MESSAGE),
        parse_file(_DURATION),
        parse_file(_AUTOMATIC),
    ]


def find_file_proto(
    files: list[FileDescriptorProto], path: str
) -> FileDescriptorProto:
    """The file declaring the top level message of `path`."""
    top_level = path.split(".")[0]
    return next(
        file
        for file in files
        if any(message.name == top_level for message in file.message_type)
    )


@pytest.fixture(autouse=True)
def reset_config():
    """Drop the cached global type map after each test."""
    yield
    reset_global_config()


@pytest.fixture
def test_files() -> list[FileDescriptorProto]:
    return make_test_files()


@pytest.fixture
def pool(test_files):
    return load_file_descriptor_protos(*test_files)


@pytest.fixture
def load_pool(test_files):
    """Load the test files after adding annotations.

    `messages` maps message paths (`Outer.Inner`) to MessageBuilderOptions,
    `fields` maps (message path, field name) to FieldBuilderOptions, both in
    text format.
    """

    def _load(messages=None, fields=None):
        for path, options in (messages or {}).items():
            annotate_message(find_file_proto(test_files, path), path, options)
        for (path, field_name), options in (fields or {}).items():
            annotate_field(
                find_file_proto(test_files, path), path, field_name, options
            )
        return load_file_descriptor_protos(*test_files)

    return _load
