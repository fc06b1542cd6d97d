"""Constants used by proto_builder."""

from enum import IntEnum

__version__ = "2025.10.0"

# Extension numbers of the annotations in proto_builder/data/proto_builder.proto
FIELD_EXTENSION_NUMBER = 50430
MESSAGE_EXTENSION_NUMBER = 50431

PACKAGE_PROTO = "proto_builder/proto_builder.proto"

MAX_SUB_FIELD_SETTER_DEPTH = 5

SIGIL_SPECIAL = "%"
SIGIL_BUILTIN = "@"
SIGIL_CUSTOM = "$"
SIGIL_AUTOMATIC = "="

TOKEN_TYPE = "@type@"
TOKEN_VALUE = "@value@"
TOKEN_DEFAULT = "@default@"
TOKEN_SOURCE_LOCATION = "@source_location@"

KEY_LOG_SOURCE_LOCATION = "%LogSourceLocation"
KEY_SOURCE_LOCATION = "%SourceLocation"
KEY_STATUS = "%Status"
KEY_STATUS_OR = "%StatusOr"
KEY_VALIDATE = "%Validate"

EXPORT_PRAGMA = "  // IWYU pragma: export"

GENERATED_FILE_HEADER = "// Automatically generated by proto_builder. DO NOT EDIT!"


class Where(IntEnum):
    """Output channel of a generated line."""

    HEADER = 0
    SOURCE = 1
    INTERFACE = 2


CONF_CONV_DEPS_FILE = "conv_deps_file"
CONF_DESCRIPTOR_SET = "descriptor_set"
CONF_HEADER = "header"
CONF_INTERFACE = "interface"
CONF_MAKE_INTERFACE = "make_interface"
CONF_MAX_FIELD_DEPTH = "max_field_depth"
CONF_PROTO = "proto"
CONF_PROTO_BUILDER_CONFIG = "proto_builder_config"
CONF_PROTO_PATH = "proto_path"
CONF_SOURCE = "source"
CONF_STRIP_PREFIX_DIR = "template_builder_strip_prefix_dir"
CONF_TPL_VALUE_HEADER = "tpl_value_header"
CONF_USE_VALIDATOR = "use_validator"
CONF_VALIDATOR_HEADER = "validator_header"
