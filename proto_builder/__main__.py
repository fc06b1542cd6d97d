# PYTHON_ARGCOMPLETE_OK
from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
import subprocess
import sys
import tempfile
from typing import Any

import argcomplete
from google.protobuf.descriptor_pb2 import FileDescriptorSet
from google.protobuf.message import DecodeError
import voluptuous as vol

from proto_builder import const
from proto_builder.config import (
    ProtoBuilderConfigManager,
    check_conversion_dependencies,
    get_global_proto_builder_config,
)
from proto_builder.config_validation import GENERATOR_SCHEMA
from proto_builder.const import (
    CONF_CONV_DEPS_FILE,
    CONF_DESCRIPTOR_SET,
    CONF_HEADER,
    CONF_INTERFACE,
    CONF_MAKE_INTERFACE,
    CONF_MAX_FIELD_DEPTH,
    CONF_PROTO,
    CONF_PROTO_BUILDER_CONFIG,
    CONF_PROTO_PATH,
    CONF_SOURCE,
    CONF_STRIP_PREFIX_DIR,
    CONF_TPL_VALUE_HEADER,
    CONF_USE_VALIDATOR,
    CONF_VALIDATOR_HEADER,
    PACKAGE_PROTO,
    Where,
)
from proto_builder.core import ConfigError, DescriptorError, ProtoBuilderError
from proto_builder.descriptor_util import DescriptorUtil, MessageSearchMode
from proto_builder.helpers import read_file_bytes
from proto_builder.log import setup_log
from proto_builder.message_builder import UNLIMITED_FIELD_DEPTH
from proto_builder.schema import SchemaPool, load_file_descriptor_set
from proto_builder.template_builder import (
    TemplateBuilder,
    TemplateBuilderOptions,
    strip_prefix_dir,
)
from proto_builder.writer import BufferWriter

_LOGGER = logging.getLogger(__name__)

ANNOTATIONS_PROTO = Path(__file__).parent / "data" / "proto_builder.proto"

USAGE = """
proto-builder --proto <my.Type:path/file.proto> --header <file> --source <file>

Read the provided proto file and generate a C++ Builder pattern. The
declaration will be saved in --header <file> and the implementation in
--source <file>.
"""


def parse_args(argv):
    parser = argparse.ArgumentParser(
        prog="proto-builder",
        description="Generate C++ builder classes for protocol buffer messages.",
        usage=USAGE,
    )
    parser.add_argument(
        "-v", "--verbose", help="Enable verbose logs.", action="store_true"
    )
    parser.add_argument(
        "-q", "--quiet", help="Only log warnings and errors.", action="store_true"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Version: {const.__version__}",
    )
    parser.add_argument(
        "--proto",
        required=True,
        help="Messages and the file describing them (e.g.: my.Type:path/file.proto). "
        "Multiple proto files can be separated by ','. Instead of message names "
        "'*' selects all top-level messages of the first file, '*+' adds "
        "messages used in repeated fields and '**' all used messages.",
    )
    parser.add_argument("--header", required=True, help="Header file (.h) to write.")
    parser.add_argument("--source", required=True, help="Source file (.cc) to write.")
    parser.add_argument(
        "--interface", default="", help="Interface header file (.h) to write."
    )
    parser.add_argument(
        "--make_interface",
        action="store_true",
        help="Whether to make an additional interface header file.",
    )
    parser.add_argument(
        "--descriptor_set",
        help="Binary FileDescriptorSet that contains the proto files including "
        "all their imports. If not given, protoc is run to create one.",
    )
    parser.add_argument(
        "--proto_path",
        action="append",
        default=[],
        help="Directory in which protoc searches for imports. May be repeated.",
    )
    parser.add_argument(
        "--max_field_depth",
        type=int,
        default=0,
        help="Maximum message depth (0 = default, 1 = only top level fields).",
    )
    parser.add_argument(
        "--use_validator",
        action="store_true",
        help="Whether Validator code will be generated.",
    )
    parser.add_argument(
        "--validator_header",
        default="",
        help="The validator header to use (enables --use_validator).",
    )
    parser.add_argument(
        "--conv_deps_file", default="", help="List of conversion dependencies."
    )
    parser.add_argument(
        "--proto_builder_config",
        default="",
        help="Additional type map (text format ProtoBuilderConfig).",
    )
    parser.add_argument(
        "--template_builder_strip_prefix_dir",
        default="",
        help="A comma separated list of directory prefixes to strip from output "
        "files when generating the header references and guards. The prefixes "
        "are regular expressions anchored to the left. Slashes following a "
        "match are removed.",
    )
    parser.add_argument(
        "--tpl_value_header",
        default="",
        help="Header reference to use in the generated files instead of the "
        "one derived from --header.",
    )

    argcomplete.autocomplete(parser)
    return parser.parse_args(argv[1:])


def validate_args(args: argparse.Namespace) -> dict[str, Any]:
    try:
        return GENERATOR_SCHEMA(
            {
                CONF_PROTO: args.proto,
                CONF_HEADER: args.header,
                CONF_SOURCE: args.source,
                CONF_INTERFACE: args.interface,
                CONF_MAKE_INTERFACE: args.make_interface,
                CONF_DESCRIPTOR_SET: args.descriptor_set,
                CONF_PROTO_PATH: args.proto_path,
                CONF_MAX_FIELD_DEPTH: args.max_field_depth,
                CONF_USE_VALIDATOR: args.use_validator,
                CONF_VALIDATOR_HEADER: args.validator_header,
                CONF_CONV_DEPS_FILE: args.conv_deps_file,
                CONF_PROTO_BUILDER_CONFIG: args.proto_builder_config,
                CONF_STRIP_PREFIX_DIR: args.template_builder_strip_prefix_dir,
                CONF_TPL_VALUE_HEADER: args.tpl_value_header,
            }
        )
    except vol.Invalid as err:
        raise ConfigError(f"Invalid arguments: {err}") from err


def run_protoc(proto_files: list[str], proto_paths: list[str]) -> FileDescriptorSet:
    """Let protoc parse `proto_files` and return their descriptors."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        output = Path(tmp_dir) / "descriptor_set.pb"
        cmd = [
            "protoc",
            "--include_imports",
            f"--descriptor_set_out={output}",
            f"--proto_path={PACKAGE_PROTO}={ANNOTATIONS_PROTO}",
        ]
        cmd += [f"--proto_path={path}" for path in proto_paths or ["."]]
        cmd += proto_files
        _LOGGER.debug("Running: %s", " ".join(cmd))
        try:
            ret = subprocess.run(cmd, capture_output=True, check=False)
        except FileNotFoundError as err:
            raise DescriptorError(
                "protoc is not installed, install it or pass --descriptor_set"
            ) from err
        if ret.returncode != 0:
            raise DescriptorError(
                f"protoc failed: {ret.stderr.decode('utf-8', errors='replace').strip()}"
            )
        return parse_descriptor_set(output.read_bytes(), str(output))


def parse_descriptor_set(data: bytes, source: str) -> FileDescriptorSet:
    descriptor_set = FileDescriptorSet()
    try:
        descriptor_set.ParseFromString(data)
    except DecodeError as err:
        raise DescriptorError(f"Could not parse descriptor set {source}: {err}") from err
    return descriptor_set


def load_schema(config: dict[str, Any]) -> SchemaPool:
    if config[CONF_DESCRIPTOR_SET]:
        path = Path(config[CONF_DESCRIPTOR_SET])
        descriptor_set = parse_descriptor_set(read_file_bytes(path), str(path))
    else:
        _, _, files = config[CONF_PROTO].partition(":")
        descriptor_set = run_protoc(
            [file for file in files.split(",") if file], config[CONF_PROTO_PATH]
        )
    return load_file_descriptor_set(descriptor_set)


def write_proto_builder_files(config: dict[str, Any]) -> None:
    custom_config = config[CONF_PROTO_BUILDER_CONFIG]
    get_global_proto_builder_config(Path(custom_config) if custom_config else None)
    if config[CONF_CONV_DEPS_FILE]:
        check_conversion_dependencies(Path(config[CONF_CONV_DEPS_FILE]))

    descriptor_util = DescriptorUtil.load(config[CONF_PROTO], load_schema(config))
    max_field_depth = config[CONF_MAX_FIELD_DEPTH]
    if not max_field_depth:
        max_field_depth = (
            1
            if descriptor_util.search_mode == MessageSearchMode.TRANSITIVE_ALL
            else UNLIMITED_FIELD_DEPTH
        )
    strip_prefix = config[CONF_STRIP_PREFIX_DIR]
    header = strip_prefix_dir(
        config[CONF_TPL_VALUE_HEADER] or config[CONF_HEADER], strip_prefix
    )
    interface = strip_prefix_dir(config[CONF_INTERFACE], strip_prefix)

    writer = BufferWriter()
    TemplateBuilder(
        TemplateBuilderOptions(
            config=ProtoBuilderConfigManager(),
            writer=writer,
            descriptors=descriptor_util.descriptors,
            header=header,
            max_field_depth=max_field_depth,
            use_validator=config[CONF_USE_VALIDATOR],
            validator_header=config[CONF_VALIDATOR_HEADER],
            make_interface=config[CONF_MAKE_INTERFACE],
            interface_header=interface,
        )
    ).write_builder()

    outputs = [(Where.HEADER, config[CONF_HEADER]), (Where.SOURCE, config[CONF_SOURCE])]
    if config[CONF_MAKE_INTERFACE]:
        outputs.append((Where.INTERFACE, config[CONF_INTERFACE]))
    for where, filename in outputs:
        if writer.write_file(where, Path(filename)):
            _LOGGER.info("Wrote %s", filename)
        else:
            _LOGGER.debug("%s is up to date", filename)


def run_proto_builder(argv):
    args = parse_args(argv)
    if args.verbose:
        log_level = logging.DEBUG
    elif args.quiet:
        log_level = logging.WARNING
    else:
        log_level = logging.INFO
    setup_log(log_level, use_color=os.getenv("NO_COLOR") is None)

    try:
        write_proto_builder_files(validate_args(args))
    except ProtoBuilderError as err:
        _LOGGER.error(err, exc_info=args.verbose)
        return 1
    return 0


def main():
    try:
        return run_proto_builder(sys.argv)
    except ProtoBuilderError as e:
        _LOGGER.error(e)
        return 1
    except KeyboardInterrupt:
        return 1


if __name__ == "__main__":
    sys.exit(main())
