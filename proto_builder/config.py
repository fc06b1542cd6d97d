"""Type map configuration.

The type map maps a type name (a C++ type, a proto type, or a reserved key
starting with `@`, `%`, `$` or `=`) to the FieldBuilderOptions that should be
used for fields of that type. The built-in map is shipped as
`data/proto_builder_config.textproto` and can be extended with a custom file
and per message annotations.
"""

from __future__ import annotations

from collections import Counter
import logging
from pathlib import Path
import re

from google.protobuf import text_format

from proto_builder.const import (
    SIGIL_AUTOMATIC,
    SIGIL_BUILTIN,
    SIGIL_CUSTOM,
    SIGIL_SPECIAL,
    TOKEN_TYPE,
    TOKEN_VALUE,
)
from proto_builder.core import CheckError, ConfigError, NotFoundError
from proto_builder.helpers import read_file
from proto_builder.options_pb import (
    FieldBuilderOptions,
    MessageBuilderOptions,
    ProtoBuilderConfig,
    short_debug_string,
)
from proto_builder.util import absolute_cpp_type_name

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path(__file__).parent / "data" / "proto_builder_config.textproto"

BUILTIN_TYPE_NAMES = frozenset(
    {
        "string",
        "bytes",
        "@absl::string_view",
        "@Map:absl::string_view",
        "@TextProto",
        "@TextProto:absl::string_view",
        "@TextProto:Map:Value:absl::string_view",
        "@ToInt64Seconds",
        "@ToInt64Milliseconds",
        "@ToDoubleSeconds",
        "@ToDoubleMilliseconds",
        "@ToProtoDuration",
        "@ToProtoTimestamp",
        "%SourceLocation",
        "%Status",
        "%StatusOr",
        "%Validate",
        "%LogSourceLocation",
    }
)

CUSTOM_KEY_RE = re.compile(r"\$[A-Za-z]\w*", re.ASCII)
# Comments and string literals are matched too, so that `key:` inside them
# is skipped. Only the key alternative has capture groups.
KEY_RE = re.compile(
    r"""\bkey\s*:\s*(?:"((?:[^"\\\n]|\\.)*)"|'((?:[^'\\\n]|\\.)*)')"""
    r"""|#[^\n]*"""
    r"""|"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*'"""
)


def _entry(key: str, options: FieldBuilderOptions) -> str:
    return f"key: '{key}' -> {{ {short_debug_string(options)} }}"


def verify_type_entry(key: str, options: FieldBuilderOptions) -> bool:
    """Check a single type map entry, raising ConfigError on the first issue.

    The order of the checks matters: the empty key check comes last so the
    more specific messages win.
    """

    def check(condition: bool, message: str) -> None:
        if not condition:
            raise ConfigError(f"{message} {_entry(key, options)}")

    check(
        SIGIL_BUILTIN not in options.type.replace(TOKEN_TYPE, "Type"),
        "May not use '@' (beyond '@type@') in type:",
    )
    check(not options.HasField("name"), "May not provide 'name':")
    check(
        bool(options.type) or not options.decorated_type,
        "May not use 'decorated_type' without 'type':",
    )
    check(TOKEN_TYPE not in options.value, "May not use '@type@' in 'value':")
    check(TOKEN_VALUE not in options.value, "May not use '@value@' in 'value':")
    check(
        all(include for include in options.include),
        "May not use empty 'include':",
    )
    check(
        not any("\n" in include for include in options.include),
        "May not use new-line in 'include', use multiple includes:",
    )
    check(
        not options.automatic or key.startswith(SIGIL_AUTOMATIC),
        f"Automatic types must start with '{SIGIL_AUTOMATIC}':",
    )
    if key:
        check(
            key[0] not in (SIGIL_BUILTIN, SIGIL_SPECIAL) or key in BUILTIN_TYPE_NAMES,
            "Type names (key) starting with '@' or '%' are reserved for internal use:",
        )
        check(
            key[0] != SIGIL_CUSTOM or CUSTOM_KEY_RE.fullmatch(key) is not None,
            "Custom keys must start with '$', followed by an alphabetical "
            "character, followed by any number of alphanumeric characters:",
        )
    check(
        not options.HasField("macro"),
        "The `macro` field can only be used for field annotations:",
    )
    check(bool(key), "Must specify a non-empty 'key':")
    return True


def _parse_config(textproto: str, source: str) -> ProtoBuilderConfig:
    try:
        return text_format.Parse(textproto, ProtoBuilderConfig())
    except text_format.ParseError as err:
        raise ConfigError(f"Cannot parse {source}: {err}") from err


def _check_duplicate_keys(textproto: str, config: ProtoBuilderConfig) -> None:
    """Find duplicate keys by counting them in the text.

    Parsing a map silently keeps the last of several equal keys, so the text
    is the only place where duplicates are visible.
    """
    keys = Counter(
        match.group(1) if match.group(1) is not None else match.group(2)
        for match in KEY_RE.finditer(textproto)
        if match.lastindex
    )
    parsed_keys = len(config.type_map) + sum(
        len(options.data) for options in config.type_map.values()
    )
    if sum(keys.values()) != parsed_keys:
        duplicates = sorted(key for key, count in keys.items() if count > 1)
        raise ConfigError(
            'Configuration contains duplicate key(s): "'
            + '", "'.join(duplicates)
            + '"'
        )


def verify_proto_builder_config(
    textproto: str, custom_config_text: str | None = None
) -> ProtoBuilderConfig:
    """Parse and verify a type map configuration.

    The optional custom configuration is merged on top of `textproto` and may
    override its entries. Automatic entries get re-keyed to the absolute C++
    type they apply to.
    """
    config = _parse_config(textproto, "proto builder config")
    _check_duplicate_keys(textproto, config)
    if custom_config_text is not None:
        custom_config = _parse_config(custom_config_text, "custom config file")
        _check_duplicate_keys(custom_config_text, custom_config)
        config.MergeFrom(custom_config)

    for key, options in config.type_map.items():
        verify_type_entry(key, options)

    result = ProtoBuilderConfig()
    for key, options in config.type_map.items():
        if options.automatic:
            key = SIGIL_AUTOMATIC + absolute_cpp_type_name(key[1:])
        entry = result.type_map[key]
        entry.CopyFrom(options)
        if entry.automatic and not entry.HasField("recurse"):
            entry.recurse = False
    return result


_GLOBAL_CONFIG: ProtoBuilderConfig | None = None


def get_global_proto_builder_config(
    custom_config_file: Path | None = None,
) -> ProtoBuilderConfig:
    """The built-in type map, initialized on first use.

    `custom_config_file` only has an effect on the call that initializes the
    table.
    """
    global _GLOBAL_CONFIG  # noqa: PLW0603
    if _GLOBAL_CONFIG is None:
        custom_config_text = None
        if custom_config_file is not None:
            _LOGGER.debug("Loading custom config %s", custom_config_file)
            custom_config_text = read_file(custom_config_file)
        _GLOBAL_CONFIG = verify_proto_builder_config(
            read_file(DEFAULT_CONFIG_FILE), custom_config_text
        )
    elif custom_config_file is not None:
        _LOGGER.warning(
            "Ignoring custom config %s, configuration already loaded",
            custom_config_file,
        )
    return _GLOBAL_CONFIG


def reset_global_config() -> None:
    global _GLOBAL_CONFIG  # noqa: PLW0603
    _GLOBAL_CONFIG = None


def normalize_label(label: str) -> str:
    """`//a/b` -> `//a/b:b`, labels with a target are returned unchanged."""
    if ":" in label:
        return label
    return f"{label}:{label.split('/')[-1]}"


def check_conversion_dependencies(
    conv_deps_file: Path, config: ProtoBuilderConfig | None = None
) -> None:
    """Verify all dependencies of the type map are listed in `conv_deps_file`."""
    conv_deps = {
        normalize_label(dep)
        for dep in read_file(conv_deps_file).split("\n")
        if dep
    }
    if config is None:
        config = get_global_proto_builder_config()
    for name, field_options in config.type_map.items():
        for dependency in field_options.dependency:
            if normalize_label(dependency) not in conv_deps:
                raise NotFoundError(
                    f"Type: '{name}' has dependency '{dependency}' which is not "
                    "configured in proto_builder/build_*.bzl."
                )


def _is_ascii_upper(char: str) -> bool:
    return "A" <= char <= "Z"


def _is_ascii_lower_or_digit(char: str) -> bool:
    return "a" <= char <= "z" or "0" <= char <= "9"


def camel_case_to_snake_case(text: str) -> str:
    """Convert `CamelCase`, `::scoped::Names` and mixes to `snake_case`.

    Anything that is not an ASCII letter or digit separates words, runs of
    separators collapse into one `_`. A leading and a trailing `_` survive,
    other leading separators are dropped.
    """
    if not text:
        return ""
    result: list[str] = []
    last = " "
    # Set when the next upper case letter starts a new word.
    underscore = text[0] == "_"
    for char in text:
        if _is_ascii_upper(char):
            if underscore:
                result.append("_")
            underscore = False
            result.append(char.lower())
        elif _is_ascii_lower_or_digit(char):
            underscore = True
            result.append(char)
        else:
            if (result and last != "_") or (not result and char == "_"):
                result.append("_")
            char = "_"
            underscore = False
        last = char
    if text[-1] == "_" and last != "_":
        result.append("_")
    return "".join(result)


def _is_special(key: str) -> bool:
    return key.startswith((SIGIL_SPECIAL, SIGIL_CUSTOM))


class ProtoBuilderConfigManager:
    """Read-only access to a type map.

    `update` never changes an instance, it returns a new manager with the
    additional entries.
    """

    def __init__(self, config: ProtoBuilderConfig | None = None) -> None:
        if config is None:
            config = get_global_proto_builder_config()
        self._config = ProtoBuilderConfig()
        self._config.CopyFrom(config)
        self._special_types = {
            key: self._config.type_map[key]
            for key in sorted(self._config.type_map)
            if _is_special(key)
        }
        self._automatic_types = {
            key[1:]: self._config.type_map[key]
            for key in sorted(self._config.type_map)
            if self._config.type_map[key].automatic
        }
        self._expanded_types = self._make_expanded_types(self._config)

    @staticmethod
    def _make_expanded_types(config: ProtoBuilderConfig) -> dict[str, str]:
        result: dict[str, str] = {}
        for key in sorted(config.type_map):
            if not _is_special(key):
                continue
            options = config.type_map[key]
            result[key] = options.type
            param = camel_case_to_snake_case(options.param or key[1:])
            if param:
                result[f"{key}%param"] = param
                result[f"{key}+param"] = f"{options.type} {param}"
            if options.value:
                result[f"{key}%value"] = options.value
            if param and options.value:
                result[f"{key}+param=value"] = (
                    f"{options.type} {param} = {options.value}"
                )
        return result

    def update(
        self, message_options: MessageBuilderOptions
    ) -> ProtoBuilderConfigManager:
        """A new manager with the `type_map` of `message_options` applied."""
        result = ProtoBuilderConfig()
        result.CopyFrom(self._config)
        for key, options in message_options.type_map.items():
            if key.startswith((SIGIL_BUILTIN, SIGIL_SPECIAL)) and (
                key in BUILTIN_TYPE_NAMES
            ):
                raise ConfigError(
                    "Cannot update configuration of builtin types: "
                    + _entry(key, options)
                )
            verify_type_entry(key, options)
            result.type_map[key].CopyFrom(options)
        return ProtoBuilderConfigManager(result)

    def get_proto_builder_config(self) -> ProtoBuilderConfig:
        return self._config

    def merge_field_builder_options(
        self, options: FieldBuilderOptions
    ) -> FieldBuilderOptions:
        """Resolve `macro`: the referenced entry is the base for `options`."""
        if not options.macro or options.macro not in self._config.type_map:
            return options
        result = FieldBuilderOptions()
        result.CopyFrom(self._config.type_map[options.macro])
        result.MergeFrom(options)
        return result

    def get_type_info(
        self, raw_type: str, special: bool = False
    ) -> FieldBuilderOptions | None:
        """Look up `raw_type`, `special` must be set exactly for `%` keys."""
        if special != raw_type.startswith(SIGIL_SPECIAL):
            raise CheckError(
                f"Special lookup mismatch (special={special}). Raw type: '{raw_type}'"
            )
        if raw_type not in self._config.type_map:
            return None
        return self._config.type_map[raw_type]

    def get_special_types(self) -> dict[str, FieldBuilderOptions]:
        return self._special_types

    def get_automatic_types(self) -> dict[str, FieldBuilderOptions]:
        return self._automatic_types

    def get_automatic_type(self, cpp_type: str) -> FieldBuilderOptions | None:
        return self._automatic_types.get(cpp_type)

    def get_expanded_types(self) -> dict[str, str]:
        return self._expanded_types

    def get_expanded_type(self, key: str) -> str:
        return self._expanded_types.get(key, "")
