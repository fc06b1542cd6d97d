"""Validation of the generator options collected by the command line."""

from __future__ import annotations

from typing import Any

import voluptuous as vol

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
)

Invalid = vol.Invalid


def string_strict(value: Any) -> str:
    """Like str, but only accepts strings."""
    if isinstance(value, str):
        return value
    raise Invalid(f"Must be string, got {type(value).__name__}.")


def non_empty_string(value: Any) -> str:
    value = string_strict(value)
    if not value:
        raise Invalid("String value cannot be empty.")
    return value


def proto_flag(value: Any) -> str:
    """`<messages>:<file>[,<file>...]`."""
    value = non_empty_string(value)
    names, sep, files = value.partition(":")
    if not sep or not names or not files:
        raise Invalid(
            f"Expected '<messages>:<file>[,<file>...]' (e.g. 'my.Type:path/file.proto'), got '{value}'."
        )
    return value


def ensure_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [string_strict(item) for item in value]
    return [string_strict(value)]


def _require_interface(config: dict[str, Any]) -> dict[str, Any]:
    if config[CONF_MAKE_INTERFACE] and not config[CONF_INTERFACE]:
        raise Invalid(
            f"'{CONF_INTERFACE}' is required with '{CONF_MAKE_INTERFACE}'.",
            path=[CONF_INTERFACE],
        )
    return config


def _validator_header_enables_validator(config: dict[str, Any]) -> dict[str, Any]:
    if config[CONF_VALIDATOR_HEADER]:
        config[CONF_USE_VALIDATOR] = True
    return config


GENERATOR_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Required(CONF_PROTO): proto_flag,
            vol.Required(CONF_HEADER): non_empty_string,
            vol.Required(CONF_SOURCE): non_empty_string,
            vol.Optional(CONF_INTERFACE, default=""): string_strict,
            vol.Optional(CONF_MAKE_INTERFACE, default=False): bool,
            vol.Optional(CONF_DESCRIPTOR_SET, default=None): vol.Any(
                None, non_empty_string
            ),
            vol.Optional(CONF_PROTO_PATH, default=list): ensure_list,
            vol.Optional(CONF_MAX_FIELD_DEPTH, default=0): vol.All(
                int, vol.Range(min=0)
            ),
            vol.Optional(CONF_USE_VALIDATOR, default=False): bool,
            vol.Optional(CONF_VALIDATOR_HEADER, default=""): string_strict,
            vol.Optional(CONF_CONV_DEPS_FILE, default=""): string_strict,
            vol.Optional(CONF_PROTO_BUILDER_CONFIG, default=""): string_strict,
            vol.Optional(CONF_STRIP_PREFIX_DIR, default=""): string_strict,
            vol.Optional(CONF_TPL_VALUE_HEADER, default=""): string_strict,
        }
    ),
    _require_interface,
    _validator_header_enables_validator,
)
