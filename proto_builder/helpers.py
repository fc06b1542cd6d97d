from __future__ import annotations

import logging
import os
from pathlib import Path
import tempfile

from google.protobuf import text_encoding

from proto_builder.core import NotFoundError, ProtoBuilderError

_LOGGER = logging.getLogger(__name__)


def read_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise NotFoundError(f"Error reading file {path}: {err}") from err


def read_file_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as err:
        raise NotFoundError(f"Error reading file {path}: {err}") from err


def _write_file(path: Path, text: str) -> None:
    """Atomically writes `text` to the given path.

    Automatically creates all parent directories.
    """
    directory = path.parent
    directory.mkdir(exist_ok=True, parents=True)

    tmp_filename: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb", dir=directory, delete=False
        ) as f_handle:
            tmp_filename = Path(f_handle.name)
            f_handle.write(text.encode())
        os.replace(tmp_filename, path)
        tmp_filename = None
    finally:
        if tmp_filename is not None and tmp_filename.exists():
            try:
                tmp_filename.unlink()
            except OSError as err:
                _LOGGER.error("Write file cleanup failed: %s", err)


def write_file(path: Path, text: str) -> None:
    try:
        _write_file(path, text)
    except OSError as err:
        raise ProtoBuilderError(f"Could not write file at {path}") from err


def write_file_if_changed(path: Path, text: str) -> bool:
    """Write text to the given path, but not if the contents match already.

    Returns true if the file was changed.
    """
    src_content = None
    if path.is_file():
        src_content = read_file(path)
    if src_content == text:
        return False
    write_file(path, text)
    return True


def c_escape(value: str | bytes) -> str:
    """Escape a string so it can be placed inside a C++ string literal."""
    if isinstance(value, str):
        value = value.encode()
    return text_encoding.CEscape(value, as_utf8=False)


def c_unescape(value: str) -> bytes:
    return text_encoding.CUnescape(value)
