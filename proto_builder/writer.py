"""Line sinks that receive the generated code.

Every line is written to one of the `Where` channels. Writers can be stacked,
e.g. `NoDoubleEmptyLineWriter(IndentWriter(BufferWriter(), "  "))`; all of
them share the include collector of the innermost writer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from proto_builder.const import EXPORT_PRAGMA, Where
from proto_builder.helpers import write_file_if_changed
from proto_builder.schema import EnumDescriptor, MessageDescriptor


def format_include(include: str) -> str:
    """`foo.h` -> `"foo.h"`, already quoted or bracketed names stay as is."""
    if include[:1] in ("<", '"'):
        return include
    return f'"{include}"'


class CodeInfoCollector:
    """Collects includes per channel and shortens type names."""

    def __init__(self, package_path: list[str] | None = None) -> None:
        self.package_path = list(package_path or [])
        self.namespace_path = (
            "::" + "::".join(self.package_path) if self.package_path else ""
        )
        self._includes: dict[Where, set[str]] = {where: set() for where in Where}

    def add_include(
        self, where: Where, include: str | MessageDescriptor | EnumDescriptor
    ) -> None:
        if isinstance(include, (MessageDescriptor, EnumDescriptor)):
            include = self._descriptor_include(include)
        self._includes[where].add(format_include(include))

    @staticmethod
    def _descriptor_include(descriptor: MessageDescriptor | EnumDescriptor) -> str:
        if descriptor.file is None:
            return f"ERROR_HEADER_UNKNOWN_FOR_{descriptor.full_name}"
        filename = descriptor.file.name
        base = filename[: filename.rfind(".")] if "." in filename else filename
        return f'"{base}.pb.h"{EXPORT_PRAGMA}'

    def get_includes(self, where: Where) -> list[str]:
        """The includes for `where`, sorted."""
        return sorted(self._includes[where])

    def relative_type(self, cpp_type: str) -> str:
        """Strip the namespace of the package from `cpp_type` if possible."""
        if not self.namespace_path:
            return cpp_type
        prefix = self.namespace_path + "::"
        if not cpp_type.startswith(prefix) or len(cpp_type) == len(prefix):
            return cpp_type
        return cpp_type[len(prefix) :]


class BuilderWriter(ABC):
    @abstractmethod
    def write(self, to: Where, line: str) -> None:
        """Append `line` to channel `to`."""

    @property
    @abstractmethod
    def code_info(self) -> CodeInfoCollector:
        """The include collector shared by the writer stack."""


class BufferWriter(BuilderWriter):
    """Keeps all lines in memory."""

    def __init__(self, package_path: list[str] | None = None) -> None:
        self._buffer: dict[Where, list[str]] = {where: [] for where in Where}
        self._code_info = CodeInfoCollector(package_path)

    def write(self, to: Where, line: str) -> None:
        self._buffer[to].append(line)

    @property
    def code_info(self) -> CodeInfoCollector:
        return self._code_info

    def from_(self, where: Where) -> list[str]:
        return self._buffer[where]

    def contents(self, where: Where) -> str:
        return "\n".join(self._buffer[where])

    def write_file(self, where: Where, filename: Path) -> bool:
        return write_file_if_changed(Path(filename), self.contents(where))

    def move_contents(self, where: Where, to_writer: BufferWriter) -> None:
        """Append the lines of `where` to `to_writer` and clear them here."""
        to_writer._buffer[where].extend(self._buffer[where])
        self._buffer[where] = []


class WrappingBuilderWriter(BuilderWriter):
    """Forwards everything to another writer."""

    def __init__(self, wrapped_writer: BuilderWriter) -> None:
        self._wrapped_writer = wrapped_writer

    def write(self, to: Where, line: str) -> None:
        self._wrapped_writer.write(to, line)

    @property
    def code_info(self) -> CodeInfoCollector:
        return self._wrapped_writer.code_info


class NoDoubleEmptyLineWriter(WrappingBuilderWriter):
    """Drops leading empty lines and empty lines following an empty line."""

    def __init__(self, wrapped_writer: BuilderWriter) -> None:
        super().__init__(wrapped_writer)
        self._last_non_empty = {where: False for where in Where}

    def write(self, to: Where, line: str) -> None:
        is_empty = not line
        if not is_empty or self._last_non_empty[to]:
            super().write(to, line)
        self._last_non_empty[to] = not is_empty


class IndentWriter(WrappingBuilderWriter):
    """Prefixes non-empty lines with a per channel indent."""

    def __init__(
        self,
        wrapped_writer: BuilderWriter,
        head_indent: str = "",
        body_indent: str = "",
    ) -> None:
        super().__init__(wrapped_writer)
        self._indent: dict[Where, str] = {}
        self.set_indent(Where.HEADER, head_indent)
        self.set_indent(Where.INTERFACE, head_indent)
        self.set_indent(Where.SOURCE, body_indent)

    def set_indent(self, to: Where, indent: str) -> None:
        self._indent[to] = indent

    def write(self, to: Where, line: str) -> None:
        if line:
            line = self._indent.get(to, "") + line
        super().write(to, line)


class OwnWrappedWriter(WrappingBuilderWriter):
    """Builds a wrapping writer around `wrapped_writer` and holds on to both.

    `OwnWrappedWriter(NoDoubleEmptyLineWriter, IndentWriter(out, "  "))`
    behaves exactly like the NoDoubleEmptyLineWriter but is the single root
    of the chain.
    """

    def __init__(
        self,
        wrapping_writer: type[WrappingBuilderWriter],
        wrapped_writer: BuilderWriter,
        *args,
    ) -> None:
        super().__init__(wrapping_writer(wrapped_writer, *args))
        self.owned_writer = wrapped_writer
