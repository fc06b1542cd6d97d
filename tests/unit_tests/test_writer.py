import pytest

from proto_builder.const import Where
from proto_builder.writer import (
    BufferWriter,
    CodeInfoCollector,
    IndentWriter,
    NoDoubleEmptyLineWriter,
    OwnWrappedWriter,
    format_include,
)


@pytest.mark.parametrize(
    "include, expected",
    (
        ("foo.h", '"foo.h"'),
        ('"foo.h"', '"foo.h"'),
        ("<foo>", "<foo>"),
        ('"foo.h"  // IWYU pragma: export', '"foo.h"  // IWYU pragma: export'),
    ),
)
def test_format_include(include, expected):
    assert format_include(include) == expected


def test_code_info__add_include():
    code_info = CodeInfoCollector()

    code_info.add_include(Where.HEADER, "<a>  // A")
    code_info.add_include(Where.HEADER, "b")
    code_info.add_include(Where.HEADER, '"a"  // A')
    code_info.add_include(Where.HEADER, "<a>")
    code_info.add_include(Where.HEADER, "a")
    code_info.add_include(Where.HEADER, '"a"')
    code_info.add_include(Where.SOURCE, "c")

    assert code_info.get_includes(Where.HEADER) == [
        '"a"',
        '"a"  // A',
        '"b"',
        "<a>",
        "<a>  // A",
    ]
    assert code_info.get_includes(Where.SOURCE) == ['"c"']
    assert code_info.get_includes(Where.INTERFACE) == []


def test_code_info__add_descriptor_include(pool):
    code_info = CodeInfoCollector()

    code_info.add_include(
        Where.HEADER, pool.find_message_type_by_name("proto_builder.TestMessage.Sub")
    )
    code_info.add_include(
        Where.HEADER, pool.find_enum_type_by_name("proto_builder.TestTypes.Enum")
    )

    assert code_info.get_includes(Where.HEADER) == [
        '"proto_builder/tests/test_message.pb.h"  // IWYU pragma: export',
        '"proto_builder/tests/test_types.pb.h"  // IWYU pragma: export',
    ]


@pytest.mark.parametrize(
    "cpp_type, expected",
    (
        ("::foo::bar::Baz", "Baz"),
        ("::foo::bar::bla::Baz", "bla::Baz"),
        ("::foo::bar::", "::foo::bar::"),
        ("::foo::bar", "::foo::bar"),
        ("::foo::barbaz::Baz", "::foo::barbaz::Baz"),
        ("::foo::Baz", "::foo::Baz"),
        ("foo::bar::Baz", "foo::bar::Baz"),
        ("::bar::foo::Baz", "::bar::foo::Baz"),
        ("int32_t", "int32_t"),
    ),
)
def test_code_info__relative_type(cpp_type, expected):
    code_info = CodeInfoCollector(["foo", "bar"])

    assert code_info.relative_type(cpp_type) == expected


def test_code_info__relative_type_without_package():
    code_info = CodeInfoCollector()

    assert code_info.relative_type("::foo::Bar") == "::foo::Bar"


def test_buffer_writer__contents():
    writer = BufferWriter()

    writer.write(Where.HEADER, "a")
    writer.write(Where.HEADER, "")
    writer.write(Where.HEADER, "b")
    writer.write(Where.SOURCE, "c")

    assert writer.from_(Where.HEADER) == ["a", "", "b"]
    assert writer.contents(Where.HEADER) == "a\n\nb"
    assert writer.contents(Where.SOURCE) == "c"
    assert writer.contents(Where.INTERFACE) == ""


def test_buffer_writer__move_contents():
    writer = BufferWriter()
    other = BufferWriter()
    writer.write(Where.HEADER, "1")
    writer.write(Where.SOURCE, "2")
    other.write(Where.HEADER, "0")

    writer.move_contents(Where.HEADER, other)

    assert writer.from_(Where.HEADER) == []
    assert writer.from_(Where.SOURCE) == ["2"]
    assert other.from_(Where.HEADER) == ["0", "1"]
    assert other.from_(Where.SOURCE) == []


def test_buffer_writer__write_file(tmp_path):
    writer = BufferWriter()
    writer.write(Where.HEADER, "line")
    writer.write(Where.HEADER, "")
    target = tmp_path / "out" / "file.h"

    assert writer.write_file(Where.HEADER, target)
    assert target.read_text() == "line\n"
    assert not writer.write_file(Where.HEADER, target)


def test_no_double_empty_line_writer():
    out = BufferWriter()
    writer = NoDoubleEmptyLineWriter(out)

    for line in ("", "", "X", "", "", ""):
        writer.write(Where.HEADER, line)
    writer.write(Where.SOURCE, "")

    assert out.from_(Where.HEADER) == ["X", ""]
    assert out.from_(Where.SOURCE) == []


def test_indent_writer():
    out = BufferWriter()
    writer = IndentWriter(out)

    writer.write(Where.HEADER, "1")
    writer.set_indent(Where.HEADER, ".")
    writer.write(Where.HEADER, "2")
    writer.set_indent(Where.HEADER, "..")
    writer.write(Where.HEADER, "3")
    writer.set_indent(Where.HEADER, ". ")
    writer.write(Where.HEADER, "4")
    writer.write(Where.HEADER, "")
    writer.set_indent(Where.HEADER, "")
    writer.write(Where.HEADER, "6")

    assert out.from_(Where.HEADER) == ["1", ".2", "..3", ". 4", "", "6"]


def test_indent_writer__channels():
    out = BufferWriter()
    writer = IndentWriter(out, "h", "s")

    for where in Where:
        writer.write(where, "x")

    assert out.from_(Where.HEADER) == ["hx"]
    assert out.from_(Where.INTERFACE) == ["hx"]
    assert out.from_(Where.SOURCE) == ["sx"]


def test_own_wrapped_writer():
    out = BufferWriter(["foo"])
    writer = OwnWrappedWriter(NoDoubleEmptyLineWriter, IndentWriter(out, "  "))

    for line in ("", "x", "", "", "y"):
        writer.write(Where.HEADER, line)

    assert out.from_(Where.HEADER) == ["  x", "", "  y"]
    assert writer.code_info is out.code_info
    assert isinstance(writer.owned_writer, IndentWriter)
