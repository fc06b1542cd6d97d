"""Default layouts of the generated header, source and interface files.

Each renderer walks a populated `TemplateDictionary` and returns the file
contents. Lines produced by the message builders are inserted unchanged;
empty line runs are collapsed by the writer the result is sent to.
"""

from __future__ import annotations

from proto_builder.const import (
    GENERATED_FILE_HEADER,
    KEY_LOG_SOURCE_LOCATION,
    KEY_STATUS,
    KEY_STATUS_OR,
    KEY_VALIDATE,
    Where,
)


class TemplateDictionary:
    """Named values plus named lists of child dictionaries.

    Values are looked up in the parent chain, so a section only needs to
    carry what differs from its enclosing dictionary.
    """

    def __init__(self, name: str, parent: TemplateDictionary | None = None) -> None:
        self.name = name
        self.parent = parent
        self._values: dict[str, str] = {}
        self._sections: dict[str, list[TemplateDictionary]] = {}

    def set_value(self, name: str, value: str) -> None:
        self._values[name] = value

    def add_section_dictionary(self, name: str) -> TemplateDictionary:
        section = TemplateDictionary(name, self)
        self._sections.setdefault(name, []).append(section)
        return section

    def get_value(self, name: str) -> str:
        if name in self._values:
            return self._values[name]
        if self.parent is not None:
            return self.parent.get_value(name)
        return ""

    def get_sections(self, name: str) -> list[TemplateDictionary]:
        return self._sections.get(name, [])

    def has_section(self, name: str) -> bool:
        return bool(self._sections.get(name))


def _includes(dictionary: TemplateDictionary, section: str) -> list[str]:
    return [include.get_value("INCLUDE") for include in dictionary.get_sections(section)]


def _namespace_begin(dictionary: TemplateDictionary) -> list[str]:
    return [
        f"namespace {namespace.get_value('NAMESPACE')} {{"
        for namespace in dictionary.get_sections("ALL_NAMESPACES")
    ]


def _namespace_end(dictionary: TemplateDictionary) -> list[str]:
    return [
        f"}}  // namespace {namespace.get_value('NAMESPACE')}"
        for namespace in dictionary.get_sections("ALL_NAMESPACES")
    ]


def _builder_base_classes(builder: TemplateDictionary) -> str:
    base_classes = builder.get_value("BASE_CLASSES")
    if not base_classes and builder.get_value("INTERFACE_FILE"):
        return f" : public {builder.get_value('INTERFACE_NAME')}"
    return base_classes


def _status_methods(builder: TemplateDictionary) -> list[str]:
    if not builder.has_section("USE_STATUS"):
        return []
    (section,) = builder.get_sections("USE_STATUS")
    class_name = section.get_value("CLASS_NAME")
    proto_type = section.get_value("PROTO_TYPE")
    root_data = section.get_value("ROOT_DATA")
    status_or = section.get_value(KEY_STATUS_OR)
    status = section.get_value(KEY_STATUS)
    source_location = section.get_value(KEY_LOG_SOURCE_LOCATION + "%param")
    return [
        "",
        f"  const {status}& status() const {{ return status_; }}",
        "",
        f"  {class_name}& UpdateStatus(",
        f"      {section.get_value(KEY_STATUS + '+param')},",
        f"      {section.get_value(KEY_LOG_SOURCE_LOCATION + '+param=value')}) {{",
        f"    static_cast<void>({source_location});",
        f"    status_.Update({section.get_value(KEY_STATUS + '%param')});",
        "    return *this;",
        "  }",
        "",
        f"  {status_or}<{proto_type}> MaybeGetRawData() const& {{",
        "    if (!status_.ok()) {",
        "      return status_;",
        "    }",
        f"    return {root_data};",
        "  }",
        "",
        f"  {status_or}<{proto_type}> MaybeGetRawData() && {{",
        "    if (!status_.ok()) {",
        "      return std::move(status_);",
        "    }",
        f"    return std::move({root_data});",
        "  }",
    ]


def _build_methods(builder: TemplateDictionary) -> list[str]:
    lines = []
    for section in builder.get_sections("USE_BUILD"):
        proto_type = section.get_value("PROTO_TYPE")
        status_or = section.get_value(KEY_STATUS_OR)
        validate = [f"    {section.get_value('VALIDATE_DATA')}"]
        if not section.get_value("VALIDATE_DATA"):
            validate = []
        lines += [
            "",
            f"  {status_or}<{proto_type}> Build() & {{",
            *validate,
            "    return MaybeGetRawData();",
            "  }",
            "",
            f"  {status_or}<{proto_type}> Build() && {{",
            *validate,
            "    return std::move(*this).MaybeGetRawData();",
            "  }",
        ]
    for section in builder.get_sections("USE_VALIDATOR"):
        lines += [
            "",
            "  void ValidateData() {",
            "    if (status_.ok()) {",
            f"      UpdateStatus({section.get_value(KEY_VALIDATE + '%value')});",
            "    }",
            "  }",
        ]
    return lines


def _conversion_methods(builder: TemplateDictionary) -> list[str]:
    lines = []
    for section in builder.get_sections("USE_CONVERSION"):
        proto_type = section.get_value("PROTO_TYPE")
        root_data = section.get_value("ROOT_DATA")
        lines += [
            "",
            f"  operator const {proto_type}&() const& {{ return {root_data}; }}",
            f"  operator {proto_type}() && {{ return std::move({root_data}); }}",
        ]
    return lines


def _builder_class(builder: TemplateDictionary) -> list[str]:
    class_name = builder.get_value("CLASS_NAME")
    proto_type = builder.get_value("PROTO_TYPE")
    root_data = builder.get_value("ROOT_DATA")
    lines = [
        "",
        f"class {class_name}{_builder_base_classes(builder)} {{",
        " public:",
        f"  {class_name}() = default;",
        f"  explicit {class_name}(const {proto_type}& data) : data_(data) {{}}",
        f"  explicit {class_name}({proto_type}&& data) : data_(std::move(data)) {{}}",
        "",
        f"  const {proto_type}& data() const& {{ return {root_data}; }}",
        f"  {proto_type}&& data() && {{ return std::move({root_data}); }}",
    ]
    lines += _status_methods(builder)
    lines += _build_methods(builder)
    lines += _conversion_methods(builder)
    lines += ["", *builder.get_value("GENERATED_HEADER_CODE").split("\n")]
    lines += ["", " private:", f"  {proto_type} data_;"]
    for section in builder.get_sections("USE_STATUS"):
        lines.append(
            f"  {section.get_value(KEY_STATUS)} status_ = "
            f"{section.get_value(KEY_STATUS + '%value')};"
        )
    lines.append("};")
    return lines


def render_header(dictionary: TemplateDictionary) -> str:
    guard = dictionary.get_value("HEADER_GUARD")
    lines = [
        GENERATED_FILE_HEADER,
        f"#ifndef {guard}",
        f"#define {guard}",
        "",
        *_includes(dictionary, "HEADER_INCLUDES"),
        "",
        *_namespace_begin(dictionary),
    ]
    for builder in dictionary.get_sections("BUILDER"):
        lines += _builder_class(builder)
    lines += ["", *_namespace_end(dictionary), "", f"#endif  // {guard}"]
    return "\n".join(lines)


def render_source(dictionary: TemplateDictionary) -> str:
    lines = [
        GENERATED_FILE_HEADER,
        f'#include "{dictionary.get_value("HEADER_FILE")}"',
        "",
        *_includes(dictionary, "SOURCE_INCLUDES"),
        "",
    ]
    lines += [
        f"namespace {namespace.get_value('NAMESPACE')} {{"
        for namespace in dictionary.get_sections("NAMESPACES")
    ]
    for builder in dictionary.get_sections("BUILDER"):
        lines += ["", *builder.get_value("GENERATED_SOURCE_CODE").split("\n")]
    lines.append("")
    lines += [
        f"}}  // namespace {namespace.get_value('NAMESPACE')}"
        for namespace in dictionary.get_sections("NAMESPACES_END")
    ]
    return "\n".join(lines)


def render_interface(dictionary: TemplateDictionary) -> str:
    guard = dictionary.get_value("INTERFACE_GUARD")
    lines = [
        GENERATED_FILE_HEADER,
        f"#ifndef {guard}",
        f"#define {guard}",
        "",
        *_includes(dictionary, "INTERFACE_INCLUDES"),
        "",
        *_namespace_begin(dictionary),
    ]
    for builder in dictionary.get_sections("BUILDER"):
        class_name = builder.get_value("CLASS_NAME")
        interface_name = builder.get_value("INTERFACE_NAME")
        lines += [
            "",
            f"class {class_name};",
            "",
            f"class {interface_name} {{",
            " public:",
            f"  virtual ~{interface_name}() = default;",
            "",
            *builder.get_value("GENERATED_INTERFACE_CODE").split("\n"),
            "};",
        ]
    lines += ["", *_namespace_end(dictionary), "", f"#endif  // {guard}"]
    return "\n".join(lines)


RENDERERS = {
    Where.HEADER: render_header,
    Where.SOURCE: render_source,
    Where.INTERFACE: render_interface,
}


def render(where: Where, dictionary: TemplateDictionary) -> str:
    return RENDERERS[where](dictionary)
