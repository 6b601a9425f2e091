"""Jinja2 rendering of generated modules."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping

from jinja2 import (
    BaseLoader,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
)

# Canonical column type -> backend accessor suffix (get_<suffix>/set_<suffix>)
ACCESSORS = {
    "Integer64": "long",
    "Boolean": "bool",
    "String": "string",
    "Date": "date",
    "Binary": "binary",
    "Link": "subtable",
    "Variant": "mixed",
}


# Names a field can't take: they clash with generated cursor members or with
# names the generated method bodies rely on
RESERVED_FIELD_NAMES = frozenset({"self", "row", "as_dict", "memoryview", "tablegen", "_backend", "_row"})


def type_imports(columns: Iterable[Mapping[str, Any]]) -> list[str]:
    """Modules the generated code must import for its type annotations.

    Link columns are exposed through the generated sub-table class and
    unsupported columns get no accessor, so neither contributes an import.
    """
    modules = set()
    for column in columns:
        if column["is_link"] or column["type"] == "Unsupported":
            continue
        for type_name in (column["field_type"], column["param_type"]):
            base = type_name.split("[", 1)[0]
            if "." in base:
                modules.add(base.rsplit(".", 1)[0])
    return sorted(modules)


def accessor(column_type: str) -> str | None:
    return ACCESSORS.get(column_type)


class CodeRenderer:
    """Renders the tablegen templates.

    Templates shipped in the package can be overridden one by one by placing
    a file of the same name in ``template_dir``.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        loaders: list[BaseLoader] = []
        if template_dir:
            loaders.append(FileSystemLoader(str(template_dir)))
        loaders.append(PackageLoader("tablegen", "templates"))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
            autoescape=False,
        )
        self.env.filters["accessor"] = accessor
        self.env.globals["type_imports"] = type_imports

    def render(self, template_name: str, context: Mapping[str, Any]) -> str:
        """Render a template with the given attributes."""
        template = self.env.get_template(template_name)
        return template.render(**context)
