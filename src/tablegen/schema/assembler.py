"""Per-entity attribute model handed to the template renderer."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from ..diagnostics import Diagnostics
from ..model import Entity, ScopeKind
from .classifier import Schema
from .columns import Column
from .normalizer import capitalize

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE = "tablegen.generated"
PACKAGE_SUFFIX = ".generated"

INFO_GENERATED = "# This file was automatically generated by tablegen."

ADD_TEMPLATE = "table_add.py.j2"
INSERT_TEMPLATE = "table_insert.py.j2"


class FragmentRenderer(Protocol):
    def render(self, template_name: str, context: Mapping[str, Any]) -> str:
        ...


@dataclass
class AttributeModel:
    """Everything the table/cursor/view/query templates share for one entity."""
    entity: str
    columns: list[Column]
    is_nested: bool
    package_name: str
    qualified_name: str  # of the entity the model was built from
    header: str = INFO_GENERATED
    fragments: dict[str, str] = field(default_factory=dict)

    def common(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "columns": [c.as_template_dict() for c in self.columns],
            "is_nested": self.is_nested,
            "package_name": self.package_name,
            "header": self.header,
        }

    def for_artifact(self, name: str) -> dict[str, Any]:
        """Template context for one artifact, named ``name``."""
        context = self.common()
        context["name"] = name
        context.update(self.fragments)
        return context


def calculate_package_name(
    entity: Entity,
    diagnostics: Diagnostics,
    package_suffix: str = PACKAGE_SUFFIX,
    default_package: str = DEFAULT_PACKAGE,
    fail_on_default: bool = False,
) -> str:
    """Target package: the nearest enclosing package plus the generated suffix.

    Falls back to ``default_package`` when the entity lives in a module
    without a package. The fallback is reported, as an error only when
    ``fail_on_default`` is set.
    """
    for element in entity.scope:
        if element.kind is ScopeKind.PACKAGE:
            return element.name + package_suffix

    message = f"Couldn't calculate the target package! Using default: {default_package}"
    if fail_on_default:
        diagnostics.error(message, entity=entity.simple_name)
    else:
        diagnostics.warning(message, entity=entity.simple_name)
    return default_package


def assemble_attributes(
    entity: Entity,
    columns: list[Column],
    schema: Schema,
    renderer: FragmentRenderer,
    diagnostics: Diagnostics,
    package_suffix: str = PACKAGE_SUFFIX,
    default_package: str = DEFAULT_PACKAGE,
    fail_on_default_package: bool = False,
) -> AttributeModel:
    """Combine an entity's columns with its metadata and render the bulk-method fragments."""
    name = capitalize(entity.simple_name)
    package_name = calculate_package_name(
        entity, diagnostics, package_suffix, default_package, fail_on_default_package
    )

    model = AttributeModel(
        entity=name,
        columns=columns,
        is_nested=schema.is_nested(entity.qualified_name),
        package_name=package_name,
        qualified_name=entity.qualified_name,
    )

    fragment_context = {
        "entity": name,
        "columns": [c.as_template_dict() for c in columns],
    }
    model.fragments["add"] = renderer.render(ADD_TEMPLATE, fragment_context)
    model.fragments["insert"] = renderer.render(INSERT_TEMPLATE, fragment_context)

    return model
