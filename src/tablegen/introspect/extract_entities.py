"""Extract marked entity classes from parsed Python sources.

Walks a tree-sitter parse tree, resolves decorator and annotation names
through the module's imports, and yields an Entity for every class carrying
a marker decorator. Field positions come straight from the parse tree.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from ..model import Entity, Field, ScopeElement, ScopeKind
from .annotations import is_class_var, type_ref_from_text


@dataclass
class MarkedEntity:
    """An entity together with the marker that selected it."""
    marker: str
    entity: Entity


@dataclass
class ModuleContext:
    """Name resolution context of one module."""
    module: str
    package: str | None
    imports: dict[str, str] = field(default_factory=dict)  # bound name -> qualified target
    local_classes: set[str] = field(default_factory=set)

    def resolve(self, name: str) -> str:
        """Resolve a dotted name as written in this module to its qualified name."""
        head, _, rest = name.partition(".")
        if head in self.local_classes:
            target = f"{self.module}.{head}"
        elif head in self.imports:
            target = self.imports[head]
        else:
            # builtins and anything we can't see stay as written
            return name
        return f"{target}.{rest}" if rest else target

    def resolve_relative(self, level: int, name: str) -> str:
        """Resolve ``from ..name import`` style module references."""
        if self.package is None:
            return name
        parts = self.package.split(".")
        if level > 1:
            parts = parts[:len(parts) - (level - 1)]
        base = ".".join(parts)
        if not base:
            return name
        return f"{base}.{name}" if name else base


def module_context(source: bytes, tree: any, module: str, package: str | None) -> ModuleContext:
    """Collect imports and top-level class names of a module."""
    context = ModuleContext(module=module, package=package)
    root = tree.root_node

    for node in root.children:
        if node.type == "class_definition":
            context.local_classes.add(_class_name(source, node))
        elif node.type == "decorated_definition":
            definition = node.child_by_field_name("definition")
            if definition is not None and definition.type == "class_definition":
                context.local_classes.add(_class_name(source, definition))

    for node in _module_level_nodes(root):
        if node.type == "import_statement":
            _collect_import(source, node, context)
        elif node.type == "import_from_statement":
            _collect_import_from(source, node, context)

    return context


def extract_entities(
    source: bytes,
    tree: any,
    module: str,
    package: str | None,
    markers_namespace: str,
    file_path: str | None = None,
) -> list[MarkedEntity]:
    """Extract every marked class of a module.

    Args:
        source: Source code bytes
        tree: Tree-sitter parse tree
        module: Qualified module name
        package: Qualified package name, or None for a top-level module
        markers_namespace: Decorators resolving under this namespace are markers
        file_path: Source file path recorded on each entity

    Returns:
        Marked entities in source order
    """
    context = module_context(source, tree, module, package)
    return list(_extract_classes(source, tree.root_node, [], context, markers_namespace, file_path))


def field_positions(source: bytes, tree: any, class_path: list[str]) -> dict[str, int] | None:
    """Byte offsets of a class's annotated fields, or None if the class isn't found."""
    node = tree.root_node
    class_node = None
    for name in class_path:
        class_node = None
        container = node if node.type == "module" else node.child_by_field_name("body")
        if container is None:
            return None
        for child in container.children:
            candidate = _as_class(child)
            if candidate is not None and _class_name(source, candidate) == name:
                class_node = candidate
                break
        if class_node is None:
            return None
        node = class_node

    return {name: position for name, _, position in _annotated_assignments(source, class_node)}


def _extract_classes(
    source: bytes,
    container: any,
    parents: list[str],
    context: ModuleContext,
    markers_namespace: str,
    file_path: str | None,
) -> Iterator[MarkedEntity]:
    for node in container.children:
        class_node = _as_class(node)
        if class_node is None:
            continue

        name = _class_name(source, class_node)
        path = parents + [name]
        markers = _markers(source, node, context, markers_namespace)

        if markers:
            entity = _build_entity(source, class_node, path, context, file_path)
            for marker in markers:
                yield MarkedEntity(marker=marker, entity=entity)

        body = class_node.child_by_field_name("body")
        if body is not None:
            yield from _extract_classes(source, body, path, context, markers_namespace, file_path)


def _build_entity(
    source: bytes,
    class_node: any,
    path: list[str],
    context: ModuleContext,
    file_path: str | None,
) -> Entity:
    scope: list[ScopeElement] = []
    for depth in range(len(path) - 1, 0, -1):
        scope.append(ScopeElement(ScopeKind.CLASS, ".".join([context.module] + path[:depth])))
    scope.append(ScopeElement(ScopeKind.MODULE, context.module))
    if context.package:
        scope.append(ScopeElement(ScopeKind.PACKAGE, context.package))

    fields = []
    for name, type_text, position in _annotated_assignments(source, class_node):
        type_ref = type_ref_from_text(type_text, context.resolve)
        if is_class_var(type_ref):
            continue
        fields.append(Field(name=name, type=type_ref, position=position))

    return Entity(
        qualified_name=".".join([context.module] + path),
        simple_name=path[-1],
        scope=tuple(scope),
        fields=tuple(fields),
        source_file=file_path,
    )


def _annotated_assignments(source: bytes, class_node: any) -> Iterator[tuple[str, str, int]]:
    """Yield (name, annotation text, start byte) for ``name: type`` statements in a class body."""
    body = class_node.child_by_field_name("body")
    if body is None:
        return
    for statement in body.named_children:
        if statement.type != "expression_statement" or not statement.named_children:
            continue
        assignment = statement.named_children[0]
        if assignment.type != "assignment":
            continue
        left = assignment.child_by_field_name("left")
        annotation = assignment.child_by_field_name("type")
        if left is None or annotation is None or left.type != "identifier":
            continue
        yield (_get_text(source, left), _get_text(source, annotation), assignment.start_byte)


def _markers(source: bytes, node: any, context: ModuleContext, markers_namespace: str) -> list[str]:
    if node.type != "decorated_definition":
        return []

    markers = []
    prefix = markers_namespace + "."
    for decorator in node.named_children:
        if decorator.type != "decorator" or not decorator.named_children:
            continue
        expression = decorator.named_children[0]
        if expression.type == "call":
            expression = expression.child_by_field_name("function")
        if expression is None:
            continue
        qualified = context.resolve(_get_text(source, expression).replace(" ", ""))
        if qualified.startswith(prefix):
            markers.append(qualified)
    return markers


def _collect_import(source: bytes, node: any, context: ModuleContext) -> None:
    # import a.b        binds a -> a
    # import a.b as c   binds c -> a.b
    for child in node.named_children:
        if child.type == "dotted_name":
            name = _get_text(source, child)
            head = name.split(".")[0]
            context.imports[head] = head
        elif child.type == "aliased_import":
            target = child.child_by_field_name("name")
            alias = child.child_by_field_name("alias")
            if target is not None and alias is not None:
                context.imports[_get_text(source, alias)] = _get_text(source, target)


def _collect_import_from(source: bytes, node: any, context: ModuleContext) -> None:
    module_node = node.child_by_field_name("module_name")
    if module_node is None:
        return

    if module_node.type == "relative_import":
        text = _get_text(source, module_node)
        level = len(text) - len(text.lstrip("."))
        module = context.resolve_relative(level, text.lstrip("."))
    else:
        module = _get_text(source, module_node)

    for child in node.children_by_field_name("name"):
        if child.type == "dotted_name":
            name = _get_text(source, child)
            context.imports[name.split(".")[-1]] = f"{module}.{name}"
        elif child.type == "aliased_import":
            target = child.child_by_field_name("name")
            alias = child.child_by_field_name("alias")
            if target is not None and alias is not None:
                context.imports[_get_text(source, alias)] = f"{module}.{_get_text(source, target)}"


# Helper functions

def _module_level_nodes(node: any) -> Iterator[any]:
    """Traverse the module without entering function or class bodies."""
    for child in node.children:
        if child.type in ("function_definition", "class_definition", "decorated_definition"):
            continue
        yield child
        yield from _module_level_nodes(child)


def _as_class(node: any) -> any | None:
    if node.type == "class_definition":
        return node
    if node.type == "decorated_definition":
        definition = node.child_by_field_name("definition")
        if definition is not None and definition.type == "class_definition":
            return definition
    return None


def _class_name(source: bytes, node: any) -> str:
    name_node = node.child_by_field_name("name")
    return _get_text(source, name_node) if name_node else "unknown"


def _get_text(source: bytes, node: any) -> str:
    """Get text for a node."""
    if not node:
        return ""
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")
