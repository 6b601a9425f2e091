"""Shared pytest fixtures for all tests."""
import pytest
from pathlib import Path

from tablegen.introspect.annotations import type_ref_from_text
from tablegen.model import Entity, Field, ScopeElement, ScopeKind

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def models_root():
    """Source root with the clean sample models (package ``zoo``)."""
    return FIXTURES / "models"


@pytest.fixture(scope="session")
def broken_root():
    """Source root with a top-level module full of schema problems."""
    return FIXTURES / "broken"


@pytest.fixture
def zoo_path(models_root, monkeypatch):
    """Make the sample models importable for reflection tests."""
    monkeypatch.syspath_prepend(str(models_root))
    return models_root


def make_entity(qualified_name, fields=(), package="app", positions=True, source_file=None):
    """Build an Entity from (name, qualified type text) pairs.

    Type text is taken as already qualified. Fields get increasing positions
    unless ``positions`` is False.
    """
    module, _, simple_name = qualified_name.rpartition(".")
    scope = [ScopeElement(ScopeKind.MODULE, module)]
    if package:
        scope.append(ScopeElement(ScopeKind.PACKAGE, package))

    built = []
    for i, (name, type_text) in enumerate(fields):
        type_ref = type_ref_from_text(type_text, lambda n: n)
        built.append(Field(name=name, type=type_ref, position=(i + 1) * 10 if positions else None))

    return Entity(
        qualified_name=qualified_name,
        simple_name=simple_name,
        scope=tuple(scope),
        fields=tuple(built),
        source_file=source_file,
    )


@pytest.fixture
def entity_factory():
    return make_entity


@pytest.fixture
def person_and_dog():
    """Person{name, age} referenced by Dog.owner."""
    person = make_entity("app.models.Person", [("name", "str"), ("age", "int")])
    dog = make_entity("app.models.Dog", [("name", "str"), ("owner", "app.models.Person")])
    return person, dog
