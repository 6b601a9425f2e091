"""Tests for artifact emission.

Tests cover:
- Template rendering and overrides
- Output writing
- Full processing rounds over the sample models
- Generated code running against an in-memory backend
"""
import datetime
import importlib
import sys

import pytest

from tablegen.codegen import (
    ARTIFACTS,
    CodeGenProcessor,
    CodeRenderer,
    OutputWriter,
    generate_from_sources,
)
from tablegen.codegen.renderer import accessor, type_imports
from tablegen.config import CodegenConfig
from tablegen.diagnostics import Diagnostics
from tablegen.introspect import collect_entities
from tablegen.markers import MARKERS_NAMESPACE, TABLE_MARKER
from tablegen.mixed import Mixed, MixedKind
from tablegen.schema import Classification

from conftest import make_entity


class MemoryBackend:
    """Column store honoring the backend protocol the generated code calls."""

    def __init__(self):
        self.columns = ()
        self.rows = []
        self.subtables = {}

    def ensure_columns(self, columns):
        self.columns = tuple(columns)

    def size(self):
        return len(self.rows)

    def add_empty_row(self):
        self.rows.append([None] * len(self.columns))
        return len(self.rows) - 1

    def insert_empty_row(self, row):
        self.rows.insert(row, [None] * len(self.columns))

    def remove(self, row):
        del self.rows[row]

    def clear(self):
        self.rows.clear()

    def subtable(self, column, row):
        return self.subtables.setdefault((column, row), MemoryBackend())

    def find_first(self, column, value):
        for row, values in enumerate(self.rows):
            if values[column] == value:
                return row
        return -1

    def find(self, predicates):
        ops = {
            "==": lambda a, b: a == b,
            "!=": lambda a, b: a != b,
            ">": lambda a, b: a > b,
            "<": lambda a, b: a < b,
            ">=": lambda a, b: a >= b,
            "<=": lambda a, b: a <= b,
            "contains": lambda a, b: b in a,
            "startswith": lambda a, b: a.startswith(b),
            "endswith": lambda a, b: a.endswith(b),
        }
        return [
            row for row, values in enumerate(self.rows)
            if all(ops[op](values[column], value) for column, op, value in predicates)
        ]

    def _get(self, column, row):
        return self.rows[row][column]

    def _set(self, column, row, value):
        self.rows[row][column] = value

    get_long = get_bool = get_string = get_date = get_binary = get_mixed = _get
    set_long = set_bool = set_string = set_date = set_binary = set_mixed = _set


def sample_config(tmp_path, models_root, **overrides):
    return CodegenConfig(
        source_roots=[str(models_root)],
        output_dir=str(tmp_path / "out"),
        **overrides,
    )


# =============================================================================
# Renderer Tests
# =============================================================================

class TestRenderer:
    """Test template rendering helpers."""

    def test_accessor_names(self):
        """Should map every storable column type to a backend accessor."""
        assert accessor("Integer64") == "long"
        assert accessor("Variant") == "mixed"
        assert accessor("Link") == "subtable"
        assert accessor("Unsupported") is None

    def test_type_imports(self):
        """Should import modules of dotted types, skipping links and unsupported columns."""
        columns = [
            {"type": "Date", "is_link": False, "field_type": "datetime.datetime", "param_type": "datetime.datetime"},
            {"type": "Variant", "is_link": False, "field_type": "tablegen.mixed.Mixed", "param_type": "tablegen.mixed.Mixed"},
            {"type": "Link", "is_link": True, "field_type": "zoo.owners.Person", "param_type": "zoo.owners.Person"},
            {"type": "Unsupported", "is_link": False, "field_type": "decimal.Decimal", "param_type": "decimal.Decimal"},
            {"type": "String", "is_link": False, "field_type": "str", "param_type": "str"},
        ]

        assert type_imports(columns) == ["datetime", "tablegen.mixed"]

    def test_template_override(self, tmp_path):
        """Should prefer a template from the override directory."""
        (tmp_path / "view.py.j2").write_text("# custom view for {{ entity }}\n")
        renderer = CodeRenderer(tmp_path)

        assert renderer.render("view.py.j2", {"entity": "Dog"}) == "# custom view for Dog\n"

    def test_missing_attribute_fails(self):
        """Should fail loudly when a template attribute is missing."""
        from jinja2 import UndefinedError

        with pytest.raises(UndefinedError):
            CodeRenderer().render("table_add.py.j2", {"columns": []})

    def test_add_fragment(self):
        """Should skip link and unsupported columns in add parameters."""
        columns = [
            {"name": "name", "type": "String", "index": 0, "is_link": False,
             "field_type": "str", "param_type": "str"},
            {"name": "owner", "type": "Link", "index": 1, "is_link": True,
             "field_type": "zoo.owners.Person", "param_type": "zoo.owners.Person"},
            {"name": "price", "type": "Unsupported", "index": 2, "is_link": False,
             "field_type": "float", "param_type": "float"},
            {"name": "picture", "type": "Binary", "index": 3, "is_link": False,
             "field_type": "memoryview", "param_type": "bytes"},
        ]

        text = CodeRenderer().render("table_add.py.j2", {"entity": "Dog", "columns": columns})

        assert "def add(self, name: str, picture: bytes) -> Dog:" in text
        assert "self._backend.set_string(0, _row, name)" in text
        assert "self._backend.set_binary(3, _row, memoryview(picture))" in text
        assert "owner" not in text
        assert "price" not in text


# =============================================================================
# Writer Tests
# =============================================================================

class TestOutputWriter:
    """Test writing generated files."""

    def test_writes_into_package_directory(self, tmp_path):
        """Should map the package to directories and create __init__ files."""
        writer = OutputWriter(tmp_path)
        origin = make_entity("zoo.models.Dog")

        path = writer.write("zoo.generated", "DogTable.py", "x = 1\n", origin)

        assert path == tmp_path / "zoo" / "generated" / "DogTable.py"
        assert path.read_text() == "x = 1\n"
        assert (tmp_path / "zoo" / "__init__.py").exists()
        assert (tmp_path / "zoo" / "generated" / "__init__.py").exists()

    def test_existing_init_untouched(self, tmp_path):
        """Should leave an existing __init__.py as it is."""
        (tmp_path / "zoo").mkdir()
        (tmp_path / "zoo" / "__init__.py").write_text("VERSION = 2\n")

        OutputWriter(tmp_path).write("zoo.generated", "Dog.py", "", make_entity("zoo.models.Dog"))

        assert (tmp_path / "zoo" / "__init__.py").read_text() == "VERSION = 2\n"

    def test_without_init_files(self, tmp_path):
        """Should not create __init__ files when disabled."""
        OutputWriter(tmp_path, create_init=False).write(
            "zoo.generated", "Dog.py", "", make_entity("zoo.models.Dog")
        )

        assert not (tmp_path / "zoo" / "__init__.py").exists()

    def test_overwrites(self, tmp_path):
        """Should replace a file generated by an earlier round."""
        writer = OutputWriter(tmp_path)
        origin = make_entity("zoo.models.Dog")
        writer.write("zoo.generated", "Dog.py", "old\n", origin)

        path = writer.write("zoo.generated", "Dog.py", "new\n", origin)

        assert path.read_text() == "new\n"


# =============================================================================
# Processing Round Tests
# =============================================================================

class TestProcessor:
    """Test full processing rounds."""

    def test_sample_models_round(self, tmp_path, models_root):
        """Should classify, generate and write every artifact of every entity."""
        result = generate_from_sources(sample_config(tmp_path, models_root))

        assert not result.failed
        assert len(result.diagnostics) == 0
        assert result.schema.classify("zoo.models.Dog") is Classification.TOP_LEVEL
        assert result.schema.classify("zoo.owners.Person") is Classification.NESTED
        assert result.schema.classify("zoo.models.Shelter.Room") is Classification.NESTED

        out = tmp_path / "out" / "zoo" / "generated"
        expected = {
            f"{entity}{suffix}.py"
            for entity in ("Dog", "Room", "Person")
            for _, suffix in ARTIFACTS
        }
        assert {p.name for p in out.iterdir() if p.name != "__init__.py"} == expected
        assert len(result.written) == 12

    def test_dog_attribute_model(self, tmp_path, models_root):
        """Should build the Dog columns in declaration order with normalized types."""
        result = generate_from_sources(sample_config(tmp_path, models_root), dry_run=True)
        dog = next(m for m in result.models if m.entity == "Dog")

        assert dog.package_name == "zoo.generated"
        assert dog.is_nested is False
        assert [(c.name, c.type.value, c.index) for c in dog.columns] == [
            ("name", "String", 0),
            ("owner", "Link", 1),
            ("born", "Date", 2),
            ("picture", "Binary", 3),
            ("extra", "Variant", 4),
        ]
        owner = dog.columns[1]
        assert owner.link_target == "Person"
        picture = dog.columns[3]
        assert (picture.field_type, picture.param_type) == ("memoryview", "bytes")
        assert dog.columns[4].field_type == "tablegen.mixed.Mixed"

    def test_generated_code_compiles(self, tmp_path, models_root):
        """Should emit syntactically valid Python for every artifact."""
        result = generate_from_sources(sample_config(tmp_path, models_root), dry_run=True)

        for generated in result.files:
            compile(generated.content, generated.file_name, "exec")
            assert generated.content.startswith("# This file was automatically generated by tablegen.")

    def test_dry_run_writes_nothing(self, tmp_path, models_root):
        """Should render without touching the output directory."""
        result = generate_from_sources(sample_config(tmp_path, models_root), dry_run=True)

        assert len(result.files) == 12
        assert result.written == []
        assert not (tmp_path / "out").exists()

    def test_schema_errors_reported(self, tmp_path, broken_root):
        """Should report every unsupported field and still finish the round."""
        config = CodegenConfig(source_roots=[str(broken_root)], output_dir=str(tmp_path / "out"))

        result = generate_from_sources(config, dry_run=True)

        assert result.failed
        assert [e.format() for e in result.diagnostics.errors] == [
            "error: Ledger.amount: Unsupported field type 'float'",
            "error: Ledger.note: Unsupported field type 'str | None'",
        ]
        warnings = [w.format() for w in result.diagnostics.warnings]
        assert "warning: Ledger: Couldn't calculate the target package! Using default: tablegen.generated" in warnings
        assert "warning: Unexpected marker: tablegen.markers.index" in warnings
        assert [m.entity for m in result.models] == ["Ledger"]
        assert result.models[0].package_name == "tablegen.generated"

    def test_unsupported_columns_compile(self, tmp_path, broken_root):
        """Should still emit valid code around unsupported columns."""
        config = CodegenConfig(source_roots=[str(broken_root)], output_dir=str(tmp_path / "out"))

        result = generate_from_sources(config, dry_run=True)

        for generated in result.files:
            compile(generated.content, generated.file_name, "exec")

    def test_fail_on_default_package(self, tmp_path, broken_root):
        """Should turn the default package fallback into an error when configured."""
        config = CodegenConfig(
            source_roots=[str(broken_root)],
            output_dir=str(tmp_path / "out"),
            fail_on_default_package=True,
        )

        result = generate_from_sources(config, dry_run=True)

        messages = [e.message for e in result.diagnostics.errors]
        assert any(m.startswith("Couldn't calculate the target package!") for m in messages)

    def test_rounds_are_independent(self, tmp_path, entity_factory):
        """Should reclassify from scratch on every round."""
        person = entity_factory("app.models.Person", [("name", "str")])
        dog = entity_factory("app.models.Dog", [("owner", "app.models.Person")])
        processor = CodeGenProcessor(sample_config(tmp_path, tmp_path), dry_run=True)

        first = processor.process({TABLE_MARKER: [person, dog]})
        second = processor.process({TABLE_MARKER: [person]})

        assert first.schema.classify(person) is Classification.NESTED
        assert second.schema.classify(person) is Classification.TOP_LEVEL

    def test_empty_round(self, tmp_path):
        """Should finish an empty round without output."""
        processor = CodeGenProcessor(sample_config(tmp_path, tmp_path), dry_run=True)

        result = processor.process({})

        assert result.files == []
        assert not result.failed

    def test_scan_diagnostics_carried_over(self, tmp_path, models_root):
        """Should report into the collector handed in by the scanner."""
        diagnostics = Diagnostics()
        diagnostics.warning("Could not read source file broken.py")
        markers = collect_entities([models_root], MARKERS_NAMESPACE, diagnostics)

        result = CodeGenProcessor(sample_config(tmp_path, models_root), dry_run=True).process(
            markers, diagnostics
        )

        assert result.diagnostics is diagnostics
        assert len(result.diagnostics.warnings) == 1

    def test_custom_extension_and_suffix(self, tmp_path, models_root):
        """Should honor the configured file extension and package suffix."""
        config = sample_config(tmp_path, models_root, file_extension=".pyi", package_suffix=".gen")

        result = generate_from_sources(config, dry_run=True)

        assert {f.package_name for f in result.files} == {"zoo.gen"}
        assert all(f.file_name.endswith(".pyi") for f in result.files)


# =============================================================================
# Generated Code Tests
# =============================================================================

class TestGeneratedCode:
    """Test the generated accessors against an in-memory backend."""

    @pytest.fixture
    def generated(self, tmp_path, models_root, monkeypatch):
        out = tmp_path / "out"
        result = generate_from_sources(sample_config(tmp_path, models_root))
        assert not result.failed

        monkeypatch.syspath_prepend(str(out))
        for name in [m for m in sys.modules if m == "zoo" or m.startswith("zoo.")]:
            monkeypatch.delitem(sys.modules, name)
        yield importlib.import_module
        for name in [m for m in sys.modules if m == "zoo" or m.startswith("zoo.")]:
            sys.modules.pop(name, None)

    def test_add_and_read(self, generated):
        """Should store and read back every column through typed accessors."""
        DogTable = generated("zoo.generated.DogTable").DogTable
        backend = MemoryBackend()
        dogs = DogTable(backend)
        born = datetime.datetime(2020, 5, 17)

        dog = dogs.add("Rex", born, b"\x89PNG", 7)

        assert len(dogs) == 1
        assert dog.name == "Rex"
        assert dog.born == born
        assert bytes(dog.picture) == b"\x89PNG"
        assert dog.extra == Mixed(MixedKind.INTEGER64, 7)
        assert [name for name, _ in backend.columns] == ["name", "owner", "born", "picture", "extra"]
        assert DogTable.nested is False

    def test_setters_convert(self, generated):
        """Should wrap binary and variant values on assignment."""
        DogTable = generated("zoo.generated.DogTable").DogTable
        dogs = DogTable(MemoryBackend())
        dog = dogs.add("Rex", datetime.datetime(2020, 1, 1), b"", "x")

        dog.picture = b"abc"
        dog.extra = True

        assert isinstance(dog.picture, memoryview)
        assert dog.extra.as_bool() is True

    def test_link_is_subtable(self, generated):
        """Should expose a link column as the generated sub-table."""
        DogTable = generated("zoo.generated.DogTable").DogTable
        dogs = DogTable(MemoryBackend())
        dog = dogs.add("Rex", datetime.datetime(2020, 1, 1), b"", 1)

        owners = dog.owner
        owners.add("Ann", 41)

        assert type(owners).__name__ == "PersonTable"
        assert type(owners).nested is True
        assert owners[0].age == 41
        assert len(dog.owner) == 1

    def test_insert_remove_and_find(self, generated):
        """Should insert at a row, find by value and remove."""
        PersonTable = generated("zoo.generated.PersonTable").PersonTable
        people = PersonTable(MemoryBackend())
        people.add("Ann", 41)
        people.add("Bob", 17)

        people.insert(0, "Cid", 30)

        assert [p.name for p in people] == ["Cid", "Ann", "Bob"]
        assert people.find_first_name("Bob").row == 2
        assert people.find_first_age(99) is None
        people.remove(0)
        assert [p.as_dict() for p in people] == [
            {"name": "Ann", "age": 41},
            {"name": "Bob", "age": 17},
        ]

    def test_query_and_view(self, generated):
        """Should filter rows with the query builder and aggregate over the view."""
        PersonTable = generated("zoo.generated.PersonTable").PersonTable
        people = PersonTable(MemoryBackend())
        for name, age in [("Ann", 41), ("Bob", 17), ("Abe", 65)]:
            people.add(name, age)

        adults = people.where().age_greater(18).name_startswith("A").find_all()

        assert [p.name for p in adults] == ["Ann", "Abe"]
        assert adults.sum_age() == 106
        assert adults.max_age() == 65
        assert people.where().age_between(10, 20).count() == 1

        adults.remove_all()
        assert [p.name for p in people] == ["Bob"]


# =============================================================================
# Output Integrity Tests
# =============================================================================

class TestOutputIntegrity:
    """Test problems that would otherwise surface only in the generated files."""

    def test_same_name_in_one_package(self, tmp_path):
        """Should report entities generating the same files and keep the first one's output."""
        first = make_entity("app.a.Item", [("x", "int")])
        second = make_entity("app.b.Item", [("y", "str")])
        processor = CodeGenProcessor(CodegenConfig(output_dir=str(tmp_path / "out")))

        result = processor.process({TABLE_MARKER: [first, second]})

        assert result.failed
        assert [e.format() for e in result.diagnostics.errors] == [
            "error: Item: Generated files of app.b.Item in app.generated clash with "
            "those of app.a.Item; not generated"
        ]
        assert len(result.written) == 4
        table = (tmp_path / "out" / "app" / "generated" / "ItemTable.py").read_text()
        assert '("x", "Integer64")' in table
        assert '"y"' not in table

    def test_artifact_name_clash(self, tmp_path):
        """Should report an entity whose cursor file is another entity's table file."""
        item = make_entity("app.models.Item", [("x", "int")])
        item_table = make_entity("app.models.ItemTable", [("y", "int")])
        processor = CodeGenProcessor(CodegenConfig(output_dir=str(tmp_path / "out")), dry_run=True)

        result = processor.process({TABLE_MARKER: [item, item_table]})

        assert result.failed
        assert "those of app.models.Item;" in result.diagnostics.errors[0].message
        assert {f.entity for f in result.files} == {"Item"}

    def test_distinct_packages_do_not_clash(self, tmp_path):
        """Should generate same-named entities living in different packages."""
        first = make_entity("a.models.Item", [("x", "int")], package="a")
        second = make_entity("b.models.Item", [("y", "int")], package="b")
        processor = CodeGenProcessor(CodegenConfig(output_dir=str(tmp_path / "out")), dry_run=True)

        result = processor.process({TABLE_MARKER: [first, second]})

        assert not result.failed
        assert len(result.files) == 8

    def test_reserved_field_name_row(self, tmp_path):
        """Should report a field named row and still emit code that compiles."""
        entry = make_entity("app.models.Entry", [("row", "int"), ("name", "str")])
        processor = CodeGenProcessor(CodegenConfig(output_dir=str(tmp_path / "out")), dry_run=True)

        result = processor.process({TABLE_MARKER: [entry]})

        assert result.failed
        assert [e.format() for e in result.diagnostics.errors] == [
            "error: Entry.row: Field name 'row' is reserved in generated code"
        ]
        for generated in result.files:
            compile(generated.content, generated.file_name, "exec")

    @pytest.mark.parametrize("name", ["self", "as_dict", "_backend", "memoryview", "tablegen"])
    def test_reserved_field_names(self, tmp_path, name):
        """Should report field names the generated code depends on."""
        entity = make_entity("app.models.Entry", [(name, "int")])
        processor = CodeGenProcessor(CodegenConfig(output_dir=str(tmp_path / "out")), dry_run=True)

        result = processor.process({TABLE_MARKER: [entity]})

        assert [(e.entity, e.field) for e in result.diagnostics.errors] == [("Entry", name)]

    def test_link_into_other_package(self, tmp_path):
        """Should warn when a linked sub-table is generated into another package."""
        person = make_entity("people.models.Person", [("name", "str")], package="people")
        dog = make_entity("pets.models.Dog", [("owner", "people.models.Person")], package="pets")
        processor = CodeGenProcessor(CodegenConfig(output_dir=str(tmp_path / "out")), dry_run=True)

        result = processor.process({TABLE_MARKER: [person, dog]})

        assert not result.failed
        assert [w.format() for w in result.diagnostics.warnings] == [
            "warning: Dog.owner: Linked sub-table people.models.Person is generated into "
            "people.generated, not pets.generated; the generated accessor won't import it"
        ]
