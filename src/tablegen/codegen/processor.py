"""Processing round driver.

One round takes the full candidate entity set, classifies it, and emits the
table, cursor, view and query modules of every entity. Schema problems are
collected and reported once the round is complete.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from ..config import CodegenConfig
from ..diagnostics import Diagnostics
from ..introspect.field_sorter import FieldSorter
from ..introspect.scanner import collect_entities
from ..model import Entity
from ..schema import (
    AttributeModel,
    ColumnType,
    Schema,
    assemble_attributes,
    build_columns,
)
from .renderer import RESERVED_FIELD_NAMES, CodeRenderer
from .writer import OutputWriter

logger = logging.getLogger(__name__)

# (template, file name suffix) per artifact; the cursor module has no suffix
ARTIFACTS = (
    ("table.py.j2", "Table"),
    ("cursor.py.j2", ""),
    ("view.py.j2", "View"),
    ("query.py.j2", "Query"),
)


@dataclass
class GeneratedFile:
    """One rendered artifact."""
    package_name: str
    file_name: str
    content: str
    entity: str
    path: Path | None = None  # set once written


@dataclass
class RoundResult:
    """Outcome of one processing round."""
    schema: Schema | None = None
    models: list[AttributeModel] = field(default_factory=list)
    files: list[GeneratedFile] = field(default_factory=list)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def failed(self) -> bool:
        return self.diagnostics.has_errors

    @property
    def written(self) -> list[Path]:
        return [f.path for f in self.files if f.path is not None]


class CodeGenProcessor:
    """Runs processing rounds. Holds no schema state between rounds."""

    def __init__(
        self,
        config: CodegenConfig | None = None,
        renderer: CodeRenderer | None = None,
        writer: OutputWriter | None = None,
        dry_run: bool = False,
    ) -> None:
        self.config = config if config is not None else CodegenConfig()
        self.renderer = renderer if renderer is not None else CodeRenderer(self.config.template_dir)
        self.writer = writer if writer is not None else OutputWriter(self.config.output_dir)
        self.dry_run = dry_run

    def process(
        self,
        markers: Mapping[str, Sequence[Entity]],
        diagnostics: Diagnostics | None = None,
    ) -> RoundResult:
        """Run one round over entities grouped by marker.

        Args:
            markers: Marker qualified name -> entities carrying it
            diagnostics: Collector already holding problems found while scanning

        Returns:
            RoundResult with the schema, attribute models, files and diagnostics
        """
        result = RoundResult(diagnostics=diagnostics if diagnostics is not None else Diagnostics())

        for marker, entities in markers.items():
            if marker == self.config.table_marker:
                self._process_entities(list(entities), result)
            else:
                result.diagnostics.warning(f"Unexpected marker: {marker}")

        if result.failed:
            logger.error(f"Round failed with {len(result.diagnostics.errors)} error(s)")
        return result

    def _process_entities(self, entities: list[Entity], result: RoundResult) -> None:
        logger.info(f"Processing {len(entities)} elements...")

        schema = Schema.build(entities)
        result.schema = schema
        field_sorter = FieldSorter(result.diagnostics)

        generated = [
            (entity, self._generate_entity(entity, schema, field_sorter, result.diagnostics))
            for entity in entities
        ]
        packages = {model.qualified_name: model.package_name for _, model in generated}
        # (package, file name) -> qualified name of the entity that claimed it
        claimed: dict[tuple[str, str], str] = {}

        for entity, model in generated:
            result.models.append(model)
            self._check_links(entity, model, packages, result.diagnostics)
            if self._claim_files(entity, model, claimed, result.diagnostics):
                result.files.extend(self._render_artifacts(model, entity))

    def _generate_entity(
        self,
        entity: Entity,
        schema: Schema,
        field_sorter: FieldSorter,
        diagnostics: Diagnostics,
    ) -> AttributeModel:
        columns = build_columns(entity, schema, field_sorter)

        logger.info(f"Generating code for entity '{entity.simple_name}' with {len(columns)} columns...")

        for column in columns:
            if column.type is ColumnType.UNSUPPORTED:
                diagnostics.error(
                    f"Unsupported field type '{column.original_type}'",
                    entity=entity.simple_name,
                    field=column.name,
                )
            if column.name in RESERVED_FIELD_NAMES:
                diagnostics.error(
                    f"Field name '{column.name}' is reserved in generated code",
                    entity=entity.simple_name,
                    field=column.name,
                )

        return assemble_attributes(
            entity,
            columns,
            schema,
            self.renderer,
            diagnostics,
            package_suffix=self.config.package_suffix,
            default_package=self.config.default_package,
            fail_on_default_package=self.config.fail_on_default_package,
        )

    def _file_names(self, model: AttributeModel) -> list[str]:
        return [model.entity + suffix + self.config.file_extension for _, suffix in ARTIFACTS]

    def _claim_files(
        self,
        entity: Entity,
        model: AttributeModel,
        claimed: dict[tuple[str, str], str],
        diagnostics: Diagnostics,
    ) -> bool:
        """Reserve the entity's output files; report and skip it if another entity has them."""
        keys = [(model.package_name, name) for name in self._file_names(model)]
        owners = sorted({claimed[key] for key in keys if key in claimed})
        if owners:
            diagnostics.error(
                f"Generated files of {entity.qualified_name} in {model.package_name} clash with "
                f"those of {', '.join(owners)}; not generated",
                entity=entity.simple_name,
            )
            return False
        for key in keys:
            claimed[key] = entity.qualified_name
        return True

    def _check_links(
        self,
        entity: Entity,
        model: AttributeModel,
        packages: Mapping[str, str],
        diagnostics: Diagnostics,
    ) -> None:
        # the generated cursor imports linked sub-tables from its own package
        for column in model.columns:
            if not column.is_link:
                continue
            target_package = packages.get(column.link_entity)
            if target_package is not None and target_package != model.package_name:
                diagnostics.warning(
                    f"Linked sub-table {column.link_entity} is generated into {target_package}, "
                    f"not {model.package_name}; the generated accessor won't import it",
                    entity=entity.simple_name,
                    field=column.name,
                )

    def _render_artifacts(self, model: AttributeModel, entity: Entity) -> list[GeneratedFile]:
        files = []
        for (template, suffix), file_name in zip(ARTIFACTS, self._file_names(model)):
            content = self.renderer.render(template, model.for_artifact(model.entity + suffix))
            generated = GeneratedFile(
                package_name=model.package_name,
                file_name=file_name,
                content=content,
                entity=model.entity,
            )
            if not self.dry_run:
                generated.path = self.writer.write(
                    generated.package_name, generated.file_name, content, entity
                )
            files.append(generated)
        return files


def generate_from_sources(
    config: CodegenConfig,
    source_roots: Sequence[str | Path] | None = None,
    dry_run: bool = False,
) -> RoundResult:
    """Scan the source roots and run one full round.

    Args:
        config: Generator configuration
        source_roots: Directories to scan (defaults to config.source_roots)
        dry_run: Render without writing files

    Returns:
        RoundResult of the round
    """
    diagnostics = Diagnostics()
    roots = list(source_roots) if source_roots else list(config.source_roots)
    markers = collect_entities(roots, config.markers_namespace, diagnostics, config.ignore_file)
    return CodeGenProcessor(config, dry_run=dry_run).process(markers, diagnostics)
