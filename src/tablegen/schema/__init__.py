"""Schema resolution and type mapping.

- Classify candidate entities into top-level tables and sub-tables
- Normalize declared field types to canonical column types
- Build the ordered column list of each entity
- Assemble the attribute model shared by the code templates
"""
from __future__ import annotations

from .classifier import (
    Classification,
    Schema,
    referenced_identities,
)

from .normalizer import (
    ColumnType,
    NormalizedType,
    capitalize,
    normalize_field,
)

from .columns import (
    Column,
    build_columns,
    columns_for_fields,
)

from .assembler import (
    AttributeModel,
    DEFAULT_PACKAGE,
    INFO_GENERATED,
    assemble_attributes,
    calculate_package_name,
)

__all__ = [
    # Classifier
    "Classification",
    "Schema",
    "referenced_identities",
    # Normalizer
    "ColumnType",
    "NormalizedType",
    "capitalize",
    "normalize_field",
    # Columns
    "Column",
    "build_columns",
    "columns_for_fields",
    # Assembler
    "AttributeModel",
    "DEFAULT_PACKAGE",
    "INFO_GENERATED",
    "assemble_attributes",
    "calculate_package_name",
]
