"""Source root scanner with .gitignore support.

Walks source roots, parses every Python file and groups the marked entity
classes it finds by marker.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Iterator

import pathspec

from ..diagnostics import Diagnostics
from ..model import Entity
from .extract_entities import extract_entities
from .parsers import parse_file

logger = logging.getLogger(__name__)


def scan_sources(
    source_root: Path | str,
    ignore_file: str = ".gitignore"
) -> Iterator[tuple[Path, str, str | None]]:
    """Scan a source root for Python files, honoring .gitignore.

    Args:
        source_root: Directory that maps to the top of the import namespace
        ignore_file: Name of ignore file (default: .gitignore)

    Yields:
        Tuples of (file_path, module_name, package_name) for each Python file
    """
    source_root = Path(source_root).resolve()

    if not source_root.exists():
        raise FileNotFoundError(f"Source path not found: {source_root}")

    if not source_root.is_dir():
        raise NotADirectoryError(f"Source path is not a directory: {source_root}")

    # Load .gitignore patterns
    gitignore_path = source_root / ignore_file
    spec = None

    if gitignore_path.exists():
        with open(gitignore_path, "r", encoding="utf-8") as f:
            patterns = f.read()
            spec = pathspec.PathSpec.from_lines("gitwildmatch", patterns.splitlines())

    for file_path in _walk_directory(source_root, spec, source_root):
        if file_path.suffix != ".py":
            continue
        module, package = module_name_for(file_path, source_root)
        yield (file_path, module, package)


def module_name_for(file_path: Path, source_root: Path) -> tuple[str, str | None]:
    """Module and package names of a file relative to its source root.

    ``pkg/sub/models.py`` is module ``pkg.sub.models`` in package ``pkg.sub``;
    ``pkg/__init__.py`` is module ``pkg`` and is its own package; a file
    directly under the root has no package.
    """
    parts = list(file_path.relative_to(source_root).with_suffix("").parts)
    if parts[-1] == "__init__":
        parts = parts[:-1]
        module = ".".join(parts)
        return module, module or None
    module = ".".join(parts)
    package = ".".join(parts[:-1]) or None
    return module, package


def collect_entities(
    source_roots: Iterable[Path | str],
    markers_namespace: str,
    diagnostics: Diagnostics,
    ignore_file: str = ".gitignore",
) -> dict[str, list[Entity]]:
    """Find every marked class under the given source roots.

    Args:
        source_roots: Directories to scan
        markers_namespace: Decorators resolving under this namespace are markers
        diagnostics: Collector for unreadable files
        ignore_file: Name of ignore file

    Returns:
        Marker qualified name -> entities carrying that marker, in scan order
    """
    markers: dict[str, list[Entity]] = defaultdict(list)

    for root in source_roots:
        for file_path, module, package in scan_sources(root, ignore_file):
            parsed = parse_file(file_path)
            if parsed is None:
                diagnostics.warning(f"Could not read source file {file_path}")
                continue

            source, tree = parsed
            found = extract_entities(
                source, tree, module, package, markers_namespace, file_path=str(file_path)
            )
            for marked in found:
                markers[marked.marker].append(marked.entity)

            if found:
                logger.debug(f"Found {len(found)} marked class(es) in {file_path}")

    return dict(markers)


def _walk_directory(
    directory: Path,
    spec: pathspec.PathSpec | None,
    source_root: Path
) -> Iterator[Path]:
    """Recursively walk directory, applying gitignore filters."""
    try:
        entries = sorted(directory.iterdir())
    except PermissionError:
        # Skip directories we can't read
        return

    for entry in entries:
        # Skip hidden files/directories
        if entry.name.startswith("."):
            continue

        try:
            rel_path = entry.relative_to(source_root)
        except ValueError:
            continue

        if spec and spec.match_file(str(rel_path)):
            continue

        if entry.is_file():
            yield entry
        elif entry.is_dir():
            if entry.name == "__pycache__":
                continue
            yield from _walk_directory(entry, spec, source_root)
