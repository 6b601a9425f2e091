"""Tree-sitter parser setup for Python model sources."""
from __future__ import annotations

import logging
from pathlib import Path

import tree_sitter_python
from tree_sitter import Language, Parser, Tree

logger = logging.getLogger(__name__)

# Cached parser, created on first use
_PARSER: Parser | None = None


def get_parser() -> Parser:
    """Get or create the tree-sitter parser for Python."""
    global _PARSER
    if _PARSER is None:
        _PARSER = Parser(Language(tree_sitter_python.language()))
    return _PARSER


def parse_source(source: bytes) -> Tree:
    """Parse Python source bytes."""
    return get_parser().parse(source)


def parse_file(file_path: str | Path) -> tuple[bytes, Tree] | None:
    """Parse a file with tree-sitter.

    Args:
        file_path: Path to file to parse

    Returns:
        Tuple of (source_bytes, tree) or None if the file could not be read
    """
    try:
        with open(file_path, "rb") as f:
            source = f.read()
    except OSError as e:
        logger.warning(f"Could not read {file_path}: {e}")
        return None

    return (source, parse_source(source))
