"""Artifact emission: rendering, writing and the processing round driver."""
from __future__ import annotations

from .processor import (
    ARTIFACTS,
    CodeGenProcessor,
    GeneratedFile,
    RoundResult,
    generate_from_sources,
)
from .renderer import CodeRenderer
from .writer import OutputWriter

__all__ = [
    "ARTIFACTS",
    "CodeGenProcessor",
    "CodeRenderer",
    "GeneratedFile",
    "OutputWriter",
    "RoundResult",
    "generate_from_sources",
]
