"""Writes generated modules below the output directory."""
from __future__ import annotations

import logging
from pathlib import Path

from ..model import Entity

logger = logging.getLogger(__name__)


class OutputWriter:
    """Maps target packages to directories and writes generated files.

    ``a.b.generated`` is written to ``<output_dir>/a/b/generated/``. Missing
    ``__init__.py`` files along that path are created so the generated
    package is importable.
    """

    def __init__(self, output_dir: str | Path, create_init: bool = True) -> None:
        self.output_dir = Path(output_dir)
        self.create_init = create_init

    def package_dir(self, package_name: str) -> Path:
        return self.output_dir.joinpath(*package_name.split("."))

    def write(self, package_name: str, file_name: str, content: str, origin: Entity) -> Path:
        """Write one generated file.

        Args:
            package_name: Target package
            file_name: File name including extension
            content: Generated source text
            origin: Entity the file was generated from

        Returns:
            Path of the written file

        Raises:
            OSError: If the directory or file can't be written
        """
        directory = self.package_dir(package_name)
        directory.mkdir(parents=True, exist_ok=True)

        if self.create_init:
            self._ensure_init_files(package_name)

        path = directory / file_name
        path.write_text(content, encoding="utf-8")
        logger.info(f"Wrote {path} (from {origin.qualified_name})")
        return path

    def _ensure_init_files(self, package_name: str) -> None:
        parts = package_name.split(".")
        for depth in range(1, len(parts) + 1):
            init_file = self.output_dir.joinpath(*parts[:depth], "__init__.py")
            if not init_file.exists():
                init_file.write_text("", encoding="utf-8")
