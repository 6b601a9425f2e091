"""Code generator configuration loading and validation.

Loads YAML configuration for tablegen with full validation.
"""
from __future__ import annotations
import os
import re
import yaml
from pathlib import Path
from typing import Literal
from pydantic import BaseModel, Field, field_validator

from ..markers import MARKERS_NAMESPACE, TABLE_MARKER
from ..schema.assembler import DEFAULT_PACKAGE, PACKAGE_SUFFIX

_DOTTED_RE = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)*$")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO", description="Log level")
    format: str = Field(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        description="Log record format"
    )


class WatchConfig(BaseModel):
    """Watch mode configuration."""
    debounce_ms: int = Field(500, ge=50, le=60000, description="Debounce delay in milliseconds")


class CodegenConfig(BaseModel):
    """Complete code generator configuration."""
    source_roots: list[str] = Field(default_factory=lambda: ["."], description="Directories to scan")
    output_dir: str = Field("generated", description="Root directory for generated modules")
    markers_namespace: str = Field(MARKERS_NAMESPACE, description="Namespace of marker decorators")
    table_marker: str = Field(TABLE_MARKER, description="Marker selecting table entities")
    package_suffix: str = Field(PACKAGE_SUFFIX, description="Appended to the entity's package")
    default_package: str = Field(DEFAULT_PACKAGE, description="Target package when none can be derived")
    file_extension: str = Field(".py", description="Extension of generated files")
    template_dir: str | None = Field(None, description="Directory with template overrides")
    ignore_file: str = Field(".gitignore", description="Ignore file honored while scanning")
    fail_on_default_package: bool = Field(False, description="Treat the default package fallback as an error")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)

    @field_validator("package_suffix")
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        """Validate the suffix is a dot followed by a dotted identifier."""
        if not v.startswith(".") or not _DOTTED_RE.match(v[1:]):
            raise ValueError("package_suffix must look like '.generated'")
        return v

    @field_validator("default_package", "markers_namespace", "table_marker")
    @classmethod
    def validate_dotted(cls, v: str) -> str:
        """Validate dotted Python names."""
        if not _DOTTED_RE.match(v):
            raise ValueError(f"'{v}' is not a dotted Python name")
        return v

    @field_validator("file_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if not v.startswith(".") or len(v) < 2:
            raise ValueError("file_extension must start with '.'")
        return v

    @field_validator("source_roots")
    @classmethod
    def validate_roots(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("source_roots must not be empty")
        return v

    def model_post_init(self, __context) -> None:
        """Validate the table marker lives in the markers namespace."""
        if not self.table_marker.startswith(self.markers_namespace + "."):
            raise ValueError("table_marker must be inside markers_namespace")

    @classmethod
    def from_yaml(cls, path: str | Path) -> CodegenConfig:
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Validated CodegenConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If configuration is invalid
        """
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)

        if not data:
            raise ValueError(f"Empty configuration file: {config_path}")

        try:
            return cls.model_validate(data)
        except Exception as e:
            raise ValueError(f"Invalid configuration in {config_path}: {e}") from e

    @classmethod
    def from_env(cls, env_var: str = "TABLEGEN_CONFIG") -> CodegenConfig:
        """Load configuration from path in environment variable.

        Falls back to ``tablegen.yaml`` in the working directory, then to defaults.

        Args:
            env_var: Environment variable name (default: TABLEGEN_CONFIG)

        Returns:
            Validated CodegenConfig instance
        """
        config_path = os.getenv(env_var)

        if not config_path:
            default_path = Path("tablegen.yaml")
            if default_path.exists():
                return cls.from_yaml(default_path)
            return cls()

        return cls.from_yaml(config_path)


def load_config(config_path: str | Path | None = None) -> CodegenConfig:
    """Load configuration from file or environment.

    Args:
        config_path: Optional explicit path to config file

    Returns:
        Validated CodegenConfig instance

    Raises:
        ValueError: If configuration is invalid
    """
    if config_path:
        return CodegenConfig.from_yaml(config_path)

    return CodegenConfig.from_env()
