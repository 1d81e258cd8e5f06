"""Configuration loading and validation for pdfmassage.

Configuration is always passed in explicitly: a Massager is built from a
MassageConfig, and nothing in the package reads the process environment.
"""

import tempfile
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from pdfmassage.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_ROTATE_DENSITY,
    DEFAULT_TEMP_PREFIX,
    DEFAULT_THUMBNAIL_DENSITY,
    DEFAULT_THUMBNAIL_FORMAT,
    UNIT_TO_POINTS,
)
from pdfmassage.exceptions import ConfigError


class Unit(str, Enum):
    """Unit used for MetaData width and length."""

    POINTS = "pt"
    INCHES = "in"
    MILLIMETERS = "mm"
    CENTIMETERS = "cm"

    @property
    def points(self) -> float:
        """Number of PDF points in one of this unit."""
        return UNIT_TO_POINTS[self.value]


def _parse_enum(enum_class: type[Enum], value: str, field: str | None = None) -> Enum:
    """Parse a string value into an enum, raising ConfigError with the valid choices."""
    try:
        return enum_class(value)
    except ValueError:
        valid = ", ".join(e.value for e in enum_class)
        raise ConfigError(
            f"Invalid value '{value}'",
            field=field,
            suggestion=f"Valid values are: {valid}",
        )


@dataclass
class ToolPaths:
    """Executables for the external tools. Bare names are looked up on PATH."""

    identify: str = "identify"
    convert: str = "convert"
    pdftk: str = "pdftk"


@dataclass
class MassageConfig:
    """Settings injected into a Massager at construction."""

    scratch_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    temp_prefix: str = DEFAULT_TEMP_PREFIX
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    process_timeout: float | None = None  # None waits for the tool forever
    rotate_density: int = DEFAULT_ROTATE_DENSITY
    thumbnail_density: int = DEFAULT_THUMBNAIL_DENSITY
    thumbnail_format: str = DEFAULT_THUMBNAIL_FORMAT
    unit: Unit = Unit.INCHES
    identify_error_prefix: str = "identify"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    tools: ToolPaths = field(default_factory=ToolPaths)


def _number(data: dict[str, Any], key: str, default: float, kind: type = float) -> Any:
    value = data.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(
            f"Expected a number, got {value!r}",
            field=key,
        )
    if value <= 0:
        raise ConfigError(f"Must be positive, got {value}", field=key)
    return kind(value)


def parse_tools(data: Any) -> ToolPaths:
    """Parse the ``tools`` section."""
    if data is None:
        return ToolPaths()
    if not isinstance(data, dict):
        raise ConfigError("'tools' must be a mapping", field="tools")

    known = {f.name for f in fields(ToolPaths)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(
            f"Unknown tool(s): {', '.join(sorted(unknown))}",
            field="tools",
            suggestion=f"Known tools are: {', '.join(sorted(known))}",
        )

    for name, value in data.items():
        if not isinstance(value, str) or not value:
            raise ConfigError(f"Tool path must be a non-empty string, got {value!r}", field=f"tools.{name}")
    return ToolPaths(**data)


def parse_config(data: dict[str, Any]) -> MassageConfig:
    """Build a MassageConfig from an already-parsed dictionary."""
    defaults = MassageConfig()

    scratch_dir = defaults.scratch_dir
    if data.get("scratch_dir"):
        scratch_dir = Path(data["scratch_dir"]).expanduser()

    unit = defaults.unit
    if "unit" in data:
        unit = _parse_enum(Unit, data["unit"], field="unit")

    process_timeout = defaults.process_timeout
    if data.get("process_timeout") is not None:
        process_timeout = _number(data, "process_timeout", 0.0)

    return MassageConfig(
        scratch_dir=scratch_dir,
        temp_prefix=str(data.get("temp_prefix", defaults.temp_prefix)),
        fetch_timeout=_number(data, "fetch_timeout", defaults.fetch_timeout),
        process_timeout=process_timeout,
        rotate_density=_number(data, "rotate_density", defaults.rotate_density, int),
        thumbnail_density=_number(data, "thumbnail_density", defaults.thumbnail_density, int),
        thumbnail_format=str(data.get("thumbnail_format", defaults.thumbnail_format)).lstrip("."),
        unit=unit,
        identify_error_prefix=str(data.get("identify_error_prefix", defaults.identify_error_prefix)),
        chunk_size=_number(data, "chunk_size", defaults.chunk_size, int),
        tools=parse_tools(data.get("tools")),
    )


def load_config(config_path: Path) -> MassageConfig:
    """Load and validate a YAML configuration file.

    Settings may sit at the top level or under a ``massage:`` key.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return MassageConfig()
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    if "massage" in data:
        data = data["massage"] or {}
        if not isinstance(data, dict):
            raise ConfigError("'massage' section must be a mapping", field="massage")

    return parse_config(data)
