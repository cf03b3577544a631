"""Configuration for classrefresh.

Settings are read from ``[tool.classrefresh]`` in ``pyproject.toml`` or from
the top level of a ``classrefresh.toml`` file.
"""

import logging
import sysconfig
import tomllib
from functools import cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from classrefresh.errors import ConfigError
from classrefresh.resolver import DEFAULT_MAX_DEPTH

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "classrefresh.toml"
PYPROJECT_FILENAME = "pyproject.toml"


class RefreshConfig(BaseModel):
    """Which modules to track and how the watch loop polls."""

    # Module name prefixes to track; empty means any non-library module
    include: list[str] = Field(default_factory=list)
    # Module name prefixes never to track; wins over include
    exclude: list[str] = Field(default_factory=lambda: ["classrefresh"])
    poll_interval: float = Field(default=1.0, gt=0)
    debounce_seconds: float = Field(default=0.0, ge=0)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)

    def matches(self, name: str, path: str | Path | None = None) -> bool:
        """Check whether module ``name`` (sourced from ``path``) is in scope."""
        if any(_has_prefix(name, prefix) for prefix in self.exclude):
            return False
        if self.include:
            return any(_has_prefix(name, prefix) for prefix in self.include)
        if path is not None and _is_library_path(Path(path)):
            return False
        return True


def _has_prefix(name: str, prefix: str) -> bool:
    return name == prefix or name.startswith(prefix + ".")


@cache
def _library_roots() -> tuple[Path, ...]:
    paths = sysconfig.get_paths()
    roots = {
        Path(paths[key]).resolve()
        for key in ("stdlib", "platstdlib", "purelib", "platlib")
        if key in paths
    }
    return tuple(roots)


def _is_library_path(path: Path) -> bool:
    try:
        resolved = path.resolve()
    except OSError:
        return False
    return any(resolved.is_relative_to(root) for root in _library_roots())


def load_config(path: str | Path | None = None) -> RefreshConfig:
    """Load configuration from disk.

    Args:
        path: A ``classrefresh.toml``/``pyproject.toml`` file, or a directory
            to look for one in. Defaults to the current directory.

    Returns:
        RefreshConfig, with defaults if no configuration is found.

    Raises:
        ConfigError: If the file is not valid TOML or holds invalid values.
    """
    config_file = _resolve_config_path(Path(path) if path else Path.cwd())
    if config_file is None:
        return RefreshConfig()

    try:
        data = tomllib.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to parse {config_file.name}: {e}") from e

    if config_file.name == PYPROJECT_FILENAME:
        data = data.get("tool", {}).get("classrefresh", {})

    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a table of settings")

    try:
        config = RefreshConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {config_file.name}: {e}") from e

    logger.debug(f"Loaded configuration from {config_file}")
    return config


def _resolve_config_path(path: Path) -> Path | None:
    path = path.expanduser()
    if path.is_file():
        return path.resolve()
    if path.is_dir():
        for name in (CONFIG_FILENAME, PYPROJECT_FILENAME):
            candidate = path / name
            if candidate.is_file():
                return candidate.resolve()
    return None
