"""Configuration loader for probity.

This module provides the ConfigLoader class for loading ``probity.yaml``
and merging it with caller-supplied overrides:
    overrides > probity.yaml > model defaults
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import ConfigurationError, LoggingConfig, ProbityConfig

CONFIG_FILENAME = "probity.yaml"

logger = logging.getLogger(__name__)


def _merge_layers(lower: dict[str, Any], upper: dict[str, Any]) -> dict[str, Any]:
    """Lay ``upper`` over ``lower`` section by section.

    Sections present in both layers merge key by key; any other value in
    ``upper`` replaces the lower one outright, lists included. A None in
    ``upper`` leaves the lower value in place.
    """
    merged = dict(lower)
    for key, value in upper.items():
        if value is None:
            continue
        below = merged.get(key)
        if isinstance(below, dict) and isinstance(value, dict):
            value = _merge_layers(below, value)
        merged[key] = value
    return merged


def _read_config(path: Path) -> dict[str, Any]:
    """Parse a configuration file; a missing or empty file reads as ``{}``.

    Raises:
        ConfigurationError: If the file cannot be read or parsed into a mapping

    """
    if not path.is_file():
        logger.debug(f"No configuration at {path}, using defaults")
        return {}
    try:
        content = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            f"Expected a mapping at the top level of {path}, got {type(content).__name__}"
        )
    return content


class ConfigLoader:
    """Load probity configuration from a project directory.

    Example:
        loader = ConfigLoader("/path/to/project")
        config = loader.load({"statistics": {"confidence_level": 0.99}})

    """

    def __init__(self, base_path: str | Path | None = None) -> None:
        """Initialize the ConfigLoader.

        Args:
            base_path: Directory holding ``probity.yaml``. Defaults to the
                current working directory.

        """
        self.base_path = Path(base_path) if base_path else Path.cwd()

    @property
    def config_path(self) -> Path:
        """Location of the project configuration file."""
        return self.base_path / CONFIG_FILENAME

    def load(self, overrides: dict[str, Any] | None = None) -> ProbityConfig:
        """Load and validate the configuration.

        A missing ``probity.yaml`` is not an error; defaults apply.

        Args:
            overrides: Values taking precedence over the file contents

        Returns:
            Validated ProbityConfig

        Raises:
            ConfigurationError: If the file cannot be parsed or fails validation

        """
        data = _read_config(self.config_path)
        if overrides:
            data = _merge_layers(data, overrides)

        try:
            return ProbityConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {self.config_path}: {e}") from e


def configure_logging(config: LoggingConfig) -> None:
    """Apply a LoggingConfig to the root logger."""
    logging.basicConfig(level=config.level, format=config.format)
