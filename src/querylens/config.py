"""
Configuration system for querylens.

Environment variables are the primary config source, with an optional
JSON or YAML file for local development.

Usage:
    from querylens.config import get_config

    config = get_config()
    unit = config.default_indent_width

Environment variables:
    QUERYLENS_CONFIG_FILE            Path to a JSON/YAML config file
    QUERYLENS_PLAN_PAYLOAD_FIELD     Row field holding the plan payload
    QUERYLENS_HEADER_MARKER          Keyword of the banner line to drop
    QUERYLENS_DEFAULT_INDENT_WIDTH   Indent unit when no line is indented
    QUERYLENS_MAX_PLAN_DEPTH         JSON nesting expanded before truncation
    QUERYLENS_LABEL_MAX_LENGTH       Longest first line used as a label
    QUERYLENS_BOTTLENECK_PERCENTILE  Percentile marking a bottleneck
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from querylens.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "QUERYLENS_"


class Config(BaseModel):
    """
    querylens configuration.

    Frozen once built; pass a modified copy (``model_copy(update=...)``)
    to the parser functions to override a single setting.
    """

    model_config = ConfigDict(frozen=True)

    plan_payload_field: str = Field(
        default="explain",
        min_length=1,
        description="Row field that carries the plan payload",
    )
    header_marker: str = Field(
        default="explain",
        min_length=1,
        description="Leading banner line keyword dropped from text plans",
    )
    default_indent_width: int = Field(
        default=2,
        gt=0,
        description="Indentation unit used when no plan line is indented",
    )
    max_plan_depth: int = Field(
        default=200,
        gt=0,
        le=500,
        description="Maximum JSON plan nesting expanded into nodes",
    )
    label_max_length: int = Field(
        default=40,
        gt=0,
        description="Longest first line used verbatim as a statement label",
    )
    bottleneck_percentile: float = Field(
        default=0.9,
        gt=0,
        le=1,
        description="Percentile at or above which a metric marks a bottleneck",
    )


def _parse_env_int(key: str, value: str | None, default: int) -> int:
    """Parse integer from environment variable."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Could not parse %s=%s, using %s", key, value, default)
        return default


def _parse_env_float(key: str, value: str | None, default: float) -> float:
    """Parse float from environment variable."""
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Could not parse %s=%s, using %s", key, value, default)
        return default


def _build_config(data: dict[str, Any]) -> Config:
    try:
        return Config(**data)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(x) for x in first["loc"]) or None
        raise ConfigurationError(
            f"Invalid configuration: {first['msg']}",
            config_key=key,
        ) from e


def load_config_from_env() -> Config:
    """Load configuration from ``QUERYLENS_*`` environment variables."""
    defaults = Config()
    env = os.environ

    def key(name: str) -> str:
        return f"{ENV_PREFIX}{name.upper()}"

    config_kwargs: dict[str, Any] = {
        "plan_payload_field": env.get(
            key("plan_payload_field"), defaults.plan_payload_field
        ),
        "header_marker": env.get(key("header_marker"), defaults.header_marker),
        "default_indent_width": _parse_env_int(
            key("default_indent_width"),
            env.get(key("default_indent_width")),
            defaults.default_indent_width,
        ),
        "max_plan_depth": _parse_env_int(
            key("max_plan_depth"),
            env.get(key("max_plan_depth")),
            defaults.max_plan_depth,
        ),
        "label_max_length": _parse_env_int(
            key("label_max_length"),
            env.get(key("label_max_length")),
            defaults.label_max_length,
        ),
        "bottleneck_percentile": _parse_env_float(
            key("bottleneck_percentile"),
            env.get(key("bottleneck_percentile")),
            defaults.bottleneck_percentile,
        ),
    }

    return _build_config(config_kwargs)


def load_config_from_file(path: Path) -> Config:
    """
    Load configuration from a JSON or YAML file.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or invalid.
    """
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot load config from {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping, got {type(data).__name__}"
        )

    logger.debug("Loaded config from %s", path)
    return _build_config(data)


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the global configuration instance.

    Loads from:
    1. QUERYLENS_CONFIG_FILE environment variable (if set)
    2. Environment variables (default)

    Result is cached for the lifetime of the process.
    """
    config_file = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")

    if config_file:
        return load_config_from_file(Path(config_file))

    return load_config_from_env()


def reset_config() -> None:
    """Reset the cached configuration (mainly for testing)."""
    get_config.cache_clear()
