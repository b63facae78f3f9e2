"""
Preprocessing Configuration Module

This module reads the YAML recipe that describes a classification model's
preprocessing and gives typed access to its transform op parameters.

Two layouts are accepted for the ordered op list:

    preprocessing:              # primary layout
      - ResizeImage:
          resize_short: 256

    PreProcess:                 # PaddleClas inference.yml layout
      transform_ops:
        - ResizeImage:
            resize_short: 256

Usage:
    from preproc.config import load_config, get_transform_ops

    config = load_config("configs/imagenet_cls.yaml")
    ops = get_transform_ops(config)

    size = get_int(ops[0]["ResizeImage"], "resize_short")
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from preproc.errors import ConfigLoadError, ConfigSchemaError


# =============================================================================
# Constants
# =============================================================================

PREPROCESSING_SECTION: str = "preprocessing"
"""Top-level key holding the ordered op list."""

PADDLECLAS_SECTION: str = "PreProcess"
PADDLECLAS_OPS_KEY: str = "transform_ops"


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_file: str | Path) -> Dict[str, Any]:
    """
    Load a preprocessing configuration file.

    The file is read on every call; callers that rebuild a pipeline pick up
    edits made to the file in between.

    Args:
        config_file: Path to a YAML document

    Returns:
        Parsed top-level mapping

    Raises:
        ConfigLoadError: If the file is missing, unreadable or not valid YAML
        ConfigSchemaError: If the document is not a mapping

    Example:
        >>> config = load_config("configs/imagenet_cls.yaml")
        >>> list(config)
        ['preprocessing']
    """
    path = Path(config_file)

    if not path.is_file():
        raise ConfigLoadError(
            f"Failed to load yaml file {path}, maybe you should check this file."
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadError(f"Failed to read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse {path}: {e}") from e

    if not isinstance(document, dict):
        raise ConfigSchemaError(
            f"Expected a mapping at the top of {path}, "
            f"got {type(document).__name__}"
        )

    return document


def get_transform_ops(config: Mapping[str, Any]) -> List[Any]:
    """
    Get the ordered list of transform ops from a loaded configuration.

    Args:
        config: Mapping returned by load_config()

    Returns:
        The raw op list, in pipeline order

    Raises:
        ConfigSchemaError: If no op list is found or it is not a list
    """
    if PREPROCESSING_SECTION in config:
        ops = config[PREPROCESSING_SECTION]
        location = PREPROCESSING_SECTION
    elif PADDLECLAS_SECTION in config:
        section = config[PADDLECLAS_SECTION]
        if not isinstance(section, dict) or PADDLECLAS_OPS_KEY not in section:
            raise ConfigSchemaError(
                f"Section '{PADDLECLAS_SECTION}' has no '{PADDLECLAS_OPS_KEY}' list"
            )
        ops = section[PADDLECLAS_OPS_KEY]
        location = f"{PADDLECLAS_SECTION}.{PADDLECLAS_OPS_KEY}"
    else:
        available = list(config.keys())
        raise ConfigSchemaError(
            f"Section '{PREPROCESSING_SECTION}' not found. "
            f"Available sections: {available}"
        )

    if ops is None:
        return []

    if not isinstance(ops, list):
        raise ConfigSchemaError(
            f"Expected '{location}' to be a list, got {type(ops).__name__}"
        )

    return ops


# =============================================================================
# Typed Field Access
# =============================================================================

def _require(params: Mapping[str, Any], key: str) -> Any:
    if key not in params:
        available = list(params.keys())
        raise ConfigSchemaError(
            f"Missing required key '{key}'. Available keys: {available}"
        )
    return params[key]


def get_int(params: Mapping[str, Any], key: str) -> int:
    """
    Get an integer parameter.

    Raises:
        ConfigSchemaError: If the key is missing or the value is not an int
    """
    value = _require(params, key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigSchemaError(
            f"Expected '{key}' to be an int, got {type(value).__name__} ({value!r})"
        )
    return value


def get_float(params: Mapping[str, Any], key: str) -> float:
    """
    Get a float parameter. Integers are accepted and widened.

    Raises:
        ConfigSchemaError: If the key is missing or the value is not numeric
    """
    value = _require(params, key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigSchemaError(
            f"Expected '{key}' to be a float, got {type(value).__name__} ({value!r})"
        )
    return float(value)


def get_float_list(params: Mapping[str, Any], key: str) -> List[float]:
    """
    Get a non-empty sequence of floats.

    Raises:
        ConfigSchemaError: If the key is missing, the value is not a list,
            the list is empty or contains non-numeric items
    """
    value = _require(params, key)
    if not isinstance(value, (list, tuple)):
        raise ConfigSchemaError(
            f"Expected '{key}' to be a list of floats, got {type(value).__name__}"
        )
    if not value:
        raise ConfigSchemaError(f"Expected '{key}' to be a non-empty list")

    result = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise ConfigSchemaError(
                f"Expected '{key}' to contain only numbers, got {item!r}"
            )
        result.append(float(item))
    return result
