"""
Configuration Loader for the Card Detection System.

This module provides utilities for loading and merging YAML configuration files.
"""

import os
from copy import deepcopy
from typing import Dict, Any, Optional

import yaml


DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    'configs',
    'detector.yaml'
)


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        yaml.YAMLError: If YAML parsing fails.
        ValueError: If the file does not hold a mapping.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    return config


def merge_configs(
    base_config: Dict[str, Any],
    override_config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively merge two configuration dictionaries.

    Override values take precedence over base values.

    Args:
        base_config: Base configuration dictionary.
        override_config: Override configuration dictionary.

    Returns:
        Merged configuration dictionary.
    """
    result = deepcopy(base_config)

    for key, value in override_config.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def load_config_with_defaults(
    config_path: Optional[str] = None,
    default_config_path: str = DEFAULT_CONFIG_PATH
) -> Dict[str, Any]:
    """
    Load configuration merged over the packaged defaults.

    Args:
        config_path: Optional path to user configuration file.
        default_config_path: Path to default configuration file.

    Returns:
        Merged configuration dictionary.
    """
    config = load_config(default_config_path)

    if config_path is not None:
        config = merge_configs(config, load_config(config_path))

    return config


def get_nested_value(
    config: Dict[str, Any],
    key_path: str,
    default: Any = None
) -> Any:
    """
    Get nested value from configuration using dot notation.

    Args:
        config: Configuration dictionary.
        key_path: Dot-separated path to value (e.g., 'output.score_threshold').
        default: Default value if path doesn't exist.

    Returns:
        Value at key path or default.

    Example:
        >>> config = {'output': {'class_name': 'pokemon_card'}}
        >>> get_nested_value(config, 'output.class_name')
        'pokemon_card'
    """
    value = config

    for key in key_path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value
