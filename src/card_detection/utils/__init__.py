"""
Utilities module for the Card Detection System.

This module provides utility functions including:
- Configuration loading
- Logging setup
- Visualization tools (``card_detection.utils.visualization``)
"""

from .config_loader import load_config, load_config_with_defaults, merge_configs
from .logger import get_logger, setup_logger

__all__ = [
    'load_config',
    'load_config_with_defaults',
    'merge_configs',
    'get_logger',
    'setup_logger',
]
