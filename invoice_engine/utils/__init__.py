"""
Utility Module for the Invoice Engine.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Common helpers
"""

from .logger import setup_logger, get_logger, setup_logger_from_config
from .helpers import (
    ensure_directory,
    generate_run_id,
    cents_to_dollars,
    decode_payload,
)

__all__ = [
    'setup_logger',
    'get_logger',
    'setup_logger_from_config',
    'ensure_directory',
    'generate_run_id',
    'cents_to_dollars',
    'decode_payload',
]
