"""
Post-Processing Module for the Invoice Engine.

This module provides functionality for:
    - Text normalization
    - Amount and date normalization
    - Arithmetic validation of totals
"""

from .normalizers import NormalizedText, normalize_text, parse_amount_cents, DateNormalizer
from .validators import MathValidation, validate_total_math

__all__ = [
    'NormalizedText',
    'normalize_text',
    'parse_amount_cents',
    'DateNormalizer',
    'MathValidation',
    'validate_total_math',
]
