"""
Input Handler Module for the Invoice Engine.

This module decodes uploaded invoice photos and prepares them for
recognition:
    - Payload decoding (bytes, base64, data URL) and validation
    - Image quality assessment
    - Normalized variants for multi-attempt recognition
"""

from .handler import InputHandler, InputResult, is_heif
from .image_processor import ImageProcessor, ImageVariant, QualityMetrics

__all__ = [
    'InputHandler',
    'InputResult',
    'is_heif',
    'ImageProcessor',
    'ImageVariant',
    'QualityMetrics',
]
