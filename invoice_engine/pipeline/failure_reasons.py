"""
Pipeline failure reasons.

Failures are recorded on the result, never raised. The string values are
stored in run records and returned to callers, so they must stay stable.
"""

from enum import Enum


class FailureReason(str, Enum):
    TOO_BLURRY = 'too_blurry'
    GLARE_DETECTED = 'glare_detected'
    DOCUMENT_NOT_DETECTED = 'document_not_detected'
    LOW_RESOLUTION = 'low_resolution'
    NO_TEXT_DETECTED = 'no_supported_text_detected'
    TOTALS_NOT_FOUND = 'totals_not_found'
    LINE_ITEMS_NOT_DETECTED = 'line_items_not_detected'
    PARSING_AMBIGUOUS = 'parsing_ambiguous'
    SKEW_TOO_SEVERE = 'skew_too_severe'
    IMAGE_TOO_DARK = 'image_too_dark'
    IMAGE_TOO_BRIGHT = 'image_too_bright'
    UNSUPPORTED_FORMAT = 'unsupported_format'
    PROCESSING_ERROR = 'processing_error'
