"""
Scoring Module for the Invoice Engine.

Overall and per-field confidence for a processed invoice, plus the
user-facing status and remediation tips derived from it.
"""

from .confidence import (
    ConfidenceScore,
    ConfidenceScorer,
    status_for_score,
    tips_for_failure_reasons,
)

__all__ = [
    'ConfidenceScore',
    'ConfidenceScorer',
    'status_for_score',
    'tips_for_failure_reasons',
]
