"""
Confidence Scorer Module.

Combines recognition confidence, image quality, extraction completeness
and validation signals into a single 0..1 score, with per-field scores
for vendor, date, total and line items.

Weights:
    recognition 0.25, quality 0.15, extraction 0.35, validation 0.25
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence

from invoice_engine.input_handler.image_processor import QualityMetrics
from invoice_engine.model_inference.extraction_result import ExtractionResult
from invoice_engine.ocr_engine.ocr_result import RecognitionAttempt
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


OVERALL_WEIGHTS = {
    'recognition': 0.25,
    'quality': 0.15,
    'extraction': 0.35,
    'validation': 0.25,
}

EXTRACTION_WEIGHTS = {
    'vendor': 0.15,
    'date': 0.15,
    'total': 0.3,
    'line_items': 0.3,
    'invoice_number': 0.1,
}

# Bonus when several attempts agreed on a good transcript
ATTEMPT_AGREEMENT_SCORE = 0.6
ATTEMPT_AGREEMENT_BONUS = 0.05

STATUS_SUCCESS = 'success'
STATUS_NEEDS_REVIEW = 'needs_review'
STATUS_LOW_CONFIDENCE = 'low_confidence'

VENDOR_COMPANY_HINT = re.compile(r'inc|llc|corp|ltd|company', re.IGNORECASE)
NUMERIC_DATE = re.compile(r'\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}')
RECENT_YEAR = re.compile(r'20[2-3]\d')

# $1,000,000 ceiling for a plausible total, in cents
MAX_PLAUSIBLE_TOTAL_CENTS = 100_000_000
# Totals above $100 are expected to come with line items
ITEMLESS_TOTAL_CENTS = 10_000


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class ConfidenceScore:
    """
    Confidence scores for one processed invoice.

    Attributes:
        overall_score: Weighted combination in 0..1.
        recognition_confidence: Engine confidence of the chosen transcript.
        fields: Per-field scores (vendor, date, total, line_items).
        quality_score: Image quality contribution.
        extraction_score: Completeness of extracted fields.
        validation_score: Consistency checks on the extraction.
        breakdown: Every component, for display and storage.
    """
    overall_score: float = 0.0
    recognition_confidence: float = 0.0
    fields: Mapping[str, float] = field(default_factory=lambda: {
        'vendor': 0.0, 'date': 0.0, 'total': 0.0, 'line_items': 0.0,
    })
    quality_score: float = 0.0
    extraction_score: float = 0.0
    validation_score: float = 0.0
    breakdown: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Read-only views over private copies
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))
        object.__setattr__(self, 'breakdown', MappingProxyType(dict(self.breakdown)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall_score': round(self.overall_score, 4),
            'recognition_confidence': round(self.recognition_confidence, 4),
            'fields': {name: round(value, 4) for name, value in self.fields.items()},
            'quality_score': round(self.quality_score, 4),
            'extraction_score': round(self.extraction_score, 4),
            'validation_score': round(self.validation_score, 4),
            'breakdown': dict(self.breakdown),
        }


class ConfidenceScorer:
    """
    Scores an extraction in the context of how it was recognized.

    Example:
        >>> scorer = ConfidenceScorer()
        >>> score = scorer.score(0.9, quality, extraction, attempts)
        >>> status_for_score(score.overall_score)["status"]
        'success'
    """

    def score(
        self,
        recognition_confidence: float,
        quality: Optional[QualityMetrics],
        extraction: ExtractionResult,
        attempts: Sequence[RecognitionAttempt] = ()
    ) -> ConfidenceScore:
        """
        Calculate all confidence components.

        Args:
            recognition_confidence: Engine confidence in 0..1.
            quality: Image quality, or None for text input.
            extraction: Extraction result after arbitration.
            attempts: Recognition attempts, for the agreement bonus.

        Returns:
            ConfidenceScore.
        """
        quality_score = self.quality_score(quality)
        fields = {
            'vendor': self.vendor_score(extraction.vendor),
            'date': self.date_score(extraction.date_raw or extraction.date),
            'total': self.total_score(extraction),
            'line_items': self.line_items_score(extraction),
        }
        extraction_score = self.extraction_score(extraction)
        validation_score = self.validation_score(extraction)

        overall = (
            recognition_confidence * OVERALL_WEIGHTS['recognition']
            + quality_score * OVERALL_WEIGHTS['quality']
            + extraction_score * OVERALL_WEIGHTS['extraction']
            + validation_score * OVERALL_WEIGHTS['validation']
        )

        strong_attempts = sum(1 for a in attempts if a.score > ATTEMPT_AGREEMENT_SCORE)
        if len(attempts) > 1 and strong_attempts >= 2:
            overall += ATTEMPT_AGREEMENT_BONUS

        overall = _clamp(overall)

        logger.debug(
            f"Confidence: overall={overall:.3f} (recognition={recognition_confidence:.2f}, "
            f"quality={quality_score:.2f}, extraction={extraction_score:.2f}, "
            f"validation={validation_score:.2f})"
        )

        return ConfidenceScore(
            overall_score=overall,
            recognition_confidence=recognition_confidence,
            fields=fields,
            quality_score=quality_score,
            extraction_score=extraction_score,
            validation_score=validation_score,
            breakdown={
                'quality': round(quality_score, 4),
                'fields': {name: round(value, 4) for name, value in fields.items()},
                'extraction': round(extraction_score, 4),
                'validation': round(validation_score, 4),
                'overall': round(overall, 4),
            },
        )

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @staticmethod
    def quality_score(quality: Optional[QualityMetrics]) -> float:
        """
        Image quality score. Text input has no image to degrade and scores 1.
        """
        if quality is None:
            return 1.0

        score = 1.0
        if quality.blur_score > 0.3:
            score -= (quality.blur_score - 0.3) * 0.5
        if quality.glare_score > 0.2:
            score -= (quality.glare_score - 0.2) * 0.4

        brightness_offset = abs(quality.brightness - 0.5)
        if brightness_offset > 0.25:
            score -= (brightness_offset - 0.25) * 0.3

        if quality.contrast > 0.4:
            score += 0.1

        if quality.min_dimension < 500:
            score -= 0.2
        elif quality.min_dimension < 800:
            score -= 0.1

        if quality.doc_detected:
            score += 0.1

        return _clamp(score)

    @staticmethod
    def vendor_score(vendor: Optional[str]) -> float:
        if not vendor:
            return 0.0
        score = 0.5
        if VENDOR_COMPANY_HINT.search(vendor):
            score += 0.3
        if 5 <= len(vendor) <= 50:
            score += 0.2
        return min(1.0, score)

    @staticmethod
    def date_score(date: Optional[str]) -> float:
        if not date:
            return 0.0
        score = 0.6
        if NUMERIC_DATE.search(date):
            score += 0.3
        if RECENT_YEAR.search(date):
            score += 0.1
        return min(1.0, score)

    @staticmethod
    def total_score(extraction: ExtractionResult) -> float:
        totals = extraction.totals
        if not totals.total:
            return 0.0

        score = 0.5
        if 0 < totals.total < MAX_PLAUSIBLE_TOTAL_CENTS:
            score += 0.2
        if totals.subtotal and totals.tax:
            if abs(totals.subtotal + totals.tax - totals.total) < totals.total * 0.05:
                score += 0.3
        return min(1.0, score)

    @staticmethod
    def line_items_score(extraction: ExtractionResult) -> float:
        items = extraction.line_items
        if not items:
            return 0.0

        score = 0.4
        if len(items) >= 3:
            score += 0.2

        described = sum(1 for item in items if len(item.description or '') > 5)
        priced = sum(1 for item in items if item.total_cents > 0)
        score += described / len(items) * 0.2
        score += priced / len(items) * 0.2

        total = extraction.totals.total
        if total:
            difference = abs(extraction.line_item_sum_cents - total)
            if difference < total * 0.1:
                score += 0.2
            elif difference < total * 0.25:
                score += 0.1

        return min(1.0, score)

    @staticmethod
    def extraction_score(extraction: ExtractionResult) -> float:
        present = {
            'vendor': bool(extraction.vendor),
            'date': bool(extraction.date or extraction.date_raw),
            'total': bool(extraction.totals.total),
            'line_items': bool(extraction.line_items),
            'invoice_number': bool(extraction.invoice_number),
        }
        return sum(EXTRACTION_WEIGHTS[name] for name, found in present.items() if found)

    @staticmethod
    def validation_score(extraction: ExtractionResult) -> float:
        score = 0.5
        if extraction.ambiguous:
            score -= 0.2
        if not extraction.totals.total:
            score -= 0.2
        elif extraction.totals.total > ITEMLESS_TOTAL_CENTS and not extraction.line_items:
            score -= 0.1
        return _clamp(score)


def status_for_score(score: float) -> Dict[str, Any]:
    """
    Map an overall score to a user-facing status.

    Returns:
        Dictionary with ``status``, ``message`` and ``requires_verification``.
    """
    if score >= 0.8:
        return {
            'status': STATUS_SUCCESS,
            'message': 'Invoice processed successfully',
            'requires_verification': False,
        }
    if score >= 0.5:
        return {
            'status': STATUS_NEEDS_REVIEW,
            'message': 'Invoice processed - please verify the extracted data',
            'requires_verification': True,
        }
    return {
        'status': STATUS_LOW_CONFIDENCE,
        'message': 'Could not reliably extract invoice data - please retake photo or enter manually',
        'requires_verification': True,
    }


FAILURE_TIPS = (
    ('too_blurry', 'Hold your phone steady and ensure the invoice is in focus'),
    ('glare_detected', 'Avoid taking photos under bright lights or direct sunlight'),
    ('image_too_dark', 'Take the photo in a well-lit area'),
    ('image_too_bright', 'Move away from bright light sources'),
    ('document_not_detected', 'Make sure the entire invoice is visible and flat against a surface'),
    ('low_resolution', 'Move closer to the invoice or use a higher camera resolution'),
    ('skew_too_severe', 'Try to position your phone directly above the invoice'),
    ('no_supported_text_detected', 'Ensure the invoice text is legible and not covered'),
    ('totals_not_found', 'Make sure the total amount is visible in the photo'),
)
DEFAULT_TIP = 'Try taking another photo with better lighting and focus'


def tips_for_failure_reasons(failure_reasons: Sequence[str]) -> List[str]:
    """
    Remediation tips for a list of failure reasons, in a fixed order.

    Example:
        >>> tips_for_failure_reasons(["glare_detected"])
        ['Avoid taking photos under bright lights or direct sunlight']
    """
    reasons = {getattr(reason, 'value', reason) for reason in failure_reasons}
    tips = [tip for reason, tip in FAILURE_TIPS if reason in reasons]
    return tips or [DEFAULT_TIP]
