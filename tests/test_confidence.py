"""
Tests for confidence scoring, statuses and remediation tips.
"""

import pytest

from invoice_engine.input_handler.image_processor import QualityMetrics
from invoice_engine.model_inference.extraction_result import ExtractionResult, InvoiceTotals, LineItem
from invoice_engine.model_inference.extractor import InvoiceFieldExtractor
from invoice_engine.ocr_engine.ocr_result import RecognitionAttempt
from invoice_engine.pipeline.failure_reasons import FailureReason
from invoice_engine.scoring.confidence import (
    DEFAULT_TIP,
    ConfidenceScorer,
    status_for_score,
    tips_for_failure_reasons,
)


GOOD_QUALITY = QualityMetrics(
    blur_score=0.1, glare_score=0.0, skew_score=0.1, brightness=0.5,
    contrast=0.6, width=1200, height=1600, doc_detected=True, overall_quality=1.0,
)


@pytest.fixture
def scorer():
    return ConfidenceScorer()


class TestComponents:
    """Tests for the individual score components."""

    def test_quality_none_is_perfect(self, scorer):
        assert scorer.quality_score(None) == 1.0

    def test_good_quality(self, scorer):
        assert scorer.quality_score(GOOD_QUALITY) == 1.0

    def test_poor_quality(self, scorer):
        poor = QualityMetrics(blur_score=0.9, glare_score=0.8, brightness=0.95,
                              contrast=0.1, width=300, height=300)
        assert scorer.quality_score(poor) < 0.5

    def test_vendor_score(self, scorer):
        assert scorer.vendor_score(None) == 0.0
        assert scorer.vendor_score("Hardware Depot LLC") == pytest.approx(1.0)
        assert scorer.vendor_score("Bob") == 0.5

    def test_date_score(self, scorer):
        assert scorer.date_score("01/15/2024") == pytest.approx(1.0)
        assert scorer.date_score("March 3 1999") == 0.6

    def test_total_score(self, scorer):
        consistent = ExtractionResult(totals=InvoiceTotals(subtotal=10000, tax=850, total=10850))
        assert scorer.total_score(consistent) == pytest.approx(1.0)
        assert scorer.total_score(ExtractionResult()) == 0.0

    def test_line_items_score(self, scorer):
        items = tuple(LineItem(description=f"Item number {i}", quantity=1.0, total_cents=1000)
                      for i in range(3))
        extraction = ExtractionResult(line_items=items, totals=InvoiceTotals(total=3000))
        assert scorer.line_items_score(extraction) == pytest.approx(1.0)
        assert scorer.line_items_score(ExtractionResult()) == 0.0

    def test_validation_score(self, scorer):
        assert scorer.validation_score(ExtractionResult()) == pytest.approx(0.3)
        assert scorer.validation_score(
            ExtractionResult(ambiguous=True, totals=InvoiceTotals(total=50000))
        ) == pytest.approx(0.2)


class TestScore:
    """Tests for ConfidenceScorer.score."""

    def test_complete_extraction(self, scorer, simple_invoice):
        extraction = InvoiceFieldExtractor().extract(simple_invoice)
        score = scorer.score(1.0, None, extraction)
        assert score.overall_score >= 0.8
        assert score.extraction_score == pytest.approx(1.0)
        assert set(score.fields) == {'vendor', 'date', 'total', 'line_items'}
        assert score.breakdown['overall'] == round(score.overall_score, 4)

    def test_score_mappings_are_read_only(self, scorer, simple_invoice):
        score = scorer.score(1.0, None, InvoiceFieldExtractor().extract(simple_invoice))
        with pytest.raises(TypeError):
            score.fields['total'] = 0.0
        with pytest.raises(TypeError):
            score.breakdown['overall'] = 0.0
        assert score.to_dict()['breakdown']['overall'] == round(score.overall_score, 4)

    def test_empty_extraction(self, scorer):
        score = scorer.score(0.2, None, ExtractionResult())
        assert score.overall_score < 0.4

    def test_attempt_agreement_bonus(self, scorer, simple_invoice):
        extraction = InvoiceFieldExtractor().extract(simple_invoice)
        strong = [RecognitionAttempt(variant_name=name, engine='fake', score=0.9)
                  for name in ('standard', 'high_contrast')]
        base = scorer.score(0.5, GOOD_QUALITY, extraction)
        boosted = scorer.score(0.5, GOOD_QUALITY, extraction, strong)
        assert boosted.overall_score == pytest.approx(min(1.0, base.overall_score + 0.05))

    def test_clamped(self, scorer, simple_invoice):
        extraction = InvoiceFieldExtractor().extract(simple_invoice)
        assert scorer.score(1.0, None, extraction).overall_score <= 1.0


class TestStatus:
    """Tests for status_for_score."""

    def test_thresholds(self):
        assert status_for_score(0.85)['status'] == 'success'
        assert status_for_score(0.8)['requires_verification'] is False
        assert status_for_score(0.6)['status'] == 'needs_review'
        assert status_for_score(0.49)['status'] == 'low_confidence'


class TestTips:
    """Tests for tips_for_failure_reasons."""

    def test_fixed_order(self):
        tips = tips_for_failure_reasons(['totals_not_found', 'too_blurry'])
        assert tips == [
            'Hold your phone steady and ensure the invoice is in focus',
            'Make sure the total amount is visible in the photo',
        ]

    def test_enum_members(self):
        tips = tips_for_failure_reasons([FailureReason.GLARE_DETECTED])
        assert tips == ['Avoid taking photos under bright lights or direct sunlight']

    def test_default_tip(self):
        assert tips_for_failure_reasons(['parsing_ambiguous']) == [DEFAULT_TIP]
        assert tips_for_failure_reasons([]) == [DEFAULT_TIP]
