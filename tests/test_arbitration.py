"""
Tests for grand-total arbitration.
"""

from dataclasses import replace

import pytest

from invoice_engine.arbitration import (
    arbitrate_totals,
    find_best_total,
    is_likely_grand_total,
    is_likely_subtotal,
)
from invoice_engine.arbitration.arbiter import (
    SOURCE_ALL_REJECTED,
    SOURCE_FULL_DOCUMENT,
    SOURCE_NO_CANDIDATES,
    compute_confidence,
)
from invoice_engine.config import ConfigurationManager
from invoice_engine.model_inference.extraction_result import ExtractionResult, InvoiceTotals
from invoice_engine.postprocessor.normalizers import normalize_text


FEES_INVOICE = """Acme Services
Subtotal $100.00
Tax $8.00
Balance Due $250.00
"""

MULTI_PAGE_INVOICE = """ACME Corp
Widget $40.00
Page 1 of 2
Gadget $59.00
Total $99.00
"""


class TestFindBestTotal:
    """Tests for find_best_total."""

    def test_simple_invoice(self, simple_invoice):
        result = find_best_total(simple_invoice)
        assert result.total_cents == 10850
        assert result.source == SOURCE_FULL_DOCUMENT
        assert result.source_line_index == 8
        assert result.source_line_text == "Total $108.50"
        assert result.confidence >= 80
        assert result.math_validation.valid is True
        assert result.subtotal_cents == 10000
        assert result.tax_cents == 850

    def test_department_subtotals_lose(self, department_invoice):
        result = find_best_total(department_invoice)
        assert result.total_cents == 80000
        assert result.confidence >= 80
        for scored in result.candidates:
            if 'SUBTOTAL' in scored.candidate.line_text.upper():
                assert scored.score < 0

    def test_unlabeled_amounts_low_confidence(self, unlabeled_receipt):
        result = find_best_total(unlabeled_receipt)
        assert result.total_cents == 4500
        assert result.score == 5
        assert result.margin == 25
        assert result.confidence == 18
        assert result.confidence < 50

    def test_no_candidates(self):
        result = find_best_total("Thank you for shopping with us")
        assert result.total_cents is None
        assert result.source == SOURCE_NO_CANDIDATES
        assert result.confidence == 0
        assert result.candidates == ()

    def test_empty_text(self):
        result = find_best_total("")
        assert result.source == SOURCE_NO_CANDIDATES

    def test_all_rejected(self):
        """A negative best score is never returned as the total."""
        result = find_best_total("Dept A Subtotal $500.00\nDept B Subtotal $300.00")
        assert result.total_cents is None
        assert result.source == SOURCE_ALL_REJECTED
        assert result.confidence == 0
        assert len(result.candidates) == 2
        assert all(c.score < 0 for c in result.candidates)

    def test_candidates_sorted_best_first(self, simple_invoice):
        result = find_best_total(simple_invoice)
        scores = [c.score for c in result.candidates]
        assert scores == sorted(scores, reverse=True)
        assert result.candidates[0].value_cents == result.total_cents

    def test_deterministic(self, department_invoice):
        first = find_best_total(department_invoice)
        second = find_best_total(normalize_text(department_invoice))
        assert first == second

    def test_multi_page(self):
        result = find_best_total(MULTI_PAGE_INVOICE)
        assert result.total_cents == 9900
        assert result.page_count == 2
        assert 'LAST_PAGE' in [rule for rule, _ in result.reasons]

    def test_tax_registration_footer(self, simple_invoice):
        result = find_best_total(simple_invoice + "GST Reg No. 123456789\n")
        assert result.tax_cents == 850
        assert result.total_cents == 10850
        assert result.math_validation.valid is True
        assert ('MATH_MATCH', 50) in result.reasons

    def test_vendor_tuned_label(self):
        text = "Sysco Food Services\nItem A 40.00\nINVOICE TOTAL $40.00"
        result = find_best_total(text, vendor_key='sysco')
        assert ('VENDOR_PATTERN_SYSCO', 30) in result.reasons

    def test_to_dict(self, simple_invoice):
        data = find_best_total(simple_invoice).to_dict(trace_size=3)
        assert data['total_cents'] == 10850
        assert data['candidates_analyzed'] == 7
        assert len(data['trace']) == 3
        assert data['reasons'][0] == 'TOTAL_CURRENCY:+60'
        assert not any(r.startswith('TOTAL_GENERIC') for r in data['reasons'])
        assert data['math_validation']['reason'] == 'math_matches'


class TestOverrideDecision:
    """Tests for the parser-override rules."""

    def test_parser_total_missing(self, simple_invoice):
        result = find_best_total(simple_invoice)
        assert result.should_override is True
        assert result.override_reason == 'parser_total_missing'

    def test_matches_parser_total(self, simple_invoice):
        result = find_best_total(simple_invoice, parser_total_cents=10850)
        assert result.should_override is False
        assert result.override_reason == 'matches_parser_total'

    def test_differs_from_parser_total(self, simple_invoice):
        result = find_best_total(simple_invoice, parser_total_cents=10000)
        assert result.should_override is True
        assert result.override_reason == 'differs_by_850_cents'

    def test_low_confidence_keeps_parser(self, unlabeled_receipt):
        result = find_best_total(unlabeled_receipt, parser_total_cents=1200)
        assert result.should_override is False
        assert result.override_reason == 'low_confidence_keeping_parser'

    def test_low_confidence_threshold_from_config(self, unlabeled_receipt):
        ConfigurationManager().set("arbitration.low_confidence_threshold", 10)
        result = find_best_total(unlabeled_receipt, parser_total_cents=1200)
        assert result.confidence == 18
        assert result.should_override is True
        assert result.override_reason == 'differs_by_3300_cents'

    def test_parser_math_valid_arbitration_not(self):
        result = find_best_total(FEES_INVOICE, parser_total_cents=10800)
        assert result.total_cents == 25000
        assert result.math_validation.valid is False
        assert result.should_override is False
        assert result.override_reason == 'parser_math_valid_arbitration_not'


class TestArbitrateTotals:
    """Tests for arbitrate_totals."""

    def test_override_replaces_total(self, simple_invoice):
        extraction = ExtractionResult(totals=InvoiceTotals(total=10000), total_source='parser')
        updated, arbitration = arbitrate_totals(extraction, simple_invoice)
        assert arbitration.should_override
        assert updated.totals.total == 10850
        assert updated.total_source == SOURCE_FULL_DOCUMENT
        # Input is never modified
        assert extraction.totals.total == 10000
        assert extraction.total_source == 'parser'

    def test_keeps_matching_parser_total(self, simple_invoice):
        extraction = ExtractionResult(totals=InvoiceTotals(total=10850), total_source='parser')
        updated, arbitration = arbitrate_totals(extraction, simple_invoice)
        assert updated is extraction
        assert arbitration.override_reason == 'matches_parser_total'

    def test_fills_missing_total(self, department_invoice):
        extraction = ExtractionResult()
        updated, _ = arbitrate_totals(extraction, department_invoice)
        assert updated.totals.total == 80000

    def test_no_candidates_keeps_extraction(self):
        extraction = replace(ExtractionResult(), vendor="Nobody")
        updated, arbitration = arbitrate_totals(extraction, "Thank you for shopping with us")
        assert updated is extraction
        assert arbitration.total_cents is None


class TestComputeConfidence:
    """Tests for compute_confidence."""

    @pytest.mark.parametrize("best,margin,expected", [
        (220, 225, 100),
        (5, 25, 18),
        (5, 5, 8),
        (-10, 0, 0),
        (60, 100, 80),
    ])
    def test_values(self, best, margin, expected):
        assert compute_confidence(best, margin) == expected


class TestLineHelpers:
    """Tests for is_likely_grand_total and is_likely_subtotal."""

    def test_grand_total(self):
        assert is_likely_grand_total("Grand Total $800.00")
        assert is_likely_grand_total("Amount Due: 12.00")
        assert not is_likely_grand_total("Dept A Subtotal $500.00")
        assert not is_likely_grand_total(None)

    def test_subtotal(self):
        assert is_likely_subtotal("Subtotal $100.00")
        assert is_likely_subtotal("Group Total 55.00")
        assert not is_likely_subtotal("Total $108.50")
