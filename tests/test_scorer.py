"""
Tests for the candidate scoring strategies.
"""

from invoice_engine.arbitration.candidates import extract_amount_candidates
from invoice_engine.arbitration.scorer import (
    DISQUALIFIER_WEIGHTS,
    LABEL_WEIGHTS,
    DocumentContext,
    score_arithmetic,
    score_candidate,
    score_context,
    score_disqualifiers,
    score_labels,
    score_magnitude,
    score_position,
    score_vendor,
)
from invoice_engine.postprocessor.normalizers import normalize_text


def _candidate(line):
    return extract_amount_candidates(normalize_text(line))[-1]


def _context(lines=("x",), **kwargs):
    return DocumentContext(total_lines=len(lines), lines=tuple(lines), **kwargs)


def _rules(reasons):
    return [rule for rule, _ in reasons]


class TestWeights:
    """Tests for the weight tables."""

    def test_disqualifiers_outweigh_every_label(self):
        """No label can lift a subtotal, tax or line total back above zero on its own."""
        strongest_label = max(LABEL_WEIGHTS.values())
        for rule, weight in DISQUALIFIER_WEIGHTS.items():
            assert weight < 0, rule
            assert abs(weight) > strongest_label, rule


class TestScoreLabels:
    """Tests for score_labels."""

    def test_invoice_total(self):
        reasons = score_labels(_candidate("INVOICE TOTAL $50.00"), _context())
        assert reasons == (('INVOICE_TOTAL', 100), ('TOTAL_CURRENCY', 60))

    def test_generic_total(self):
        reasons = score_labels(_candidate("Total: 42.00"), _context())
        assert reasons == (('TOTAL_GENERIC', 25),)

    def test_generic_never_stacks_on_specific_label(self):
        assert score_labels(_candidate("Total Due $5.00"), _context()) == (('TOTAL_DUE', 75),)
        assert score_labels(_candidate("Amount Due $5.00"), _context()) == (('AMOUNT_DUE', 90),)
        assert score_labels(_candidate("Total $5.00"), _context()) == (('TOTAL_CURRENCY', 60),)

    def test_label_ordering(self):
        lines = [
            "Invoice Total 5.00",
            "Amount Due 5.00",
            "Balance Due 5.00",
            "Grand Total 5.00",
            "Total Due 5.00",
            "Pay This Amount 5.00",
            "Total USD 5.00",
            "Total 5.00",
        ]
        sums = [sum(delta for _, delta in score_labels(_candidate(line), _context())) for line in lines]
        assert sums == [100, 90, 85, 80, 75, 70, 60, 25]

    def test_qualified_total_is_not_generic(self):
        reasons = score_labels(_candidate("Net Total 42.00"), _context())
        assert 'TOTAL_GENERIC' not in _rules(reasons)
        assert 'UNLABELED_AMOUNT' not in _rules(reasons)

    def test_unlabeled(self):
        reasons = score_labels(_candidate("Hammer $12.00"), _context())
        assert reasons == (('UNLABELED_AMOUNT', -20),)


class TestScoreDisqualifiers:
    """Tests for score_disqualifiers."""

    def test_subtotal(self):
        assert score_disqualifiers(_candidate("Subtotal $100.00"), _context()) == (('SUBTOTAL', -150),)

    def test_tax_shipping_discount(self):
        assert _rules(score_disqualifiers(_candidate("Sales Tax $8.00"), _context())) == ['TAX_LINE']
        assert _rules(score_disqualifiers(_candidate("Freight $5.00"), _context())) == ['SHIPPING']
        assert _rules(score_disqualifiers(_candidate("Promo credit $5.00"), _context())) == ['DISCOUNT']

    def test_tax_penalty_needs_no_total_word(self):
        """"Total incl. tax" is a total, not a tax line."""
        assert score_disqualifiers(_candidate("Total incl. tax $108.50"), _context()) == ()

    def test_line_total(self):
        assert _rules(score_disqualifiers(_candidate("Line Total 30.00"), _context())) == ['LINE_TOTAL']

    def test_employee_subtotal(self):
        reasons = score_disqualifiers(_candidate("10234 JOHN SMITH SUBTOTAL 45.00"), _context())
        assert _rules(reasons) == ['SUBTOTAL', 'EMPLOYEE_SUBTOTAL']


class TestScorePosition:
    """Tests for score_position."""

    def test_bottom(self):
        lines = ["line"] * 9 + ["Total $5.00"]
        candidate = extract_amount_candidates(normalize_text("\n".join(lines)))[0]
        reasons = score_position(candidate, _context(lines))
        assert reasons == (('BOTTOM_QUARTER', 15), ('BOTTOM_TENTH', 10))

    def test_top(self):
        lines = ["Total $5.00"] + ["line"] * 9
        candidate = extract_amount_candidates(normalize_text("\n".join(lines)))[0]
        assert score_position(candidate, _context(lines)) == (('TOP_QUARTER', -30),)

    def test_last_page(self):
        lines = ["a", "Page 1 of 2", "b", "Total $5.00", "c"]
        candidate = extract_amount_candidates(normalize_text("\n".join(lines)))[0]
        context = _context(lines, page_breaks=(1,), page_count=2)
        assert 'LAST_PAGE' in _rules(score_position(candidate, context))


class TestScoreArithmetic:
    """Tests for score_arithmetic."""

    def test_math_match(self):
        context = _context(subtotal_cents=10000, tax_cents=850)
        reasons = score_arithmetic(_candidate("Total $108.52"), context)
        assert reasons == (('MATH_MATCH', 50), ('EXCEEDS_SUBTOTAL', 20))

    def test_tolerance(self):
        context = _context(subtotal_cents=10000, tax_cents=850)
        assert 'MATH_MATCH' not in _rules(score_arithmetic(_candidate("Total $108.56"), context))

    def test_math_needs_tax(self):
        context = _context(subtotal_cents=10000)
        assert score_arithmetic(_candidate("Total $100.00"), context) == ()

    def test_zero_tax_counts(self):
        context = _context(subtotal_cents=10000, tax_cents=0)
        assert _rules(score_arithmetic(_candidate("Total $100.00"), context)) == ['MATH_MATCH']

    def test_line_sum(self):
        context = _context(line_item_sum_cents=24500)
        assert score_arithmetic(_candidate("Total $245.00"), context) == (('EXCEEDS_LINE_SUM', 15),)
        assert score_arithmetic(_candidate("Total $244.99"), context) == ()


class TestScoreMagnitude:
    """Tests for score_magnitude."""

    def test_near_max(self):
        context = _context(max_value_cents=10000)
        assert score_magnitude(_candidate("$95.00"), context) == (('NEAR_MAX_VALUE', 10),)
        assert score_magnitude(_candidate("$94.99"), context) == ()

    def test_small_values(self):
        context = _context(max_value_cents=100000)
        assert score_magnitude(_candidate("$9.99"), context) == (('SMALL_VALUE', -20),)
        assert score_magnitude(_candidate("$0.99"), context) == (
            ('SMALL_VALUE', -20), ('VERY_SMALL_VALUE', -40),
        )


class TestScoreContext:
    """Tests for score_context."""

    def test_after_tax_line(self):
        lines = ["Subtotal $100.00", "Tax $8.50", "Total $108.50"]
        candidate = extract_amount_candidates(normalize_text("\n".join(lines)))[-1]
        reasons = score_context(candidate, _context(lines))
        assert reasons == (('AFTER_TAX_LINE', 25), ('SUMMARY_CONTEXT', 15))

    def test_summary_from_next_line(self):
        lines = ["Total $108.50", "Thank you"]
        candidate = extract_amount_candidates(normalize_text("\n".join(lines)))[0]
        assert score_context(candidate, _context(lines)) == (('SUMMARY_CONTEXT', 15),)

    def test_near_page_break(self):
        lines = ["Total $5.00", "x", "Page 1 of 2"]
        candidate = extract_amount_candidates(normalize_text("\n".join(lines)))[0]
        reasons = score_context(candidate, _context(lines, page_breaks=(2,), page_count=2))
        assert 'NEAR_PAGE_BREAK' in _rules(reasons)


class TestScoreVendor:
    """Tests for score_vendor."""

    def test_known_vendor(self):
        context = _context(vendor_key='sysco')
        assert score_vendor(_candidate("INVOICE TOTAL $50.00"), context) == (('VENDOR_PATTERN_SYSCO', 30),)

    def test_unknown_vendor_uses_generic(self):
        context = _context(vendor_key='acme')
        assert score_vendor(_candidate("Grand Total $10.00"), context) == (('VENDOR_PATTERN_GENERIC', 30),)

    def test_no_match(self):
        assert score_vendor(_candidate("Hammer $12.00"), _context()) == ()


class TestScoreCandidate:
    """Tests for score_candidate."""

    def test_score_is_sum_of_reasons(self, simple_invoice):
        normalized = normalize_text(simple_invoice)
        candidates = extract_amount_candidates(normalized)
        context = DocumentContext(
            total_lines=normalized.line_count,
            lines=normalized.lines,
            max_value_cents=max(c.value_cents for c in candidates),
            subtotal_cents=10000,
            tax_cents=850,
        )
        for candidate in candidates:
            scored = score_candidate(candidate, context)
            assert scored.score == sum(delta for _, delta in scored.reasons)

    def test_simple_total_breakdown(self, simple_invoice):
        normalized = normalize_text(simple_invoice)
        candidates = extract_amount_candidates(normalized)
        context = DocumentContext(
            total_lines=normalized.line_count,
            lines=normalized.lines,
            max_value_cents=10850,
            subtotal_cents=10000,
            tax_cents=850,
        )
        scored = score_candidate(candidates[-1], context)
        assert _rules(scored.reasons) == [
            'TOTAL_CURRENCY', 'BOTTOM_QUARTER',
            'MATH_MATCH', 'EXCEEDS_SUBTOTAL', 'NEAR_MAX_VALUE',
            'AFTER_TAX_LINE', 'SUMMARY_CONTEXT',
        ]
        assert scored.score == 195
        assert scored.to_dict()['reasons'][0] == 'TOTAL_CURRENCY:+60'
