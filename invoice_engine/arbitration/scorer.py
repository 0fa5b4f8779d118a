"""
Candidate Scoring Module.

Scores each amount candidate for how likely it is to be the invoice's
grand total. Seven independent strategies each return an ordered tuple of
``(rule, delta)`` pairs; ``score_candidate`` concatenates them, and the
score is the sum of the deltas.

Scoring is a pure function of ``(candidate, DocumentContext)``: the weights
are module constants and nothing is accumulated between calls, so the
reasons list is an exact audit trail of why a total was chosen.

Strategies:
    1. Label matching (positive anchors)
    2. Disqualifying patterns (subtotals, section totals, tax, shipping)
    3. Position bias (bottom of document, last page)
    4. Arithmetic reconciliation (subtotal + tax)
    5. Magnitude analysis
    6. Surrounding context
    7. Vendor-specific label patterns
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from invoice_engine.arbitration.candidates import AmountCandidate, page_number_for

Reason = Tuple[str, int]
Reasons = Tuple[Reason, ...]


# =============================================================================
# WEIGHTS
# =============================================================================

LABEL_WEIGHTS: Dict[str, int] = {
    'INVOICE_TOTAL': 100,
    'AMOUNT_DUE': 90,
    'BALANCE_DUE': 85,
    'GRAND_TOTAL': 80,
    'TOTAL_DUE': 75,
    'PAY_THIS_AMOUNT': 70,
    'TOTAL_CURRENCY': 60,
    'TOTAL_GENERIC': 25,
}
UNLABELED_AMOUNT_PENALTY = -20

# Every penalty is larger than the strongest label
DISQUALIFIER_WEIGHTS: Dict[str, int] = {
    'SUBTOTAL': -150,
    'GROUP_TOTAL': -150,
    'DEPT_TOTAL': -150,
    'SECTION_TOTAL': -150,
    'CATEGORY_TOTAL': -150,
    'EMPLOYEE_SUBTOTAL': -150,
    'LINE_TOTAL': -120,
    'TAX_LINE': -110,
    'SHIPPING': -105,
    'DISCOUNT': -105,
}

BOTTOM_QUARTER_BONUS = 15
BOTTOM_TENTH_BONUS = 10
LAST_PAGE_BONUS = 15
TOP_QUARTER_PENALTY = -30

MATH_MATCH_BONUS = 50
MATH_MATCH_TOLERANCE_CENTS = 5
EXCEEDS_SUBTOTAL_BONUS = 20
EXCEEDS_LINE_SUM_BONUS = 15

NEAR_MAX_VALUE_BONUS = 10
SMALL_VALUE_PENALTY = -20
VERY_SMALL_VALUE_PENALTY = -40

AFTER_TAX_LINE_BONUS = 25
SUMMARY_CONTEXT_BONUS = 15
NEAR_PAGE_BREAK_BONUS = 10
PAGE_BREAK_WINDOW = 5

VENDOR_PATTERN_BONUS = 30


# =============================================================================
# PATTERN TABLES
# =============================================================================

LABEL_PATTERNS: Tuple[Tuple[str, "re.Pattern"], ...] = (
    ('INVOICE_TOTAL', re.compile(r'\b(INVOICE\s*TOTAL|INV\s*TOTAL|INVOICE\s+AMOUNT)\b')),
    ('AMOUNT_DUE', re.compile(r'\b(AMOUNT\s*DUE|AMT\s*DUE)\b')),
    ('BALANCE_DUE', re.compile(r'\b(BALANCE\s*DUE|BAL\s*DUE)\b')),
    ('GRAND_TOTAL', re.compile(r'\bGRAND\s*TOTAL\b')),
    ('TOTAL_DUE', re.compile(r'\bTOTAL\s*DUE\b')),
    ('PAY_THIS_AMOUNT', re.compile(r'\bPAY\s*THIS\s*AMOUNT\b')),
    ('TOTAL_CURRENCY', re.compile(r'\bTOTAL\s*(?:(?:USD|CAD|EUR|GBP)\b|\$)')),
)
GENERIC_TOTAL = re.compile(r'\bTOTAL\b')
QUALIFIED_TOTAL = re.compile(
    r'\b(SUB|GROUP|DEPT|SECTION|CATEGORY|EMPLOYEE|LINE|ITEM|NET|GROSS)\s*TOTAL\b'
)
SPECIFIC_LABEL_WORD = re.compile(r'\b(INVOICE|GRAND|BALANCE|AMOUNT)\b')
TOTAL_VOCABULARY = re.compile(r'TOTAL|\bDUE\b|\bBALANCE\b')

TOTAL_WORD = re.compile(r'TOTAL')
DISQUALIFIER_PATTERNS: Tuple[Tuple[str, "re.Pattern", bool], ...] = (
    # (rule, pattern, only when the line has no TOTAL)
    ('SUBTOTAL', re.compile(r'\bSUB\s*-?\s*TOTAL\b'), False),
    ('GROUP_TOTAL', re.compile(r'\bGROUP\s*TOTAL\b'), False),
    ('DEPT_TOTAL', re.compile(r'\bDEPT(ARTMENT)?\s*TOTAL\b'), False),
    ('SECTION_TOTAL', re.compile(r'\bSECTION\s*TOTAL\b'), False),
    ('CATEGORY_TOTAL', re.compile(r'\bCATEGORY\s*TOTAL\b'), False),
    ('EMPLOYEE_SUBTOTAL', re.compile(
        r'\bEMPLOYEE\s*(SUB\s*)?TOTAL\b|\b\d{4,5}\s+[A-Z]+\s+[A-Z]+\s+SUBTOTAL\b'
    ), False),
    ('LINE_TOTAL', re.compile(r'\b(LINE\s*TOTAL|ITEM\s*TOTAL|LINE\s*AMOUNT)\b'), False),
    ('TAX_LINE', re.compile(
        r'\b(SALES\s*TAX|TAX\s*AMOUNT|STATE\s*TAX|LOCAL\s*TAX|TAX|VAT|HST|GST|PST)\b'
    ), True),
    ('SHIPPING', re.compile(r'\b(SHIPPING|FREIGHT|DELIVERY\s*FEE|HANDLING)\b'), True),
    ('DISCOUNT', re.compile(r'\b(DISCOUNT|CREDIT|ADJUSTMENT|PROMO)\b'), True),
)

AFTER_TAX_PREVIOUS = re.compile(r'\b(SUBTOTAL|SUB\s*TOTAL|TAX|SHIPPING)\b')
SUMMARY_PREVIOUS = re.compile(r'\b(SUBTOTAL|TAX|TOTAL|AMOUNT|DUE|BALANCE)\b')
SUMMARY_NEXT = re.compile(r'\b(SUBTOTAL|TAX|TOTAL|AMOUNT|DUE|BALANCE|THANK|REMIT)\b')

VENDOR_TOTAL_PATTERNS: Dict[str, Tuple["re.Pattern", ...]] = {
    'cintas': (
        re.compile(r'INVOICE\s+TOTAL\s*[:\s]*\$?[\d,]+\.?\d*', re.IGNORECASE),
        re.compile(r'TOTAL\s+DUE\s*[:\s]*\$?[\d,]+\.?\d*', re.IGNORECASE),
        re.compile(r'AMOUNT\s+DUE\s*[:\s]*\$?[\d,]+\.?\d*', re.IGNORECASE),
    ),
    'sysco': (
        re.compile(r'INVOICE\s+TOTAL\s*\$?[\d,]+\.?\d*', re.IGNORECASE),
        re.compile(r'TOTAL\s+THIS\s+INVOICE', re.IGNORECASE),
        re.compile(r'BALANCE\s+DUE\s*\$?[\d,]+\.?\d*', re.IGNORECASE),
    ),
    'usfoods': (
        re.compile(r'INVOICE\s+TOTAL\s*\$?[\d,]+\.?\d*', re.IGNORECASE),
        re.compile(r'TOTAL\s+DUE\s*\$?[\d,]+\.?\d*', re.IGNORECASE),
        re.compile(r'NET\s+AMOUNT\s+DUE', re.IGNORECASE),
    ),
    'generic': (
        re.compile(r'GRAND\s+TOTAL\s*[:\s]*\$?[\d,]+\.?\d*', re.IGNORECASE),
        re.compile(r'TOTAL\s+AMOUNT\s*[:\s]*\$?[\d,]+\.?\d*', re.IGNORECASE),
        re.compile(r'AMOUNT\s+DUE\s*[:\s]*\$?[\d,]+\.?\d*', re.IGNORECASE),
    ),
}


# =============================================================================
# DATA
# =============================================================================

@dataclass(frozen=True)
class DocumentContext:
    """
    Document-wide facts shared by every candidate's scoring.

    Attributes:
        total_lines: Number of lines in the normalized text.
        lines: The normalized lines.
        page_breaks: Line indices of detected page breaks.
        page_count: ``len(page_breaks) + 1``.
        max_value_cents: Largest candidate value in the document.
        subtotal_cents: Labelled subtotal, if found.
        tax_cents: Labelled tax, if found.
        vendor_key: Known vendor key, if any.
        line_item_sum_cents: Sum of independently extracted line items.
    """

    total_lines: int
    lines: Tuple[str, ...]
    page_breaks: Tuple[int, ...] = ()
    page_count: int = 1
    max_value_cents: int = 0
    subtotal_cents: Optional[int] = None
    tax_cents: Optional[int] = None
    vendor_key: Optional[str] = None
    line_item_sum_cents: int = 0


@dataclass(frozen=True)
class ScoredCandidate:
    """An amount candidate with its score and the rules that produced it."""

    candidate: AmountCandidate
    score: int
    reasons: Reasons

    @property
    def value_cents(self) -> int:
        return self.candidate.value_cents

    @property
    def line_index(self) -> int:
        return self.candidate.line_index

    def to_dict(self) -> dict:
        return {
            'line_index': self.candidate.line_index,
            'value_cents': self.candidate.value_cents,
            'score': self.score,
            'reasons': [f"{rule}:{delta:+d}" for rule, delta in self.reasons],
            'line': self.candidate.line_text[:120],
        }


# =============================================================================
# STRATEGIES
# =============================================================================

def score_labels(candidate: AmountCandidate, context: DocumentContext) -> Reasons:
    """Strategy 1: reward explicit grand-total labels."""
    upper = candidate.line_text.upper()
    reasons = [
        (rule, LABEL_WEIGHTS[rule])
        for rule, pattern in LABEL_PATTERNS
        if pattern.search(upper)
    ]

    # The generic label only counts when no specific label fired
    if (not reasons
            and GENERIC_TOTAL.search(upper)
            and not QUALIFIED_TOTAL.search(upper)
            and not SPECIFIC_LABEL_WORD.search(upper)):
        reasons.append(('TOTAL_GENERIC', LABEL_WEIGHTS['TOTAL_GENERIC']))

    if not reasons and not TOTAL_VOCABULARY.search(upper):
        reasons.append(('UNLABELED_AMOUNT', UNLABELED_AMOUNT_PENALTY))

    return tuple(reasons)


def score_disqualifiers(candidate: AmountCandidate, context: DocumentContext) -> Reasons:
    """Strategy 2: penalize lines that look like totals but are not the grand total."""
    upper = candidate.line_text.upper()
    has_total = bool(TOTAL_WORD.search(upper))
    return tuple(
        (rule, DISQUALIFIER_WEIGHTS[rule])
        for rule, pattern, needs_no_total in DISQUALIFIER_PATTERNS
        if pattern.search(upper) and not (needs_no_total and has_total)
    )


def score_position(candidate: AmountCandidate, context: DocumentContext) -> Reasons:
    """Strategy 3: totals sit near the bottom of the document and on its last page."""
    reasons = []
    index = candidate.line_index
    total = context.total_lines

    if index >= total * 0.75:
        reasons.append(('BOTTOM_QUARTER', BOTTOM_QUARTER_BONUS))
        if index >= total * 0.90:
            reasons.append(('BOTTOM_TENTH', BOTTOM_TENTH_BONUS))

    if context.page_breaks:
        if page_number_for(index, list(context.page_breaks)) == context.page_count:
            reasons.append(('LAST_PAGE', LAST_PAGE_BONUS))

    if index < total * 0.25:
        reasons.append(('TOP_QUARTER', TOP_QUARTER_PENALTY))

    return tuple(reasons)


def score_arithmetic(candidate: AmountCandidate, context: DocumentContext) -> Reasons:
    """Strategy 4: reconcile the value against subtotal, tax and line items."""
    reasons = []
    value = candidate.value_cents

    if context.subtotal_cents and context.tax_cents is not None:
        expected = context.subtotal_cents + context.tax_cents
        if abs(value - expected) <= MATH_MATCH_TOLERANCE_CENTS:
            reasons.append(('MATH_MATCH', MATH_MATCH_BONUS))

    if context.subtotal_cents and value > context.subtotal_cents:
        reasons.append(('EXCEEDS_SUBTOTAL', EXCEEDS_SUBTOTAL_BONUS))

    if context.line_item_sum_cents and value >= context.line_item_sum_cents:
        reasons.append(('EXCEEDS_LINE_SUM', EXCEEDS_LINE_SUM_BONUS))

    return tuple(reasons)


def score_magnitude(candidate: AmountCandidate, context: DocumentContext) -> Reasons:
    """Strategy 5: grand totals are usually the largest figure, rarely tiny."""
    reasons = []
    value = candidate.value_cents

    if context.max_value_cents and value * 100 >= context.max_value_cents * 95:
        reasons.append(('NEAR_MAX_VALUE', NEAR_MAX_VALUE_BONUS))
    if value < 1000:
        reasons.append(('SMALL_VALUE', SMALL_VALUE_PENALTY))
    if value < 100:
        reasons.append(('VERY_SMALL_VALUE', VERY_SMALL_VALUE_PENALTY))

    return tuple(reasons)


def score_context(candidate: AmountCandidate, context: DocumentContext) -> Reasons:
    """Strategy 6: look at the neighbouring lines and nearby page breaks."""
    reasons = []
    index = candidate.line_index
    lines = context.lines

    previous_line = lines[index - 1].upper() if index > 0 else ''
    next_line = lines[index + 1].upper() if index + 1 < len(lines) else ''

    if previous_line and AFTER_TAX_PREVIOUS.search(previous_line):
        reasons.append(('AFTER_TAX_LINE', AFTER_TAX_LINE_BONUS))

    if ((previous_line and SUMMARY_PREVIOUS.search(previous_line))
            or (next_line and SUMMARY_NEXT.search(next_line))):
        reasons.append(('SUMMARY_CONTEXT', SUMMARY_CONTEXT_BONUS))

    if any(abs(index - b) <= PAGE_BREAK_WINDOW for b in context.page_breaks):
        reasons.append(('NEAR_PAGE_BREAK', NEAR_PAGE_BREAK_BONUS))

    return tuple(reasons)


def score_vendor(candidate: AmountCandidate, context: DocumentContext) -> Reasons:
    """Strategy 7: vendor-tuned total labels, or the generic set for unknown vendors."""
    key = (context.vendor_key or '').lower()
    if key not in VENDOR_TOTAL_PATTERNS:
        key = 'generic'

    for pattern in VENDOR_TOTAL_PATTERNS[key]:
        if pattern.search(candidate.line_text):
            return ((f'VENDOR_PATTERN_{key.upper()}', VENDOR_PATTERN_BONUS),)
    return ()


STRATEGIES: Tuple[Callable[[AmountCandidate, DocumentContext], Reasons], ...] = (
    score_labels,
    score_disqualifiers,
    score_position,
    score_arithmetic,
    score_magnitude,
    score_context,
    score_vendor,
)


def score_candidate(candidate: AmountCandidate, context: DocumentContext) -> ScoredCandidate:
    """
    Score one candidate with every strategy.

    Args:
        candidate: The amount candidate.
        context: Document-wide facts.

    Returns:
        ScoredCandidate whose score is the sum of its ordered reasons.
    """
    reasons: Tuple[Reason, ...] = ()
    for strategy in STRATEGIES:
        reasons += strategy(candidate, context)

    return ScoredCandidate(
        candidate=candidate,
        score=sum(delta for _, delta in reasons),
        reasons=reasons,
    )
