"""
Total Arbitration Module.

Picks the invoice's grand total from every money-shaped token in the
document and decides whether that pick should replace the total found by
the field extractor (the "parser total").

Usage:
    from invoice_engine.arbitration import find_best_total

    result = find_best_total(text, parser_total_cents=10850)
    if result.should_override:
        ...
"""

import math
import re
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple, Union

from invoice_engine.arbitration.candidates import (
    detect_page_breaks,
    detect_tax_and_subtotal,
    extract_amount_candidates,
)
from invoice_engine.arbitration.scorer import (
    DocumentContext,
    Reasons,
    ScoredCandidate,
    score_candidate,
)
from invoice_engine.config import get_config
from invoice_engine.model_inference.extraction_result import ExtractionResult
from invoice_engine.postprocessor.normalizers import NormalizedText, normalize_text
from invoice_engine.postprocessor.validators import MathValidation, validate_total_math
from invoice_engine.utils.helpers import cents_to_dollars
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


SOURCE_NO_CANDIDATES = 'no_candidates'
SOURCE_ALL_REJECTED = 'all_rejected'
SOURCE_FULL_DOCUMENT = 'arbitration_full_document'

LOW_CONFIDENCE_THRESHOLD = 40
MAX_MARGIN_BONUS = 20

GRAND_TOTAL_LINE = re.compile(
    r'\b(INVOICE\s*TOTAL|GRAND\s*TOTAL|AMOUNT\s*DUE|BALANCE\s*DUE|TOTAL\s*DUE|TOTAL\s*USD)\b'
)
SUBTOTAL_LINE = re.compile(
    r'\b(SUB\s*-?\s*TOTAL|GROUP\s*TOTAL|DEPT\s*TOTAL|DEPARTMENT\s*TOTAL|SECTION\s*TOTAL'
    r'|CATEGORY\s*TOTAL|EMPLOYEE.*SUBTOTAL)\b'
)


@dataclass(frozen=True)
class ArbitrationResult:
    """
    The arbitration decision and its audit trail.

    Attributes:
        total_cents: Winning value, or None when nothing qualified.
        confidence: 0-100, from the best score and its margin.
        source: "no_candidates", "all_rejected" or
            "arbitration_full_document".
        source_line_index: Line of the winning candidate.
        source_line_text: Text of the winning line.
        score: Winning score.
        reasons: Ordered (rule, delta) pairs of the winner.
        margin: Best score minus runner-up score.
        math_validation: Arithmetic check of the winner.
        should_override: Whether the winner should replace the parser total.
        override_reason: Why it should, or why it should not.
        parser_total_cents: Parser total the decision was made against.
        candidates: Every scored candidate, best first.
        page_count: Detected pages.
        subtotal_cents: Detected subtotal.
        tax_cents: Detected tax.
    """

    total_cents: Optional[int]
    confidence: int
    source: str
    source_line_index: Optional[int] = None
    source_line_text: Optional[str] = None
    score: Optional[int] = None
    reasons: Reasons = ()
    margin: Optional[int] = None
    math_validation: Optional[MathValidation] = None
    should_override: bool = False
    override_reason: Optional[str] = None
    parser_total_cents: Optional[int] = None
    candidates: Tuple[ScoredCandidate, ...] = ()
    page_count: int = 1
    subtotal_cents: Optional[int] = None
    tax_cents: Optional[int] = None

    def to_dict(self, trace_size: Optional[int] = None) -> Dict[str, Any]:
        """
        Convert to dictionary format.

        Args:
            trace_size: How many top candidates to include in the trace.
                Defaults to ``arbitration.trace_size`` from configuration.
        """
        if trace_size is None:
            trace_size = get_config("arbitration.trace_size", 20)

        return {
            'total_cents': self.total_cents,
            'confidence': self.confidence,
            'source': self.source,
            'source_line_index': self.source_line_index,
            'source_line_text': self.source_line_text,
            'score': self.score,
            'reasons': [f"{rule}:{delta:+d}" for rule, delta in self.reasons],
            'margin': self.margin,
            'math_validation': self.math_validation.to_dict() if self.math_validation else None,
            'should_override': self.should_override,
            'override_reason': self.override_reason,
            'parser_total_cents': self.parser_total_cents,
            'page_count': self.page_count,
            'subtotal_cents': self.subtotal_cents,
            'tax_cents': self.tax_cents,
            'candidates_analyzed': len(self.candidates),
            'trace': [c.to_dict() for c in self.candidates[:trace_size]],
        }


def compute_confidence(best_score: int, margin: int) -> int:
    """
    Confidence from the winning score and its lead over the runner-up.

    ``min(100, max(0, best) + min(20, margin / 2))``, rounded half up.
    """
    raw = min(100, max(0, best_score) + min(MAX_MARGIN_BONUS, margin / 2))
    return int(math.floor(raw + 0.5))


def _override_decision(
    best_cents: int,
    confidence: int,
    parser_total_cents: Optional[int],
    math_validation: MathValidation,
    subtotal_cents: Optional[int],
    tax_cents: Optional[int],
) -> Tuple[bool, str]:
    """
    Decide whether the arbitrated total should replace the parser's.

    A differing parser total is kept when confidence is under
    ``arbitration.low_confidence_threshold`` (40 unless configured), or when
    the parser total satisfies the math the arbitrated one fails.
    """
    parser_total = parser_total_cents or 0

    if not parser_total:
        should_override, reason = True, 'parser_total_missing'
    elif abs(best_cents - parser_total) >= 1:
        should_override, reason = True, f'differs_by_{abs(best_cents - parser_total)}_cents'
    else:
        should_override, reason = False, 'matches_parser_total'

    threshold = get_config("arbitration.low_confidence_threshold", LOW_CONFIDENCE_THRESHOLD)
    if should_override and parser_total > 0 and confidence < threshold:
        should_override, reason = False, 'low_confidence_keeping_parser'

    if should_override and parser_total > 0 and math_validation.valid is not True:
        parser_math = validate_total_math(parser_total, subtotal_cents, tax_cents)
        if parser_math.valid:
            should_override, reason = False, 'parser_math_valid_arbitration_not'

    return should_override, reason


def find_best_total(
    text: Union[str, NormalizedText],
    parser_total_cents: Optional[int] = None,
    line_item_sum_cents: int = 0,
    vendor_key: Optional[str] = None,
) -> ArbitrationResult:
    """
    Find the grand total among all amount candidates of a document.

    Args:
        text: Raw or already normalized invoice text.
        parser_total_cents: Total found independently by the field extractor.
        line_item_sum_cents: Sum of independently extracted line items.
        vendor_key: Known vendor key, enabling vendor-tuned labels.

    Returns:
        ArbitrationResult. ``total_cents`` is None when there are no
        candidates or every candidate scored negative.
    """
    normalized = text if isinstance(text, NormalizedText) else normalize_text(text)

    page_breaks = detect_page_breaks(normalized)
    tax_subtotal = detect_tax_and_subtotal(normalized)
    candidates = extract_amount_candidates(normalized)

    base = dict(
        parser_total_cents=parser_total_cents,
        page_count=len(page_breaks) + 1,
        subtotal_cents=tax_subtotal.subtotal_cents,
        tax_cents=tax_subtotal.tax_cents,
    )

    if not candidates:
        logger.info("Arbitration found no amount candidates")
        return ArbitrationResult(total_cents=None, confidence=0, source=SOURCE_NO_CANDIDATES, **base)

    context = DocumentContext(
        total_lines=normalized.line_count,
        lines=normalized.lines,
        page_breaks=tuple(page_breaks),
        page_count=len(page_breaks) + 1,
        max_value_cents=max(c.value_cents for c in candidates),
        subtotal_cents=tax_subtotal.subtotal_cents,
        tax_cents=tax_subtotal.tax_cents,
        vendor_key=vendor_key,
        line_item_sum_cents=line_item_sum_cents or 0,
    )

    # sorted() is stable, so equal scores keep document order
    scored = tuple(sorted(
        (score_candidate(c, context) for c in candidates),
        key=lambda s: -s.score,
    ))

    for item in scored:
        logger.debug(
            f"Candidate line {item.line_index} {cents_to_dollars(item.value_cents)} "
            f"score={item.score} reasons={item.reasons}"
        )

    best = scored[0]
    if best.score < 0:
        logger.info(f"Arbitration rejected all {len(scored)} candidates")
        return ArbitrationResult(
            total_cents=None,
            confidence=0,
            source=SOURCE_ALL_REJECTED,
            candidates=scored,
            **base,
        )

    margin = best.score - scored[1].score if len(scored) > 1 else best.score
    confidence = compute_confidence(best.score, margin)
    math_validation = validate_total_math(
        best.value_cents, tax_subtotal.subtotal_cents, tax_subtotal.tax_cents
    )
    should_override, override_reason = _override_decision(
        best.value_cents,
        confidence,
        parser_total_cents,
        math_validation,
        tax_subtotal.subtotal_cents,
        tax_subtotal.tax_cents,
    )

    logger.info(
        f"Arbitrated total {cents_to_dollars(best.value_cents)} "
        f"(score={best.score}, margin={margin}, confidence={confidence}, "
        f"override={should_override}: {override_reason})"
    )

    return ArbitrationResult(
        total_cents=best.value_cents,
        confidence=confidence,
        source=SOURCE_FULL_DOCUMENT,
        source_line_index=best.line_index,
        source_line_text=best.candidate.line_text,
        score=best.score,
        reasons=best.reasons,
        margin=margin,
        math_validation=math_validation,
        should_override=should_override,
        override_reason=override_reason,
        candidates=scored,
        **base,
    )


def arbitrate_totals(
    extraction: ExtractionResult,
    text: Union[str, NormalizedText],
) -> Tuple[ExtractionResult, ArbitrationResult]:
    """
    Run arbitration against an extraction result and apply its decision.

    The extraction's total, line-item sum and vendor key feed the
    arbitration. When it decides to override, a new ExtractionResult is
    returned with the arbitrated total; the input is never modified.

    Args:
        extraction: Result of the field extractor.
        text: The text the extraction was made from.

    Returns:
        Tuple of (possibly updated extraction, arbitration result).
    """
    arbitration = find_best_total(
        text,
        parser_total_cents=extraction.totals.total,
        line_item_sum_cents=extraction.line_item_sum_cents,
        vendor_key=extraction.vendor_key,
    )

    if not (arbitration.should_override and arbitration.total_cents):
        return extraction, arbitration

    logger.info(
        f"Overriding parser total {cents_to_dollars(extraction.totals.total)} -> "
        f"{cents_to_dollars(arbitration.total_cents)} "
        f"(reason: {arbitration.override_reason}, confidence: {arbitration.confidence}%)"
    )

    updated = replace(
        extraction,
        totals=replace(extraction.totals, total=arbitration.total_cents),
        total_source=arbitration.source,
    )
    return updated, arbitration


def is_likely_grand_total(line: Optional[str]) -> bool:
    """Quick check: does a line carry a grand-total label and no subtotal marker?"""
    upper = (line or '').upper()
    return bool(GRAND_TOTAL_LINE.search(upper)) and not re.search(
        r'\b(SUBTOTAL|GROUP\s*TOTAL|DEPT\s*TOTAL|SECTION\s*TOTAL|CATEGORY\s*TOTAL|EMPLOYEE)\b',
        upper,
    )


def is_likely_subtotal(line: Optional[str]) -> bool:
    """Quick check: does a line look like a subtotal or sectional total?"""
    return bool(SUBTOTAL_LINE.search((line or '').upper()))
