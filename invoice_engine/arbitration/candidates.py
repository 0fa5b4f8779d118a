"""
Amount Candidate Extraction Module.

Scans normalized invoice text for every money-shaped token and for the
structural facts the scorer needs: the labelled subtotal and tax lines,
and the page breaks of multi-page documents.

The extractor is exhaustive and makes no judgment about which token is
the grand total; that is the scorer's job.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from invoice_engine.postprocessor.normalizers import NormalizedText, parse_amount_cents
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


# Ordered money patterns: (match_type, regex). Group 1 is the number.
MONEY_PATTERNS: Tuple[Tuple[str, "re.Pattern"], ...] = (
    ('dollar_sign', re.compile(r'\$\s*(\d[\d,]*(?:\.\d+)?)')),
    ('currency_code', re.compile(r'(?:USD|CAD|EUR|GBP)\s*(\d[\d,]*(?:\.\d+)?)', re.IGNORECASE)),
    ('decimal', re.compile(r'(?<![\d.,$])(\d[\d,]*\.\d{2})(?![\d%])')),
)

SUBTOTAL_LABEL = re.compile(r'\bSUB\s*-?\s*TOTAL\b')
SUBTOTAL_EXCLUDE = re.compile(r'\b(GROUP|DEPT|DEPARTMENT|EMPLOYEE|SECTION|CATEGORY)\b')
TAX_LABEL = re.compile(r'\b(SALES\s*TAX|STATE\s*TAX|LOCAL\s*TAX|TAX\s*AMOUNT|TAX|VAT|HST|GST|PST)\b')

# Money on a labelled line: symbol or code prefixed, or a bare two-decimal
# number. A trailing % marks a rate, not money.
LINE_MONEY = re.compile(
    r'(?:(?:\$|\b(?:USD|CAD|EUR|GBP))\s*(\d[\d,]*(?:\.\d{1,2})?)'
    r'|(?<![\d.,])(\d[\d,]*\.\d{2}))'
    r'(?![\d.]*\s*%)',
    re.IGNORECASE,
)
# Registration and id numbers printed on tax lines
TAX_ID_MARKER = re.compile(r'\b(?:REG|REGISTRATION|ID|NUMBER)\b|\bNO\.|#')

PAGE_BREAK_PATTERNS: Tuple["re.Pattern", ...] = (
    re.compile(r'page\s*\d+\s*(of|/)\s*\d+', re.IGNORECASE),
    re.compile(r'continued\s*(on\s*)?next\s*page', re.IGNORECASE),
    re.compile(r'-{3}\s*page\s*\d+\s*-{3}', re.IGNORECASE),
    re.compile(r'\f'),
    re.compile(r'-{10,}'),
    re.compile(r'={10,}'),
    re.compile(r'_{10,}'),
)


@dataclass(frozen=True)
class AmountCandidate:
    """
    A money-shaped token that might be the grand total.

    Attributes:
        line_index: Index of the line in the normalized text.
        line_text: The (stripped) line the token was found on.
        value_cents: Exact integer value in cents.
        raw_match: Matched text, including any symbol or code.
        match_type: "dollar_sign", "currency_code" or "decimal".
        column_position: "left", "center" or "right".
        char_offset: Offset of the match within the line.
    """

    line_index: int
    line_text: str
    value_cents: int
    raw_match: str
    match_type: str
    column_position: str
    char_offset: int

    def to_dict(self) -> dict:
        return {
            'line_index': self.line_index,
            'line_text': self.line_text,
            'value_cents': self.value_cents,
            'raw_match': self.raw_match,
            'match_type': self.match_type,
            'column_position': self.column_position,
        }


@dataclass(frozen=True)
class TaxSubtotal:
    """Labelled subtotal and tax amounts, with the lines they came from."""

    subtotal_cents: Optional[int] = None
    tax_cents: Optional[int] = None
    subtotal_line: Optional[int] = None
    tax_line: Optional[int] = None


def column_for_offset(offset: int, line_length: int) -> str:
    """Classify a character offset as left, center or right third of a line."""
    if offset < line_length / 3:
        return 'left'
    if offset > line_length * 2 / 3:
        return 'right'
    return 'center'


def extract_amount_candidates(normalized: NormalizedText) -> List[AmountCandidate]:
    """
    Find every money-shaped token in the text.

    All three patterns run on every line and every match is kept, so a
    line such as "2 x 25.00 50.00" yields two candidates. A match that
    overlaps a token already recorded on the same line is the same token
    seen by a later pattern and is skipped. Zero values are dropped.

    Args:
        normalized: Output of ``normalize_text``.

    Returns:
        Candidates in document order (line, then offset).
    """
    candidates: List[AmountCandidate] = []

    for line_index, line in enumerate(normalized.lines):
        if not line.strip():
            continue

        spans: List[Tuple[int, int]] = []
        found: List[AmountCandidate] = []

        for match_type, pattern in MONEY_PATTERNS:
            for match in pattern.finditer(line):
                start, end = match.span()
                if any(start < s_end and s_start < end for s_start, s_end in spans):
                    continue

                value_cents = parse_amount_cents(match.group(1))
                if not value_cents:
                    continue

                spans.append((start, end))
                found.append(AmountCandidate(
                    line_index=line_index,
                    line_text=line.strip(),
                    value_cents=value_cents,
                    raw_match=match.group(0),
                    match_type=match_type,
                    column_position=column_for_offset(start, len(line)),
                    char_offset=start,
                ))

        found.sort(key=lambda c: c.char_offset)
        candidates.extend(found)

    logger.debug(f"Extracted {len(candidates)} amount candidates")
    return candidates


def _last_money_on_line(line: str) -> Optional[int]:
    value = None
    for match in LINE_MONEY.finditer(line):
        value = parse_amount_cents(match.group(1) or match.group(2))
    return value


def detect_tax_and_subtotal(normalized: NormalizedText) -> TaxSubtotal:
    """
    Find the labelled subtotal and tax amounts.

    Subtotal lines that belong to a group, department, employee, section
    or category are ignored, as are tax lines that also mention TOTAL or
    carry a registration or id number. The amount taken is the last
    money-shaped token on the line (symbol or code prefixed, or two
    decimals), skipping percentage rates. The last qualifying line wins
    for each, since invoices often restate a running subtotal before the
    grand total.

    Returns:
        TaxSubtotal with None for anything not found.
    """
    subtotal_cents = tax_cents = None
    subtotal_line = tax_line = None

    for index, line in enumerate(normalized.lines):
        upper = line.upper()

        if SUBTOTAL_LABEL.search(upper) and not SUBTOTAL_EXCLUDE.search(upper):
            value = _last_money_on_line(line)
            if value and value > 0:
                subtotal_cents, subtotal_line = value, index

        if (TAX_LABEL.search(upper) and 'TOTAL' not in upper
                and not TAX_ID_MARKER.search(upper)):
            value = _last_money_on_line(line)
            if value is not None and value >= 0:
                tax_cents, tax_line = value, index

    return TaxSubtotal(
        subtotal_cents=subtotal_cents,
        tax_cents=tax_cents,
        subtotal_line=subtotal_line,
        tax_line=tax_line,
    )


def detect_page_breaks(normalized: NormalizedText) -> List[int]:
    """
    Return the ordered line indices holding a page-break marker.

    Markers: "page N of M", "page N/M", "continued on next page",
    "--- page N ---", form feeds, and rule lines of ten or more
    dashes, equals signs or underscores. Page count is breaks + 1.
    """
    return [
        index for index, line in enumerate(normalized.lines)
        if any(pattern.search(line) for pattern in PAGE_BREAK_PATTERNS)
    ]


def page_number_for(line_index: int, page_breaks: List[int]) -> int:
    """Return the 1-based page a line falls on."""
    page = 1
    for break_line in page_breaks:
        if line_index > break_line:
            page += 1
        else:
            break
    return page
