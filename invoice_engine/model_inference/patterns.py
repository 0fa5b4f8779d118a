"""
Extraction Pattern Tables.

Every pattern set used by the field extractor lives here as ordered data.
Priority is the position in the table, so each table can be tested on its
own and reordered without touching the extraction logic.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from invoice_engine.model_inference.extraction_result import LineItem
from invoice_engine.postprocessor.normalizers import parse_amount_cents


MONTH = r'(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?'
MONEY = r'\$?\s*(\d[\d,]*(?:\.\d+)?)'
DECIMAL = r'\$?(\d[\d,]*\.\d{2})'


# =============================================================================
# VENDOR
# =============================================================================

VENDOR_LABEL_PATTERNS: Tuple["re.Pattern", ...] = (
    re.compile(r'^\s*(?:from|vendor|sold\s*by|supplier)\s*:?\s+([A-Za-z0-9 &,.\'-]+)',
               re.IGNORECASE | re.MULTILINE),
    re.compile(r'^\s*(?:company|business)(?:\s*name)?\s*:\s*([A-Za-z0-9 &,.\'-]+)',
               re.IGNORECASE | re.MULTILINE),
)
VENDOR_SKIP_LINE = re.compile(r'invoice|receipt|order|date|page', re.IGNORECASE)
COMPANY_SUFFIX = re.compile(
    r'\b(inc|llc|corp|corporation|ltd|company|co|restaurant|foods?|supply|services?)\b\.?',
    re.IGNORECASE,
)
VENDOR_HEAD_LINES = 5
VENDOR_MAX_LINE_LENGTH = 50


# =============================================================================
# DATE
# =============================================================================

DATE_LABEL = re.compile(r'^\s*(?:invoice\s*date|date|dated)\s*[:\s]\s*(.+)$',
                        re.IGNORECASE | re.MULTILINE)

DATE_PATTERNS: Tuple["re.Pattern", ...] = (
    # YYYY-MM-DD
    re.compile(r'\b\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}\b'),
    # MM/DD/YYYY, DD-MM-YYYY, MM.DD.YY
    re.compile(r'\b\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}\b'),
    # Month DD, YYYY
    re.compile(rf'\b{MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}\b', re.IGNORECASE),
    # DD Month YYYY
    re.compile(rf'\b\d{{1,2}}(?:st|nd|rd|th)?\s+{MONTH}\s+\d{{4}}\b', re.IGNORECASE),
)


# =============================================================================
# INVOICE NUMBER
# =============================================================================

INVOICE_NUMBER_PATTERNS: Tuple[Tuple[str, "re.Pattern"], ...] = (
    ('invoice_hash', re.compile(r'invoice\s*#[\s:\-]*([A-Z0-9][\w\-]{2,29})', re.IGNORECASE)),
    ('invoice_no', re.compile(
        r'invoice\s*(?:no\b\.?|number\b)[\s:\-]*([A-Z0-9][\w\-]{2,29})', re.IGNORECASE)),
    ('inv', re.compile(r'\binv\b[\s#:\-]+([A-Z0-9][\w\-]{2,29})', re.IGNORECASE)),
    ('document_ref', re.compile(
        r'\b(?:receipt|order|po|ref)\s*(?:#|no\b\.?)[\s:\-]*([A-Z0-9][\w\-]{2,29})', re.IGNORECASE)),
    ('generic_code', re.compile(r'(?:#|\bno\.)[\s:]*([A-Z]{2,4}-?\d{4,}[\w\-]*)', re.IGNORECASE)),
)
INVOICE_NUMBER_MIN_LENGTH = 3
INVOICE_NUMBER_MAX_LENGTH = 30


# =============================================================================
# CURRENCY
# =============================================================================

CURRENCY_PATTERNS: Tuple[Tuple[str, "re.Pattern"], ...] = (
    ('EUR', re.compile(r'€|\bEUR\b', re.IGNORECASE)),
    ('GBP', re.compile(r'£|\bGBP\b', re.IGNORECASE)),
    ('CAD', re.compile(r'\bCAD\b|\bC\$', re.IGNORECASE)),
    ('USD', re.compile(r'\$|\bUSD\b', re.IGNORECASE)),
)
DEFAULT_CURRENCY = 'USD'


# =============================================================================
# TOTALS
# =============================================================================

# Per field, patterns are tried in order; the first pattern with any match
# wins and its last match is used.
TOTALS_PATTERNS: Dict[str, Tuple["re.Pattern", ...]] = {
    'total': (
        # "Sub Total" and "Sub-Total" are subtotals
        re.compile(
            rf'(?<!sub)(?<!sub\s)(?<!sub-)\b(?:grand\s*)?total\b(?:\s*(?:due|amount|usd))?[ \t:]*{MONEY}',
            re.IGNORECASE,
        ),
        re.compile(rf'\b(?:amount|balance)\s*due\b[ \t:]*{MONEY}', re.IGNORECASE),
    ),
    'subtotal': (
        re.compile(rf'\bsub[ \t\-]*total\b[ \t:]*{MONEY}', re.IGNORECASE),
        re.compile(rf'\b(?:net\s*total|merchandise(?:\s*total)?)\b[ \t:]*{MONEY}', re.IGNORECASE),
    ),
    'tax': (
        # An optional "(8.5%)" or "8.5%" rate may sit between label and amount
        re.compile(
            rf'\b(?:sales\s*tax|tax|vat|gst|hst)\b(?:[ \t]*\([^)\n]*\))?'
            rf'(?:[ \t]*\d+(?:\.\d+)?[ \t]*%)?[ \t:]*{MONEY}(?![\d.]*\s*%)',
            re.IGNORECASE,
        ),
    ),
    'shipping': (
        re.compile(rf'\b(?:shipping|freight|delivery)\b[ \t:]*{MONEY}', re.IGNORECASE),
    ),
    'discount': (
        re.compile(rf'\b(?:discount|savings)\b[ \t:]*[\-(]?{MONEY}', re.IGNORECASE),
    ),
}

TAX_RATE_PATTERNS: Tuple["re.Pattern", ...] = (
    re.compile(r'(\d+(?:\.\d+)?)\s*%\s*\)?\s*(?:tax|vat|gst)', re.IGNORECASE),
    re.compile(r'(?:tax|vat|gst)\s*\(?\s*(\d+(?:\.\d+)?)\s*%', re.IGNORECASE),
)


# =============================================================================
# ADDRESS
# =============================================================================

ADDRESS_LABEL = re.compile(r'^\s*(?:ship\s*to|bill\s*to|address)\b\s*:?\s*(.*)$', re.IGNORECASE)
STREET_LINE = re.compile(
    r'\b\d+[ \t]+[A-Za-z][A-Za-z .]*?\b(?:street|st|avenue|ave|road|rd|blvd|boulevard|lane|ln'
    r'|drive|dr|way|court|ct|suite|ste)\b\.?[^\n]*',
    re.IGNORECASE,
)
CITY_STATE_ZIP = re.compile(r'([A-Za-z][A-Za-z .]*?),?[ \t]+([A-Z]{2})[ \t]+(\d{5}(?:-\d{4})?)\b')
ADDRESS_BLOCK_LINES = 3
ADDRESS_MAX_LENGTH = 200


# =============================================================================
# LINE ITEMS
# =============================================================================

ITEM_HEADER_LINE = re.compile(r'^(qty|quantity|description|item|price|unit|total|amount|sku)\b',
                              re.IGNORECASE)
ITEM_SEPARATOR_LINE = re.compile(r'^[\-=_\s]+$')
ITEM_SUMMARY_LINE = re.compile(
    r'\b(sub\s*-?\s*total|total|tax|balance|due|shipping|discount)\b', re.IGNORECASE
)
ITEM_SUMMARY_DESCRIPTION = re.compile(r'^(sub\s*-?\s*)?total|^tax|^amount|^balance|^due|^shipping',
                                      re.IGNORECASE)
ITEM_MIN_DESCRIPTION = 3


def _cents(value: str) -> int:
    return parse_amount_cents(value) or 0


def _quantity(value: str) -> float:
    return float(value) if value else 1.0


@dataclass(frozen=True)
class TableRowPattern:
    """A named table-row layout and how to turn its match into a LineItem."""

    name: str
    regex: "re.Pattern"
    build: Callable[["re.Match"], LineItem]

    def match(self, line: str) -> Optional[LineItem]:
        found = self.regex.match(line)
        return self.build(found) if found else None


TABLE_ROW_PATTERNS: Tuple[TableRowPattern, ...] = (
    # SKU DESCRIPTION QTY UNIT TOTAL (the SKU holds at least one digit)
    TableRowPattern(
        name='sku_desc_qty_unit_total',
        regex=re.compile(
            rf'^(?=[A-Z0-9\-]*\d)([A-Z0-9\-]{{3,15}})\s+(.+?)\s+(\d+(?:\.\d+)?)\s+{DECIMAL}\s+{DECIMAL}$'
        ),
        build=lambda m: LineItem(
            sku=m.group(1),
            description=m.group(2).strip(),
            quantity=_quantity(m.group(3)),
            unit_price_cents=_cents(m.group(4)),
            total_cents=_cents(m.group(5)),
        ),
    ),
    # DESCRIPTION  QTY UNIT TOTAL (two or more spaces before QTY)
    TableRowPattern(
        name='desc_qty_unit_total',
        regex=re.compile(rf'^([A-Za-z].*?)\s{{2,}}(\d+(?:\.\d+)?)\s+{DECIMAL}\s+{DECIMAL}$'),
        build=lambda m: LineItem(
            description=m.group(1).strip(),
            quantity=_quantity(m.group(2)),
            unit_price_cents=_cents(m.group(3)),
            total_cents=_cents(m.group(4)),
        ),
    ),
    # DESCRIPTION QTY x UNIT TOTAL
    TableRowPattern(
        name='desc_qty_x_unit_total',
        regex=re.compile(rf'^([A-Za-z].*?)\s+(\d+(?:\.\d+)?)\s*[xX@]\s*{DECIMAL}\s+{DECIMAL}$'),
        build=lambda m: LineItem(
            description=m.group(1).strip(),
            quantity=_quantity(m.group(2)),
            unit_price_cents=_cents(m.group(3)),
            total_cents=_cents(m.group(4)),
        ),
    ),
    # QTY DESCRIPTION UNIT TOTAL
    TableRowPattern(
        name='qty_desc_unit_total',
        regex=re.compile(rf'^(\d+(?:\.\d+)?)\s+(.+?)\s+{DECIMAL}\s+{DECIMAL}$'),
        build=lambda m: LineItem(
            description=m.group(2).strip(),
            quantity=_quantity(m.group(1)),
            unit_price_cents=_cents(m.group(3)),
            total_cents=_cents(m.group(4)),
        ),
    ),
    # DESCRIPTION  QTY PRICE
    TableRowPattern(
        name='desc_qty_price',
        regex=re.compile(rf'^([A-Za-z].*?)\s{{2,}}(\d+(?:\.\d+)?)\s+{DECIMAL}$'),
        build=lambda m: LineItem(
            description=m.group(1).strip(),
            quantity=_quantity(m.group(2)),
            total_cents=_cents(m.group(3)),
        ),
    ),
)

PRICE_ANCHOR = re.compile(r'\$?(\d[\d,]*\.\d{2})\s*$')

# The unit price must follow "@" or "$" so digits inside the description stay put
QTY_DESC_PRICE = re.compile(r'^(\d+(?:\.\d+)?)\s*[xX]?\s+(.+?)\s+(?:@\s*\$?|\$)(\d[\d,]*(?:\.\d+)?)')
