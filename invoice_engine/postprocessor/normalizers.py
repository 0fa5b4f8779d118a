"""
Data Normalizers Module.

This module provides normalization functions for:
    - Raw invoice text (line endings and whitespace)
    - Currency/amount values (to integer cents)
    - Date formats (to ISO)

Every later stage reads the ``NormalizedText`` produced here, so the
line indices used for scoring and tracing are stable for a given input.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from dateutil import parser as date_parser

from invoice_engine.config import get_config
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


_TRAILING_WS = re.compile(r'[ \t]+\n')
_BLANK_RUNS = re.compile(r'\n{3,}')
_AMOUNT_CLEAN = re.compile(r'[^\d.\-]')


@dataclass(frozen=True)
class NormalizedText:
    """
    Canonicalized invoice text plus its line-split view.

    Attributes:
        text: Normalized text.
        lines: Lines of ``text``; empty tuple for empty text.
    """

    text: str
    lines: Tuple[str, ...]

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.text


def normalize_text(raw: Optional[str]) -> NormalizedText:
    """
    Canonicalize line endings and whitespace.

    ``\\r\\n`` and lone ``\\r`` become ``\\n``, spaces and tabs before a
    newline are stripped, three or more consecutive newlines collapse to
    a single blank line, and the result is trimmed. Never fails.

    Args:
        raw: Raw text, possibly None.

    Returns:
        NormalizedText (empty text and zero lines for empty input).

    Example:
        >>> normalize_text("Total  \\r\\n\\r\\n\\r\\n$5.00").lines
        ('Total', '', '$5.00')
    """
    text = (raw or '').replace('\r\n', '\n').replace('\r', '\n')
    text = _TRAILING_WS.sub('\n', text)
    text = _BLANK_RUNS.sub('\n\n', text)
    text = text.strip()

    if not text:
        return NormalizedText(text='', lines=())
    return NormalizedText(text=text, lines=tuple(text.split('\n')))


def parse_amount_cents(amount_str: Optional[str]) -> Optional[int]:
    """
    Parse a money-shaped string into integer cents.

    Currency symbols, codes and thousands separators are removed. The
    value is ``round(float * 100)`` so no fractional cent survives.

    Args:
        amount_str: String such as "$1,234.56" or "USD 99.00".

    Returns:
        Integer cents, or None if the string holds no number.

    Example:
        >>> parse_amount_cents("$1,234.56")
        123456
    """
    if not amount_str:
        return None

    cleaned = _AMOUNT_CLEAN.sub('', amount_str.replace(',', ''))
    if not cleaned or cleaned in ('.', '-', '-.'):
        return None

    try:
        value = float(cleaned)
    except ValueError:
        logger.debug(f"Could not parse amount: {amount_str}")
        return None

    return int(round(value * 100))


# Month-first before day-first: the engine targets US invoices
EXPLICIT_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y-%m-%d",
    "%m-%d-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%d.%m.%Y",
)

_DATE_LABEL = re.compile(r'^(?:invoice\s+date|due\s+date|order\s+date|dated|date)\s*[:#]?\s*', re.IGNORECASE)
_ORDINAL = re.compile(r'(\d+)(?:st|nd|rd|th)\b', re.IGNORECASE)


class DateNormalizer:
    """
    Converts a raw invoice date token to ISO (or the configured format).

    Explicit formats are tried first, then python-dateutil. Years outside
    ``extraction.date.min_year``..``max_year`` are rejected, which drops
    phone numbers and zip codes that happen to look like dates.

    Example:
        >>> DateNormalizer().normalize("Date: March 3rd, 2024")
        '2024-03-03'
    """

    def __init__(self) -> None:
        self.output_format = get_config("extraction.date.output_format", "%Y-%m-%d")
        self.formats = tuple(get_config("extraction.date.input_formats", EXPLICIT_DATE_FORMATS))
        self.min_year = get_config("extraction.date.min_year", 1990)
        self.max_year = get_config("extraction.date.max_year", 2100)

    def normalize(self, date_str: Optional[str]) -> Optional[str]:
        """Return the formatted date, or None if the token is not a usable date."""
        if not date_str:
            return None

        cleaned = self.clean(date_str)
        parsed = self._parse(cleaned)

        if parsed is None or not self.min_year <= parsed.year <= self.max_year:
            logger.debug(f"Could not parse date: {date_str!r}")
            return None

        return parsed.strftime(self.output_format)

    @staticmethod
    def clean(date_str: str) -> str:
        """Strip a leading date label, ordinal suffixes and stray punctuation."""
        cleaned = _DATE_LABEL.sub('', ' '.join(date_str.split()))
        cleaned = _ORDINAL.sub(r'\1', cleaned)
        return cleaned.strip().rstrip(',.')

    def _parse(self, cleaned: str) -> Optional[datetime]:
        for fmt in self.formats:
            try:
                return datetime.strptime(cleaned, fmt)
            except ValueError:
                continue

        for dayfirst in (False, True):
            try:
                return date_parser.parse(cleaned, dayfirst=dayfirst)
            except (ValueError, OverflowError):
                continue
        return None
