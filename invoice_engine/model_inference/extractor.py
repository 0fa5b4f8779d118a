"""
Invoice Field Extractor Module.

This module provides the InvoiceFieldExtractor class that parses
normalized invoice text into header fields, totals and line items.

Approach:
    Each field is found by walking an ordered pattern table (see
    ``patterns.py``) and taking the first strategy that succeeds. Totals
    take the last match of their pattern, since invoices restate running
    figures before the final one. Doubt is reported through the
    ``ambiguous`` flag and notes, never by raising.

The extractor is independent of total arbitration: its total is the
"parser total" that arbitration later confirms or overrides.
"""

import re
import time
from typing import List, Optional, Tuple, Union

from invoice_engine.config import get_config
from invoice_engine.model_inference import patterns as P
from invoice_engine.model_inference.extraction_result import (
    ExtractionResult,
    InvoiceTotals,
    LineItem,
)
from invoice_engine.model_inference.vendor_detector import detect_vendor
from invoice_engine.postprocessor.normalizers import (
    DateNormalizer,
    NormalizedText,
    normalize_text,
    parse_amount_cents,
)
from invoice_engine.utils.exceptions import ExtractionError
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


MIN_TEXT_LENGTH = 20


class InvoiceFieldExtractor:
    """
    Pattern-table invoice field extractor.

    Attributes:
        date_normalizer: Converts raw date tokens to ISO.
        ambiguity_ratio: Allowed relative gap between the line-item sum
            and the total before the result is flagged ambiguous.

    Example:
        >>> extractor = InvoiceFieldExtractor()
        >>> result = extractor.extract(text)
        >>> print(result.vendor, result.totals.total)
    """

    def __init__(self) -> None:
        """Initialize the extractor with configuration."""
        self.date_normalizer = DateNormalizer()
        self.ambiguity_ratio = get_config("extraction.ambiguity_ratio", 0.10)
        self.min_text_length = get_config("pipeline.min_text_length", MIN_TEXT_LENGTH)

    def extract(
        self,
        text: Union[str, NormalizedText],
        vendor_key: Optional[str] = None
    ) -> ExtractionResult:
        """
        Extract invoice fields from text.

        Args:
            text: Raw or normalized invoice text.
            vendor_key: Known vendor key. Detected from the text if None.

        Returns:
            ExtractionResult. Text shorter than the minimum length yields
            an empty result with an explanatory note.

        Raises:
            ExtractionError: If ``text`` is neither a string nor NormalizedText.
        """
        start_time = time.time()
        if not isinstance(text, (str, NormalizedText)):
            raise ExtractionError("input", f"expected text, got {type(text).__name__}")

        normalized = text if isinstance(text, NormalizedText) else normalize_text(text)

        if len(normalized.text) < self.min_text_length:
            logger.info("Text too short for extraction")
            return ExtractionResult(notes=('Text too short for extraction',))

        full_text = normalized.text
        lines = [line.strip() for line in normalized.lines if line.strip()]
        notes: List[str] = []

        if vendor_key is None:
            match = detect_vendor(full_text)
            vendor_key = match.vendor_key if match.is_known else None

        vendor = self.extract_vendor(lines, full_text)
        date_raw = self.extract_date(full_text)
        date = self.date_normalizer.normalize(date_raw) if date_raw else None
        if date_raw and not date:
            notes.append(f"Unparseable date: {date_raw}")

        invoice_number = self.extract_invoice_number(full_text)
        currency = self.extract_currency(full_text)
        totals = self.extract_totals(full_text)
        address = self.extract_address(lines, full_text)
        line_items, strategy, ambiguous = self.extract_line_items(lines)
        notes.append(f"Line items: {len(line_items)}" + (f" via {strategy}" if strategy else ""))

        if line_items and totals.total:
            item_sum = sum(item.total_cents for item in line_items)
            if abs(item_sum - totals.total) > totals.total * self.ambiguity_ratio:
                notes.append(
                    f"Warning: Line items sum ({item_sum}) differs from total ({totals.total})"
                )
                ambiguous = True

        result = ExtractionResult(
            vendor=vendor,
            vendor_key=vendor_key,
            date=date,
            date_raw=date_raw,
            invoice_number=invoice_number,
            totals=totals,
            address=address,
            line_items=tuple(line_items),
            currency=currency,
            ambiguous=ambiguous,
            notes=tuple(notes),
            total_source='parser' if totals.total is not None else None,
        )

        logger.info(
            f"Extraction complete: vendor={vendor!r}, total={totals.total}, "
            f"items={len(line_items)}, ambiguous={ambiguous}, "
            f"time: {time.time() - start_time:.3f}s"
        )
        return result

    # -------------------------------------------------------------------------
    # Header fields
    # -------------------------------------------------------------------------

    def extract_vendor(self, lines: List[str], text: str) -> Optional[str]:
        """
        Find the vendor name.

        Explicit labels win; otherwise the first few lines are scanned for
        a company suffix, then for the first substantial alphabetic line.
        """
        for pattern in P.VENDOR_LABEL_PATTERNS:
            match = pattern.search(text)
            if match and match.group(1).strip():
                return self._clean_vendor_name(match.group(1))

        for line in lines[:P.VENDOR_HEAD_LINES]:
            if line[0].isdigit():
                continue
            if P.VENDOR_SKIP_LINE.search(line):
                continue
            if len(line) > P.VENDOR_MAX_LINE_LENGTH:
                continue

            if P.COMPANY_SUFFIX.search(line):
                return self._clean_vendor_name(line)
            if len(line) >= 5 and line[0].isalpha():
                return self._clean_vendor_name(line)

        return None

    @staticmethod
    def _clean_vendor_name(name: str) -> str:
        name = re.sub(r"[^\w\s&,.'\-]", '', name)
        return ' '.join(name.split())[:100]

    def extract_date(self, text: str) -> Optional[str]:
        """
        Find the raw invoice date token.

        A labelled "date:" line is searched first; otherwise the earliest
        date-shaped token anywhere in the text is used.
        """
        labelled = P.DATE_LABEL.search(text)
        if labelled:
            for pattern in P.DATE_PATTERNS:
                match = pattern.search(labelled.group(1))
                if match:
                    return match.group(0)

        earliest = None
        for pattern in P.DATE_PATTERNS:
            match = pattern.search(text)
            if match and (earliest is None or match.start() < earliest.start()):
                earliest = match

        return earliest.group(0) if earliest else None

    def extract_invoice_number(self, text: str) -> Optional[str]:
        """Walk the invoice-number table; the first valid code wins."""
        for name, pattern in P.INVOICE_NUMBER_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            value = match.group(1).strip()
            if P.INVOICE_NUMBER_MIN_LENGTH <= len(value) <= P.INVOICE_NUMBER_MAX_LENGTH:
                logger.debug(f"Invoice number via {name}: {value}")
                return value
        return None

    def extract_currency(self, text: str) -> str:
        for code, pattern in P.CURRENCY_PATTERNS:
            if pattern.search(text):
                return code
        return P.DEFAULT_CURRENCY

    def extract_totals(self, text: str) -> InvoiceTotals:
        """
        Re-derive subtotal, tax, shipping, discount and total.

        For each field the first pattern with any match is used, and the
        last of its matches wins.
        """
        values = {}
        for field_name, field_patterns in P.TOTALS_PATTERNS.items():
            values[field_name] = None
            for pattern in field_patterns:
                matches = list(pattern.finditer(text))
                if matches:
                    values[field_name] = parse_amount_cents(matches[-1].group(1))
                    break

        tax_rate = None
        for pattern in P.TAX_RATE_PATTERNS:
            match = pattern.search(text)
            if match:
                tax_rate = float(match.group(1))
                break

        return InvoiceTotals(tax_rate=tax_rate, **values)

    def extract_address(self, lines: List[str], text: str) -> Optional[str]:
        """
        Find an address block.

        Tries a "ship to / bill to / address" block, then a street line,
        then a "City, ST 12345" line.
        """
        for index, line in enumerate(lines):
            match = P.ADDRESS_LABEL.match(line)
            if not match:
                continue

            parts = [match.group(1).strip()] if match.group(1).strip() else []
            for follow in lines[index + 1:index + 1 + P.ADDRESS_BLOCK_LINES]:
                if P.PRICE_ANCHOR.search(follow) or P.ADDRESS_LABEL.match(follow):
                    break
                parts.append(follow)
            if parts:
                return ', '.join(parts)[:P.ADDRESS_MAX_LENGTH]

        street = P.STREET_LINE.search(text)
        if street:
            return street.group(0).strip()[:P.ADDRESS_MAX_LENGTH]

        city = P.CITY_STATE_ZIP.search(text)
        if city:
            return f"{city.group(1).strip()}, {city.group(2)} {city.group(3)}"

        return None

    # -------------------------------------------------------------------------
    # Line items
    # -------------------------------------------------------------------------

    def extract_line_items(self, lines: List[str]) -> Tuple[List[LineItem], Optional[str], bool]:
        """
        Extract line items with three ordered strategies.

        The first strategy that yields any items is used; strategies are
        never combined. Price-anchored items are the least reliable and
        mark the result ambiguous.

        Returns:
            Tuple of (items, strategy name or None, ambiguous flag).
        """
        items = self._table_items(lines)
        if items:
            return items, 'table', False

        items = self._price_anchored_items(lines)
        if items:
            return items, 'price_anchored', True

        items = self._qty_desc_price_items(lines)
        if items:
            return items, 'qty_desc_price', False

        return [], None, False

    def _table_items(self, lines: List[str]) -> List[LineItem]:
        items = []
        for line in lines:
            if P.ITEM_HEADER_LINE.match(line) or P.ITEM_SEPARATOR_LINE.match(line):
                continue
            if P.ITEM_SUMMARY_LINE.search(line):
                continue

            for row_pattern in P.TABLE_ROW_PATTERNS:
                item = row_pattern.match(line)
                if item is None:
                    continue
                if (len(item.description) >= P.ITEM_MIN_DESCRIPTION
                        and not P.ITEM_SUMMARY_DESCRIPTION.match(item.description)):
                    items.append(item)
                break
        return items

    def _price_anchored_items(self, lines: List[str]) -> List[LineItem]:
        items = []
        for line in lines:
            match = P.PRICE_ANCHOR.search(line)
            if not match:
                continue

            description = line[:match.start()].strip()
            if P.ITEM_SUMMARY_LINE.search(description) or P.ITEM_SUMMARY_DESCRIPTION.match(description):
                continue
            if len(description) < P.ITEM_MIN_DESCRIPTION:
                continue

            items.append(LineItem(
                description=description,
                quantity=1.0,
                total_cents=parse_amount_cents(match.group(1)) or 0,
            ))
        return items

    def _qty_desc_price_items(self, lines: List[str]) -> List[LineItem]:
        items = []
        for line in lines:
            match = P.QTY_DESC_PRICE.match(line)
            if not match:
                continue

            quantity = float(match.group(1))
            description = match.group(2).strip()
            unit_price = parse_amount_cents(match.group(3))
            if len(description) < P.ITEM_MIN_DESCRIPTION or unit_price is None:
                continue

            items.append(LineItem(
                description=description,
                quantity=quantity,
                unit_price_cents=unit_price,
                total_cents=int(round(unit_price * quantity)),
            ))
        return items
