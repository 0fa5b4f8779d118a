"""
Extraction Result Data Classes.

This module defines the data structures for invoice extraction results,
providing a standardized format for extracted fields. All money is held
as integer cents. Instances are frozen: a correction (for example an
arbitrated grand total) produces a new instance via
``dataclasses.replace``.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class LineItem:
    """
    One line item of an invoice.

    Attributes:
        description: Item description.
        quantity: Quantity (1.0 when implied).
        unit_price_cents: Unit price, when printed.
        total_cents: Line total.
        sku: Item code, for SKU-prefixed rows.
        category: Optional category label.
    """

    description: str
    quantity: float
    total_cents: int
    unit_price_cents: Optional[int] = None
    sku: Optional[str] = None
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'description': self.description,
            'quantity': self.quantity,
            'unit_price_cents': self.unit_price_cents,
            'total_cents': self.total_cents,
            'sku': self.sku,
            'category': self.category,
        }


@dataclass(frozen=True)
class InvoiceTotals:
    """Invoice money totals in cents; ``tax_rate`` is a percentage."""

    subtotal: Optional[int] = None
    tax: Optional[int] = None
    tax_rate: Optional[float] = None
    shipping: Optional[int] = None
    discount: Optional[int] = None
    total: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subtotal_cents': self.subtotal,
            'tax_cents': self.tax,
            'tax_rate': self.tax_rate,
            'shipping_cents': self.shipping,
            'discount_cents': self.discount,
            'total_cents': self.total,
        }


@dataclass(frozen=True)
class ExtractionResult:
    """
    Represents the result of invoice field extraction.

    Attributes:
        vendor: Vendor name as printed.
        vendor_key: Known vendor key (e.g. "sysco"), if detected.
        date: Invoice date in ISO format, when parseable.
        date_raw: Date token as printed.
        invoice_number: Invoice identifier.
        totals: Money totals.
        address: Address block, joined with ", ".
        line_items: Extracted line items.
        currency: ISO currency code.
        ambiguous: True when the extractor doubts its own result.
        notes: Human-readable notes explaining doubts.
        total_source: Where ``totals.total`` came from.

    Example:
        >>> result = ExtractionResult(vendor="ACME Supply Co",
        ...                           totals=InvoiceTotals(total=10850))
        >>> result.to_dict()["totals"]["total_cents"]
        10850
    """

    vendor: Optional[str] = None
    vendor_key: Optional[str] = None
    date: Optional[str] = None
    date_raw: Optional[str] = None
    invoice_number: Optional[str] = None
    totals: InvoiceTotals = field(default_factory=InvoiceTotals)
    address: Optional[str] = None
    line_items: Tuple[LineItem, ...] = ()
    currency: str = 'USD'
    ambiguous: bool = False
    notes: Tuple[str, ...] = ()
    total_source: Optional[str] = None

    @property
    def line_item_sum_cents(self) -> int:
        """Sum of line-item totals in cents."""
        return sum(item.total_cents for item in self.line_items)

    @property
    def missing_fields(self) -> List[str]:
        """
        Get list of key fields that were not extracted.

        Returns:
            List of missing field names.
        """
        fields = {
            'vendor': self.vendor,
            'date': self.date,
            'invoice_number': self.invoice_number,
            'total': self.totals.total,
            'line_items': self.line_items,
        }
        return [name for name, value in fields.items() if not value]

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary format.

        Returns:
            Dictionary representation of the extraction result.
        """
        return {
            'vendor': self.vendor,
            'vendor_key': self.vendor_key,
            'date': self.date,
            'date_raw': self.date_raw,
            'invoice_number': self.invoice_number,
            'totals': self.totals.to_dict(),
            'address': self.address,
            'line_items': [item.to_dict() for item in self.line_items],
            'currency': self.currency,
            'ambiguous': self.ambiguous,
            'notes': list(self.notes),
            'total_source': self.total_source,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        return (
            f"ExtractionResult("
            f"invoice={self.invoice_number}, "
            f"vendor={self.vendor}, "
            f"total={self.totals.total}, "
            f"items={len(self.line_items)})"
        )
