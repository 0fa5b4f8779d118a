"""
Field Extraction Module for the Invoice Engine.

This module provides pattern-table extraction of invoice fields:

Features:
    - Vendor, date, invoice number, currency and address extraction
    - Totals re-derivation (subtotal, tax, tax rate, shipping, discount)
    - Layered line-item strategies with ambiguity flagging
    - Weighted vendor detection for vendor-tuned arbitration
"""

from .extraction_result import ExtractionResult, InvoiceTotals, LineItem
from .extractor import InvoiceFieldExtractor
from .vendor_detector import VendorMatch, detect_vendor

__all__ = [
    'ExtractionResult',
    'InvoiceTotals',
    'LineItem',
    'InvoiceFieldExtractor',
    'VendorMatch',
    'detect_vendor',
]
