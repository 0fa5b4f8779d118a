"""
Total Arbitration Module for the Invoice Engine.

This module provides functionality for:
    - Extracting every money-shaped token from invoice text
    - Detecting labelled subtotal/tax lines and page breaks
    - Scoring candidates with seven independent strategies
    - Choosing the grand total and deciding whether to override
"""

from .candidates import (
    AmountCandidate,
    TaxSubtotal,
    extract_amount_candidates,
    detect_tax_and_subtotal,
    detect_page_breaks,
)
from .scorer import DocumentContext, ScoredCandidate, score_candidate
from .arbiter import (
    ArbitrationResult,
    find_best_total,
    arbitrate_totals,
    is_likely_grand_total,
    is_likely_subtotal,
)

__all__ = [
    'AmountCandidate',
    'TaxSubtotal',
    'extract_amount_candidates',
    'detect_tax_and_subtotal',
    'detect_page_breaks',
    'DocumentContext',
    'ScoredCandidate',
    'score_candidate',
    'ArbitrationResult',
    'find_best_total',
    'arbitrate_totals',
    'is_likely_grand_total',
    'is_likely_subtotal',
]
