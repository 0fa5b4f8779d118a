"""
Vendor Detection Module.

Identifies well-known vendors from invoice text using a weighted pattern
table. The detected vendor key enables vendor-tuned total labels during
arbitration.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


GENERIC_VENDOR_KEY = 'generic'
MIN_VENDOR_CONFIDENCE = 50
MAX_VENDOR_CONFIDENCE = 99


@dataclass(frozen=True)
class VendorPattern:
    """A weighted vendor signal; ``min_matches`` > 1 counts occurrences."""

    regex: "re.Pattern"
    score: int
    min_matches: int = 1


@dataclass(frozen=True)
class VendorMatch:
    """Result of vendor detection."""

    vendor_key: str
    vendor_name: str
    confidence: int
    matched_patterns: int = 0

    @property
    def is_known(self) -> bool:
        return self.vendor_key != GENERIC_VENDOR_KEY


UNKNOWN_VENDOR = VendorMatch(vendor_key=GENERIC_VENDOR_KEY, vendor_name='Unknown Vendor', confidence=0)


VENDOR_PATTERNS: Dict[str, Tuple[str, Tuple[VendorPattern, ...]]] = {
    'cintas': ('Cintas Corporation', (
        VendorPattern(re.compile(r'CINTAS\s+CORPORATION', re.IGNORECASE), 95),
        VendorPattern(re.compile(r'CINTAS\s+NO\.\s*\d', re.IGNORECASE), 90),
        VendorPattern(re.compile(r'X\d{5}'), 70, min_matches=3),
        VendorPattern(re.compile(r'UNIFORM\s+ADVANTAGE', re.IGNORECASE), 85),
        VendorPattern(re.compile(r'EMP#/LOCK#.*MATERIAL', re.IGNORECASE), 90),
        VendorPattern(re.compile(r'SUBTOTAL\s*-\s*[\d,.]+'), 60, min_matches=2),
        VendorPattern(re.compile(r'TOTAL\s+USD', re.IGNORECASE), 80),
    )),
    'sysco': ('Sysco Corporation', (
        VendorPattern(re.compile(r'SYSCO\s+CORPORATION', re.IGNORECASE), 95),
        VendorPattern(re.compile(r'SYSCO\s+FOOD\s+SERVICES', re.IGNORECASE), 95),
        VendorPattern(re.compile(r'SYSCO', re.IGNORECASE), 70),
        VendorPattern(re.compile(r'www\.sysco\.com', re.IGNORECASE), 90),
    )),
    'usfoods': ('US Foods', (
        VendorPattern(re.compile(r'US\s+FOODS', re.IGNORECASE), 95),
        VendorPattern(re.compile(r'USFOODS', re.IGNORECASE), 90),
        VendorPattern(re.compile(r'www\.usfoods\.com', re.IGNORECASE), 90),
    )),
    'aramark': ('Aramark', (
        VendorPattern(re.compile(r'ARAMARK', re.IGNORECASE), 95),
        VendorPattern(re.compile(r'www\.aramark\.com', re.IGNORECASE), 90),
    )),
    'unifirst': ('UniFirst', (
        VendorPattern(re.compile(r'UNIFIRST', re.IGNORECASE), 95),
        VendorPattern(re.compile(r'UNI-?FIRST', re.IGNORECASE), 90),
    )),
}


def detect_vendor(text: Optional[str]) -> VendorMatch:
    """
    Detect the vendor of an invoice.

    Each vendor's confidence is the average score of its matched patterns
    plus 5 per additional matched pattern, capped at 99. The best vendor
    is returned when its confidence reaches 50.

    Args:
        text: Normalized invoice text.

    Returns:
        VendorMatch; ``UNKNOWN_VENDOR`` when nothing qualifies.

    Example:
        >>> detect_vendor("SYSCO FOOD SERVICES OF CHICAGO").vendor_key
        'sysco'
    """
    if not text:
        return UNKNOWN_VENDOR

    results: List[VendorMatch] = []

    for vendor_key, (vendor_name, patterns) in VENDOR_PATTERNS.items():
        total_score = 0
        matched = 0

        for pattern in patterns:
            if len(pattern.regex.findall(text)) >= pattern.min_matches:
                total_score += pattern.score
                matched += 1

        if matched:
            confidence = min(MAX_VENDOR_CONFIDENCE, total_score / matched + (matched - 1) * 5)
            results.append(VendorMatch(
                vendor_key=vendor_key,
                vendor_name=vendor_name,
                confidence=int(round(confidence)),
                matched_patterns=matched,
            ))

    # Stable sort keeps table order on ties
    results.sort(key=lambda r: -r.confidence)

    if results and results[0].confidence >= MIN_VENDOR_CONFIDENCE:
        logger.debug(f"Detected vendor {results[0].vendor_key} ({results[0].confidence}%)")
        return results[0]

    return UNKNOWN_VENDOR


def get_supported_vendors() -> List[Dict[str, str]]:
    """List the vendors the detector knows about."""
    return [{'key': key, 'name': name} for key, (name, _) in VENDOR_PATTERNS.items()]
