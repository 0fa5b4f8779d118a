"""
Data Validators Module.

This module checks the arithmetic consistency of invoice totals. A
mismatch lowers trust in a result but never raises: callers read the
``valid`` flag and ``reason`` of the returned ``MathValidation``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


# Rounding tolerance when comparing total against subtotal + tax
MATH_TOLERANCE_CENTS = 10

# A total up to this share above subtotal + tax is taken to include fees
FEES_ALLOWANCE_RATIO = 1.10


@dataclass(frozen=True)
class MathValidation:
    """
    Outcome of checking ``total == subtotal + tax``.

    Attributes:
        valid: True/False, or None when no subtotal was available.
        reason: Short machine-readable reason.
        expected_cents: subtotal + tax, when computable.
        actual_cents: The total that was checked.
        difference_cents: actual - expected, when computable.
    """

    valid: Optional[bool]
    reason: str
    expected_cents: Optional[int] = None
    actual_cents: Optional[int] = None
    difference_cents: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'reason': self.reason,
            'expected_cents': self.expected_cents,
            'actual_cents': self.actual_cents,
            'difference_cents': self.difference_cents,
        }


def validate_total_math(
    total_cents: Optional[int],
    subtotal_cents: Optional[int],
    tax_cents: Optional[int]
) -> MathValidation:
    """
    Validate that a total equals subtotal plus tax.

    Rules:
        - no subtotal: ``valid`` is None (nothing to check against)
        - within 10 cents of subtotal + tax: valid, "math_matches"
        - above subtotal + tax by at most 10%: valid,
          "total_slightly_higher_likely_fees"
        - anything else: invalid, "math_mismatch"

    Args:
        total_cents: Candidate grand total.
        subtotal_cents: Detected subtotal.
        tax_cents: Detected tax (missing tax counts as zero).

    Returns:
        MathValidation describing the outcome.

    Example:
        >>> validate_total_math(10850, 10000, 850).valid
        True
    """
    if not subtotal_cents:
        return MathValidation(valid=None, reason='no_subtotal_found', actual_cents=total_cents)

    expected = subtotal_cents + (tax_cents or 0)

    if total_cents is None:
        return MathValidation(valid=None, reason='no_total_found', expected_cents=expected)

    difference = total_cents - expected

    if abs(difference) <= MATH_TOLERANCE_CENTS:
        reason, valid = 'math_matches', True
    elif total_cents > expected and total_cents <= expected * FEES_ALLOWANCE_RATIO:
        reason, valid = 'total_slightly_higher_likely_fees', True
    else:
        reason, valid = 'math_mismatch', False

    return MathValidation(
        valid=valid,
        reason=reason,
        expected_cents=expected,
        actual_cents=total_cents,
        difference_cents=difference,
    )
