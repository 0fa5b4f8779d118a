"""
Transcript Scoring.

Ranks recognition transcripts by how much they look like an invoice.
The engine's own confidence only counts for part of the score, because a
confident transcript of the wrong page region is worth less than a less
confident one that contains totals and dates.
"""

import re

INVOICE_KEYWORDS = (
    'invoice', 'total', 'subtotal', 'tax', 'amount', 'due', 'qty', 'quantity',
    'price', 'unit', 'description', 'item', 'date', 'bill', 'payment',
    'ship', 'address', 'po', 'order', 'receipt', 'balance', 'net', 'gross',
)

PRICE_PATTERN = re.compile(r'\$?\d{1,3}(?:,\d{3})*(?:\.\d{2})?')
DATE_PATTERN = re.compile(r'\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}')
REPETITION_ARTIFACT = re.compile(r'(.)\1{4,}')
NON_ALNUM = re.compile(r'[^a-zA-Z0-9]')

MIN_SCORABLE_LENGTH = 10
CONFIDENCE_WEIGHT = 0.3
KEYWORD_CAP = 0.25
PRICE_CAP = 0.2
DATE_CAP = 0.1
GIBBERISH_RATIO = 0.4
GIBBERISH_PENALTY = 0.2
SHORT_TEXT_LENGTH = 100
SHORT_TEXT_PENALTY = 0.1
LONG_TEXT_LENGTH = 500
LONG_TEXT_BONUS = 0.05
ARTIFACT_PENALTY = 0.05


def score_transcript(text: str, confidence: float) -> float:
    """
    Score a transcript in 0..1.

    Args:
        text: Recognized text.
        confidence: Engine mean confidence in 0..1.

    Returns:
        Clamped score. Text shorter than 10 characters scores 0.

    Example:
        >>> score_transcript("", 0.9)
        0.0
    """
    if not text or len(text) < MIN_SCORABLE_LENGTH:
        return 0.0

    score = confidence * CONFIDENCE_WEIGHT

    # Keywords are counted once each, as substrings
    lower_text = text.lower()
    keyword_count = sum(1 for keyword in INVOICE_KEYWORDS if keyword in lower_text)
    score += min(keyword_count / 8, KEYWORD_CAP)

    score += min(len(PRICE_PATTERN.findall(text)) / 10, PRICE_CAP)
    score += min(len(DATE_PATTERN.findall(text)) / 3, DATE_CAP)

    alnum_ratio = len(NON_ALNUM.sub('', text)) / len(text)
    if alnum_ratio < GIBBERISH_RATIO:
        score -= GIBBERISH_PENALTY

    if len(text) < SHORT_TEXT_LENGTH:
        score -= SHORT_TEXT_PENALTY
    elif len(text) > LONG_TEXT_LENGTH:
        score += LONG_TEXT_BONUS

    score -= len(REPETITION_ARTIFACT.findall(text)) * ARTIFACT_PENALTY

    return max(0.0, min(1.0, score))
