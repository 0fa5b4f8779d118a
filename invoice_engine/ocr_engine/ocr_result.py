"""
Recognition Result Data Classes.

This module defines the records produced by the recognition layer:
the raw output of one engine call, the bookkeeping for one attempt
(variant x engine x page segmentation mode) and the outcome of a whole
recognition run.

Classes:
    RecognitionOutput: Text and mean confidence from a single engine call
    RecognitionAttempt: One scored (or failed) attempt
    RecognitionOutcome: Best transcript plus every attempt made
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class RecognitionOutput:
    """
    Output of a single engine call.

    Attributes:
        text: Recognized text, lines separated by newlines.
        confidence: Mean word confidence in 0..1.
        word_count: Number of words the engine reported.
    """
    text: str
    confidence: float
    word_count: int = 0


@dataclass(frozen=True)
class RecognitionAttempt:
    """
    One recognition attempt.

    A failed attempt keeps ``score`` at 0 and carries the error message.

    Example:
        >>> attempt = RecognitionAttempt(
        ...     variant_name="standard", engine="tesseract",
        ...     psm=6, confidence=0.91, score=0.88, text_length=812
        ... )
    """
    variant_name: str
    engine: str
    psm: Optional[int] = None
    psm_name: Optional[str] = None
    confidence: float = 0.0
    score: float = 0.0
    text_length: int = 0
    notes: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'variant_name': self.variant_name,
            'engine': self.engine,
            'psm': self.psm,
            'psm_name': self.psm_name,
            'confidence': round(self.confidence, 4),
            'score': round(self.score, 4),
            'text_length': self.text_length,
            'notes': list(self.notes),
            'error': self.error,
        }


@dataclass(frozen=True)
class RecognitionOutcome:
    """
    Result of a full recognition run over all variants.

    Attributes:
        text: Best transcript (empty when every attempt failed).
        confidence: Engine confidence of the best attempt.
        score: Transcript score of the best attempt.
        best_attempt: The attempt that produced ``text``, if any.
        attempts: Every attempt in the order it was made.
        early_exit: True when a transcript cleared the early-exit score.
        processing_time: Wall time of the run in seconds.
    """
    text: str = ''
    confidence: float = 0.0
    score: float = 0.0
    best_attempt: Optional[RecognitionAttempt] = None
    attempts: Tuple[RecognitionAttempt, ...] = field(default_factory=tuple)
    early_exit: bool = False
    processing_time: float = 0.0

    @property
    def best_variant(self) -> Optional[str]:
        return self.best_attempt.variant_name if self.best_attempt else None

    @property
    def best_engine(self) -> Optional[str]:
        return self.best_attempt.engine if self.best_attempt else None

    @property
    def failed_attempts(self) -> int:
        return sum(1 for attempt in self.attempts if not attempt.succeeded)

    def __repr__(self) -> str:
        return (
            f"RecognitionOutcome(chars={len(self.text)}, "
            f"score={self.score:.2f}, "
            f"attempts={len(self.attempts)}, "
            f"best={self.best_variant}/{self.best_engine})"
        )
