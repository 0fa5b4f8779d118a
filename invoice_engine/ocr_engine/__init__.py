"""
Recognition Module for the Invoice Engine.

This module turns image variants into a transcript:
    - Engine capability with a name-keyed registry
    - Tesseract (default) and PaddleOCR engines
    - Transcript scoring by invoice-likeness
    - Multi-attempt orchestration with early exit
"""

from .engine import RecognitionOrchestrator, temporary_image_file
from .engines import (
    RecognitionEngine,
    TesseractEngine,
    PaddleOCREngine,
    create_engine,
    register_engine,
    get_registered_engines,
)
from .ocr_result import RecognitionOutput, RecognitionAttempt, RecognitionOutcome
from .text_scoring import score_transcript

__all__ = [
    'RecognitionOrchestrator',
    'temporary_image_file',
    'RecognitionEngine',
    'TesseractEngine',
    'PaddleOCREngine',
    'create_engine',
    'register_engine',
    'get_registered_engines',
    'RecognitionOutput',
    'RecognitionAttempt',
    'RecognitionOutcome',
    'score_transcript',
]
