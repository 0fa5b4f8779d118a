"""
Recognition Engines.

This module defines the RecognitionEngine capability and the concrete
engines behind it. Engines are registered by name and created through
``create_engine`` so the orchestrator never branches on engine type.

Engines:
    - tesseract: pytesseract ``image_to_data`` (default)
    - paddleocr: PaddleOCR, installed through the ``paddle`` extra

Requirements:
    - Tesseract OCR installed on the system
    - pytesseract Python package
"""

import concurrent.futures
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Type

from invoice_engine.config import get_config
from invoice_engine.ocr_engine.ocr_result import RecognitionOutput
from invoice_engine.utils.exceptions import (
    OCREngineNotAvailableError,
    OCRProcessingError,
    OCRTimeoutError,
)
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

# Used when an engine reports no usable word confidences
DEFAULT_CONFIDENCE = 0.5

ENGINE_REGISTRY: Dict[str, Type["RecognitionEngine"]] = {}


def register_engine(name: str) -> Callable[[Type["RecognitionEngine"]], Type["RecognitionEngine"]]:
    """
    Class decorator that registers an engine under ``name``.

    Example:
        >>> @register_engine("fake")
        ... class FakeEngine(RecognitionEngine):
        ...     ...
    """
    def decorator(cls: Type["RecognitionEngine"]) -> Type["RecognitionEngine"]:
        cls.name = name
        ENGINE_REGISTRY[name] = cls
        return cls
    return decorator


def create_engine(name: str) -> "RecognitionEngine":
    """
    Instantiate a registered engine.

    Raises:
        OCREngineNotAvailableError: If the name is unknown or the engine's
            dependencies are missing.
    """
    engine_cls = ENGINE_REGISTRY.get(name)
    if engine_cls is None:
        raise OCREngineNotAvailableError(
            name, f"unknown engine, registered: {sorted(ENGINE_REGISTRY)}"
        )
    return engine_cls()


def get_registered_engines() -> List[str]:
    return sorted(ENGINE_REGISTRY)


class RecognitionEngine(ABC):
    """
    Capability turning an image file into text plus a mean confidence.

    Subclasses set ``supports_psm`` to False when page segmentation modes
    mean nothing to them; the orchestrator then calls them once per
    variant instead of once per mode.
    """

    name: str = "abstract"
    supports_psm: bool = True

    @abstractmethod
    def recognize(self, image_path: str, psm: Optional[int], timeout: float) -> RecognitionOutput:
        """
        Recognize text in an image file.

        Args:
            image_path: Path to the image on disk.
            psm: Page segmentation mode, or None.
            timeout: Time budget in seconds for this call.

        Raises:
            OCRProcessingError: If recognition fails.
            OCRTimeoutError: If the call exceeds ``timeout``.
        """


@register_engine("tesseract")
class TesseractEngine(RecognitionEngine):
    """
    Tesseract engine via pytesseract.

    Words are regrouped into lines by Tesseract's block/paragraph/line
    numbering, and a wide horizontal gap between two words is kept as a
    double space so that table columns survive into the transcript.

    Attributes:
        language: Tesseract language code (e.g., "eng")
        oem: OCR Engine Mode (0-3)
        extra_config: Additional Tesseract command-line options
    """

    # Gap, in average character widths, rendered as a column break
    COLUMN_GAP_CHARS = 2.0

    def __init__(self) -> None:
        """Initialize the Tesseract engine with configuration."""
        self.language = get_config("ocr.lang", "eng")
        self.oem = get_config("ocr.oem", 3)
        self.extra_config = get_config("ocr.tesseract_config", "")

        self._check_dependencies()

        logger.debug(f"TesseractEngine initialized (lang={self.language}, oem={self.oem})")

    def _check_dependencies(self) -> None:
        """
        Check if Tesseract is available.

        Raises:
            OCREngineNotAvailableError: If Tesseract is not installed.
        """
        try:
            import pytesseract
            self._pytesseract = pytesseract
        except ImportError:
            raise OCREngineNotAvailableError(
                "tesseract", "pytesseract is not installed (pip install pytesseract)"
            )

        try:
            version = pytesseract.get_tesseract_version()
            logger.debug(f"Tesseract version: {version}")
        except Exception as e:
            raise OCREngineNotAvailableError(
                "tesseract", f"Tesseract OCR not installed or not in PATH: {e}"
            )

    def _build_config(self, psm: Optional[int]) -> str:
        config_parts = []
        if psm is not None:
            config_parts.append(f"--psm {psm}")
        config_parts.append(f"--oem {self.oem}")
        if self.extra_config:
            config_parts.append(self.extra_config)
        return ' '.join(config_parts)

    def recognize(self, image_path: str, psm: Optional[int], timeout: float) -> RecognitionOutput:
        config = self._build_config(psm)
        logger.debug(f"Running Tesseract (config: {config}, timeout: {timeout}s)")

        try:
            data = self._pytesseract.image_to_data(
                image_path,
                lang=self.language,
                config=config,
                output_type=self._pytesseract.Output.DICT,
                timeout=timeout,
            )
        except RuntimeError as e:
            # pytesseract kills the subprocess and raises RuntimeError on timeout
            if 'timeout' in str(e).lower():
                raise OCRTimeoutError(self.name, timeout)
            raise OCRProcessingError(self.name, str(e))
        except Exception as e:
            raise OCRProcessingError(self.name, str(e))

        return self._parse_tesseract_output(data)

    def _parse_tesseract_output(self, data: Dict[str, List]) -> RecognitionOutput:
        """
        Rebuild line-oriented text and mean confidence from image_to_data.

        Args:
            data: Dictionary output from image_to_data.

        Returns:
            RecognitionOutput with confidence in 0..1.
        """
        line_groups: Dict[tuple, List[dict]] = {}
        confidences = []

        for i in range(len(data['text'])):
            text = data['text'][i]
            if not text or not text.strip():
                continue

            conf = float(data['conf'][i])
            if conf > 0:
                confidences.append(conf)

            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            line_groups.setdefault(key, []).append({
                'text': text.strip(),
                'left': data['left'][i],
                'width': data['width'][i],
            })

        lines = [self._join_words(words) for words in line_groups.values()]
        word_count = sum(len(words) for words in line_groups.values())

        if confidences:
            confidence = sum(confidences) / len(confidences) / 100
        else:
            confidence = DEFAULT_CONFIDENCE

        return RecognitionOutput(text='\n'.join(lines), confidence=confidence, word_count=word_count)

    def _join_words(self, words: List[dict]) -> str:
        words = sorted(words, key=lambda w: w['left'])
        parts = [words[0]['text']]

        for previous, word in zip(words, words[1:]):
            char_width = previous['width'] / max(len(previous['text']), 1)
            gap = word['left'] - (previous['left'] + previous['width'])
            separator = '  ' if char_width and gap >= char_width * self.COLUMN_GAP_CHARS else ' '
            parts.append(separator + word['text'])

        return ''.join(parts)


@register_engine("paddleocr")
class PaddleOCREngine(RecognitionEngine):
    """
    PaddleOCR engine.

    PaddleOCR runs in-process, so each call is bounded by waiting on a
    worker thread. Page segmentation modes do not apply.
    """

    supports_psm = False

    def __init__(self) -> None:
        try:
            from paddleocr import PaddleOCR
        except ImportError:
            raise OCREngineNotAvailableError(
                "paddleocr", "paddleocr is not installed (pip install invoice-engine[paddle])"
            )

        self.language = get_config("ocr.paddle_lang", "en")
        self._ocr = PaddleOCR(use_angle_cls=True, lang=self.language, show_log=False)
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)

        logger.debug(f"PaddleOCREngine initialized (lang={self.language})")

    def recognize(self, image_path: str, psm: Optional[int], timeout: float) -> RecognitionOutput:
        future = self._executor.submit(self._ocr.ocr, image_path, cls=True)
        try:
            results = future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise OCRTimeoutError(self.name, timeout)
        except Exception as e:
            raise OCRProcessingError(self.name, str(e))

        lines = []
        confidences = []
        for line in (results[0] if results and results[0] else []):
            # Each line is (bbox, (text, confidence))
            text, conf = line[1][0], float(line[1][1])
            if text and text.strip():
                lines.append(text.strip())
                confidences.append(conf)

        confidence = sum(confidences) / len(confidences) if confidences else DEFAULT_CONFIDENCE
        return RecognitionOutput(text='\n'.join(lines), confidence=confidence, word_count=len(lines))
