"""
Recognition Orchestrator Module.

This module provides the RecognitionOrchestrator class that runs every
configured engine over every image variant and page segmentation mode,
scores each transcript and keeps the best one.

Usage:
    from invoice_engine.ocr_engine import RecognitionOrchestrator

    orchestrator = RecognitionOrchestrator()
    outcome = orchestrator.recognize(variants)

    print(outcome.text)
    print(outcome.best_variant, outcome.score)

Attempts run sequentially and stop as soon as one transcript clears the
early-exit score. A failed or timed-out attempt is recorded with its
error and the run moves on.
"""

import os
import tempfile
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Tuple

from PIL import Image

from invoice_engine.config import get_config
from invoice_engine.input_handler.image_processor import ImageVariant
from invoice_engine.ocr_engine.engines import RecognitionEngine, create_engine
from invoice_engine.ocr_engine.ocr_result import RecognitionAttempt, RecognitionOutcome
from invoice_engine.ocr_engine.text_scoring import score_transcript
from invoice_engine.utils.exceptions import OCREngineNotAvailableError, OCRError
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_PSM_MODES: Tuple[Tuple[int, str], ...] = (
    (6, 'uniform_block'),
    (4, 'single_column'),
    (3, 'fully_auto'),
    (11, 'sparse_text'),
    (1, 'auto_osd'),
)


@contextmanager
def temporary_image_file(image: Image.Image) -> Iterator[str]:
    """
    Write an image to a PNG temporary file and remove it on exit.

    Yields:
        Path of the temporary file.
    """
    handle = tempfile.NamedTemporaryFile(suffix='.png', delete=False)
    try:
        with handle:
            image.save(handle, format='PNG')
        yield handle.name
    finally:
        if os.path.exists(handle.name):
            os.unlink(handle.name)


class RecognitionOrchestrator:
    """
    Multi-attempt recognition over image variants.

    Attributes:
        engines: Engines tried for each variant, in order.
        psm_modes: (mode, name) pairs tried for engines that use them.
        timeout: Per-attempt time budget in seconds.
        early_exit_score: Score at which the run stops.

    Example:
        >>> orchestrator = RecognitionOrchestrator(engines=[TesseractEngine()])
        >>> outcome = orchestrator.recognize(variants)
        >>> for attempt in outcome.attempts:
        ...     print(attempt.variant_name, attempt.psm, attempt.score)
    """

    def __init__(
        self,
        engines: Optional[Sequence[RecognitionEngine]] = None,
        psm_modes: Optional[Sequence[Tuple[int, str]]] = None,
        timeout: Optional[float] = None,
        early_exit_score: Optional[float] = None
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            engines: Engine instances. If None, engines named in
                ``ocr.engines`` are created from the registry.
            psm_modes: Page segmentation modes. If None, read from config.
            timeout: Per-attempt timeout. If None, read from config.
            early_exit_score: Early-exit threshold. If None, read from config.

        Raises:
            OCREngineNotAvailableError: If no engine could be created.
        """
        self.engines = list(engines) if engines is not None else self._engines_from_config()
        if not self.engines:
            raise OCREngineNotAvailableError("all", "no recognition engine available")

        if psm_modes is None:
            configured = get_config("ocr.psm_modes")
            psm_modes = (
                [(entry['mode'], entry['name']) for entry in configured]
                if configured else DEFAULT_PSM_MODES
            )
        self.psm_modes = list(psm_modes)
        self.timeout = timeout if timeout is not None else get_config("ocr.timeout_seconds", 30)
        self.early_exit_score = (
            early_exit_score if early_exit_score is not None
            else get_config("ocr.early_exit_score", 0.85)
        )

        logger.info(
            f"RecognitionOrchestrator initialized with engines: "
            f"{[engine.name for engine in self.engines]}"
        )

    @staticmethod
    def _engines_from_config() -> List[RecognitionEngine]:
        engines = []
        for name in get_config("ocr.engines", ["tesseract"]):
            try:
                engines.append(create_engine(name))
            except OCREngineNotAvailableError as e:
                logger.warning(f"Skipping engine {name}: {e}")
        return engines

    def _modes_for(self, engine: RecognitionEngine) -> List[Tuple[Optional[int], Optional[str]]]:
        return list(self.psm_modes) if engine.supports_psm else [(None, None)]

    def recognize(self, variants: Sequence[ImageVariant]) -> RecognitionOutcome:
        """
        Run recognition attempts until one clears the early-exit score.

        Args:
            variants: Image variants in preference order.

        Returns:
            RecognitionOutcome with the best transcript and all attempts.
        """
        start_time = time.time()
        attempts: List[RecognitionAttempt] = []
        best_attempt: Optional[RecognitionAttempt] = None
        best_text = ''
        early_exit = False

        for variant in variants:
            with temporary_image_file(variant.image) as image_path:
                for engine in self.engines:
                    for psm, psm_name in self._modes_for(engine):
                        attempt, text = self._attempt(engine, variant.name, image_path, psm, psm_name)
                        attempts.append(attempt)

                        if attempt.succeeded and (best_attempt is None or attempt.score > best_attempt.score):
                            best_attempt = attempt
                            best_text = text

                        if attempt.score >= self.early_exit_score:
                            logger.info(
                                f"Early exit: {variant.name}/{engine.name}"
                                f"{f'/psm {psm}' if psm is not None else ''} "
                                f"scored {attempt.score:.2f}"
                            )
                            early_exit = True
                            break
                    if early_exit:
                        break
            if early_exit:
                break

        outcome = RecognitionOutcome(
            text=best_text,
            confidence=best_attempt.confidence if best_attempt else 0.0,
            score=best_attempt.score if best_attempt else 0.0,
            best_attempt=best_attempt,
            attempts=tuple(attempts),
            early_exit=early_exit,
            processing_time=time.time() - start_time,
        )

        logger.info(
            f"Recognition complete: {len(attempts)} attempts "
            f"({outcome.failed_attempts} failed), best score: {outcome.score:.2f}, "
            f"time: {outcome.processing_time:.2f}s"
        )
        return outcome

    def _attempt(
        self,
        engine: RecognitionEngine,
        variant_name: str,
        image_path: str,
        psm: Optional[int],
        psm_name: Optional[str]
    ) -> Tuple[RecognitionAttempt, str]:
        try:
            output = engine.recognize(image_path, psm, self.timeout)
        except OCRError as e:
            logger.warning(f"Attempt {variant_name}/{engine.name}/psm {psm} failed: {e}")
            attempt = RecognitionAttempt(
                variant_name=variant_name,
                engine=engine.name,
                psm=psm,
                psm_name=psm_name,
                notes=(f"{engine.name} failed",),
                error=str(e),
            )
            return attempt, ''

        text = output.text.strip()
        score = score_transcript(text, output.confidence)
        logger.debug(
            f"Attempt {variant_name}/{engine.name}/psm {psm}: "
            f"{len(text)} chars, conf {output.confidence:.2f}, score {score:.2f}"
        )
        attempt = RecognitionAttempt(
            variant_name=variant_name,
            engine=engine.name,
            psm=psm,
            psm_name=psm_name,
            confidence=output.confidence,
            score=score,
            text_length=len(text),
            notes=(f"{output.word_count} words",),
        )
        return attempt, text
