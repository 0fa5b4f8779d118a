"""
Invoice Pipeline Module.

This module provides the InvoicePipeline class that runs the full flow
for one invoice:

    image -> decode/validate -> quality + variants -> recognition
          -> extraction -> total arbitration -> confidence -> result
    text  ------------------------------------^

Usage:
    from invoice_engine.pipeline import InvoicePipeline

    pipeline = InvoicePipeline()
    result = pipeline.process_image(payload, {"filename": "receipt.jpg"})
    print(result.ok, result.extracted.totals.total)

Every call returns a PipelineResult and writes exactly one run record,
including when an internal error occurs. Failures are recorded on the
result and never raised to the caller.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from invoice_engine.arbitration.arbiter import ArbitrationResult, arbitrate_totals
from invoice_engine.config import get_config
from invoice_engine.input_handler.handler import InputHandler
from invoice_engine.input_handler.image_processor import ImageProcessor, QualityMetrics
from invoice_engine.model_inference.extraction_result import ExtractionResult
from invoice_engine.model_inference.extractor import InvoiceFieldExtractor
from invoice_engine.ocr_engine.engine import RecognitionOrchestrator
from invoice_engine.ocr_engine.ocr_result import RecognitionAttempt
from invoice_engine.output_handler.run_store import PipelineRunStore
from invoice_engine.pipeline.failure_reasons import FailureReason
from invoice_engine.pipeline.result import PipelineResult
from invoice_engine.postprocessor.normalizers import normalize_text
from invoice_engine.scoring.confidence import ConfidenceScore, ConfidenceScorer
from invoice_engine.utils.exceptions import DatabaseError, InputError
from invoice_engine.utils.helpers import cents_to_dollars, generate_run_id
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


# Supplied text is exact, so it carries full recognition confidence
TEXT_INPUT_CONFIDENCE = 1.0


@dataclass
class _RunState:
    """Mutable accumulator for one run; frozen into a PipelineResult at the end."""
    pipeline_id: str
    started: float
    extracted: ExtractionResult = field(default_factory=ExtractionResult)
    confidence: ConfidenceScore = field(default_factory=ConfidenceScore)
    quality: Optional[QualityMetrics] = None
    attempts: Tuple[RecognitionAttempt, ...] = ()
    failure_reasons: List[FailureReason] = field(default_factory=list)
    arbitration: Optional[ArbitrationResult] = None
    ok: bool = False
    error_message: Optional[str] = None

    def fail(self, reason: FailureReason) -> None:
        if reason not in self.failure_reasons:
            self.failure_reasons.append(reason)

    def freeze(self) -> PipelineResult:
        return PipelineResult(
            ok=self.ok,
            pipeline_id=self.pipeline_id,
            extracted=self.extracted,
            confidence=self.confidence,
            quality=self.quality,
            attempts=self.attempts,
            failure_reasons=tuple(self.failure_reasons),
            arbitration=self.arbitration,
            processing_time_ms=int((time.time() - self.started) * 1000),
            error_message=self.error_message,
        )


class InvoicePipeline:
    """
    End-to-end invoice processing.

    Attributes:
        input_handler: Payload decoder and validator.
        image_processor: Quality assessment and variant builder.
        extractor: Field extractor.
        scorer: Confidence scorer.
        record_runs: Whether run records are written.

    Example:
        >>> pipeline = InvoicePipeline()
        >>> result = pipeline.process_text(open("invoice.txt").read())
        >>> print(result.to_json())
    """

    def __init__(
        self,
        orchestrator: Optional[RecognitionOrchestrator] = None,
        run_store: Optional[PipelineRunStore] = None,
        record_runs: Optional[bool] = None
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            orchestrator: Recognition orchestrator. Created from
                configuration on first image if None.
            run_store: Run record store. Created from configuration on
                first record if None.
            record_runs: Whether to write run records. Defaults to
                ``output.database.enabled``.
        """
        self.input_handler = InputHandler()
        self.image_processor = ImageProcessor()
        self.extractor = InvoiceFieldExtractor()
        self.scorer = ConfidenceScorer()

        self._orchestrator = orchestrator
        self._run_store = run_store
        self.record_runs = (
            record_runs if record_runs is not None
            else get_config("output.database.enabled", True)
        )

        self.min_text_length = get_config("pipeline.min_text_length", 20)
        self.ok_threshold = get_config("pipeline.ok_threshold", 0.4)

        self.blur_threshold = get_config("quality.blur_threshold", 0.7)
        self.glare_threshold = get_config("quality.glare_threshold", 0.6)
        self.dark_threshold = get_config("quality.dark_threshold", 0.15)
        self.bright_threshold = get_config("quality.bright_threshold", 0.85)
        self.skew_threshold = get_config("quality.skew_threshold", 0.5)
        self.severe_skew_threshold = get_config("quality.severe_skew_threshold", 0.8)
        self.min_resolution = get_config("quality.min_resolution", 400)

        logger.info("InvoicePipeline initialized")

    @property
    def orchestrator(self) -> RecognitionOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = RecognitionOrchestrator()
        return self._orchestrator

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def process_image(
        self,
        file: Union[bytes, bytearray, str],
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> PipelineResult:
        """
        Process an invoice photo.

        Args:
            file: Raw bytes, base64 string or data URL.
            metadata: Optional ``filename`` / ``mime_type`` / ``file_size``.
            user_id: Caller id stored with the run record.

        Returns:
            PipelineResult. Never raises.
        """
        metadata = dict(metadata or {})
        state = _RunState(pipeline_id=generate_run_id(), started=time.time())
        logger.info(f"[{state.pipeline_id}] Processing image {metadata.get('filename') or 'upload'}")

        try:
            self._run_image(state, file, metadata)
        except Exception as e:
            logger.exception(f"[{state.pipeline_id}] Processing failed: {e}")
            state.fail(FailureReason.PROCESSING_ERROR)
            state.ok = False
            state.error_message = str(e)

        return self._finish(state, user_id, metadata)

    def process_text(
        self,
        text: str,
        vendor_key: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> PipelineResult:
        """
        Process already-recognized invoice text.

        Args:
            text: Invoice text.
            vendor_key: Known vendor key, detected from the text if None.
            metadata: Optional metadata stored with the run record.
            user_id: Caller id stored with the run record.

        Returns:
            PipelineResult. Never raises.
        """
        metadata = dict(metadata or {})
        state = _RunState(pipeline_id=generate_run_id(), started=time.time())
        logger.info(f"[{state.pipeline_id}] Processing text ({len(text or '')} chars)")

        try:
            if self._passes_text_gate(state, text or '', TEXT_INPUT_CONFIDENCE):
                self._analyze(state, text, vendor_key, TEXT_INPUT_CONFIDENCE)
        except Exception as e:
            logger.exception(f"[{state.pipeline_id}] Processing failed: {e}")
            state.fail(FailureReason.PROCESSING_ERROR)
            state.ok = False
            state.error_message = str(e)

        return self._finish(state, user_id, metadata)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _run_image(self, state: _RunState, file: Any, metadata: Dict[str, Any]) -> None:
        try:
            loaded = self.input_handler.load(file, metadata)
        except InputError as e:
            logger.warning(f"[{state.pipeline_id}] Rejected input: {e}")
            state.fail(FailureReason.UNSUPPORTED_FORMAT)
            return

        metadata.setdefault('file_size', loaded.size_bytes)
        if loaded.mime_type:
            metadata.setdefault('mime_type', loaded.mime_type)

        stage_start = time.time()
        quality, variants = self.image_processor.process(loaded.image)
        state.quality = quality
        for reason in self.quality_failures(quality):
            state.fail(reason)
        logger.info(
            f"[{state.pipeline_id}] Normalization complete in {time.time() - stage_start:.2f}s, "
            f"quality: {quality.overall_quality:.2f}"
        )

        outcome = self.orchestrator.recognize(variants)
        state.attempts = outcome.attempts

        if self._passes_text_gate(state, outcome.text, outcome.confidence):
            self._analyze(state, outcome.text, None, outcome.confidence)

    def quality_failures(self, quality: QualityMetrics) -> List[FailureReason]:
        """
        Critical quality issues. They are recorded but do not stop the run.
        """
        reasons = []
        if quality.blur_score > self.blur_threshold:
            reasons.append(FailureReason.TOO_BLURRY)
        if quality.glare_score > self.glare_threshold:
            reasons.append(FailureReason.GLARE_DETECTED)
        if quality.brightness < self.dark_threshold:
            reasons.append(FailureReason.IMAGE_TOO_DARK)
        if quality.brightness > self.bright_threshold:
            reasons.append(FailureReason.IMAGE_TOO_BRIGHT)
        if not quality.doc_detected and quality.skew_score > self.skew_threshold:
            reasons.append(FailureReason.DOCUMENT_NOT_DETECTED)
        if quality.width < self.min_resolution or quality.height < self.min_resolution:
            reasons.append(FailureReason.LOW_RESOLUTION)
        if quality.skew_score > self.severe_skew_threshold:
            reasons.append(FailureReason.SKEW_TOO_SEVERE)
        return reasons

    def _passes_text_gate(self, state: _RunState, text: str, recognition_confidence: float) -> bool:
        if len(normalize_text(text).text) >= self.min_text_length:
            return True

        logger.warning(f"[{state.pipeline_id}] Not enough text to extract ({len(text.strip())} chars)")
        state.fail(FailureReason.NO_TEXT_DETECTED)
        state.confidence = ConfidenceScore(recognition_confidence=recognition_confidence)
        return False

    def _analyze(
        self,
        state: _RunState,
        text: str,
        vendor_key: Optional[str],
        recognition_confidence: float
    ) -> None:
        """Extraction, arbitration, failure classification and scoring."""
        stage_start = time.time()
        normalized = normalize_text(text)

        extraction = self.extractor.extract(normalized, vendor_key=vendor_key)
        extraction, arbitration = arbitrate_totals(extraction, normalized)
        state.extracted = extraction
        state.arbitration = arbitration

        logger.info(
            f"[{state.pipeline_id}] Extraction complete in {time.time() - stage_start:.2f}s: "
            f"total {cents_to_dollars(extraction.totals.total)} ({extraction.total_source}), "
            f"arbitration confidence {arbitration.confidence}%"
        )

        if not extraction.totals.total and not extraction.totals.subtotal:
            state.fail(FailureReason.TOTALS_NOT_FOUND)
        if not extraction.line_items:
            state.fail(FailureReason.LINE_ITEMS_NOT_DETECTED)
        if extraction.ambiguous:
            state.fail(FailureReason.PARSING_AMBIGUOUS)

        state.confidence = self.scorer.score(
            recognition_confidence, state.quality, extraction, state.attempts
        )
        state.ok = state.confidence.overall_score >= self.ok_threshold

    # -------------------------------------------------------------------------
    # Run records
    # -------------------------------------------------------------------------

    def _finish(self, state: _RunState, user_id: Optional[str], metadata: Dict[str, Any]) -> PipelineResult:
        result = state.freeze()

        logger.info(
            f"[{result.pipeline_id}] Complete in {result.processing_time_ms}ms: "
            f"ok={result.ok}, score={result.confidence.overall_score:.2f}, "
            f"failures: {', '.join(r.value for r in result.failure_reasons) or 'none'}"
        )

        self._record(result, user_id, metadata)
        return result

    def _record(self, result: PipelineResult, user_id: Optional[str], metadata: Dict[str, Any]) -> None:
        """Write the run record. Storage failures are logged, never raised."""
        if not self.record_runs:
            return

        try:
            if self._run_store is None:
                self._run_store = PipelineRunStore()
            self._run_store.insert(result.to_run_record(user_id, metadata))
        except DatabaseError as e:
            logger.error(f"[{result.pipeline_id}] Failed to record run: {e}")
