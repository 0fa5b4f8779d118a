"""
Pipeline Result.

The output contract of one pipeline invocation, and its projection onto
a run-store record.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from invoice_engine.arbitration.arbiter import ArbitrationResult
from invoice_engine.input_handler.image_processor import QualityMetrics
from invoice_engine.model_inference.extraction_result import ExtractionResult
from invoice_engine.ocr_engine.ocr_result import RecognitionAttempt
from invoice_engine.pipeline.failure_reasons import FailureReason
from invoice_engine.scoring.confidence import (
    ConfidenceScore,
    status_for_score,
    tips_for_failure_reasons,
)


@dataclass(frozen=True)
class PipelineResult:
    """
    Structured result of one pipeline run.

    Attributes:
        ok: True when the overall confidence reached the ok threshold.
        pipeline_id: Unique id of this run, also the run record key.
        extracted: Extraction after arbitration.
        confidence: Confidence scores.
        quality: Image quality, or None for text input and rejected uploads.
        attempts: Recognition attempts in the order they were made.
        failure_reasons: Recorded failures, in detection order.
        arbitration: Arbitration decision, if extraction ran.
        processing_time_ms: Wall time of the run.
        error_message: Message of an internal error, if one occurred.
    """
    ok: bool
    pipeline_id: str
    extracted: ExtractionResult = field(default_factory=ExtractionResult)
    confidence: ConfidenceScore = field(default_factory=ConfidenceScore)
    quality: Optional[QualityMetrics] = None
    attempts: Tuple[RecognitionAttempt, ...] = ()
    failure_reasons: Tuple[FailureReason, ...] = ()
    arbitration: Optional[ArbitrationResult] = None
    processing_time_ms: int = 0
    error_message: Optional[str] = None

    @property
    def best_attempt(self) -> Optional[RecognitionAttempt]:
        succeeded = [attempt for attempt in self.attempts if attempt.succeeded]
        return max(succeeded, key=lambda attempt: attempt.score) if succeeded else None

    @property
    def status(self) -> Dict[str, Any]:
        return status_for_score(self.confidence.overall_score)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary format.

        Returns:
            Dictionary representation with failure reasons as strings.
        """
        reasons = [reason.value for reason in self.failure_reasons]
        return {
            'ok': self.ok,
            'pipeline_id': self.pipeline_id,
            'status': self.status,
            'extracted': self.extracted.to_dict(),
            'confidence': self.confidence.to_dict(),
            'quality': self.quality.to_dict() if self.quality else None,
            'attempts': [attempt.to_dict() for attempt in self.attempts],
            'failure_reasons': reasons,
            'tips': tips_for_failure_reasons(reasons) if reasons else [],
            'arbitration': self.arbitration.to_dict() if self.arbitration else None,
            'processing_time_ms': self.processing_time_ms,
            'error_message': self.error_message,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_run_record(
        self,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Flatten into a run-store row.

        Args:
            user_id: Caller-supplied user id.
            metadata: ``filename`` / ``mime_type`` / ``file_size``.
        """
        metadata = metadata or {}
        quality = self.quality
        best = self.best_attempt
        fields = self.confidence.fields

        return {
            'pipeline_id': self.pipeline_id,
            'user_id': str(user_id) if user_id is not None else None,
            'filename': metadata.get('filename'),
            'mime_type': metadata.get('mime_type'),
            'file_size': metadata.get('file_size'),
            'blur_score': quality.blur_score if quality else None,
            'glare_score': quality.glare_score if quality else None,
            'skew_score': quality.skew_score if quality else None,
            'brightness': quality.brightness if quality else None,
            'contrast': quality.contrast if quality else None,
            'resolution_width': quality.width if quality else None,
            'resolution_height': quality.height if quality else None,
            'doc_detected': int(quality.doc_detected) if quality else None,
            'recognition_confidence': self.confidence.recognition_confidence,
            'attempts_count': len(self.attempts),
            'best_variant': best.variant_name if best else None,
            'best_engine': best.engine if best else None,
            'vendor_extracted': self.extracted.vendor,
            'date_extracted': self.extracted.date or self.extracted.date_raw,
            'total_extracted_cents': self.extracted.totals.total,
            'line_items_count': len(self.extracted.line_items),
            'total_source': self.extracted.total_source,
            'overall_score': self.confidence.overall_score,
            'vendor_confidence': fields.get('vendor', 0.0),
            'date_confidence': fields.get('date', 0.0),
            'total_confidence': fields.get('total', 0.0),
            'line_items_confidence': fields.get('line_items', 0.0),
            'ok': int(self.ok),
            'failure_reasons': ','.join(r.value for r in self.failure_reasons) or None,
            'error_message': self.error_message,
            'processing_time_ms': self.processing_time_ms,
        }

    def __repr__(self) -> str:
        return (
            f"PipelineResult(id={self.pipeline_id}, ok={self.ok}, "
            f"score={self.confidence.overall_score:.2f}, "
            f"failures={[r.value for r in self.failure_reasons]})"
        )
