"""
Pipeline Module for the Invoice Engine.

Runs one invoice image or text through decoding, quality checks,
recognition, extraction, total arbitration and confidence scoring.
"""

from .failure_reasons import FailureReason
from .result import PipelineResult
from .pipeline import InvoicePipeline

__all__ = ['FailureReason', 'PipelineResult', 'InvoicePipeline']
