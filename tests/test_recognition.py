"""
Tests for transcript scoring, the engine registry and the recognition
orchestrator.
"""

import os

import pytest
from PIL import Image

from invoice_engine.input_handler.image_processor import ImageVariant
from invoice_engine.ocr_engine.engine import RecognitionOrchestrator, temporary_image_file
from invoice_engine.ocr_engine.engines import (
    ENGINE_REGISTRY,
    PaddleOCREngine,
    TesseractEngine,
    create_engine,
    get_registered_engines,
)
from invoice_engine.ocr_engine.text_scoring import score_transcript
from invoice_engine.utils.exceptions import OCREngineNotAvailableError


def _variants(*names):
    return [ImageVariant(name, Image.new('L', (40, 20), 255)) for name in names]


class TestScoreTranscript:
    """Tests for score_transcript."""

    def test_too_short(self):
        assert score_transcript("", 0.9) == 0.0
        assert score_transcript("Total", 0.9) == 0.0

    def test_invoice_text_beats_noise(self, simple_invoice):
        invoice_score = score_transcript(simple_invoice, 0.9)
        noise_score = score_transcript("~~ ## ** ^^ %% ~~ ## **", 0.9)
        assert invoice_score > noise_score
        assert 0.0 <= noise_score <= invoice_score <= 1.0

    def test_repetition_artifacts_penalized(self, simple_invoice):
        clean = score_transcript(simple_invoice, 0.9)
        noisy = score_transcript(simple_invoice + "\nIIIIIII lllllll", 0.9)
        assert noisy < clean

    def test_clamped(self, simple_invoice):
        assert score_transcript(simple_invoice * 10, 1.0) <= 1.0


class TestEngineRegistry:
    """Tests for engine registration and creation."""

    def test_registered(self):
        assert ENGINE_REGISTRY['tesseract'] is TesseractEngine
        assert ENGINE_REGISTRY['paddleocr'] is PaddleOCREngine
        assert {'tesseract', 'paddleocr'} <= set(get_registered_engines())

    def test_unknown_engine(self):
        with pytest.raises(OCREngineNotAvailableError):
            create_engine('no-such-engine')

    def test_paddle_has_no_psm(self):
        assert PaddleOCREngine.supports_psm is False
        assert TesseractEngine.supports_psm is True


class TestTemporaryImageFile:
    """Tests for temporary_image_file."""

    def test_removed_after_use(self):
        with temporary_image_file(Image.new('L', (10, 10), 0)) as path:
            assert os.path.exists(path)
            assert path.endswith('.png')
        assert not os.path.exists(path)

    def test_removed_on_error(self):
        with pytest.raises(RuntimeError):
            with temporary_image_file(Image.new('L', (10, 10), 0)) as path:
                raise RuntimeError("boom")
        assert not os.path.exists(path)


class TestRecognitionOrchestrator:
    """Tests for RecognitionOrchestrator."""

    def test_requires_an_engine(self):
        with pytest.raises(OCREngineNotAvailableError):
            RecognitionOrchestrator(engines=[])

    def test_early_exit(self, fake_engine_factory, simple_invoice):
        engine = fake_engine_factory(text=simple_invoice, confidence=0.95)
        orchestrator = RecognitionOrchestrator(
            engines=[engine], psm_modes=[(6, 'uniform_block'), (4, 'single_column')],
            early_exit_score=0.1,
        )
        outcome = orchestrator.recognize(_variants('standard', 'high_contrast'))

        assert outcome.early_exit
        assert len(outcome.attempts) == 1
        assert outcome.best_variant == 'standard'
        assert outcome.best_engine == 'fake'
        assert outcome.text == simple_invoice.strip()
        assert outcome.confidence == 0.95

    def test_all_attempts_without_early_exit(self, fake_engine_factory, simple_invoice):
        engine = fake_engine_factory(text=simple_invoice)
        orchestrator = RecognitionOrchestrator(
            engines=[engine], psm_modes=[(6, 'uniform_block'), (4, 'single_column')],
            early_exit_score=1.1,
        )
        outcome = orchestrator.recognize(_variants('standard', 'high_contrast'))

        assert not outcome.early_exit
        assert [(a.variant_name, a.psm) for a in outcome.attempts] == [
            ('standard', 6), ('standard', 4), ('high_contrast', 6), ('high_contrast', 4),
        ]
        # Equal scores keep the first attempt
        assert outcome.best_attempt is outcome.attempts[0]

    def test_failed_attempts_recorded(self, fake_engine_factory, simple_invoice):
        broken = fake_engine_factory(fail=True)
        working = fake_engine_factory(text=simple_invoice, supports_psm=False)
        orchestrator = RecognitionOrchestrator(
            engines=[broken, working], psm_modes=[(6, 'uniform_block')], early_exit_score=1.1,
        )
        outcome = orchestrator.recognize(_variants('standard'))

        assert len(outcome.attempts) == 2
        failed, succeeded = outcome.attempts
        assert not failed.succeeded
        assert failed.score == 0.0
        assert 'simulated failure' in failed.error
        assert failed.notes == ('fake failed',)
        assert succeeded.succeeded
        assert succeeded.psm is None
        assert outcome.failed_attempts == 1
        assert outcome.best_attempt is succeeded

    def test_everything_fails(self, fake_engine_factory):
        orchestrator = RecognitionOrchestrator(
            engines=[fake_engine_factory(fail=True)], psm_modes=[(6, 'uniform_block')],
        )
        outcome = orchestrator.recognize(_variants('standard', 'receipt_mode'))

        assert outcome.text == ''
        assert outcome.best_attempt is None
        assert outcome.score == 0.0
        assert outcome.failed_attempts == 2

    def test_temp_files_cleaned_up(self, fake_engine_factory, simple_invoice):
        engine = fake_engine_factory(text=simple_invoice)
        orchestrator = RecognitionOrchestrator(
            engines=[engine], psm_modes=[(6, 'uniform_block')], early_exit_score=1.1,
        )
        orchestrator.recognize(_variants('standard', 'high_contrast'))

        paths = {path for path, _ in engine.calls}
        assert len(paths) == 2
        assert not any(os.path.exists(path) for path in paths)

    def test_attempt_to_dict(self, fake_engine_factory, simple_invoice):
        orchestrator = RecognitionOrchestrator(
            engines=[fake_engine_factory(text=simple_invoice)], psm_modes=[(6, 'uniform_block')],
        )
        data = orchestrator.recognize(_variants('standard')).attempts[0].to_dict()
        assert data['variant_name'] == 'standard'
        assert data['engine'] == 'fake'
        assert data['psm'] == 6
        assert data['error'] is None
