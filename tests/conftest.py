"""
Pytest configuration and fixtures.
"""

import io
from typing import Optional

import numpy as np
import pytest
from PIL import Image

from invoice_engine.config import ConfigurationManager
from invoice_engine.ocr_engine.engines import RecognitionEngine
from invoice_engine.ocr_engine.ocr_result import RecognitionOutput
from invoice_engine.utils.exceptions import OCRProcessingError


SIMPLE_INVOICE = """ACME Supply Co
123 Main St, Springfield, IL 62701
Invoice #: INV-1001
Date: 01/15/2024
Widget 2 x 25.00 50.00
Gadget 1 x 50.00 50.00
Subtotal $100.00
Tax (8.5%) $8.50
Total $108.50
Thank you for your business
"""

DEPARTMENT_INVOICE = """Northwind Traders LLC
Invoice # NW-5521
Date: 03/02/2024
Dept A Subtotal $500.00
Dept B Subtotal $300.00
Grand Total $800.00
"""

UNLABELED_RECEIPT = """Hardware Store
Hammer $12.00
Nails $15.50
Saw $25.00
Wrench $18.75
Drill $45.00
"""

TABLE_INVOICE = """Hardware Depot LLC
Invoice # HD-2001
Date: 04/10/2024
Description   Qty   Unit   Amount
Widget A   2   50.00   100.00
Widget B   3   25.00   75.00
Bracket Set   1   70.00   70.00
Total: $245.00
"""


@pytest.fixture(autouse=True)
def reset_config():
    """Reset the configuration singleton around each test."""
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


@pytest.fixture
def simple_invoice():
    return SIMPLE_INVOICE


@pytest.fixture
def department_invoice():
    return DEPARTMENT_INVOICE


@pytest.fixture
def unlabeled_receipt():
    return UNLABELED_RECEIPT


@pytest.fixture
def table_invoice():
    return TABLE_INVOICE


@pytest.fixture
def db_path(tmp_path):
    """Path of a throwaway run-store database."""
    return tmp_path / "runs.db"


class FakeEngine(RecognitionEngine):
    """Recognition engine returning canned text, or failing on demand."""

    name = "fake"

    def __init__(self, text: str = '', confidence: float = 0.9,
                 fail: bool = False, supports_psm: bool = True) -> None:
        self.text = text
        self.confidence = confidence
        self.fail = fail
        self.supports_psm = supports_psm
        self.calls = []

    def recognize(self, image_path: str, psm: Optional[int], timeout: float) -> RecognitionOutput:
        self.calls.append((image_path, psm))
        if self.fail:
            raise OCRProcessingError(self.name, "simulated failure")
        return RecognitionOutput(text=self.text, confidence=self.confidence,
                                 word_count=len(self.text.split()))


@pytest.fixture
def fake_engine_factory():
    """Build FakeEngine instances."""
    return FakeEngine


@pytest.fixture
def noise_image():
    """A sharp, mid-grey, document-sized RGB image."""
    rng = np.random.default_rng(0)
    pixels = rng.integers(0, 256, size=(800, 600, 3), dtype=np.uint8)
    return Image.fromarray(pixels, 'RGB')


@pytest.fixture
def blank_image():
    """A flat white image: blurry, glaring and without a document."""
    return Image.new('RGB', (600, 800), (255, 255, 255))


def image_bytes(image: Image.Image, fmt: str = 'PNG') -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def encode_image():
    return image_bytes


@pytest.fixture
def png_bytes(noise_image):
    return image_bytes(noise_image, 'PNG')
