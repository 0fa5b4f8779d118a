"""
Main Input Handler Module.

This module provides the InputHandler class that turns an uploaded
payload (raw bytes, base64 or a data URL) into a decoded Pillow image,
rejecting payloads that are too small, undecodable or in a format the
recognition layer cannot read.

Usage:
    from invoice_engine.input_handler import InputHandler

    handler = InputHandler()
    loaded = handler.load(payload, {"filename": "receipt.jpg"})
    print(loaded.format, loaded.image.size)
"""

import io
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from PIL import Image, UnidentifiedImageError

from invoice_engine.config import get_config
from invoice_engine.utils.exceptions import CorruptedFileError, UnsupportedFormatError
from invoice_engine.utils.helpers import decode_payload
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


MIN_PAYLOAD_BYTES = 100
# ISO-BMFF brands used by HEIC/HEIF photos
HEIF_BRANDS = (b'heic', b'heix', b'hevc', b'hevx', b'heim', b'heis', b'mif1', b'msf1')


@dataclass
class InputResult:
    """
    Decoded input payload.

    Attributes:
        image: Decoded PIL Image.
        format: Pillow format name (e.g., "JPEG").
        size_bytes: Size of the decoded payload.
        filename: Original filename, if supplied.
        mime_type: Declared or data-URL mime type, if any.
    """
    image: Image.Image
    format: str
    size_bytes: int
    filename: Optional[str] = None
    mime_type: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"InputResult(filename='{self.filename}', "
            f"format='{self.format}', "
            f"size={self.image.width}x{self.image.height}, "
            f"bytes={self.size_bytes})"
        )


def is_heif(data: bytes, filename: Optional[str] = None, mime_type: Optional[str] = None) -> bool:
    """Detect HEIC/HEIF payloads by brand, extension or mime type."""
    if filename and filename.lower().endswith(('.heic', '.heif')):
        return True
    if mime_type and mime_type.lower() in ('image/heic', 'image/heif'):
        return True
    return len(data) >= 12 and data[4:8] == b'ftyp' and data[8:12] in HEIF_BRANDS


class InputHandler:
    """
    Decoder and validator for uploaded invoice images.

    Attributes:
        min_bytes: Smallest accepted payload size.
        supported_formats: Pillow format names accepted for recognition.

    Example:
        >>> handler = InputHandler()
        >>> loaded = handler.load(open("invoice.png", "rb").read())
        >>> print(loaded)
    """

    def __init__(self) -> None:
        """Initialize the InputHandler from configuration."""
        self.min_bytes = get_config("input.min_bytes", MIN_PAYLOAD_BYTES)
        self.supported_formats = {
            fmt.upper() for fmt in get_config(
                "input.supported_formats", ["JPEG", "PNG", "TIFF", "BMP", "WEBP", "GIF"]
            )
        }

        logger.debug(f"InputHandler initialized with formats: {sorted(self.supported_formats)}")

    def load(
        self,
        payload: Union[bytes, bytearray, str],
        metadata: Optional[Dict[str, Any]] = None
    ) -> InputResult:
        """
        Decode and validate a payload.

        Args:
            payload: Raw bytes, base64 string or data URL.
            metadata: Optional ``filename`` / ``mime_type`` / ``file_size``.

        Returns:
            InputResult with the decoded image.

        Raises:
            CorruptedFileError: If the payload cannot be decoded or is too small.
            UnsupportedFormatError: If the image format is not supported.
        """
        metadata = metadata or {}
        filename = metadata.get('filename')
        source = filename or 'upload'

        if not isinstance(payload, (bytes, bytearray, str)):
            raise CorruptedFileError(source, f"unsupported payload type: {type(payload).__name__}")

        try:
            data, data_url_mime = decode_payload(payload)
        except ValueError as e:
            raise CorruptedFileError(source, str(e))

        mime_type = metadata.get('mime_type') or data_url_mime

        if len(data) < self.min_bytes:
            raise CorruptedFileError(
                source, f"payload is {len(data)} bytes, minimum is {self.min_bytes}"
            )

        if is_heif(data, filename, mime_type):
            raise UnsupportedFormatError("HEIC", sorted(self.supported_formats))

        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except UnidentifiedImageError:
            raise UnsupportedFormatError(mime_type or 'unknown', sorted(self.supported_formats))
        except (OSError, ValueError) as e:
            raise CorruptedFileError(source, str(e))

        image_format = (image.format or '').upper()
        if image_format not in self.supported_formats:
            raise UnsupportedFormatError(image_format or 'unknown', sorted(self.supported_formats))

        logger.info(
            f"Loaded {source}: {image_format} {image.width}x{image.height}, {len(data)} bytes"
        )
        return InputResult(
            image=image,
            format=image_format,
            size_bytes=len(data),
            filename=filename,
            mime_type=mime_type,
        )
