"""
Helper Utilities Module.

Small helpers shared by the input handler, pipeline and run store.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - generate_run_id: Generate a unique pipeline run identifier
    - cents_to_dollars: Format integer cents for logs and reports
    - decode_payload: Turn raw bytes, base64 or data-URL strings into bytes
"""

import base64
import binascii
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union


DATA_URL_PATTERN = re.compile(r'^data:([\w/+.\-]+)?(;base64)?,', re.IGNORECASE)


def ensure_directory(path: Union[str, Path]) -> Path:
    """Create ``path`` (and parents) if missing and return it as a Path."""
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def generate_run_id(prefix: str = "pipe") -> str:
    """
    Generate a unique identifier for one pipeline invocation.

    The UTC timestamp prefix keeps ids sortable by start time.

    Example:
        >>> generate_run_id()
        "pipe_20260121_143022_1f3a9c2e"
    """
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{stamp}_{uuid.uuid4().hex[:8]}"


def cents_to_dollars(cents: Optional[int]) -> str:
    """
    Format an integer amount of cents as a dollar string.

    Example:
        >>> cents_to_dollars(10850)
        "$108.50"
    """
    if cents is None:
        return "n/a"
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}${cents // 100:,}.{cents % 100:02d}"


def decode_payload(payload: Union[bytes, bytearray, str]) -> Tuple[bytes, Optional[str]]:
    """
    Decode an input payload into raw bytes.

    Accepts raw bytes, a base64 string, or a data URL
    (``data:image/png;base64,....``).

    Args:
        payload: Raw bytes or an encoded string.

    Returns:
        Tuple of (decoded bytes, mime type from the data URL or None).

    Raises:
        ValueError: If a string payload is not valid base64.
    """
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload), None

    mime_type = None
    data = payload.strip()

    match = DATA_URL_PATTERN.match(data)
    if match:
        mime_type = match.group(1)
        data = data[match.end():]

    # Whitespace inside base64 blocks is common in pasted payloads
    data = re.sub(r'\s+', '', data)

    try:
        return base64.b64decode(data, validate=True), mime_type
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Payload is not valid base64: {e}") from e
