"""Default image decoder for the pipeline.

The pipeline receives its decoder by injection; this OpenCV-based one is
what production wiring uses.
"""

from __future__ import annotations

import cv2
import numpy as np

from person_finder.core.errors import ImageDecodeError
from person_finder.core.logging_config import get_logger

logger = get_logger(__name__)


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (JPEG, PNG, ...) into a BGR bitmap.

    Grayscale and alpha images are converted to 3-channel BGR.

    Args:
        data: Encoded image bytes

    Returns:
        BGR uint8 bitmap, shape [H, W, 3].

    Raises:
        ImageDecodeError: If the bytes are empty or not a decodable image.

    Example:
        >>> with open("photo.jpg", "rb") as f:
        ...     bitmap = decode_image(f.read())
        >>> bitmap.shape
        (480, 640, 3)
    """
    if not data:
        raise ImageDecodeError("Empty image data")

    buffer = np.frombuffer(data, dtype=np.uint8)
    bitmap = cv2.imdecode(buffer, cv2.IMREAD_COLOR)

    if bitmap is None or bitmap.size == 0:
        raise ImageDecodeError(f"Could not decode image ({len(data)} bytes)")

    logger.debug(f"Decoded image {bitmap.shape[1]}x{bitmap.shape[0]} from {len(data)} bytes")
    return bitmap


def encode_image(bitmap: np.ndarray, ext: str = ".jpg", quality: int = 95) -> bytes:
    """Encode a BGR bitmap back to bytes.

    Args:
        bitmap: BGR uint8 image
        ext: Target format extension understood by OpenCV
        quality: JPEG quality (ignored for other formats)

    Raises:
        ImageDecodeError: If OpenCV cannot encode the bitmap.
    """
    params = [cv2.IMWRITE_JPEG_QUALITY, quality] if ext.lower() in (".jpg", ".jpeg") else []
    ok, buffer = cv2.imencode(ext, bitmap, params)
    if not ok:
        raise ImageDecodeError(f"Could not encode bitmap as {ext}")
    return buffer.tobytes()
