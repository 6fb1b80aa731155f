"""Landmark-based face alignment for the dlib descriptor model.

Faces are warped to the 150x150 chip layout the ResNet model was trained
on, so that descriptors from different photos are pose and scale normalized.
"""

from __future__ import annotations

import dlib
import numpy as np

from person_finder.backends.dlib.landmarks import to_full_object_detection
from person_finder.core.errors import ExtractionError
from person_finder.core.interfaces import NUM_LANDMARKS, BBox
from person_finder.core.logging_config import get_logger
from person_finder.core.utils import validate_bitmap

logger = get_logger(__name__)

CHIP_SIZE = 150
CHIP_PADDING = 0.25


class DlibChipAligner:
    """Face aligner producing dlib face chips.

    Attributes:
        size: Output chip size in pixels (square)
        padding: Context padding around the face, as a fraction of its size

    Example:
        >>> aligner = DlibChipAligner()
        >>> chip = aligner.align(frame, detection.bbox, landmarks)
        >>> chip.shape
        (150, 150, 3)
    """

    def __init__(self, size: int = CHIP_SIZE, padding: float = CHIP_PADDING):
        self.size = size
        self.padding = padding

    def align(self, frame_bgr: np.ndarray, bbox: BBox, landmarks: np.ndarray) -> np.ndarray:
        """Warp the face to a normalized chip.

        The warp is purely geometric, so the chip keeps the BGR channel
        order of the input.

        Args:
            frame_bgr: Input image in BGR format, shape [H, W, 3]
            bbox: Detected face region
            landmarks: Landmarks for this face, shape [68, 2]

        Returns:
            Aligned chip in BGR format, shape [size, size, 3], dtype uint8.

        Raises:
            ValueError: If landmarks are missing or have the wrong shape.
            ExtractionError: If dlib fails to extract the chip.
        """
        if landmarks is None:
            raise ValueError("Landmarks cannot be None")

        if landmarks.shape != (NUM_LANDMARKS, 2):
            raise ValueError(
                f"Expected landmarks shape ({NUM_LANDMARKS}, 2), got {landmarks.shape}"
            )

        validate_bitmap(frame_bgr)

        shape = to_full_object_detection(bbox, landmarks)
        try:
            chip = dlib.get_face_chip(frame_bgr, shape, size=self.size, padding=self.padding)
        except RuntimeError as e:
            raise ExtractionError(f"Face alignment failed: {e}") from e

        return np.ascontiguousarray(chip, dtype=np.uint8)

    def __repr__(self) -> str:
        return f"DlibChipAligner(size={self.size}, padding={self.padding})"
