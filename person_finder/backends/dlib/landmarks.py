"""68-point landmark estimation using dlib's shape predictor."""

from __future__ import annotations

import dlib
import numpy as np

from person_finder.backends.dlib.models import ModelBundle
from person_finder.core.errors import ExtractionError
from person_finder.core.interfaces import NUM_LANDMARKS, BBox
from person_finder.core.logging_config import get_logger
from person_finder.core.utils import bgr_to_rgb, validate_bitmap

logger = get_logger(__name__)


def to_rectangle(bbox: BBox) -> "dlib.rectangle":
    """Convert a BBox to a dlib rectangle."""
    return dlib.rectangle(int(bbox.x1), int(bbox.y1), int(bbox.x2), int(bbox.y2))


def to_full_object_detection(bbox: BBox, landmarks: np.ndarray) -> "dlib.full_object_detection":
    """Rebuild the dlib shape object from a box and its landmark array.

    Lets the aligner work from plain numpy landmarks instead of holding on
    to the predictor's output object.
    """
    parts = dlib.points()
    for x, y in landmarks:
        parts.append(dlib.point(int(round(float(x))), int(round(float(y)))))
    return dlib.full_object_detection(to_rectangle(bbox), parts)


class DlibLandmarkEstimator:
    """Landmark estimator using dlib's 68-point shape predictor.

    Example:
        >>> estimator = DlibLandmarkEstimator(bundle)
        >>> landmarks = estimator.estimate(frame, detection.bbox)
        >>> landmarks.shape
        (68, 2)
    """

    def __init__(self, bundle: ModelBundle):
        self.bundle = bundle

    def estimate(self, frame_bgr: np.ndarray, bbox: BBox) -> np.ndarray:
        """Locate 68 landmarks inside a detected face region.

        Args:
            frame_bgr: Input image in BGR format, shape [H, W, 3]
            bbox: Detected face region

        Returns:
            Landmarks in absolute pixel coords, shape [68, 2], float32.

        Raises:
            ImageDecodeError: If the bitmap is malformed.
            ExtractionError: If dlib fails or returns an unexpected point count.
        """
        validate_bitmap(frame_bgr)

        try:
            shape = self.bundle.shape_predictor(bgr_to_rgb(frame_bgr), to_rectangle(bbox))
        except RuntimeError as e:
            raise ExtractionError(f"Landmark estimation failed: {e}") from e

        if shape.num_parts != NUM_LANDMARKS:
            raise ExtractionError(
                f"Expected {NUM_LANDMARKS} landmarks, got {shape.num_parts}"
            )

        return np.array(
            [[shape.part(i).x, shape.part(i).y] for i in range(shape.num_parts)],
            dtype=np.float32,
        )

    def __repr__(self) -> str:
        return f"DlibLandmarkEstimator(points={NUM_LANDMARKS})"
