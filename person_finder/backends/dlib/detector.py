"""Dlib face detector.

This module provides a face detector based on dlib's HOG or CNN (MMOD)
models taken from an explicitly loaded ModelBundle.
"""

from __future__ import annotations

from typing import List

import numpy as np

from person_finder.backends.dlib.models import ModelBundle
from person_finder.core.interfaces import BBox, Detection
from person_finder.core.logging_config import get_logger
from person_finder.core.utils import bgr_to_rgb, validate_bitmap

logger = get_logger(__name__)


class DlibDetector:
    """Face detector using dlib.

    Supports two detection models, chosen when the bundle is loaded:
    - HOG: Faster, suitable for CPU, less accurate
    - CNN: More accurate, requires GPU for real-time performance

    Attributes:
        bundle: Loaded model bundle
        upsample: Number of times to upsample image (higher = detect smaller faces)

    Example:
        >>> detector = DlibDetector(bundle, upsample=1)
        >>> detections = detector.detect(frame)
        >>> print(f"Found {len(detections)} faces")
    """

    def __init__(self, bundle: ModelBundle, upsample: int = 1):
        """Initialize dlib detector.

        Args:
            bundle: Model bundle holding the face detector
            upsample: Number of times to upsample image before detection.
                      Higher values detect smaller faces but are slower.
        """
        if upsample < 0:
            raise ValueError(f"upsample must be >= 0, got {upsample}")

        self.bundle = bundle
        self.upsample = upsample

        logger.debug(
            f"Initialized dlib detector (model={bundle.detector_model}, upsample={upsample})"
        )

    @property
    def model(self) -> str:
        return self.bundle.detector_model

    def detect(self, frame_bgr: np.ndarray) -> List[Detection]:
        """Detect faces in an image.

        Args:
            frame_bgr: Input image in BGR format (OpenCV convention), shape [H, W, 3]

        Returns:
            List of Detection objects, largest face first (stable for ties).
            Empty list if no faces are detected.

        Raises:
            ImageDecodeError: If the bitmap is malformed.
        """
        validate_bitmap(frame_bgr)

        frame_rgb = bgr_to_rgb(frame_bgr)
        h, w = frame_bgr.shape[:2]

        if self.model == "cnn":
            raw = [
                (found.rect, float(found.confidence))
                for found in self.bundle.face_detector(frame_rgb, self.upsample)
            ]
        else:
            rects, scores, _ = self.bundle.face_detector.run(frame_rgb, self.upsample, 0.0)
            raw = list(zip(rects, (float(s) for s in scores)))

        detections = []
        for rect, score in raw:
            bbox = BBox(
                x1=rect.left(), y1=rect.top(), x2=rect.right(), y2=rect.bottom()
            ).clamp(w, h)
            detections.append(Detection(bbox=bbox, score=score))

        detections.sort(key=lambda d: d.bbox.area, reverse=True)

        logger.debug(f"Detected {len(detections)} faces (model={self.model})")
        return detections

    def __repr__(self) -> str:
        return f"DlibDetector(model='{self.model}', upsample={self.upsample})"
