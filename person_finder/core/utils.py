"""Utility functions for the face-matching pipeline.

Bitmap validation, colour conversion and distance helpers shared by the
backend stages and the matcher.
"""

from __future__ import annotations

import cv2
import numpy as np

from person_finder.core.errors import ImageDecodeError


def validate_bitmap(frame: np.ndarray) -> np.ndarray:
    """Check that a bitmap is a non-empty BGR uint8 image.

    Args:
        frame: Candidate bitmap

    Returns:
        The same bitmap, for chaining.

    Raises:
        ImageDecodeError: If the bitmap is missing, empty or not [H, W, 3] uint8.
    """
    if frame is None or not isinstance(frame, np.ndarray):
        raise ImageDecodeError(f"Expected a numpy bitmap, got {type(frame).__name__}")

    if frame.size == 0:
        raise ImageDecodeError("Empty bitmap")

    if frame.ndim != 3 or frame.shape[2] != 3:
        raise ImageDecodeError(f"Expected 3-channel bitmap, got shape {frame.shape}")

    if frame.dtype != np.uint8:
        raise ImageDecodeError(f"Expected uint8 bitmap, got {frame.dtype}")

    return frame


def bgr_to_rgb(frame_bgr: np.ndarray) -> np.ndarray:
    """Convert an OpenCV BGR bitmap to the RGB order dlib expects."""
    return cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)


def euclidean_distance(vec1: np.ndarray, vec2: np.ndarray) -> float:
    """Euclidean (L2) distance between two vectors.

    Symmetric and non-negative; ``euclidean_distance(a, b)`` and
    ``euclidean_distance(b, a)`` are bit-identical since the difference
    only flips sign before squaring.
    """
    return float(np.linalg.norm(np.asarray(vec1) - np.asarray(vec2)))

