"""Core interfaces and data structures for the face-matching pipeline.

This module defines the abstract interfaces (Protocols) and data classes
shared by the pipeline stages, so that the dlib backend (or a test double)
can be swapped in behind them.

Pipeline: decode -> detect -> estimate landmarks -> align -> embed.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Callable, List, Protocol, Tuple, runtime_checkable

import numpy as np

from person_finder.core.errors import EmbeddingMismatchError
from person_finder.core.utils import euclidean_distance

NUM_LANDMARKS = 68

# decode(bytes) -> BGR uint8 bitmap, shape [H, W, 3]
ImageDecoder = Callable[[bytes], np.ndarray]


class Stage(enum.Enum):
    """States of a single match invocation."""

    LOADED = "loaded"
    DETECTED = "detected"
    ALIGNED = "aligned"
    DESCRIBED = "described"
    SEARCHING = "searching"
    MATCHED = "matched"
    NO_MATCH = "no_match"
    FAILED = "failed"


@dataclass
class BBox:
    """Bounding box for a detected face.

    Attributes:
        x1: Left edge x-coordinate (pixels)
        y1: Top edge y-coordinate (pixels)
        x2: Right edge x-coordinate (pixels)
        y2: Bottom edge y-coordinate (pixels)
    """

    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Tuple[int, int]:
        return ((self.x1 + self.x2) // 2, (self.y1 + self.y2) // 2)

    def clamp(self, img_width: int, img_height: int) -> BBox:
        """Clamp bounding box coordinates to image boundaries.

        Args:
            img_width: Image width in pixels
            img_height: Image height in pixels

        Returns:
            New BBox with clamped coordinates.
        """
        return BBox(
            x1=max(0, min(self.x1, img_width - 1)),
            y1=max(0, min(self.y1, img_height - 1)),
            x2=max(0, min(self.x2, img_width - 1)),
            y2=max(0, min(self.y2, img_height - 1)),
        )


@dataclass
class Detection:
    """Face detection result: bounding box plus detector confidence.

    Attributes:
        bbox: Bounding box around the detected face
        score: Detector-native confidence, higher = more confident. Not
            calibrated to [0, 1]; dlib HOG reports SVM margins.
    """

    bbox: BBox
    score: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.score):
            raise ValueError(f"Detection score must be finite, got {self.score}")

    def __repr__(self) -> str:
        return f"Detection(bbox={self.bbox}, score={self.score:.3f})"


@dataclass(frozen=True)
class Embedding:
    """Identity descriptor of one face, tagged with its producing model.

    Embeddings are only comparable when they come from the same model;
    ``distance`` refuses to compare anything else.

    Attributes:
        vector: 1-D descriptor, float64
        model_id: Identity of the extractor that produced the vector
    """

    vector: np.ndarray
    model_id: str

    def __post_init__(self) -> None:
        vector = np.array(self.vector, dtype=np.float64)
        if vector.ndim != 1 or vector.size == 0:
            raise ValueError(f"Embedding must be a non-empty 1-D vector, got {vector.shape}")
        vector.setflags(write=False)
        object.__setattr__(self, "vector", vector)

    @property
    def dimension(self) -> int:
        return int(self.vector.shape[0])

    def distance(self, other: Embedding) -> float:
        """Euclidean distance to another embedding.

        Raises:
            EmbeddingMismatchError: If the embeddings come from different
                models or have different lengths.
        """
        if self.model_id != other.model_id:
            raise EmbeddingMismatchError(
                f"Cannot compare embeddings from '{self.model_id}' and '{other.model_id}'"
            )
        if self.dimension != other.dimension:
            raise EmbeddingMismatchError(
                f"Embedding dimensions differ: {self.dimension} vs {other.dimension}"
            )
        return euclidean_distance(self.vector, other.vector)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Embedding):
            return NotImplemented
        return self.model_id == other.model_id and np.array_equal(self.vector, other.vector)

    def __hash__(self) -> int:
        return hash((self.model_id, self.vector.tobytes()))

    def __repr__(self) -> str:
        return f"Embedding(dim={self.dimension}, model_id='{self.model_id}')"


@dataclass
class Face:
    """A detected, aligned and described face. Never persisted.

    Attributes:
        detection: Bounding box and confidence
        landmarks: Alignment anchor points, shape [68, 2]
        embedding: Descriptor computed from the aligned face
    """

    detection: Detection
    landmarks: np.ndarray
    embedding: Embedding


@dataclass
class Image:
    """Raw image bytes and the decoded bitmap, alive for one pipeline run.

    Attributes:
        data: Raw encoded bytes
        bitmap: Decoded BGR uint8 image, shape [H, W, 3]
    """

    data: bytes = field(repr=False)
    bitmap: np.ndarray = field(repr=False)

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) of the bitmap."""
        h, w = self.bitmap.shape[:2]
        return w, h


@runtime_checkable
class Detector(Protocol):
    """Protocol for face detection models."""

    def detect(self, frame_bgr: np.ndarray) -> List[Detection]:
        """Detect faces in an image.

        Args:
            frame_bgr: Input image in BGR format (OpenCV convention), shape [H, W, 3]

        Returns:
            Detections in a deterministic order. An empty list means no face
            is present and is not an error.

        Raises:
            ImageDecodeError: If the bitmap is malformed.
        """
        ...


@runtime_checkable
class LandmarkEstimator(Protocol):
    """Protocol for facial landmark estimation."""

    def estimate(self, frame_bgr: np.ndarray, bbox: BBox) -> np.ndarray:
        """Locate alignment landmarks inside a detected region.

        Returns:
            Landmarks in absolute pixel coords, shape [68, 2], float32.
        """
        ...


@runtime_checkable
class Aligner(Protocol):
    """Protocol for face alignment/normalization."""

    def align(self, frame_bgr: np.ndarray, bbox: BBox, landmarks: np.ndarray) -> np.ndarray:
        """Warp a face to a pose- and scale-normalized crop.

        Returns:
            Aligned face crop in BGR format, dtype uint8.
        """
        ...


@runtime_checkable
class Embedder(Protocol):
    """Protocol for face descriptor extraction."""

    @property
    def model_id(self) -> str:
        """Identity of the underlying model."""
        ...

    def embed(self, face_bgr: np.ndarray) -> Embedding:
        """Extract a descriptor from an aligned face crop.

        Identical input must always yield a bit-identical embedding.
        """
        ...
