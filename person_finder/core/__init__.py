"""Core modules for the person finder.

This package contains configuration, logging, errors and the interfaces
shared by the pipeline, the backend and the services.
"""

from person_finder.core.config import Config, get_config
from person_finder.core.errors import (
    BlobNotFoundError,
    EmbeddingMismatchError,
    ExtractionError,
    ImageDecodeError,
    ModelLoadError,
    ModelNotReadyError,
    NoFaceDetectedError,
    PersistenceError,
    PersonFinderError,
    RecordNotFoundError,
)
from person_finder.core.image_io import decode_image, encode_image
from person_finder.core.interfaces import (
    Aligner,
    BBox,
    Detection,
    Detector,
    Embedder,
    Embedding,
    Face,
    Image,
    ImageDecoder,
    LandmarkEstimator,
    Stage,
)
from person_finder.core.logging_config import get_logger, setup_logging
from person_finder.core.utils import bgr_to_rgb, euclidean_distance, validate_bitmap

__all__ = [
    # Config
    "Config",
    "get_config",
    # Errors
    "PersonFinderError",
    "ImageDecodeError",
    "NoFaceDetectedError",
    "ModelNotReadyError",
    "ModelLoadError",
    "ExtractionError",
    "EmbeddingMismatchError",
    "RecordNotFoundError",
    "PersistenceError",
    "BlobNotFoundError",
    # Interfaces
    "BBox",
    "Detection",
    "Embedding",
    "Face",
    "Image",
    "ImageDecoder",
    "Stage",
    "Detector",
    "LandmarkEstimator",
    "Aligner",
    "Embedder",
    # Image I/O
    "decode_image",
    "encode_image",
    # Logging
    "setup_logging",
    "get_logger",
    # Utils
    "validate_bitmap",
    "bgr_to_rgb",
    "euclidean_distance",
]
