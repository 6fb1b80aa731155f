"""Backend factory for the face-matching pipeline.

This module wires a loaded ModelBundle into the four pipeline stages
(detector, landmark estimator, aligner, embedder) and into a FacePipeline.

Usage:
    bundle = load_bundle(config)
    pipeline = create_pipeline(bundle, config)
    embeddings = pipeline.embeddings(image_bytes)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from person_finder.core.config import Config
from person_finder.core.interfaces import Aligner, Detector, Embedder, ImageDecoder, LandmarkEstimator
from person_finder.core.logging_config import get_logger

if TYPE_CHECKING:
    from person_finder.backends.dlib.models import ModelBundle
    from person_finder.pipeline import FacePipeline

logger = get_logger(__name__)


@dataclass
class BackendComponents:
    """Container for backend components.

    Attributes:
        detector: Face detector instance
        landmark_estimator: Landmark estimator instance
        aligner: Face aligner instance
        embedder: Face embedder instance
        model_id: Identity of the descriptor model
        embedding_dim: Dimension of embeddings (128 for dlib)
    """

    detector: Detector
    landmark_estimator: LandmarkEstimator
    aligner: Aligner
    embedder: Embedder
    model_id: str
    embedding_dim: int


def load_bundle(config: Config | None = None) -> "ModelBundle":
    """Load the dlib model bundle described by the configuration.

    Raises:
        ModelLoadError: If weight files are missing or unloadable.
    """
    if config is None:
        from person_finder.core.config import get_config

        config = get_config()

    from person_finder.backends.dlib.models import load_model_bundle

    return load_model_bundle(config.models_dir, detector_model=config.detector_model)


def create_backend(bundle: "ModelBundle", config: Config | None = None) -> BackendComponents:
    """Create pipeline stages backed by a loaded bundle.

    Args:
        bundle: Loaded model bundle
        config: Configuration object. If None, loads from .env

    Returns:
        BackendComponents with detector, landmark estimator, aligner and embedder.
    """
    if config is None:
        from person_finder.core.config import get_config

        config = get_config()

    from person_finder.backends.dlib.aligner import DlibChipAligner
    from person_finder.backends.dlib.detector import DlibDetector
    from person_finder.backends.dlib.embedder import DlibEmbedder
    from person_finder.backends.dlib.landmarks import DlibLandmarkEstimator

    components = BackendComponents(
        detector=DlibDetector(bundle, upsample=config.upsample),
        landmark_estimator=DlibLandmarkEstimator(bundle),
        aligner=DlibChipAligner(),
        embedder=DlibEmbedder(bundle),
        model_id=bundle.model_id,
        embedding_dim=bundle.embedding_dim,
    )

    logger.info(f"dlib backend created (model_id={bundle.model_id})")
    return components


def create_pipeline(
    bundle: "ModelBundle",
    config: Config | None = None,
    decode: Optional[ImageDecoder] = None,
) -> "FacePipeline":
    """Create a FacePipeline for a loaded bundle.

    Args:
        bundle: Loaded model bundle
        config: Configuration object. If None, loads from .env
        decode: Image decoder; defaults to the OpenCV decoder

    Returns:
        FacePipeline wired to the dlib stages.
    """
    from person_finder.core.image_io import decode_image
    from person_finder.pipeline import FacePipeline

    components = create_backend(bundle, config)
    return FacePipeline(
        decode=decode or decode_image,
        detector=components.detector,
        landmark_estimator=components.landmark_estimator,
        aligner=components.aligner,
        embedder=components.embedder,
    )
