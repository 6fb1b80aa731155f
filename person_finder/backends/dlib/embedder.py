"""Dlib embedder for face descriptor extraction.

This module provides face embedding extraction using dlib's ResNet-34 model.
It converts aligned 150x150 face chips into 128-dimensional descriptors.
"""

from __future__ import annotations

import numpy as np

from person_finder.backends.dlib.models import ModelBundle
from person_finder.core.errors import ExtractionError
from person_finder.core.interfaces import Embedding
from person_finder.core.logging_config import get_logger
from person_finder.core.utils import bgr_to_rgb

logger = get_logger(__name__)


class DlibEmbedder:
    """Dlib embedder for extracting 128-D face descriptors.

    This embedder uses dlib's ResNet-34 model (trained on ~3 million faces)
    to convert aligned face chips into 128-dimensional feature vectors.
    Two descriptors of the same person are usually closer than 0.6 in
    Euclidean distance.

    No jittering is applied, so the same chip always yields a bit-identical
    descriptor.

    Attributes:
        bundle: Loaded model bundle
        embedding_dim: Dimension of output embeddings (128 for dlib)

    Example:
        >>> embedder = DlibEmbedder(bundle)
        >>> embedding = embedder.embed(chip)
        >>> embedding.dimension
        128
    """

    def __init__(self, bundle: ModelBundle):
        self.bundle = bundle
        self.embedding_dim = bundle.embedding_dim

        logger.debug(f"Initialized dlib embedder (model_id={bundle.model_id})")

    @property
    def model_id(self) -> str:
        return self.bundle.model_id

    def embed(self, face_bgr: np.ndarray) -> Embedding:
        """Extract a 128-D descriptor from an aligned face chip.

        Args:
            face_bgr: Aligned face chip in BGR format, shape [150, 150, 3]

        Returns:
            Embedding tagged with the bundle's model id. Not L2-normalized;
            the 0.6 match threshold is defined on raw dlib descriptors.

        Raises:
            ValueError: If the input chip is empty or not 3-channel.
            ExtractionError: If dlib fails to compute the descriptor.
        """
        if face_bgr is None or face_bgr.size == 0:
            raise ValueError("Empty face image provided")

        if face_bgr.ndim != 3 or face_bgr.shape[2] != 3:
            raise ValueError(f"Expected 3-channel image, got shape {face_bgr.shape}")

        try:
            descriptor = self.bundle.face_encoder.compute_face_descriptor(
                bgr_to_rgb(face_bgr)
            )
        except RuntimeError as e:
            logger.error(f"Failed to extract embedding: {e}")
            raise ExtractionError(f"Embedding extraction failed: {e}") from e

        vector = np.array(descriptor, dtype=np.float64)

        if vector.shape[0] != self.embedding_dim:
            raise ExtractionError(
                f"Unexpected embedding dimension {vector.shape[0]}, "
                f"expected {self.embedding_dim}"
            )

        return Embedding(vector=vector, model_id=self.model_id)

    def __repr__(self) -> str:
        return f"DlibEmbedder(model_id='{self.model_id}', dim={self.embedding_dim})"
