"""Face pipeline: image bytes to identity embeddings.

Runs the four stages in order for one image:
decode -> detect -> landmarks + align -> describe.

The same pipeline instance is used for the submitted photo and for every
gallery image, so all embeddings it produces share one model id.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List

from person_finder.core.errors import PersonFinderError
from person_finder.core.interfaces import (
    Aligner,
    Detector,
    Embedder,
    Embedding,
    Face,
    Image,
    ImageDecoder,
    LandmarkEstimator,
    Stage,
)
from person_finder.core.logging_config import get_logger

logger = get_logger(__name__)


class FacePipeline:
    """Decode, detect, align and describe every face in an image.

    Attributes:
        decode: Injected ``bytes -> bitmap`` capability
        detector: Face detector
        landmark_estimator: Landmark estimator
        aligner: Landmark-based aligner
        embedder: Descriptor extractor

    Example:
        >>> pipeline = create_pipeline(bundle, config)
        >>> embeddings = pipeline.embeddings(photo_bytes)
        >>> print(f"{len(embeddings)} face(s) described")
    """

    def __init__(
        self,
        decode: ImageDecoder,
        detector: Detector,
        landmark_estimator: LandmarkEstimator,
        aligner: Aligner,
        embedder: Embedder,
    ):
        self.decode = decode
        self.detector = detector
        self.landmark_estimator = landmark_estimator
        self.aligner = aligner
        self.embedder = embedder

    @property
    def model_id(self) -> str:
        return self.embedder.model_id

    def load(self, data: bytes) -> Image:
        """Decode raw bytes into an Image.

        Raises:
            ImageDecodeError: If the bytes cannot be decoded.
        """
        with _stage(Stage.LOADED):
            bitmap = self.decode(data)
        return Image(data=data, bitmap=bitmap)

    def faces(self, data: bytes) -> List[Face]:
        """Run every stage and return the described faces in detection order.

        An image without faces yields an empty list.

        Raises:
            ImageDecodeError: If the image is undecodable or the bitmap malformed.
            ExtractionError: If landmark estimation or extraction fails.
        """
        image = self.load(data)

        with _stage(Stage.DETECTED):
            detections = self.detector.detect(image.bitmap)

        logger.debug(f"Detected {len(detections)} face(s) in {image.size[0]}x{image.size[1]} image")

        faces = []
        for detection in detections:
            with _stage(Stage.ALIGNED):
                landmarks = self.landmark_estimator.estimate(image.bitmap, detection.bbox)
                chip = self.aligner.align(image.bitmap, detection.bbox, landmarks)

            with _stage(Stage.DESCRIBED):
                embedding = self.embedder.embed(chip)

            faces.append(Face(detection=detection, landmarks=landmarks, embedding=embedding))

        return faces

    def embeddings(self, data: bytes) -> List[Embedding]:
        """Embeddings of every face in the image, in detection order."""
        return [face.embedding for face in self.faces(data)]

    def __repr__(self) -> str:
        return (
            f"FacePipeline(detector={self.detector}, aligner={self.aligner}, "
            f"embedder={self.embedder})"
        )


@contextmanager
def _stage(stage: Stage) -> Iterator[None]:
    """Tag PersonFinderErrors raised inside the block with the running stage."""
    try:
        yield
    except PersonFinderError as e:
        if e.stage is None:
            e.stage = stage
        raise
