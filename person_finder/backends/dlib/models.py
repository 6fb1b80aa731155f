"""Model bundle for the dlib backend.

The bundle owns every dlib model the pipeline needs (face detector, 68-point
shape predictor and ResNet face recognition model). It is created once by an
explicit ``load_model_bundle`` call and handed to each stage, so no stage
reaches for module-level model state.
"""

from __future__ import annotations

import hashlib
import importlib.util
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional

import dlib

from person_finder.core.errors import ModelLoadError
from person_finder.core.logging_config import get_logger

logger = get_logger(__name__)

DetectorModel = Literal["hog", "cnn"]

SHAPE_PREDICTOR_FILE = "shape_predictor_68_face_landmarks.dat"
FACE_RECOGNITION_FILE = "dlib_face_recognition_resnet_model_v1.dat"
CNN_DETECTOR_FILE = "mmod_human_face_detector.dat"

EMBEDDING_DIM = 128


@dataclass(frozen=True)
class ModelBundle:
    """Loaded dlib models, read-only for the lifetime of the process.

    Attributes:
        face_detector: dlib HOG detector or CNN (MMOD) detector
        shape_predictor: 68-point landmark predictor
        face_encoder: ResNet face recognition model
        detector_model: "hog" or "cnn"
        model_id: Identity of the recognition model, used to tag embeddings
        embedding_dim: Descriptor length (128 for dlib)
    """

    face_detector: object
    shape_predictor: object
    face_encoder: object
    detector_model: str
    model_id: str
    embedding_dim: int = EMBEDDING_DIM

    def __repr__(self) -> str:
        return (
            f"ModelBundle(detector='{self.detector_model}', "
            f"model_id='{self.model_id}', dim={self.embedding_dim})"
        )


def default_models_dir() -> Path:
    """Directory of the weight files shipped with face_recognition_models.

    Resolved without importing the package, whose import-time hooks are not
    needed to locate the files.

    Raises:
        ModelLoadError: If face_recognition_models is not installed.
    """
    spec = importlib.util.find_spec("face_recognition_models")
    if spec is None or not spec.submodule_search_locations:
        raise ModelLoadError(
            "face_recognition_models is not installed and MODELS_DIR is not set"
        )
    return Path(list(spec.submodule_search_locations)[0]) / "models"


def compute_model_id(path: Path, chunk_size: int = 1 << 20) -> str:
    """Build a model identity as ``<file stem>@<sha1 prefix>``."""
    digest = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return f"{path.stem}@{digest.hexdigest()[:12]}"


def _require(models_dir: Path, filename: str) -> Path:
    path = models_dir / filename
    if not path.is_file():
        raise ModelLoadError(f"Model file not found: {path}")
    return path


def load_model_bundle(
    models_dir: Optional[str | Path] = None,
    detector_model: DetectorModel = "hog",
) -> ModelBundle:
    """Load all dlib models from disk.

    Args:
        models_dir: Directory holding the ``.dat`` weight files. None uses the
            face_recognition_models package directory.
        detector_model: "hog" (CPU friendly, no weight file) or "cnn" (MMOD,
            more accurate, needs ``mmod_human_face_detector.dat``)

    Returns:
        ModelBundle ready to be passed to the pipeline stages.

    Raises:
        ModelLoadError: If a weight file is missing or dlib fails to load it.

    Example:
        >>> bundle = load_model_bundle()
        >>> bundle.model_id.split("@")[0]
        'dlib_face_recognition_resnet_model_v1'
    """
    if detector_model not in ("hog", "cnn"):
        raise ValueError(f"detector_model must be 'hog' or 'cnn', got '{detector_model}'")

    models_dir = Path(models_dir) if models_dir is not None else default_models_dir()

    shape_path = _require(models_dir, SHAPE_PREDICTOR_FILE)
    encoder_path = _require(models_dir, FACE_RECOGNITION_FILE)
    cnn_path = _require(models_dir, CNN_DETECTOR_FILE) if detector_model == "cnn" else None

    logger.info(f"Loading dlib models from {models_dir} (detector={detector_model})...")

    try:
        if cnn_path is not None:
            face_detector = dlib.cnn_face_detection_model_v1(str(cnn_path))
        else:
            face_detector = dlib.get_frontal_face_detector()

        shape_predictor = dlib.shape_predictor(str(shape_path))
        face_encoder = dlib.face_recognition_model_v1(str(encoder_path))
    except RuntimeError as e:
        logger.error(f"Failed to load dlib models: {e}", exc_info=True)
        raise ModelLoadError(f"Could not load dlib models from {models_dir}: {e}") from e

    bundle = ModelBundle(
        face_detector=face_detector,
        shape_predictor=shape_predictor,
        face_encoder=face_encoder,
        detector_model=detector_model,
        model_id=compute_model_id(encoder_path),
    )

    logger.info(f"Models loaded: {bundle}")
    return bundle
