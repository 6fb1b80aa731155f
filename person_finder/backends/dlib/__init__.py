"""dlib backend for the face-matching pipeline.

Components:
- ModelBundle / load_model_bundle: explicit, load-once model state
- DlibDetector: Face detection using HOG or CNN
- DlibLandmarkEstimator: 68-point shape predictor
- DlibChipAligner: 150x150 face chips
- DlibEmbedder: 128-D face descriptors using ResNet-34
"""

from person_finder.backends.dlib.aligner import DlibChipAligner
from person_finder.backends.dlib.detector import DlibDetector
from person_finder.backends.dlib.embedder import DlibEmbedder
from person_finder.backends.dlib.landmarks import DlibLandmarkEstimator
from person_finder.backends.dlib.models import ModelBundle, load_model_bundle

__all__ = [
    "ModelBundle",
    "load_model_bundle",
    "DlibDetector",
    "DlibLandmarkEstimator",
    "DlibChipAligner",
    "DlibEmbedder",
]
