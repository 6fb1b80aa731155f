"""Backend implementations for the face-matching pipeline.

- dlib: HOG/CNN detector + 68-point landmarks + ResNet-34 descriptors (128-D)

Use the factory module to create backend components; it imports dlib lazily.
"""

from person_finder.backends.factory import (
    BackendComponents,
    create_backend,
    create_pipeline,
    load_bundle,
)

__all__ = [
    "BackendComponents",
    "create_backend",
    "create_pipeline",
    "load_bundle",
]
