"""Error taxonomy for the person finder.

``client_error`` separates failures the caller can fix (unknown record id,
a photo without a face) from server-side failures.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from person_finder.core.interfaces import Stage


class PersonFinderError(Exception):
    """Base class for all person finder errors.

    Attributes:
        stage: Pipeline stage running when the error was raised, if any
    """

    client_error = False

    def __init__(self, message: str, stage: Optional["Stage"] = None):
        super().__init__(message)
        self.stage = stage


class ImageDecodeError(PersonFinderError):
    """Image bytes could not be decoded, or the bitmap is malformed."""


class NoFaceDetectedError(PersonFinderError):
    """The submitted photo contains no detectable face."""

    client_error = True


class ModelNotReadyError(PersonFinderError):
    """A match was requested before the model bundle finished loading."""


class ModelLoadError(PersonFinderError):
    """Model weight files are missing or could not be loaded."""


class ExtractionError(PersonFinderError):
    """Landmark estimation or descriptor extraction failed inside dlib."""


class EmbeddingMismatchError(PersonFinderError, ValueError):
    """Two embeddings from different models (or lengths) were compared."""


class RecordNotFoundError(PersonFinderError, KeyError):
    """No record exists for the requested identifier."""

    client_error = True

    def __init__(self, record_id: str):
        super().__init__(f"Person not found: {record_id}")
        self.record_id = record_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class PersistenceError(PersonFinderError):
    """Record or blob storage failed."""


class BlobNotFoundError(PersistenceError):
    """A stored image reference points to a missing blob."""

    def __init__(self, reference: str):
        super().__init__(f"Blob not found: {reference}")
        self.reference = reference
