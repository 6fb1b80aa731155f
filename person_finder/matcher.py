"""First-match-wins matcher over a gallery of registered records.

The matcher walks a lazily produced, flattened sequence of candidates in a
fixed order:

    for each gallery entry (store order)
        for each gallery embedding (detection order)
            for each query embedding (detection order)

and stops at the first candidate whose Euclidean distance is strictly below
the threshold. It does not look for the nearest record: a later, closer
record never overrides an earlier one that already passed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterable, Iterator, Optional, Sequence, TypeVar

from person_finder.core.errors import NoFaceDetectedError
from person_finder.core.interfaces import Embedding, Stage
from person_finder.core.logging_config import get_logger

logger = get_logger(__name__)

# Native dlib descriptor distance under which two faces are the same person
MATCH_THRESHOLD = 0.6

R = TypeVar("R")


@dataclass
class GalleryEntry(Generic[R]):
    """One gallery record and the embeddings of its stored image.

    Attributes:
        record: The registered record
        embeddings: Embeddings of every face found in the record's image
    """

    record: R
    embeddings: Sequence[Embedding] = field(default_factory=list)


@dataclass(frozen=True)
class Candidate(Generic[R]):
    """A compared (gallery embedding, query embedding) pair.

    Attributes:
        record: Record owning the gallery embedding
        distance: Euclidean distance of the pair
        gallery_index: Position of the gallery embedding within its record
        query_index: Position of the query embedding
    """

    record: R
    distance: float
    gallery_index: int
    query_index: int


@dataclass
class MatchVerdict:
    """Outcome of one match request.

    Attributes:
        match: Whether some pair passed the threshold
        person: Matched record, if any
        distance: Distance of the winning pair, if any
    """

    match: bool
    person: Optional[Any] = None
    distance: Optional[float] = None

    @property
    def stage(self) -> Stage:
        return Stage.MATCHED if self.match else Stage.NO_MATCH

    def to_dict(self) -> Dict[str, Any]:
        """Response shape ``{"match": bool, "person"?: dict, "distance"?: float}``."""
        payload: Dict[str, Any] = {"match": self.match}
        if self.person is not None:
            person = self.person
            payload["person"] = person.to_dict() if hasattr(person, "to_dict") else person
        if self.distance is not None:
            payload["distance"] = self.distance
        return payload

    def __repr__(self) -> str:
        if not self.match:
            return "MatchVerdict(match=False)"
        return f"MatchVerdict(match=True, person={self.person!r}, distance={self.distance:.4f})"


class FirstMatchMatcher:
    """Matcher applying the first-match-wins policy.

    Attributes:
        threshold: Distance a pair must be strictly below to match

    Example:
        >>> matcher = FirstMatchMatcher()
        >>> verdict = matcher.match(query_embeddings, gallery_entries)
        >>> if verdict.match:
        ...     print(f"Matched {verdict.person} at {verdict.distance:.3f}")
    """

    def __init__(self, threshold: float = MATCH_THRESHOLD):
        if threshold <= 0:
            raise ValueError(f"Threshold must be > 0, got {threshold}")
        self.threshold = threshold

    def candidates(
        self,
        query: Sequence[Embedding],
        gallery: Iterable[GalleryEntry[R]],
    ) -> Iterator[Candidate[R]]:
        """Lazily yield every compared pair in search order.

        The gallery iterable is consumed one entry at a time, so a lazy
        gallery only does work for entries the search actually reaches.
        """
        for entry in gallery:
            for gallery_index, gallery_embedding in enumerate(entry.embeddings):
                for query_index, query_embedding in enumerate(query):
                    yield Candidate(
                        record=entry.record,
                        distance=gallery_embedding.distance(query_embedding),
                        gallery_index=gallery_index,
                        query_index=query_index,
                    )

    def first_match(
        self,
        query: Sequence[Embedding],
        gallery: Iterable[GalleryEntry[R]],
    ) -> Optional[Candidate[R]]:
        """First candidate under the threshold, or None."""
        return next(
            (c for c in self.candidates(query, gallery) if c.distance < self.threshold),
            None,
        )

    def match(
        self,
        query: Sequence[Embedding],
        gallery: Iterable[GalleryEntry[R]],
    ) -> MatchVerdict:
        """Search the gallery for the submitted photo's embeddings.

        Args:
            query: Embeddings of the submitted photo, in detection order
            gallery: Gallery entries, in store order

        Returns:
            MatchVerdict naming the first record under the threshold, or a
            no-match verdict when none passes (including an empty gallery).

        Raises:
            NoFaceDetectedError: If the query holds no embeddings, since no
                comparison can be attempted.
            EmbeddingMismatchError: If gallery and query embeddings come from
                different models.
        """
        if not query:
            raise NoFaceDetectedError("No face detected in submitted image", stage=Stage.SEARCHING)

        winner = self.first_match(query, gallery)

        if winner is None:
            logger.debug(f"No gallery face under threshold {self.threshold}")
            return MatchVerdict(match=False)

        logger.debug(
            f"Match: {winner.record!r} (distance={winner.distance:.4f}, "
            f"gallery_face={winner.gallery_index}, query_face={winner.query_index})"
        )
        return MatchVerdict(match=True, person=winner.record, distance=winner.distance)

    def __repr__(self) -> str:
        return f"FirstMatchMatcher(threshold={self.threshold})"
