"""Euclidean distance matcher between face descriptors and person descriptors."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from facematch.recognition.descriptor import normalize_descriptor
from facematch.types import DESCRIPTOR_LENGTH, FaceObservation, Person

LOGGER = logging.getLogger("facematch.recognition.matcher")

DEFAULT_THRESHOLD = 0.6

Candidate = Tuple[str, Any]


@dataclass(frozen=True)
class MatchResult:
    person_id: str
    confidence: float
    distance: float


@dataclass(frozen=True)
class FaceMatch:
    face_index: int
    person_id: Optional[str]
    confidence: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "faceIndex": self.face_index,
            "personId": self.person_id,
            "confidence": self.confidence,
        }


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Descriptors must have the same length: {a.shape} vs {b.shape}")
    return float(np.sqrt(np.sum((a - b) ** 2)))


def distance_to_confidence(distance: float) -> float:
    """Similarity proxy; negative once distance exceeds 1."""
    return 1.0 - distance


class DescriptorMatcher:
    """Nearest-descriptor lookup over a fixed pool of person descriptors.

    Candidates whose descriptor does not normalize are dropped when the pool
    is built. A candidate qualifies when its distance to the query is strictly
    below ``threshold``; the closest qualifier wins and equal distances keep
    the earliest candidate.
    """

    def __init__(
        self,
        candidates: Iterable[Candidate],
        threshold: float = DEFAULT_THRESHOLD,
        descriptor_length: int = DESCRIPTOR_LENGTH,
    ) -> None:
        self.threshold = threshold
        self.descriptor_length = descriptor_length
        self.person_ids: List[str] = []
        vectors: List[np.ndarray] = []
        for person_id, raw in candidates:
            vec = normalize_descriptor(raw, descriptor_length)
            if vec is None:
                LOGGER.debug("Skipping person %s without a usable descriptor", person_id)
                continue
            self.person_ids.append(person_id)
            vectors.append(vec)
        if vectors:
            self.bank = np.stack(vectors, axis=0)
        else:
            self.bank = np.empty((0, descriptor_length), dtype=np.float64)

    @classmethod
    def from_people(
        cls,
        people: Iterable[Person],
        threshold: float = DEFAULT_THRESHOLD,
        descriptor_length: int = DESCRIPTOR_LENGTH,
    ) -> "DescriptorMatcher":
        return cls(
            ((person.id, person.descriptor) for person in people if person.has_descriptor),
            threshold=threshold,
            descriptor_length=descriptor_length,
        )

    def __len__(self) -> int:
        return len(self.person_ids)

    def distances(self, descriptor: np.ndarray) -> np.ndarray:
        query = np.asarray(descriptor, dtype=np.float64).reshape(-1)
        if query.shape[0] != self.bank.shape[1]:
            raise ValueError(
                f"Descriptors must have the same length: {query.shape[0]} vs {self.bank.shape[1]}"
            )
        return np.sqrt(np.sum((self.bank - query) ** 2, axis=1))

    def best_match(self, descriptor: np.ndarray) -> Optional[MatchResult]:
        if not self.person_ids:
            return None
        dists = self.distances(descriptor)
        qualifying = np.flatnonzero(dists < self.threshold)
        if qualifying.size == 0:
            return None
        # argmin returns the first index among equal minima
        best_idx = int(qualifying[np.argmin(dists[qualifying])])
        best_distance = float(dists[best_idx])
        return MatchResult(
            person_id=self.person_ids[best_idx],
            confidence=distance_to_confidence(best_distance),
            distance=best_distance,
        )

    def topk(self, descriptor: np.ndarray, k: int = 3) -> List[MatchResult]:
        """Return the k nearest candidates without applying the threshold."""
        if not self.person_ids:
            return []
        dists = self.distances(descriptor)
        order = np.argsort(dists, kind="stable")[:k]
        return [
            MatchResult(
                person_id=self.person_ids[idx],
                confidence=distance_to_confidence(float(dists[idx])),
                distance=float(dists[idx]),
            )
            for idx in order
        ]

    def match_faces(self, faces: Sequence[FaceObservation]) -> List[FaceMatch]:
        matches: List[FaceMatch] = []
        for index, face in enumerate(faces):
            vec = normalize_descriptor(face.descriptor, self.descriptor_length)
            if vec is None:
                matches.append(FaceMatch(face_index=index, person_id=None, confidence=None))
                continue
            result = self.best_match(vec)
            if result is None:
                LOGGER.debug("Face %d: no candidate under threshold %.3f", index, self.threshold)
                matches.append(FaceMatch(face_index=index, person_id=None, confidence=None))
                continue
            LOGGER.debug(
                "Face %d matched person %s (distance=%.4f confidence=%.4f)",
                index,
                result.person_id,
                result.distance,
                result.confidence,
            )
            matches.append(
                FaceMatch(face_index=index, person_id=result.person_id, confidence=result.confidence)
            )
        return matches


def find_best_match(
    face_descriptor: Any,
    candidates: Sequence[Candidate],
    threshold: float = DEFAULT_THRESHOLD,
) -> Optional[MatchResult]:
    """Return the closest candidate with distance strictly below ``threshold``.

    ``face_descriptor`` and every candidate descriptor must already have equal
    lengths; a mismatch raises ``ValueError``.
    """
    query = np.asarray(face_descriptor, dtype=np.float64).reshape(-1)
    best: Optional[MatchResult] = None
    for person_id, descriptor in candidates:
        distance = euclidean_distance(query, np.asarray(descriptor, dtype=np.float64).reshape(-1))
        if not distance < threshold:
            continue
        if best is None or distance < best.distance:
            best = MatchResult(
                person_id=person_id,
                confidence=distance_to_confidence(distance),
                distance=distance,
            )
    return best


def match_faces(
    faces: Sequence[FaceObservation],
    people: Iterable[Person],
    threshold: float = DEFAULT_THRESHOLD,
    descriptor_length: int = DESCRIPTOR_LENGTH,
) -> List[FaceMatch]:
    """Match every face against the people's canonical descriptors, preserving order."""
    matcher = DescriptorMatcher.from_people(people, threshold=threshold, descriptor_length=descriptor_length)
    LOGGER.debug("Matching %d faces against %d candidate descriptors", len(faces), len(matcher))
    return matcher.match_faces(faces)
