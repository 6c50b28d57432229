"""Nearest-person suggestions for a face awaiting manual assignment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from facematch.errors import InvalidFaceIndex
from facematch.recognition.descriptor import normalize_descriptor
from facematch.recognition.matcher import DescriptorMatcher
from facematch.store.documents import DocumentStore
from facematch.types import DESCRIPTOR_LENGTH


@dataclass
class Suggestion:
    person_id: str
    distance: float
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {"personId": self.person_id, "distance": self.distance, "confidence": self.confidence}


def suggest_people(
    store: DocumentStore,
    photo_id: Any,
    face_index: int,
    k: int = 3,
    bank: Optional[Mapping[str, np.ndarray]] = None,
    descriptor_length: int = DESCRIPTOR_LENGTH,
) -> List[Suggestion]:
    """Return the k closest people for one face, ignoring the match threshold.

    Candidates come from ``bank`` when given, otherwise from the store's people.
    A face without a usable descriptor gets no suggestions.
    """
    photo = store.get_photo(photo_id)
    if isinstance(face_index, bool) or not 0 <= face_index < len(photo.faces):
        raise InvalidFaceIndex(f"Invalid face index {face_index}; photo has {len(photo.faces)} faces")
    descriptor = normalize_descriptor(photo.faces[face_index].descriptor, descriptor_length)
    if descriptor is None:
        return []
    if bank is not None:
        matcher = DescriptorMatcher(bank.items(), descriptor_length=descriptor_length)
    else:
        matcher = DescriptorMatcher.from_people(store.people_with_descriptors(), descriptor_length=descriptor_length)
    return [
        Suggestion(person_id=r.person_id, distance=r.distance, confidence=r.confidence)
        for r in matcher.topk(descriptor, k=k)
    ]
