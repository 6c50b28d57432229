"""Photo face-record lifecycle: detect, match and manual assignment."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from facematch.config import MatchingConfig
from facematch.errors import InvalidFaceIndex, NoFacesDetected, ValidationError
from facematch.lifecycle.backfill import backfill_person_descriptor
from facematch.recognition.descriptor import normalize_descriptor
from facematch.recognition.matcher import FaceMatch, match_faces
from facematch.recognition.source import ImageInput, run_source
from facematch.store.documents import DocumentStore, validate_object_id
from facematch.types import (
    Box,
    FaceObservation,
    Landmarks,
    has_descriptor,
    merge_people,
    utcnow,
)

LOGGER = logging.getLogger("facematch.lifecycle.faces")


@dataclass
class DetectSummary:
    photo_id: str
    faces_detected: int
    faces: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "photoId": self.photo_id,
            "facesDetected": self.faces_detected,
            "faces": self.faces,
        }


@dataclass
class MatchSummary:
    matches: List[FaceMatch] = field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return sum(1 for m in self.matches if m.person_id is not None)

    def to_dict(self) -> Dict[str, Any]:
        return {"matches": [m.to_dict() for m in self.matches]}


@dataclass
class AssignSummary:
    face_index: int
    person_id: Optional[str]
    descriptor_backfilled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"faceIndex": self.face_index, "personId": self.person_id}


@dataclass
class _FaceInput:
    box: Box
    landmarks: Optional[Landmarks]
    descriptor: Any
    person_id: Optional[str]
    confidence: Optional[float]


def _parse_face_input(index: int, payload: Any, descriptor_length: int) -> _FaceInput:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"Face {index} must be an object, got {type(payload).__name__}")
    raw_descriptor = payload.get("descriptor")
    descriptor = normalize_descriptor(raw_descriptor, descriptor_length)
    if raw_descriptor is not None and descriptor is None:
        LOGGER.warning("Face %d: descriptor unusable; storing face without descriptor", index)
    person_id = payload.get("matchedPersonId")
    person_id = validate_object_id(person_id, "Person") if person_id else None
    confidence = payload.get("confidence")
    if confidence is not None and (
        isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or not math.isfinite(confidence)
    ):
        raise ValidationError(f"Face {index} confidence must be a number, got {confidence!r}")
    return _FaceInput(
        box=Box.from_dict(payload.get("box")),
        landmarks=Landmarks.from_dict(payload.get("landmarks")),
        descriptor=descriptor,
        person_id=person_id,
        confidence=float(confidence) if confidence is not None else None,
    )


class FaceRecognitionService:
    """Coordinates face records of photos against the people in a store.

    Every operation loads one photo, computes the new face records in memory,
    and writes the photo once. Person ids are only ever added to
    ``Photo.people``; clearing a face match leaves the list alone.
    """

    def __init__(self, store: DocumentStore, config: Optional[MatchingConfig] = None) -> None:
        self.store = store
        self.config = config or MatchingConfig()

    def detect(
        self,
        photo_id: Any,
        faces: Any,
        only_matched: bool = False,
        model_version: Optional[str] = None,
    ) -> DetectSummary:
        """Replace a photo's faces with new detection results.

        A new face inherits the match of the previous face at the same index
        unless the input carries its own ``matchedPersonId``.
        """
        photo_id = validate_object_id(photo_id, "Photo")
        if not isinstance(faces, (list, tuple)):
            raise ValidationError("Face detection results are required")
        inputs = [
            _parse_face_input(idx, payload, self.config.descriptor_length)
            for idx, payload in enumerate(faces)
        ]
        photo = self.store.get_photo(photo_id)

        now = utcnow()
        previous = photo.faces
        updated: List[FaceObservation] = []
        for idx, item in enumerate(inputs):
            face = FaceObservation(
                box=item.box,
                descriptor=item.descriptor,
                landmarks=item.landmarks,
                detected_at=now,
            )
            if item.person_id is not None:
                face.set_match(item.person_id, item.confidence)
            elif idx < len(previous) and previous[idx].is_matched:
                face.set_match(previous[idx].matched_person_id, previous[idx].confidence)
            updated.append(face)

        if only_matched:
            updated = [face for face in updated if face.is_matched]

        photo.people = merge_people(photo.people, (face.matched_person_id for face in updated))
        photo.face_recognition.faces = updated
        photo.face_recognition.processed_at = now
        photo.face_recognition.model_version = model_version or self.config.model_version
        self.store.save_photo(photo)

        LOGGER.info(
            "Photo %s: stored %d/%d faces (%d matched)",
            photo_id,
            len(updated),
            len(inputs),
            sum(1 for face in updated if face.is_matched),
        )
        return DetectSummary(
            photo_id=photo_id,
            faces_detected=len(inputs),
            faces=[
                {"box": item.box.to_dict(), "landmarks": item.landmarks.to_dict() if item.landmarks else None}
                for item in inputs
            ],
        )

    def detect_from_image(
        self,
        photo_id: Any,
        image: ImageInput,
        source: Any,
        only_matched: bool = False,
    ) -> DetectSummary:
        """Run the descriptor source over ``image`` and store the result."""
        photo = self.store.get_photo(photo_id)
        detected = run_source(source, image)
        LOGGER.debug("Photo %s: descriptor source returned %d faces", photo.id, len(detected))
        return self.detect(
            photo.id,
            [face.to_input() for face in detected],
            only_matched=only_matched,
            model_version=getattr(source, "model_version", None),
        )

    def match(self, photo_id: Any, threshold: Optional[float] = None) -> MatchSummary:
        """Match every face of the photo against all people with descriptors.

        Results overwrite previous matches, including with null.
        """
        threshold = self.config.resolve_threshold(threshold)
        photo = self.store.get_photo(photo_id)
        if not any(has_descriptor(face.descriptor) for face in photo.faces):
            raise NoFacesDetected(f"No faces detected in photo {photo.id}")

        people = self.store.people_with_descriptors()
        matches = match_faces(
            photo.faces,
            people,
            threshold=threshold,
            descriptor_length=self.config.descriptor_length,
        )
        for match in matches:
            photo.faces[match.face_index].set_match(match.person_id, match.confidence)

        photo.people = merge_people(photo.people, (m.person_id for m in matches))
        photo.face_recognition.matched_at = utcnow()
        self.store.save_photo(photo)

        summary = MatchSummary(matches=matches)
        LOGGER.info(
            "Photo %s: matched %d/%d faces against %d people (threshold=%.3f)",
            photo.id,
            summary.matched_count,
            len(matches),
            len(people),
            threshold,
        )
        return summary

    def assign(self, photo_id: Any, face_index: Any, person_id: Optional[str]) -> AssignSummary:
        """Manually set (or clear, with ``person_id=None``) the person of one face."""
        photo_id = validate_object_id(photo_id, "Photo")
        if isinstance(face_index, bool) or not isinstance(face_index, int):
            raise InvalidFaceIndex("Face index is required")
        if person_id is not None:
            person_id = validate_object_id(person_id, "Person")

        photo = self.store.get_photo(photo_id)
        if face_index < 0 or face_index >= len(photo.faces):
            raise InvalidFaceIndex(
                f"Invalid face index {face_index}; photo has {len(photo.faces)} faces"
            )
        if person_id is not None:
            self.store.get_person(person_id)

        face = photo.faces[face_index]
        face.set_match(person_id, 1.0 if person_id is not None else None)
        if person_id is not None:
            photo.people = merge_people(photo.people, [person_id])
        self.store.save_photo(photo)
        LOGGER.info("Photo %s: face %d assigned to %s", photo_id, face_index, person_id)

        backfilled = False
        if person_id is not None:
            backfilled = backfill_person_descriptor(
                self.store,
                person_id,
                face,
                model_version=photo.face_recognition.model_version,
                descriptor_length=self.config.descriptor_length,
            )
        return AssignSummary(face_index=face_index, person_id=person_id, descriptor_backfilled=backfilled)

    def face_matches(self, photo_id: Any) -> List[FaceMatch]:
        """Current match state of a photo's faces, in face order."""
        photo = self.store.get_photo(photo_id)
        return [
            FaceMatch(face_index=idx, person_id=face.matched_person_id, confidence=face.confidence)
            for idx, face in enumerate(photo.faces)
        ]

