"""Common dataclasses and helpers for photo and person face records."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np

from facematch.errors import ValidationError

LOGGER = logging.getLogger("facematch.types")

DESCRIPTOR_LENGTH = 128
LANDMARK_KEYS = ("leftEye", "rightEye", "nose", "mouth")

# Descriptors are kept as loaded (list, ndarray, buffer) and normalized on use.
DescriptorLike = Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; datetimes pass through unchanged."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _number(payload: Mapping[str, Any], key: str, what: str) -> float:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{what} requires numeric '{key}', got {value!r}")
    if not math.isfinite(value):
        raise ValidationError(f"{what} '{key}' must be finite")
    return float(value)


def descriptor_to_list(descriptor: DescriptorLike) -> Optional[List[Any]]:
    """Convert a stored descriptor into a JSON-friendly list."""
    if descriptor is None:
        return None
    if isinstance(descriptor, np.ndarray):
        return descriptor.astype(np.float64).tolist()
    if isinstance(descriptor, (bytes, bytearray, memoryview)):
        return np.frombuffer(bytes(descriptor), dtype=np.float32).astype(np.float64).tolist()
    if isinstance(descriptor, Mapping):
        return [descriptor[key] for key in sorted(descriptor, key=lambda k: int(k))]
    return list(descriptor)


def has_descriptor(descriptor: DescriptorLike) -> bool:
    if descriptor is None:
        return False
    try:
        return len(descriptor) > 0
    except TypeError:
        return True


@dataclass
class Box:
    """Axis-aligned face rectangle in image pixel coordinates."""

    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, payload: Any, strict: bool = True) -> Optional["Box"]:
        """Parse a box; with ``strict=False`` an unusable box loads as ``None``."""
        try:
            if not isinstance(payload, Mapping):
                raise ValidationError(f"Face box must be an object, got {payload!r}")
            return cls(
                x=_number(payload, "x", "Face box"),
                y=_number(payload, "y", "Face box"),
                width=_number(payload, "width", "Face box"),
                height=_number(payload, "height", "Face box"),
            )
        except ValidationError:
            if strict:
                raise
            LOGGER.warning("Stored face box unusable, loading without box: %r", payload)
            return None


@dataclass
class Point:
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass
class Landmarks:
    """Four named landmark points of a detected face."""

    left_eye: Point
    right_eye: Point
    nose: Point
    mouth: Point

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            "leftEye": self.left_eye.to_dict(),
            "rightEye": self.right_eye.to_dict(),
            "nose": self.nose.to_dict(),
            "mouth": self.mouth.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Any, strict: bool = True) -> Optional["Landmarks"]:
        if payload is None:
            return None
        try:
            if not isinstance(payload, Mapping):
                raise ValidationError(f"Landmarks must be an object, got {payload!r}")
            points = []
            for key in LANDMARK_KEYS:
                point = payload.get(key)
                if not isinstance(point, Mapping):
                    raise ValidationError(f"Landmarks missing point '{key}'")
                points.append(Point(x=_number(point, "x", key), y=_number(point, "y", key)))
        except ValidationError:
            if strict:
                raise
            LOGGER.warning("Stored landmarks unusable, loading without landmarks")
            return None
        return cls(*points)


@dataclass
class FaceObservation:
    """One detected face within one photo."""

    box: Optional[Box]
    descriptor: DescriptorLike = None
    landmarks: Optional[Landmarks] = None
    detected_at: Optional[datetime] = None
    matched_person_id: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def is_matched(self) -> bool:
        return self.matched_person_id is not None

    def set_match(self, person_id: Optional[str], confidence: Optional[float]) -> None:
        """Set or clear the match; id and confidence are always set together."""
        if person_id is None:
            self.matched_person_id = None
            self.confidence = None
            return
        self.matched_person_id = person_id
        self.confidence = 1.0 if confidence is None else float(confidence)

    def to_dict(self, include_descriptor: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "box": self.box.to_dict() if self.box else None,
            "landmarks": self.landmarks.to_dict() if self.landmarks else None,
            "detectedAt": format_timestamp(self.detected_at),
            "matchedPersonId": self.matched_person_id,
            "confidence": self.confidence,
        }
        if include_descriptor:
            payload["descriptor"] = descriptor_to_list(self.descriptor)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FaceObservation":
        face = cls(
            box=Box.from_dict(payload.get("box"), strict=False),
            descriptor=payload.get("descriptor"),
            landmarks=Landmarks.from_dict(payload.get("landmarks"), strict=False),
            detected_at=parse_timestamp(payload.get("detectedAt")),
        )
        person_id = payload.get("matchedPersonId")
        face.set_match(str(person_id).lower() if person_id else None, payload.get("confidence"))
        return face


@dataclass
class FaceRecognitionState:
    """Face records owned by a single photo."""

    faces: List[FaceObservation] = field(default_factory=list)
    processed_at: Optional[datetime] = None
    matched_at: Optional[datetime] = None
    model_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "faces": [face.to_dict() for face in self.faces],
            "processedAt": format_timestamp(self.processed_at),
            "matchedAt": format_timestamp(self.matched_at),
            "modelVersion": self.model_version,
        }

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "FaceRecognitionState":
        if not payload:
            return cls()
        return cls(
            faces=[FaceObservation.from_dict(face) for face in payload.get("faces") or []],
            processed_at=parse_timestamp(payload.get("processedAt")),
            matched_at=parse_timestamp(payload.get("matchedAt")),
            model_version=payload.get("modelVersion"),
        )


@dataclass
class Photo:
    """Photo document; fields outside face recognition ride along in ``extra``."""

    id: str
    people: List[str] = field(default_factory=list)
    face_recognition: FaceRecognitionState = field(default_factory=FaceRecognitionState)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def faces(self) -> List[FaceObservation]:
        return self.face_recognition.faces

    def to_document(self) -> Dict[str, Any]:
        document = dict(self.extra)
        document["_id"] = self.id
        document["people"] = list(self.people)
        document["faceRecognition"] = self.face_recognition.to_dict()
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Photo":
        extra = {k: v for k, v in document.items() if k not in {"_id", "people", "faceRecognition"}}
        return cls(
            id=str(document["_id"]),
            people=merge_people([], (str(p).lower() for p in document.get("people") or [])),
            face_recognition=FaceRecognitionState.from_dict(document.get("faceRecognition")),
            extra=extra,
        )


@dataclass
class Person:
    """Person document with at most one canonical face descriptor."""

    id: str
    descriptor: DescriptorLike = None
    extracted_at: Optional[datetime] = None
    model_version: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_descriptor(self) -> bool:
        return has_descriptor(self.descriptor)

    def to_document(self) -> Dict[str, Any]:
        document = dict(self.extra)
        document["_id"] = self.id
        if self.has_descriptor or self.extracted_at or self.model_version:
            document["faceRecognition"] = {
                "descriptor": descriptor_to_list(self.descriptor),
                "extractedAt": format_timestamp(self.extracted_at),
                "modelVersion": self.model_version,
            }
        else:
            document.pop("faceRecognition", None)
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Person":
        extra = {k: v for k, v in document.items() if k not in {"_id", "faceRecognition"}}
        recognition = document.get("faceRecognition") or {}
        return cls(
            id=str(document["_id"]),
            descriptor=recognition.get("descriptor"),
            extracted_at=parse_timestamp(recognition.get("extractedAt")),
            model_version=recognition.get("modelVersion"),
            extra=extra,
        )


def merge_people(existing: Iterable[str], additions: Iterable[Optional[str]]) -> List[str]:
    """Union person ids in first-seen order; nothing is ever removed."""
    merged: List[str] = []
    seen = set()
    for person_id in list(existing) + list(additions):
        if person_id is None or person_id in seen:
            continue
        seen.add(person_id)
        merged.append(person_id)
    return merged
