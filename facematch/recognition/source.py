"""Descriptor source handles wrapping an external face detector/encoder."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from facematch.errors import DescriptorSourceError
from facematch.types import Box, Landmarks, Point, descriptor_to_list

LOGGER = logging.getLogger("facematch.recognition.source")

ImageInput = Union[np.ndarray, Path, str, bytes]


@dataclass
class DetectedFace:
    """One face observation produced by a descriptor source."""

    box: Box
    descriptor: Optional[np.ndarray] = None
    landmarks: Optional[Landmarks] = None

    def to_input(self) -> Dict[str, Any]:
        return {
            "box": self.box.to_dict(),
            "landmarks": self.landmarks.to_dict() if self.landmarks else None,
            "descriptor": descriptor_to_list(self.descriptor),
        }


def load_image(path: Path) -> np.ndarray:
    """Read an image file as an RGB array."""
    image = cv2.imread(str(path))
    if image is None:
        raise FileNotFoundError(f"Unable to read image: {path}")
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (JPEG/PNG) as an RGB array."""
    image = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Unable to decode image bytes")
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def as_rgb_image(image: ImageInput) -> np.ndarray:
    if isinstance(image, np.ndarray):
        return image
    if isinstance(image, (bytes, bytearray)):
        return decode_image(bytes(image))
    return load_image(Path(image))


def _centroid(points: Sequence[Tuple[float, float]]) -> Point:
    arr = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    x, y = arr.mean(axis=0)
    return Point(x=float(x), y=float(y))


def landmarks_from_parts(parts: Dict[str, Sequence[Tuple[float, float]]]) -> Optional[Landmarks]:
    """Reduce dlib-style landmark groups to the four named points."""
    mouth_points = list(parts.get("top_lip", [])) + list(parts.get("bottom_lip", []))
    required = (parts.get("left_eye"), parts.get("right_eye"), parts.get("nose_tip"))
    if not all(required) or not mouth_points:
        return None
    return Landmarks(
        left_eye=_centroid(parts["left_eye"]),
        right_eye=_centroid(parts["right_eye"]),
        nose=_centroid(parts["nose_tip"]),
        mouth=_centroid(mouth_points),
    )


class FaceRecognitionSource:
    """dlib 128-d face encoder via the ``face_recognition`` package.

    The backend is loaded by ``open()`` and released by ``close()``; the
    handle is also a context manager. Callers own the handle and pass it to
    the operations that need it.
    """

    def __init__(
        self,
        model: str = "hog",
        upsample: int = 1,
        num_jitters: int = 1,
        model_version: str = "dlib-face-recognition-1.0",
    ) -> None:
        self.model = model
        self.upsample = upsample
        self.num_jitters = num_jitters
        self.model_version = model_version
        self._backend = None

    @property
    def is_open(self) -> bool:
        return self._backend is not None

    def open(self) -> "FaceRecognitionSource":
        if self._backend is not None:
            return self
        try:
            import face_recognition
        except ImportError as exc:  # pragma: no cover - import guard
            raise DescriptorSourceError(
                "face_recognition is required for FaceRecognitionSource. "
                "Install it via `pip install facematch-core[detector]`."
            ) from exc
        LOGGER.info("Loaded face_recognition backend model=%s upsample=%d", self.model, self.upsample)
        self._backend = face_recognition
        return self

    def close(self) -> None:
        self._backend = None

    def __enter__(self) -> "FaceRecognitionSource":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def detect(self, image: np.ndarray) -> List[DetectedFace]:
        if self._backend is None:
            raise DescriptorSourceError("Descriptor source is not open")
        backend = self._backend
        locations = backend.face_locations(image, number_of_times_to_upsample=self.upsample, model=self.model)
        if not locations:
            return []
        encodings = backend.face_encodings(image, known_face_locations=locations, num_jitters=self.num_jitters)
        landmark_sets = backend.face_landmarks(image, face_locations=locations)
        faces: List[DetectedFace] = []
        for idx, (top, right, bottom, left) in enumerate(locations):
            descriptor = np.asarray(encodings[idx], dtype=np.float64) if idx < len(encodings) else None
            parts = landmark_sets[idx] if idx < len(landmark_sets) else {}
            faces.append(
                DetectedFace(
                    box=Box(x=float(left), y=float(top), width=float(right - left), height=float(bottom - top)),
                    descriptor=descriptor,
                    landmarks=landmarks_from_parts(parts),
                )
            )
        return faces


def run_source(source: Any, image: ImageInput) -> List[DetectedFace]:
    """Run ``source.detect`` on an image, wrapping backend failures."""
    try:
        rgb = as_rgb_image(image)
        return list(source.detect(rgb))
    except DescriptorSourceError:
        raise
    except Exception as exc:
        raise DescriptorSourceError(f"Face detection failed: {exc}") from exc
