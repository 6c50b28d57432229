"""Canonical person descriptor extraction from a single-face reference image."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from facematch.errors import MultipleFacesInImage, NoFaceInImage
from facematch.recognition.descriptor import normalize_descriptor
from facematch.recognition.source import ImageInput, run_source
from facematch.store.documents import DocumentStore
from facematch.types import DESCRIPTOR_LENGTH, Box, utcnow

LOGGER = logging.getLogger("facematch.lifecycle.person_descriptor")


@dataclass
class PersonDescriptorResult:
    person_id: str
    descriptor_extracted: bool
    face_box: Optional[Box]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "personId": self.person_id,
            "descriptorExtracted": self.descriptor_extracted,
            "faceBox": self.face_box.to_dict() if self.face_box else None,
        }


def extract_person_descriptor(
    store: DocumentStore,
    person_id: Any,
    image: ImageInput,
    source: Any,
    replace: bool = False,
    descriptor_length: int = DESCRIPTOR_LENGTH,
) -> PersonDescriptorResult:
    """Detect the single face in ``image`` and store it as the person's descriptor.

    An existing descriptor is kept unless ``replace`` is set; when it is kept,
    ``descriptor_extracted`` is False and nothing is written.
    """
    person = store.get_person(person_id)
    faces = run_source(source, image)
    if not faces:
        raise NoFaceInImage("No face detected in image")
    if len(faces) > 1:
        raise MultipleFacesInImage(
            f"Multiple faces detected ({len(faces)}). Please use an image with a single face."
        )
    face = faces[0]
    descriptor = normalize_descriptor(face.descriptor, descriptor_length)
    if descriptor is None:
        LOGGER.warning("Person %s: detected face has no usable descriptor", person.id)
        return PersonDescriptorResult(person_id=person.id, descriptor_extracted=False, face_box=face.box)
    if person.has_descriptor and not replace:
        LOGGER.info("Person %s already has a descriptor; keeping it", person.id)
        return PersonDescriptorResult(person_id=person.id, descriptor_extracted=False, face_box=face.box)

    person.descriptor = descriptor
    person.extracted_at = utcnow()
    person.model_version = getattr(source, "model_version", None)
    store.save_person(person)
    LOGGER.info("Person %s: stored descriptor from reference image", person.id)
    return PersonDescriptorResult(person_id=person.id, descriptor_extracted=True, face_box=face.box)
