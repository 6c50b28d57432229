"""Write-once person descriptor backfill from manually assigned faces."""

from __future__ import annotations

import logging
from typing import Optional

from facematch.recognition.descriptor import normalize_descriptor
from facematch.store.documents import DocumentStore
from facematch.types import DESCRIPTOR_LENGTH, FaceObservation, utcnow

LOGGER = logging.getLogger("facematch.lifecycle.backfill")


def backfill_person_descriptor(
    store: DocumentStore,
    person_id: str,
    face: FaceObservation,
    model_version: Optional[str] = None,
    descriptor_length: int = DESCRIPTOR_LENGTH,
) -> bool:
    """Copy the face's descriptor onto the person if the person has none.

    Returns True when the person record was written. An existing person
    descriptor is never replaced.
    """
    descriptor = normalize_descriptor(face.descriptor, descriptor_length)
    if descriptor is None:
        return False
    person = store.find_person(person_id)
    if person is None:
        LOGGER.warning("Backfill skipped: person %s no longer exists", person_id)
        return False
    if person.has_descriptor:
        return False
    person.descriptor = descriptor
    person.extracted_at = utcnow()
    person.model_version = model_version
    store.save_person(person)
    LOGGER.info("Stored descriptor for person %s from assigned face", person_id)
    return True
