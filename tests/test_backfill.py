import numpy as np

from facematch.lifecycle.backfill import backfill_person_descriptor
from facematch.lifecycle.faces import FaceRecognitionService
from facematch.store.documents import DocumentStore
from facematch.types import Box, FaceObservation


def _vec(offset: float, axis: int = 0) -> list:
    vec = np.zeros((128,), dtype=np.float64)
    vec[axis] = offset
    return vec.tolist()


def _box() -> dict:
    return {"x": 0, "y": 0, "width": 20, "height": 20}


def test_assign_backfills_descriptor_once(tmp_path):
    store = DocumentStore(tmp_path)
    service = FaceRecognitionService(store)
    photo = store.create_photo()
    person = store.create_person(name="Carol")
    service.detect(
        photo.id,
        [{"descriptor": _vec(0.3), "box": _box()}, {"descriptor": _vec(0.7, axis=2), "box": _box()}],
    )

    first = service.assign(photo.id, 0, person.id)
    assert first.descriptor_backfilled

    stored = store.get_person(person.id)
    assert stored.descriptor[0] == 0.3
    assert stored.extracted_at is not None
    assert stored.model_version == "1.0"
    assert stored.extra["name"] == "Carol"

    second = service.assign(photo.id, 1, person.id)
    assert not second.descriptor_backfilled
    assert store.get_person(person.id).descriptor == stored.descriptor


def test_existing_descriptor_is_never_overwritten(tmp_path):
    store = DocumentStore(tmp_path)
    person = store.create_person(descriptor=_vec(0.9, axis=1))
    face = FaceObservation(box=Box(0, 0, 1, 1), descriptor=_vec(0.1))

    assert not backfill_person_descriptor(store, person.id, face)
    assert store.get_person(person.id).descriptor == _vec(0.9, axis=1)


def test_face_without_usable_descriptor_is_skipped(tmp_path):
    store = DocumentStore(tmp_path)
    person = store.create_person()

    assert not backfill_person_descriptor(store, person.id, FaceObservation(box=Box(0, 0, 1, 1)))
    assert not backfill_person_descriptor(
        store, person.id, FaceObservation(box=Box(0, 0, 1, 1), descriptor=[0.5] * 12)
    )
    assert not store.get_person(person.id).has_descriptor


def test_unassign_does_not_backfill(tmp_path):
    store = DocumentStore(tmp_path)
    service = FaceRecognitionService(store)
    photo = store.create_photo()
    service.detect(photo.id, [{"descriptor": _vec(0.3), "box": _box()}])

    summary = service.assign(photo.id, 0, None)

    assert not summary.descriptor_backfilled
    assert list(store.iter_people()) == []
