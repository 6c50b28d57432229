import numpy as np
import pytest

from facematch.config import MatchingConfig
from facematch.errors import (
    InvalidFaceIndex,
    InvalidIdError,
    NoFacesDetected,
    PersonNotFound,
    PhotoNotFound,
    ValidationError,
)
from facematch.lifecycle.faces import FaceRecognitionService
from facematch.store.documents import DocumentStore, new_object_id


def _vec(offset: float = 0.0, axis: int = 0) -> list:
    vec = np.zeros((128,), dtype=np.float64)
    vec[axis] = offset
    return vec.tolist()


def _face_input(descriptor=None, **extra) -> dict:
    payload = {
        "descriptor": descriptor,
        "box": {"x": 10, "y": 20, "width": 30, "height": 40},
        "landmarks": {
            "leftEye": {"x": 15, "y": 30},
            "rightEye": {"x": 30, "y": 30},
            "nose": {"x": 22, "y": 40},
            "mouth": {"x": 22, "y": 50},
        },
    }
    payload.update(extra)
    return payload


def _setup(tmp_path):
    store = DocumentStore(tmp_path / "store")
    service = FaceRecognitionService(store, MatchingConfig(store_root=tmp_path / "store"))
    photo = store.create_photo(title={"en": "Beach"})
    return store, service, photo


def test_detect_stores_faces_and_omits_descriptors_from_response(tmp_path):
    store, service, photo = _setup(tmp_path)

    summary = service.detect(photo.id, [_face_input(_vec(0.1)), _face_input(None)])

    payload = summary.to_dict()
    assert payload["photoId"] == photo.id
    assert payload["facesDetected"] == 2
    assert payload["faces"][0]["box"] == {"x": 10.0, "y": 20.0, "width": 30.0, "height": 40.0}
    assert "descriptor" not in payload["faces"][0]

    stored = store.get_photo(photo.id)
    assert len(stored.faces) == 2
    assert stored.faces[0].descriptor is not None
    assert stored.faces[1].descriptor is None
    assert stored.face_recognition.processed_at is not None
    assert stored.face_recognition.model_version == "1.0"
    assert stored.extra["title"] == {"en": "Beach"}


def test_detect_stores_malformed_descriptor_as_absent(tmp_path):
    store, service, photo = _setup(tmp_path)
    service.detect(photo.id, [_face_input([0.1] * 20)])
    assert store.get_photo(photo.id).faces[0].descriptor is None


def test_redetect_carries_previous_match_forward(tmp_path):
    store, service, photo = _setup(tmp_path)
    p1 = store.create_person(descriptor=_vec(0.0))

    service.detect(photo.id, [_face_input(_vec(0.05))])
    service.assign(photo.id, 0, p1.id)

    service.detect(photo.id, [_face_input(_vec(0.4, axis=7))])

    stored = store.get_photo(photo.id)
    assert stored.faces[0].matched_person_id == p1.id
    assert stored.faces[0].confidence == 1.0
    assert stored.faces[0].descriptor[7] == pytest.approx(0.4)


def test_detect_input_match_wins_over_carried_match(tmp_path):
    store, service, photo = _setup(tmp_path)
    p1 = store.create_person()
    p2 = store.create_person()
    service.detect(photo.id, [_face_input(_vec(), matchedPersonId=p1.id, confidence=0.8)])

    service.detect(photo.id, [_face_input(_vec(), matchedPersonId=p2.id, confidence=0.7)])

    stored = store.get_photo(photo.id)
    assert stored.faces[0].matched_person_id == p2.id
    assert stored.faces[0].confidence == pytest.approx(0.7)
    assert stored.people == [p1.id, p2.id]


def test_detect_only_matched_filters_faces(tmp_path):
    store, service, photo = _setup(tmp_path)
    p1 = store.create_person()
    service.detect(photo.id, [_face_input(_vec()), _face_input(_vec(1.0))])
    service.assign(photo.id, 1, p1.id)

    summary = service.detect(
        photo.id,
        [_face_input(_vec()), _face_input(_vec(1.0)), _face_input(_vec(2.0))],
        only_matched=True,
    )

    assert summary.faces_detected == 3
    stored = store.get_photo(photo.id)
    assert len(stored.faces) == 1
    assert stored.faces[0].matched_person_id == p1.id


def test_detect_validation_errors_write_nothing(tmp_path):
    store, service, photo = _setup(tmp_path)
    before = store.read("photos", photo.id)

    with pytest.raises(ValidationError):
        service.detect(photo.id, {"descriptor": _vec()})
    with pytest.raises(ValidationError):
        service.detect(photo.id, [{"descriptor": _vec(), "box": {"x": 1}}])
    with pytest.raises(InvalidIdError):
        service.detect("not-an-id", [])
    with pytest.raises(InvalidIdError):
        service.detect(None, [])

    assert store.read("photos", photo.id) == before


def test_unknown_photo_is_not_found(tmp_path):
    _, service, _ = _setup(tmp_path)
    with pytest.raises(PhotoNotFound):
        service.detect(new_object_id(), [])
    with pytest.raises(PhotoNotFound):
        service.match(new_object_id())


def test_match_overwrites_matches_and_unions_people(tmp_path):
    store, service, photo = _setup(tmp_path)
    alice = store.create_person(descriptor=_vec(0.0), name="Alice")
    bob = store.create_person(descriptor=_vec(1.0, axis=3), name="Bob")
    store.create_person(name="No descriptor")
    service.detect(
        photo.id,
        [_face_input(_vec(0.1)), _face_input(_vec(0.9, axis=3)), _face_input(_vec(5.0, axis=9))],
    )
    service.assign(photo.id, 2, alice.id)

    summary = service.match(photo.id)

    result = summary.to_dict()["matches"]
    assert [m["faceIndex"] for m in result] == [0, 1, 2]
    assert result[0]["personId"] == alice.id
    assert result[0]["confidence"] == pytest.approx(0.9)
    assert result[1]["personId"] == bob.id
    assert result[2]["personId"] is None

    stored = store.get_photo(photo.id)
    assert stored.faces[2].matched_person_id is None
    assert stored.faces[2].confidence is None
    assert set(stored.people) == {alice.id, bob.id}
    assert stored.face_recognition.matched_at is not None


def test_match_requires_faces_with_descriptors(tmp_path):
    store, service, photo = _setup(tmp_path)
    with pytest.raises(NoFacesDetected):
        service.match(photo.id)

    service.detect(photo.id, [_face_input(None)])
    with pytest.raises(NoFacesDetected):
        service.match(photo.id)


def test_match_threshold_is_validated(tmp_path):
    store, service, photo = _setup(tmp_path)
    service.detect(photo.id, [_face_input(_vec())])
    for bad in (0, -0.5, 3.0, float("nan"), "0.6"):
        with pytest.raises(ValidationError):
            service.match(photo.id, threshold=bad)


def test_match_respects_custom_threshold(tmp_path):
    store, service, photo = _setup(tmp_path)
    person = store.create_person(descriptor=_vec(0.0))
    service.detect(photo.id, [_face_input(_vec(0.5))])

    assert service.match(photo.id, threshold=0.4).matches[0].person_id is None
    assert service.match(photo.id, threshold=0.6).matches[0].person_id == person.id


def test_unassign_keeps_person_on_photo(tmp_path):
    store, service, photo = _setup(tmp_path)
    p1 = store.create_person()
    service.detect(photo.id, [_face_input(_vec())])
    service.assign(photo.id, 0, p1.id)

    summary = service.assign(photo.id, 0, None)

    assert summary.to_dict() == {"faceIndex": 0, "personId": None}
    stored = store.get_photo(photo.id)
    assert stored.faces[0].matched_person_id is None
    assert stored.faces[0].confidence is None
    assert p1.id in stored.people


def test_assign_out_of_range_makes_no_writes(tmp_path):
    store, service, photo = _setup(tmp_path)
    p1 = store.create_person()
    service.detect(photo.id, [_face_input(_vec()), _face_input(_vec(1.0)), _face_input(_vec(2.0))])
    before = store.read("photos", photo.id)

    with pytest.raises(InvalidFaceIndex):
        service.assign(photo.id, 5, p1.id)
    with pytest.raises(InvalidFaceIndex):
        service.assign(photo.id, -1, p1.id)
    with pytest.raises(InvalidFaceIndex):
        service.assign(photo.id, None, p1.id)

    assert store.read("photos", photo.id) == before
    assert not store.get_person(p1.id).has_descriptor


def test_assign_unknown_person_is_not_found(tmp_path):
    store, service, photo = _setup(tmp_path)
    service.detect(photo.id, [_face_input(_vec())])
    before = store.read("photos", photo.id)

    with pytest.raises(PersonNotFound):
        service.assign(photo.id, 0, new_object_id())

    assert store.read("photos", photo.id) == before


def test_face_matches_reports_current_state(tmp_path):
    store, service, photo = _setup(tmp_path)
    p1 = store.create_person()
    service.detect(photo.id, [_face_input(_vec()), _face_input(_vec(1.0))])
    service.assign(photo.id, 1, p1.id)

    state = [m.to_dict() for m in service.face_matches(photo.id)]
    assert state == [
        {"faceIndex": 0, "personId": None, "confidence": None},
        {"faceIndex": 1, "personId": p1.id, "confidence": 1.0},
    ]


def test_stored_face_without_box_still_matches(tmp_path):
    store, service, photo = _setup(tmp_path)
    person = store.create_person(descriptor=_vec(0.0))
    store.write(
        "photos",
        photo.id,
        {
            "faceRecognition": {
                "faces": [
                    {"descriptor": _vec(0.1), "box": None},
                    {"descriptor": _vec(0.2), "box": {"x": 1}, "landmarks": {"nose": None}},
                ]
            }
        },
    )

    summary = service.match(photo.id)

    assert [m.person_id for m in summary.matches] == [person.id, person.id]
    stored = store.get_photo(photo.id)
    assert stored.faces[0].box is None
    assert stored.faces[1].landmarks is None
    assert store.read("photos", photo.id)["faceRecognition"]["faces"][0]["box"] is None


def test_assign_does_not_duplicate_uppercase_stored_person(tmp_path):
    store, service, photo = _setup(tmp_path)
    person = store.create_person()
    service.detect(photo.id, [_face_input(_vec())])
    document = store.read("photos", photo.id)
    document["people"] = [person.id.upper()]
    store.write("photos", photo.id, document)

    service.assign(photo.id, 0, person.id.upper())

    assert store.get_photo(photo.id).people == [person.id]


@pytest.mark.parametrize("confidence", [float("nan"), float("inf"), float("-inf")])
def test_detect_rejects_non_finite_confidence(tmp_path, confidence):
    store, service, photo = _setup(tmp_path)
    before = store.read("photos", photo.id)

    with pytest.raises(ValidationError):
        service.detect(photo.id, [_face_input(_vec(), matchedPersonId=new_object_id(), confidence=confidence)])

    assert store.read("photos", photo.id) == before
