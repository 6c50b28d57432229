"""JSON document store for photo and person records.

Each record lives in ``<root>/<collection>/<id>.json``. Writes replace the
whole document through a temp file and rename, so a single write is atomic
per document. Read-modify-write cycles are not coordinated across processes.
"""

from __future__ import annotations

import json
import logging
import re
import secrets
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from facematch.errors import InvalidIdError, PersonNotFound, PhotoNotFound
from facematch.io_utils import dump_json_atomic, ensure_dir, load_json
from facematch.types import Person, Photo

LOGGER = logging.getLogger("facematch.store")

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

PHOTOS = "photos"
PEOPLE = "people"


def new_object_id() -> str:
    return secrets.token_hex(12)


def validate_object_id(value: Any, what: str = "Record") -> str:
    """Return the id as a lowercase string or raise ``InvalidIdError``."""
    if value is None or value == "":
        raise InvalidIdError(f"{what} ID is required")
    if not isinstance(value, str) or not OBJECT_ID_PATTERN.match(value):
        raise InvalidIdError(f"Invalid {what.lower()} ID format: {value!r}")
    return value.lower()


class DocumentStore:
    """Read and write records by id."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, collection: str, record_id: str) -> Path:
        return self.root / collection / f"{record_id}.json"

    def read(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(collection, record_id)
        if not path.exists():
            return None
        try:
            document = load_json(path)
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"Failed to parse {path}: {exc}") from exc
        document.setdefault("_id", record_id)
        return document

    def write(self, collection: str, record_id: str, document: Dict[str, Any]) -> None:
        payload = dict(document)
        payload["_id"] = record_id
        dump_json_atomic(self._path(collection, record_id), payload)
        LOGGER.debug("Stored %s/%s", collection, record_id)

    def ids(self, collection: str) -> List[str]:
        directory = self.root / collection
        if not directory.exists():
            return []
        return sorted(p.stem for p in directory.glob("*.json") if OBJECT_ID_PATTERN.match(p.stem))

    def get_photo(self, photo_id: Any) -> Photo:
        photo_id = validate_object_id(photo_id, "Photo")
        document = self.read(PHOTOS, photo_id)
        if document is None:
            raise PhotoNotFound(f"Photo not found: {photo_id}")
        return Photo.from_document(document)

    def save_photo(self, photo: Photo) -> None:
        self.write(PHOTOS, photo.id, photo.to_document())

    def find_person(self, person_id: Any) -> Optional[Person]:
        person_id = validate_object_id(person_id, "Person")
        document = self.read(PEOPLE, person_id)
        return Person.from_document(document) if document is not None else None

    def get_person(self, person_id: Any) -> Person:
        person = self.find_person(person_id)
        if person is None:
            raise PersonNotFound(f"Person not found: {person_id}")
        return person

    def save_person(self, person: Person) -> None:
        self.write(PEOPLE, person.id, person.to_document())

    def iter_people(self) -> Iterator[Person]:
        for person_id in self.ids(PEOPLE):
            document = self.read(PEOPLE, person_id)
            if document is not None:
                yield Person.from_document(document)

    def people_with_descriptors(self) -> List[Person]:
        return [person for person in self.iter_people() if person.has_descriptor]

    def create_photo(self, **fields: Any) -> Photo:
        photo = Photo(id=new_object_id(), extra=dict(fields))
        self.save_photo(photo)
        return photo

    def create_person(self, descriptor: Any = None, **fields: Any) -> Person:
        person = Person(id=new_object_id(), descriptor=descriptor, extra=dict(fields))
        self.save_person(person)
        return person


def open_store(root: Path) -> DocumentStore:
    ensure_dir(root)
    return DocumentStore(root)
