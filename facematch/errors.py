"""Exception hierarchy shared by the lifecycle operations and CLI entrypoints."""

from __future__ import annotations


class FaceMatchError(Exception):
    """Base class for errors raised by facematch operations."""


class ValidationError(FaceMatchError, ValueError):
    """Client-fixable input problem; nothing has been written."""


class InvalidIdError(ValidationError):
    """A record id is missing or not in object id format."""


class InvalidFaceIndex(ValidationError):
    """Face index is missing or outside the photo's face sequence."""


class NoFaceInImage(ValidationError):
    """The descriptor source found no face in a reference image."""


class MultipleFacesInImage(ValidationError):
    """The descriptor source found more than one face in a reference image."""


class NotFoundError(FaceMatchError, LookupError):
    """A referenced record does not exist."""


class PhotoNotFound(NotFoundError):
    pass


class PersonNotFound(NotFoundError):
    pass


class PreconditionError(FaceMatchError):
    """Operation is not valid for the record's current state."""


class NoFacesDetected(PreconditionError):
    """Matching was requested for a photo without usable face descriptors."""


class DescriptorSourceError(FaceMatchError, RuntimeError):
    """The face detector backend is unavailable or failed on an image."""


CLIENT_ERRORS = (ValidationError, NotFoundError, PreconditionError)
