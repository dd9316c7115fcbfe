"""
Domain errors raised by the inspection lifecycle and its collaborators.

Routes let these propagate; `main.py` maps them to HTTP responses.
"""

from typing import Optional


class VistoriaError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(VistoriaError):
    """A referenced entity id does not resolve."""

    status_code = 404


class InvalidStateError(VistoriaError):
    """The operation violates the inspection lifecycle rules."""

    status_code = 400

    def __init__(self, message: str, unverified_count: Optional[int] = None):
        super().__init__(message)
        self.unverified_count = unverified_count


class InvalidInputError(VistoriaError):
    """Input that passed schema validation but is still unusable."""

    status_code = 400


class StorageBackendError(VistoriaError):
    """Blob store failure that prevents a record from being created."""

    status_code = 502
