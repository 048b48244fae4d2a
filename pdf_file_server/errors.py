"""Domain exceptions raised by the file store.

Routes never build HTTP errors themselves; the handlers registered in
``main.create_app`` translate these into responses.
"""


class FileStoreError(Exception):
    """Base class for file store errors."""


class ValidationError(FileStoreError):
    """Caller input missing or malformed (maps to HTTP 400)."""


class NotFound(FileStoreError):
    """No file at the requested location (maps to HTTP 404)."""


class InternalFailure(FileStoreError):
    """Unexpected I/O or filesystem error (maps to HTTP 500)."""
