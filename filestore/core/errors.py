"""Errors raised by the blob stores and file pipelines."""


class FileStoreError(Exception):
    """Base error; carries the HTTP status it is reported with."""

    status_code = 500
    default_message = 'Internal storage error'

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(FileStoreError):
    """Raised when a requested file id or name does not exist."""

    status_code = 404
    default_message = 'No file exists'


class UnsupportedContentType(FileStoreError):
    """Raised by the inline view when a stored file is not an image.

    The object exists; this is a content-type gate, not an absence.
    """

    status_code = 404
    default_message = 'Not an image'


class StorageWriteError(FileStoreError):
    """Raised when the medium rejects or cannot take an upload."""

    status_code = 503
    default_message = 'Could not store file'


class StorageReadError(FileStoreError):
    """Raised when stored metadata or content cannot be read back."""

    status_code = 503
    default_message = 'Could not read from storage'


class MissingUpload(FileStoreError):
    """Raised when an upload request carries no file field."""

    status_code = 400
    default_message = 'No file uploaded'
