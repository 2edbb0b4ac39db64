"""Error definitions.

All ingestion and reading errors are defined here with the HTTP status an
outer API layer should map them to.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes.

    Format: E_CATEGORY_NAME
    """

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_SOURCE_NOT_FOUND = "E_SOURCE_NOT_FOUND"
    E_CHAPTER_NOT_FOUND = "E_CHAPTER_NOT_FOUND"
    E_ENTRY_NOT_FOUND = "E_ENTRY_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_UNSUPPORTED_FORMAT = "E_UNSUPPORTED_FORMAT"
    E_FILE_TOO_LARGE = "E_FILE_TOO_LARGE"
    E_STORAGE_MISSING = "E_STORAGE_MISSING"

    # Conflict (409)
    E_DUPLICATE_UPLOAD = "E_DUPLICATE_UPLOAD"

    # Unprocessable content (422)
    E_CORRUPT_ARCHIVE = "E_CORRUPT_ARCHIVE"
    E_ARCHIVE_UNSAFE = "E_ARCHIVE_UNSAFE"
    E_MALFORMED_MANIFEST = "E_MALFORMED_MANIFEST"
    E_MALFORMED_NAVIGATION = "E_MALFORMED_NAVIGATION"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500
    E_STORAGE_ERROR = "E_STORAGE_ERROR"  # 500


ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    ErrorCode.E_NOT_FOUND: 404,
    ErrorCode.E_SOURCE_NOT_FOUND: 404,
    ErrorCode.E_CHAPTER_NOT_FOUND: 404,
    ErrorCode.E_ENTRY_NOT_FOUND: 404,
    ErrorCode.E_INVALID_REQUEST: 400,
    ErrorCode.E_UNSUPPORTED_FORMAT: 400,
    ErrorCode.E_FILE_TOO_LARGE: 400,
    ErrorCode.E_STORAGE_MISSING: 400,
    ErrorCode.E_DUPLICATE_UPLOAD: 409,
    ErrorCode.E_CORRUPT_ARCHIVE: 422,
    ErrorCode.E_ARCHIVE_UNSAFE: 422,
    ErrorCode.E_MALFORMED_MANIFEST: 422,
    ErrorCode.E_MALFORMED_NAVIGATION: 422,
    ErrorCode.E_INTERNAL: 500,
    ErrorCode.E_STORAGE_ERROR: 500,
}


class LecternError(Exception):
    """Base exception for ingestion and reading errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(LecternError):
    """Resource not found error."""

    def __init__(self, code: ErrorCode = ErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class InvalidRequestError(LecternError):
    """Invalid request error."""

    def __init__(
        self, code: ErrorCode = ErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class UnsupportedFormatError(InvalidRequestError):
    """Source kind (or file extension) is not one we can ingest."""

    def __init__(self, message: str = "Unsupported format"):
        super().__init__(ErrorCode.E_UNSUPPORTED_FORMAT, message)


class EntryNotFoundError(NotFoundError):
    """Requested path does not exist inside the container."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(ErrorCode.E_ENTRY_NOT_FOUND, f"Entry not found: {path}")


class CorruptArchiveError(LecternError):
    """Bytes are not a readable compressed archive."""

    def __init__(
        self, message: str = "Corrupt archive", code: ErrorCode = ErrorCode.E_CORRUPT_ARCHIVE
    ):
        super().__init__(code, message)


class ArchiveUnsafeError(CorruptArchiveError):
    """Archive exceeds the configured safety limits or contains unsafe paths."""

    def __init__(self, message: str):
        super().__init__(message, code=ErrorCode.E_ARCHIVE_UNSAFE)


class DuplicateUploadError(LecternError):
    """Upload is byte-identical to a source the owner already has.

    Attributes:
        existing: The previously stored source record.
    """

    def __init__(self, existing: Any, message: str = "This file has already been uploaded"):
        self.existing = existing
        super().__init__(ErrorCode.E_DUPLICATE_UPLOAD, message)
