"""Storage key building and normalization.

All key construction must go through build_storage_path() / build_cover_path()
so stored sources share one layout.

Key Invariant:
    - Original upload: sources/{source_id}/original.{ext}
    - Cover image: sources/{source_id}/cover.{ext}

Rules:
    - No leading slash
    - Forward slashes only
    - No ".." segments
"""

from urllib.parse import urlparse
from uuid import UUID

UPLOADS_PREFIX = "uploads"
API_PREFIX = "/api"


class InvalidStorageKeyError(ValueError):
    """Raised when a storage key is empty or escapes the storage root."""


def get_file_extension(kind: str) -> str:
    """Get the file extension for a source kind.

    Raises:
        ValueError: If kind is not a file-backed source type.
    """
    extensions = {
        "epub": "epub",
        "markdown": "md",
    }
    if kind not in extensions:
        raise ValueError(f"Kind '{kind}' is not a file-backed source type")
    return extensions[kind]


def build_storage_path(source_id: UUID | str, ext: str) -> str:
    """Build the storage key for an uploaded source file.

    Example:
        >>> build_storage_path("abc", "epub")
        'sources/abc/original.epub'
    """
    return f"sources/{source_id}/original.{ext.lstrip('.')}"


def build_cover_path(source_id: UUID | str, ext: str) -> str:
    """Build the storage key for a source's extracted cover image."""
    return f"sources/{source_id}/cover.{ext.lstrip('.')}"


def normalize_key(key: str) -> str:
    """Normalize a storage key.

    Backslashes become forward slashes and leading slashes are dropped.

    Raises:
        InvalidStorageKeyError: If the key is empty or has a ".." segment.
    """
    normalized = key.replace("\\", "/").lstrip("/")
    if not normalized or ".." in normalized.split("/"):
        raise InvalidStorageKeyError(f"Invalid storage key: {key!r}")
    return normalized


def _strip_public_prefix(value: str) -> str:
    candidate = value.strip()
    if not candidate:
        return ""

    if candidate.startswith(("http://", "https://")):
        candidate = urlparse(candidate).path

    if candidate.startswith(API_PREFIX + "/"):
        candidate = candidate[len(API_PREFIX) :]

    for prefix in (f"/{UPLOADS_PREFIX}/", f"{UPLOADS_PREFIX}/"):
        if candidate.startswith(prefix):
            candidate = candidate[len(prefix) :]
            break

    return candidate.lstrip("/")


def resolve_key_from_path(value: str | None) -> str | None:
    """Turn a stored path, public path, or URL back into a storage key.

    Returns:
        The normalized key, or None when the value is empty or unsafe.
    """
    if not value:
        return None
    stripped = _strip_public_prefix(value)
    if not stripped:
        return None
    try:
        return normalize_key(stripped)
    except InvalidStorageKeyError:
        return None
