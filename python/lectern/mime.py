"""File extension to MIME type lookup for archive assets and covers."""

import posixpath

DEFAULT_MIME_TYPE = "application/octet-stream"

_EXTENSION_TO_MIME = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".css": "text/css",
    ".xhtml": "application/xhtml+xml",
    ".html": "text/html",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
}

_MIME_TO_EXTENSION = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}


def guess_mime_type(path: str) -> str:
    """MIME type for a path, by extension (case-insensitive)."""
    ext = posixpath.splitext(path)[1].lower()
    return _EXTENSION_TO_MIME.get(ext, DEFAULT_MIME_TYPE)


def extension_for_image(mime_type: str | None) -> str:
    """File extension (no dot) used when storing a cover image. Defaults to jpg."""
    if not mime_type:
        return "jpg"
    return _MIME_TO_EXTENSION.get(mime_type.split(";")[0].strip().lower(), "jpg")
