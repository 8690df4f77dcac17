"""Blob storage interface for uploaded and generated images."""

from typing import Protocol
from uuid import UUID

UPLOADS_PREFIX = "uploads"
GENERATED_PREFIX = "generated"


class BlobStore(Protocol):
    """Persistence interface for image blobs."""

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store bytes at a path, replacing any existing blob."""

    def download(self, path: str) -> bytes:
        """Return the bytes stored at a path."""

    def remove(self, paths: list[str]) -> None:
        """Delete the blobs at the given paths."""

    def list_paths(self, prefix: str) -> list[str]:
        """Return full paths of blobs stored under a prefix."""


def upload_path(session_id: UUID, extension: str) -> str:
    """Return the blob path for a session's original image."""
    return f"{UPLOADS_PREFIX}/{session_id}.{extension}"


def generated_path(session_id: UUID) -> str:
    """Return the blob path for a session's generated image."""
    return f"{GENERATED_PREFIX}/{session_id}.jpg"


def session_id_from_path(path: str) -> UUID | None:
    """Extract the owning session id from a blob path, if it has one."""
    name = path.rsplit("/", maxsplit=1)[-1]
    stem = name.split(".", maxsplit=1)[0]
    try:
        return UUID(stem)
    except ValueError:
        return None
