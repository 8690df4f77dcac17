"""Selfie upload validation and storage."""

import logging
from dataclasses import dataclass, replace
from io import BytesIO
from uuid import UUID

from PIL import Image

from selfie_generator.domain.sessions import (
    ClientContext,
    ConsentChoices,
    GenerationStatus,
    SessionRecord,
    UploadReference,
)
from selfie_generator.errors import NotFoundError, ValidationError
from selfie_generator.services.sessions import SessionService
from selfie_generator.services.storage import BlobStore, upload_path

_logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

_PILLOW_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


@dataclass
class UploadService:
    """Validates selfies and attaches them to a session."""

    session_service: SessionService
    blob_store: BlobStore
    max_upload_bytes: int = 10 * 1024 * 1024

    def accept_upload(  # noqa: PLR0913
        self,
        session_id: UUID | None,
        consent: ConsentChoices,
        client: ClientContext,
        filename: str,
        declared_type: str | None,
        data: bytes,
    ) -> SessionRecord:
        """Store an upload on the caller's session, creating one if needed."""
        content_type = self._validate(declared_type, data)
        session = self._resolve_session(session_id, consent, client)
        self.session_service.require_processing_consent(session)
        if session.generation_status is not GenerationStatus.NOT_STARTED:
            raise ValidationError("Image can no longer be replaced for this session")

        path = upload_path(session.id, ALLOWED_CONTENT_TYPES[content_type])
        self.blob_store.upload(path, data, content_type)
        if session.upload is not None and session.upload.path != path:
            self._remove_quietly(session.upload.path)
        upload = UploadReference(
            path=path,
            filename=filename or "upload",
            content_type=content_type,
            size_bytes=len(data),
        )
        self.session_service.attach_upload(session.id, upload)
        _logger.info(
            "Upload stored",
            extra={"session_id": str(session.id), "size_bytes": len(data)},
        )
        return replace(session, upload=upload)

    def _resolve_session(
        self, session_id: UUID | None, consent: ConsentChoices, client: ClientContext
    ) -> SessionRecord:
        if session_id is not None:
            try:
                return self.session_service.get_active(session_id)
            except NotFoundError:
                _logger.info(
                    "Upload session expired, creating a new one",
                    extra={"session_id": str(session_id)},
                )
        return self.session_service.create(consent, client)

    def _validate(self, declared_type: str | None, data: bytes) -> str:
        if not data:
            raise ValidationError("No file uploaded")
        if (declared_type or "").lower() not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                "Invalid file type. Please upload JPG, PNG, GIF, or WebP images only."
            )
        if len(data) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise ValidationError(f"File too large. Maximum size is {limit_mb}MB.")
        detected = detect_image_type(data)
        if detected is None:
            raise ValidationError("File content is not a supported image")
        return detected

    def _remove_quietly(self, path: str) -> None:
        try:
            self.blob_store.remove([path])
        except Exception:
            _logger.warning("Failed to remove replaced upload", exc_info=True)


def detect_image_type(data: bytes) -> str | None:
    """Decode image bytes and return the MIME type of a supported format."""
    try:
        with Image.open(BytesIO(data)) as image:
            image.verify()
            image_format = image.format
        # verify() leaves the image unusable and skips pixel data for some formats
        with Image.open(BytesIO(data)) as image:
            image.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError):
        _logger.info("Rejected undecodable upload", exc_info=True)
        return None
    return _PILLOW_FORMATS.get(image_format or "")
