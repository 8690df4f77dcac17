"""Scheduled retention sweep."""

import logging
from dataclasses import dataclass

from selfie_generator.services.sessions import SessionService
from selfie_generator.services.storage import (
    GENERATED_PREFIX,
    UPLOADS_PREFIX,
    BlobStore,
    session_id_from_path,
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupReport:
    """Counts produced by a sweep."""

    expired_sessions: int
    orphaned_blobs: int


@dataclass
class CleanupService:
    """Deletes expired sessions and blobs that outlived their session."""

    session_service: SessionService
    blob_store: BlobStore

    def run(self) -> CleanupReport:
        """Run a full sweep and report what was removed."""
        expired = self.session_service.cleanup_expired()
        orphaned = self.cleanup_orphaned_blobs()
        report = CleanupReport(expired_sessions=expired, orphaned_blobs=orphaned)
        _logger.info(
            "GDPR cleanup completed: %s expired sessions, %s orphaned blobs",
            report.expired_sessions,
            report.orphaned_blobs,
        )
        return report

    def cleanup_orphaned_blobs(self) -> int:
        """Remove blobs whose owning session is missing or expired."""
        deleted = 0
        for prefix in (UPLOADS_PREFIX, GENERATED_PREFIX):
            try:
                paths = self.blob_store.list_paths(prefix)
            except Exception:
                _logger.warning("Could not list %s blobs", prefix, exc_info=True)
                continue
            orphans = [path for path in paths if self._is_orphan(path)]
            if not orphans:
                continue
            try:
                self.blob_store.remove(orphans)
            except Exception:
                _logger.warning("Could not remove %s orphans", prefix, exc_info=True)
                continue
            deleted += len(orphans)
        return deleted

    def _is_orphan(self, path: str) -> bool:
        session_id = session_id_from_path(path)
        if session_id is None:
            return False
        repository = self.session_service.session_repository
        now = self.session_service.clock()
        return repository.get_active_session(session_id, now) is None
