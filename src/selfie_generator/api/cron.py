"""Scheduled cleanup endpoint with bearer token auth."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Header, Request

from selfie_generator.api.dependencies import get_container
from selfie_generator.errors import UnauthorizedError

router = APIRouter(prefix="/cron", tags=["cron"])


def _get_cron_secret(request: Request) -> str:
    return get_container(request).settings.cron_secret


async def require_cron_token(
    authorization: str | None = Header(default=None),
    cron_secret: str = Depends(_get_cron_secret),
) -> None:
    """Ensure requests carry the scheduler's bearer token."""
    if not cron_secret or authorization != f"Bearer {cron_secret}":
        raise UnauthorizedError("Unauthorized")


@router.api_route(
    "/cleanup", methods=["GET", "POST"], dependencies=[Depends(require_cron_token)]
)
async def cleanup(request: Request) -> dict[str, object]:
    """Delete expired sessions and orphaned blobs."""
    report = get_container(request).cleanup_service.run()
    return {
        "success": True,
        "message": "GDPR cleanup completed successfully",
        "timestamp": datetime.now(tz=UTC),
        "statistics": {
            "expiredSessions": report.expired_sessions,
            "orphanedBlobs": report.orphaned_blobs,
        },
    }
