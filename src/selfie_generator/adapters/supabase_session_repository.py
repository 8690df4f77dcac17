"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from selfie_generator.domain.sessions import (
    ClientContext,
    ConsentChoices,
    GenerationStatus,
    PaymentStatus,
    SessionRecord,
    UploadReference,
)
from selfie_generator.services.sessions import SessionRepository

_TABLE = "sessions"
_COLUMNS = (
    "id, data_consent, cookie_consent, marketing_consent, upload_path, "
    "upload_filename, upload_content_type, upload_size_bytes, payment_status, "
    "checkout_id, generation_status, generation_job_id, generated_image_path, "
    "created_at, expires_at"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for generation sessions."""

    client: Client

    def create_session(
        self,
        consent: ConsentChoices,
        client: ClientContext,
        created_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        """Create a session row and return it."""
        response = (
            self.client.table(_TABLE)
            .insert(
                {
                    "data_consent": bool(consent.data_consent),
                    "cookie_consent": bool(consent.cookie_consent),
                    "marketing_consent": consent.marketing_consent,
                    "payment_status": PaymentStatus.PENDING.value,
                    "generation_status": GenerationStatus.NOT_STARTED.value,
                    "ip_address": client.ip_address,
                    "user_agent": client.user_agent,
                    "created_at": created_at.isoformat(),
                    "expires_at": expires_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create session")
        return _parse_row(response.data[0])

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def get_active_session(
        self, session_id: UUID, now: datetime
    ) -> SessionRecord | None:
        """Return a session by id only while it is unexpired."""
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("id", str(session_id))
            .gt("expires_at", now.isoformat())
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def attach_upload(self, session_id: UUID, upload: UploadReference) -> None:
        """Store upload metadata on the session row."""
        self.client.table(_TABLE).update(
            {
                "upload_path": upload.path,
                "upload_filename": upload.filename,
                "upload_content_type": upload.content_type,
                "upload_size_bytes": upload.size_bytes,
            }
        ).eq("id", str(session_id)).execute()

    def update_payment(
        self,
        session_id: UUID,
        checkout_id: str | None,
        status: PaymentStatus,
        expires_at: datetime | None,
    ) -> bool:
        """Conditionally update payment fields on a PENDING session."""
        payload: dict[str, object] = {"payment_status": status.value}
        if checkout_id is not None:
            payload["checkout_id"] = checkout_id
        if expires_at is not None:
            payload["expires_at"] = expires_at.isoformat()
        response = (
            self.client.table(_TABLE)
            .update(payload)
            .eq("id", str(session_id))
            .eq("payment_status", PaymentStatus.PENDING.value)
            .execute()
        )
        return bool(response.data)

    def update_generation(  # noqa: PLR0913
        self,
        session_id: UUID,
        status: GenerationStatus,
        expected: GenerationStatus | None = None,
        job_id: str | None = None,
        image_path: str | None = None,
    ) -> bool:
        """Update generation fields, guarded by an expected status if given."""
        payload: dict[str, object] = {"generation_status": status.value}
        if job_id is not None:
            payload["generation_job_id"] = job_id
        if image_path is not None:
            payload["generated_image_path"] = image_path
        query = self.client.table(_TABLE).update(payload).eq("id", str(session_id))
        if expected is not None:
            query = query.eq("generation_status", expected.value)
        response = query.execute()
        return bool(response.data)

    def delete_session(self, session_id: UUID) -> bool:
        """Delete a session row; processing logs cascade."""
        response = (
            self.client.table(_TABLE).delete().eq("id", str(session_id)).execute()
        )
        return bool(response.data)

    def list_expired_session_ids(self, now: datetime) -> list[UUID]:
        """Return ids of sessions that expired before ``now``."""
        response = (
            self.client.table(_TABLE)
            .select("id")
            .lt("expires_at", now.isoformat())
            .execute()
        )
        return [UUID(row["id"]) for row in response.data or []]


def _parse_row(row: dict[str, object]) -> SessionRecord:
    upload = None
    if row.get("upload_path"):
        upload = UploadReference(
            path=str(row["upload_path"]),
            filename=str(row.get("upload_filename") or ""),
            content_type=str(row.get("upload_content_type") or ""),
            size_bytes=int(row.get("upload_size_bytes") or 0),
        )
    return SessionRecord(
        id=UUID(str(row["id"])),
        data_consent=bool(row.get("data_consent")),
        cookie_consent=bool(row.get("cookie_consent")),
        marketing_consent=bool(row.get("marketing_consent")),
        payment_status=PaymentStatus(row.get("payment_status") or "PENDING"),
        checkout_id=row.get("checkout_id"),
        generation_status=GenerationStatus(
            row.get("generation_status") or "NOT_STARTED"
        ),
        generation_job_id=row.get("generation_job_id"),
        generated_image_path=row.get("generated_image_path"),
        upload=upload,
        created_at=datetime.fromisoformat(str(row["created_at"])),
        expires_at=datetime.fromisoformat(str(row["expires_at"])),
    )
