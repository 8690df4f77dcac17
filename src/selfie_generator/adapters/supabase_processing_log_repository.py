"""Supabase repository for GDPR processing logs."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from selfie_generator.domain.sessions import ProcessingLogEntry
from selfie_generator.services.sessions import ProcessingLogRepository


@dataclass
class SupabaseProcessingLogRepository(ProcessingLogRepository):
    """Supabase-backed processing log repository."""

    client: Client

    def append(self, session_id: UUID, entry: ProcessingLogEntry) -> None:
        """Insert a processing log row."""
        self.client.table("processing_logs").insert(
            {
                "session_id": str(session_id),
                "action": entry.action,
                "purpose": entry.purpose,
                "legal_basis": entry.legal_basis,
                "data_types": list(entry.data_types),
                "logged_at": entry.timestamp.isoformat(),
            }
        ).execute()

    def list_entries(
        self, session_id: UUID, limit: int | None = None
    ) -> list[ProcessingLogEntry]:
        """Return processing log rows for a session, newest first."""
        query = (
            self.client.table("processing_logs")
            .select("action, purpose, legal_basis, data_types, logged_at")
            .eq("session_id", str(session_id))
            .order("logged_at", desc=True)
        )
        if limit is not None:
            query = query.limit(limit)
        response = query.execute()
        return [
            ProcessingLogEntry(
                action=row["action"],
                purpose=row["purpose"],
                legal_basis=row["legal_basis"],
                data_types=tuple(row.get("data_types") or ()),
                timestamp=datetime.fromisoformat(row["logged_at"]),
            )
            for row in response.data or []
        ]
