"""GDPR consent, data export and erasure endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from selfie_generator.api.dependencies import (
    SESSION_COOKIE,
    client_context,
    get_container,
    read_session_cookie,
    require_session_cookie,
    set_session_cookie,
)
from selfie_generator.api.schemas import ConsentPayload, DeletePayload
from selfie_generator.domain.sessions import (
    ConsentChoices,
    DeletionRequest,
    ProcessingLogEntry,
    SessionRecord,
)
from selfie_generator.errors import NotFoundError, UnauthorizedError

router = APIRouter(tags=["privacy"])

_RIGHTS = [
    "Right to access your data",
    "Right to rectification",
    "Right to erasure (deletion)",
    "Right to data portability",
    "Right to object to processing",
]

_DELETED_DATA = [
    "Session information",
    "Uploaded images",
    "Generated images",
    "Payment session data",
    "Processing logs",
]


@router.post("/consent")
async def submit_consent(
    payload: ConsentPayload, request: Request, response: Response
) -> dict[str, object]:
    """Create a session from the submitted consent choices."""
    container = get_container(request)
    session = container.session_service.create(
        ConsentChoices(
            data_consent=payload.data_consent,
            cookie_consent=payload.cookie_consent,
            marketing_consent=payload.marketing_consent,
        ),
        client_context(request),
    )
    set_session_cookie(response, session.id, container)
    return {
        "success": True,
        "sessionId": str(session.id),
        "message": "Consent preferences saved",
        "dataRetention": f"{container.settings.retention_hours} hours",
        "rights": _RIGHTS,
    }


@router.get("/consent")
async def consent_status(request: Request) -> dict[str, object]:
    """Return consent status for the cookie session."""
    session_id = read_session_cookie(request)
    if session_id is None:
        return {"hasConsent": False, "message": "No consent session found"}
    container = get_container(request)
    try:
        session = container.session_service.get_active(session_id)
    except NotFoundError:
        return {"hasConsent": False, "message": "Session expired or invalid"}
    return {
        "hasConsent": True,
        "sessionId": str(session.id),
        "consent": {
            "data": session.data_consent,
            "cookies": session.cookie_consent,
            "marketing": session.marketing_consent,
        },
        "expiresAt": session.expires_at,
        "dataProcessingActivities": [
            _format_activity(entry) for entry in session.processing_log
        ],
    }


@router.get("/data-export")
async def data_export(request: Request) -> JSONResponse:
    """GDPR Article 20 export of everything held for the cookie session."""
    session_id = require_session_cookie(request)
    container = get_container(request)
    service = container.session_service
    session = service.get_active(session_id)
    history = service.processing_history(session_id)
    document = _format_export(
        session,
        history,
        exported_at=datetime.now(tz=UTC),
        retention_hours=container.settings.retention_hours,
    )
    return JSONResponse(
        jsonable_encoder(document),
        headers={
            "Content-Disposition": (
                f'attachment; filename="gdpr-data-export-{session_id}.json"'
            )
        },
    )


@router.post("/delete")
async def delete_data(payload: DeletePayload, request: Request) -> JSONResponse:
    """GDPR Article 17 erasure of the caller's own session."""
    if read_session_cookie(request) != payload.session_id:
        raise UnauthorizedError("Unauthorized deletion request")
    service = get_container(request).session_service
    deletion = service.request_deletion(payload.session_id, reason=payload.reason)
    response = JSONResponse(
        jsonable_encoder(
            {
                "success": True,
                "message": "Your data has been deleted as requested",
                "deletedData": _DELETED_DATA,
                "deletionId": str(deletion.id),
                "deletedAt": deletion.processed_at or datetime.now(tz=UTC),
            }
        )
    )
    response.delete_cookie(SESSION_COOKIE, path="/")
    return response


@router.get("/delete")
async def deletion_status(
    id: UUID,  # noqa: A002
    request: Request,
) -> dict[str, object]:
    """Return the status of a deletion request."""
    deletion = get_container(request).session_service.get_deletion_request(id)
    return _format_deletion(deletion)


def _format_activity(entry: ProcessingLogEntry) -> dict[str, object]:
    return {
        "action": entry.action,
        "purpose": entry.purpose,
        "legalBasis": entry.legal_basis,
        "dataTypes": list(entry.data_types),
        "timestamp": entry.timestamp,
    }


def _format_deletion(deletion: DeletionRequest) -> dict[str, object]:
    return {
        "id": str(deletion.id),
        "sessionId": str(deletion.session_id),
        "status": deletion.status.value,
        "requestedAt": deletion.requested_at,
        "processedAt": deletion.processed_at,
    }


def _format_export(
    session: SessionRecord,
    history: list[ProcessingLogEntry],
    exported_at: datetime,
    retention_hours: int,
) -> dict[str, object]:
    """Build the portable export document for a session."""
    upload = session.upload
    return {
        "dataExport": {
            "exportDate": exported_at,
            "sessionId": str(session.id),
            "dataRetention": f"{retention_hours} hours from creation or payment",
            "sessionData": {
                "createdAt": session.created_at,
                "expiresAt": session.expires_at,
                "dataConsent": session.data_consent,
                "cookieConsent": session.cookie_consent,
                "marketingConsent": session.marketing_consent,
            },
            "uploadData": (
                {
                    "filename": upload.filename,
                    "contentType": upload.content_type,
                    "sizeBytes": upload.size_bytes,
                }
                if upload
                else None
            ),
            "paymentData": (
                {
                    "paymentStatus": session.payment_status.value,
                    "checkoutId": session.checkout_id,
                }
                if session.checkout_id
                else None
            ),
            "generationData": {
                "status": session.generation_status.value,
                "hasGeneratedImage": session.generated_image_path is not None,
            },
            "processingActivities": [_format_activity(entry) for entry in history],
            "yourRights": {
                "rightToAccess": "You can access your personal data",
                "rightToRectification": "You can correct inaccurate personal data",
                "rightToErasure": "You can request deletion of your data",
                "rightToPortability": "You can export your data (this export)",
                "rightToObject": "You can object to processing",
                "rightToWithdrawConsent": "You can withdraw consent at any time",
            },
            "dataController": {
                "name": "AI Selfie Generator",
                "email": "privacy@aiselfiegenerator.com",
                "dataProtectionOfficer": "dpo@aiselfiegenerator.com",
            },
        }
    }
