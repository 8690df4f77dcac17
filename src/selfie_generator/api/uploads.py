"""Selfie upload and generation result endpoints."""

from __future__ import annotations

from fastapi import APIRouter, File, Form, Request, Response, UploadFile

from selfie_generator.api.dependencies import (
    client_context,
    get_container,
    read_session_cookie,
    require_session_cookie,
    set_session_cookie,
)
from selfie_generator.domain.sessions import ConsentChoices, SessionRecord
from selfie_generator.services.generation import GENERATED_CONTENT_TYPE

router = APIRouter(tags=["uploads"])


@router.post("/upload")
async def upload_selfie(  # noqa: PLR0913
    request: Request,
    response: Response,
    file: UploadFile = File(...),
    data_consent: bool | None = Form(default=None, alias="dataConsent"),
    cookie_consent: bool | None = Form(default=None, alias="cookieConsent"),
    marketing_consent: bool = Form(default=False, alias="marketingConsent"),
) -> dict[str, object]:
    """Store a selfie on the cookie session, creating a session if needed."""
    container = get_container(request)
    data = await file.read()
    session = container.upload_service.accept_upload(
        session_id=read_session_cookie(request),
        consent=ConsentChoices(
            data_consent=data_consent,
            cookie_consent=cookie_consent,
            marketing_consent=marketing_consent,
        ),
        client=client_context(request),
        filename=file.filename or "upload",
        declared_type=file.content_type,
        data=data,
    )
    set_session_cookie(response, session.id, container)
    upload = session.upload
    return {
        "success": True,
        "sessionId": str(session.id),
        "filename": upload.filename if upload else None,
        "sizeBytes": upload.size_bytes if upload else 0,
        "expiresAt": session.expires_at,
    }


@router.get("/generation")
async def generation_status(request: Request) -> dict[str, object]:
    """Poll the generation job of the cookie session."""
    session_id = require_session_cookie(request)
    session = await get_container(request).generation_service.refresh(session_id)
    return _format_generation(session)


@router.get("/generation/image")
async def generated_image(request: Request) -> Response:
    """Return the stored generated image."""
    session_id = require_session_cookie(request)
    image = get_container(request).generation_service.read_generated_image(
        session_id
    )
    return Response(
        content=image,
        media_type=GENERATED_CONTENT_TYPE,
        headers={"Cache-Control": "private, no-store"},
    )


def _format_generation(session: SessionRecord) -> dict[str, object]:
    return {
        "sessionId": str(session.id),
        "paymentStatus": session.payment_status.value,
        "generationStatus": session.generation_status.value,
        "imageAvailable": session.generated_image_path is not None,
        "expiresAt": session.expires_at,
    }
