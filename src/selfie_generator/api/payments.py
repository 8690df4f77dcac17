"""Checkout, payment verification and provider webhook endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Request

from selfie_generator.api.dependencies import get_container
from selfie_generator.api.schemas import PaymentSessionPayload, VerifyPaymentPayload

if TYPE_CHECKING:
    from selfie_generator.containers import AppContainer

router = APIRouter(tags=["payments"])
logger = logging.getLogger(__name__)


@router.post("/payment-session")
async def create_payment_session(
    payload: PaymentSessionPayload, request: Request
) -> dict[str, object]:
    """Create a hosted checkout for an uploaded, consented session."""
    container = get_container(request)
    checkout = await container.payment_service.start_checkout(payload.session_id)
    return {
        "success": True,
        "paymentUrl": checkout.redirect_url,
        "checkoutId": checkout.external_id,
    }


@router.post("/verify-payment")
async def verify_payment(
    payload: VerifyPaymentPayload,
    request: Request,
    background_tasks: BackgroundTasks,
) -> dict[str, object]:
    """Confirm a checkout after the provider redirect."""
    container = get_container(request)
    verification = await container.payment_service.verify_payment(
        payload.checkout_id, payload.session_id
    )
    session = verification.session
    if verification.paid:
        background_tasks.add_task(start_generation, container, session.id)
    return {
        "success": verification.paid,
        "paymentStatus": session.payment_status.value,
        "providerStatus": verification.provider_status,
        "generationStatus": session.generation_status.value,
        "sessionId": str(session.id),
    }


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request, background_tasks: BackgroundTasks
) -> dict[str, bool]:
    """Apply a signed checkout event."""
    container = get_container(request)
    payload = await request.body()
    paid_session_id = container.payment_service.handle_webhook(
        payload, request.headers.get("stripe-signature")
    )
    if paid_session_id is not None:
        background_tasks.add_task(start_generation, container, paid_session_id)
    return {"received": True}


async def start_generation(container: AppContainer, session_id: UUID) -> None:
    """Kick off generation after payment without failing the response."""
    try:
        await container.generation_service.start(session_id)
    except Exception:
        logger.exception(
            "Background generation start failed",
            extra={"session_id": str(session_id)},
        )
