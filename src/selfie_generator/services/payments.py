"""Checkout creation, verification and webhook handling."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from selfie_generator.domain.payments import CheckoutReference, CheckoutStatus
from selfie_generator.domain.sessions import PaymentStatus, SessionRecord
from selfie_generator.errors import NotFoundError, SignatureError, ValidationError
from selfie_generator.services.retry import RetryPolicy
from selfie_generator.services.sessions import SessionService

_logger = logging.getLogger(__name__)

_PAID_EVENTS = {"checkout.session.async_payment_succeeded"}
_FAILED_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}
# Checkout lets the customer retry a declined card until the checkout expires.
_DECLINED_EVENTS = {"payment_intent.payment_failed"}
_PAID_CHECKOUT_STATUSES = {"paid", "no_payment_required"}


class PaymentGateway(Protocol):
    """Interface for the hosted checkout provider."""

    async def create_checkout(self, session_id: UUID) -> CheckoutReference:
        """Create a hosted checkout for a session."""

    async def retrieve_checkout(self, external_id: str) -> CheckoutStatus:
        """Fetch the provider-side status of a checkout."""

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, object]:
        """Verify a signed webhook payload and return the decoded event."""


@dataclass(frozen=True)
class PaymentVerification:
    """Outcome of a payment verification request."""

    session: SessionRecord
    provider_status: str

    @property
    def paid(self) -> bool:
        return self.session.payment_status is PaymentStatus.PAID


@dataclass
class PaymentService:
    """Bridges sessions and the checkout provider."""

    gateway: PaymentGateway
    session_service: SessionService
    retry_policy: RetryPolicy

    async def start_checkout(self, session_id: UUID) -> CheckoutReference:
        """Create a checkout for an active, consented, unpaid session."""
        session = self.session_service.get_active(session_id)
        self.session_service.require_processing_consent(session)
        if session.upload is None:
            raise ValidationError("Upload an image before starting payment")
        if session.payment_status is PaymentStatus.PAID:
            raise ValidationError("Session already paid")
        if session.payment_status is PaymentStatus.FAILED:
            raise ValidationError("Payment failed for this session, start a new one")

        checkout = await self.retry_policy.call(
            lambda: self.gateway.create_checkout(session_id),
            action="create_checkout",
        )
        self.session_service.update_payment_status(
            session_id, checkout.external_id, PaymentStatus.PENDING
        )
        return checkout

    async def verify_payment(
        self, checkout_id: str, session_id: UUID
    ) -> PaymentVerification:
        """Confirm a checkout with the provider and record a successful payment."""
        session = self.session_service.get_active(session_id)
        if session.checkout_id != checkout_id:
            raise ValidationError("Session mismatch")
        if session.payment_status is PaymentStatus.PAID:
            return PaymentVerification(session=session, provider_status="paid")

        status = await self.retry_policy.call(
            lambda: self.gateway.retrieve_checkout(checkout_id),
            action="retrieve_checkout",
        )
        if status.payment_status in _PAID_CHECKOUT_STATUSES:
            session = self.session_service.update_payment_status(
                session_id, checkout_id, PaymentStatus.PAID
            )
        return PaymentVerification(
            session=session, provider_status=status.payment_status
        )

    def handle_webhook(self, payload: bytes, signature: str | None) -> UUID | None:
        """Apply a verified provider event.

        Returns the session id when the event marked it PAID.
        """
        if not signature:
            raise SignatureError()
        event = self.gateway.verify_webhook(payload, signature)
        event_type = str(event.get("type", ""))
        data = event.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        if not isinstance(obj, dict):
            _logger.warning("Webhook event without object", extra={"type": event_type})
            return None

        if event_type == "checkout.session.completed":
            if obj.get("payment_status") in _PAID_CHECKOUT_STATUSES:
                return self._apply(obj, PaymentStatus.PAID, event_type)
            _logger.info("Checkout completed, awaiting async payment")
            return None
        if event_type in _PAID_EVENTS:
            return self._apply(obj, PaymentStatus.PAID, event_type)
        if event_type in _FAILED_EVENTS:
            self._apply(obj, PaymentStatus.FAILED, event_type)
            return None
        if event_type in _DECLINED_EVENTS:
            _logger.info(
                "Payment attempt declined, checkout stays open",
                extra={"type": event_type, "payment_intent": str(obj.get("id"))},
            )
            return None
        _logger.info("Unhandled webhook event type: %s", event_type)
        return None

    def _apply(
        self, obj: dict[str, object], status: PaymentStatus, event_type: str
    ) -> UUID | None:
        session_id = _session_id_from_checkout(obj)
        if session_id is None:
            _logger.error(
                "Missing sessionId in checkout metadata", extra={"type": event_type}
            )
            return None
        checkout_id = obj.get("id")
        try:
            session = self.session_service.update_payment_status(
                session_id,
                str(checkout_id) if checkout_id else None,
                status,
            )
        except NotFoundError:
            _logger.warning(
                "Webhook for unknown or expired session",
                extra={"session_id": str(session_id), "type": event_type},
            )
            return None
        _logger.info(
            "Session payment status is %s",
            session.payment_status.value,
            extra={"session_id": str(session_id), "type": event_type},
        )
        if session.payment_status is PaymentStatus.PAID:
            return session_id
        return None


def _session_id_from_checkout(obj: dict[str, object]) -> UUID | None:
    """Read the app session id from checkout metadata or client reference."""
    metadata = obj.get("metadata")
    raw = metadata.get("sessionId") if isinstance(metadata, dict) else None
    raw = raw or obj.get("client_reference_id")
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None
