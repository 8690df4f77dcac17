"""Stripe Checkout payment gateway."""

import asyncio
import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import stripe

from selfie_generator.config import cancel_url, success_url
from selfie_generator.domain.payments import CheckoutReference, CheckoutStatus
from selfie_generator.errors import SignatureError, UpstreamError, ValidationError
from selfie_generator.services.payments import PaymentGateway

# Stripe rejects checkout expiries closer than 30 minutes.
_EXPIRY_GRACE_SECONDS = 60
_SIGNATURE_TOLERANCE_SECONDS = 300
_REJECTED_ERRORS = (
    stripe.AuthenticationError,
    stripe.PermissionError,
    stripe.InvalidRequestError,
)


@dataclass
class StripePaymentGateway(PaymentGateway):
    """Payment gateway backed by Stripe Checkout Sessions."""

    api_key: str
    webhook_secret: str
    price_cents: int
    currency: str
    base_url: str
    checkout_expiry_minutes: int = 30
    timeout_seconds: float = 20.0
    checkout_api: Any = stripe.checkout.Session

    async def create_checkout(self, session_id: UUID) -> CheckoutReference:
        """Create a one-off card checkout for a selfie generation."""
        expires_at = (
            int(time.time())
            + self.checkout_expiry_minutes * 60
            + _EXPIRY_GRACE_SECONDS
        )
        checkout = await self._call(
            self.checkout_api.create,
            api_key=self.api_key,
            mode="payment",
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": "AI Selfie Generation",
                            "description": "Professional AI selfie",
                        },
                        "unit_amount": self.price_cents,
                    },
                    "quantity": 1,
                }
            ],
            success_url=success_url(self.base_url, str(session_id)),
            cancel_url=cancel_url(self.base_url, str(session_id)),
            client_reference_id=str(session_id),
            metadata={
                "sessionId": str(session_id),
                "service": "selfie_generation",
                "gdprConsent": "true",
            },
            expires_at=expires_at,
        )
        return CheckoutReference(
            external_id=checkout["id"], redirect_url=checkout["url"]
        )

    async def retrieve_checkout(self, external_id: str) -> CheckoutStatus:
        """Retrieve a checkout's payment status."""
        checkout = await self._call(
            self.checkout_api.retrieve, external_id, api_key=self.api_key
        )
        return CheckoutStatus(
            external_id=external_id,
            payment_status=str(checkout["payment_status"]),
        )

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, object]:
        """Verify the Stripe-Signature header and decode the event."""
        try:
            text = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                text,
                signature,
                self.webhook_secret,
                tolerance=_SIGNATURE_TOLERANCE_SECONDS,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            raise SignatureError() from exc
        try:
            event = json.loads(text)
        except ValueError as exc:
            raise ValidationError("Invalid webhook payload") from exc
        if not isinstance(event, dict):
            raise ValidationError("Invalid webhook payload")
        return event

    async def _call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking Stripe call off the event loop with a bounded timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as exc:
            raise UpstreamError("Payment provider timed out") from exc
        except _REJECTED_ERRORS as exc:
            raise UpstreamError(
                "Payment provider rejected the request", retryable=False
            ) from exc
        except stripe.StripeError as exc:
            raise UpstreamError("Payment provider request failed") from exc
