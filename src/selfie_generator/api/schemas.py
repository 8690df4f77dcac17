"""Pydantic models for API request payloads."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ConsentPayload(_CamelModel):
    """Consent choices submitted from the banner."""

    data_consent: bool | None = Field(default=None, alias="dataConsent")
    cookie_consent: bool | None = Field(default=None, alias="cookieConsent")
    marketing_consent: bool = Field(default=False, alias="marketingConsent")


class PaymentSessionPayload(_CamelModel):
    """Request to start a checkout."""

    session_id: UUID = Field(alias="sessionId")


class VerifyPaymentPayload(_CamelModel):
    """Request to confirm a checkout after redirect."""

    checkout_id: str = Field(alias="checkoutId", min_length=1)
    session_id: UUID = Field(alias="sessionId")


class DeletePayload(_CamelModel):
    """GDPR Article 17 erasure request."""

    session_id: UUID = Field(alias="sessionId")
    reason: (
        Literal["no_longer_needed", "withdraw_consent", "unlawful_processing", "other"]
        | None
    ) = None
