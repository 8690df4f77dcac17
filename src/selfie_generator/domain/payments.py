"""Domain models for the checkout provider."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CheckoutReference:
    """A hosted checkout created for a session."""

    external_id: str
    redirect_url: str


@dataclass(frozen=True)
class CheckoutStatus:
    """Provider-side state of a checkout."""

    external_id: str
    payment_status: str

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"
