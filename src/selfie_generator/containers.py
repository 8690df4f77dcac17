"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from selfie_generator.adapters.fal_generation_client import HttpxFalGenerationClient
from selfie_generator.adapters.stripe_payment_gateway import StripePaymentGateway
from selfie_generator.adapters.supabase_blob_store import SupabaseBlobStore
from selfie_generator.adapters.supabase_deletion_request_repository import (
    SupabaseDeletionRequestRepository,
)
from selfie_generator.adapters.supabase_processing_log_repository import (
    SupabaseProcessingLogRepository,
)
from selfie_generator.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from selfie_generator.config import Settings
from selfie_generator.services.cleanup import CleanupService
from selfie_generator.services.generation import GenerationService
from selfie_generator.services.payments import PaymentService
from selfie_generator.services.retry import RetryPolicy
from selfie_generator.services.sessions import SessionService
from selfie_generator.services.uploads import UploadService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_service: SessionService
    upload_service: UploadService
    payment_service: PaymentService
    generation_service: GenerationService
    cleanup_service: CleanupService
    close_resources: Callable[[], Awaitable[None]]


def build_retry_policy(settings: Settings) -> RetryPolicy:
    """Build the provider retry policy from settings."""
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        backoff_seconds=tuple(settings.retry_backoff_seconds),
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    blob_store = SupabaseBlobStore(
        client=supabase_client, bucket=resolved_settings.storage_bucket
    )
    session_service = SessionService(
        session_repository=SupabaseSessionRepository(supabase_client),
        log_repository=SupabaseProcessingLogRepository(supabase_client),
        deletion_repository=SupabaseDeletionRequestRepository(supabase_client),
        blob_store=blob_store,
        retention=timedelta(hours=resolved_settings.retention_hours),
    )
    retry_policy = build_retry_policy(resolved_settings)
    payment_gateway = StripePaymentGateway(
        api_key=resolved_settings.stripe_secret_key,
        webhook_secret=resolved_settings.stripe_webhook_secret,
        price_cents=resolved_settings.price_cents,
        currency=resolved_settings.currency,
        base_url=resolved_settings.public_base_url,
        checkout_expiry_minutes=resolved_settings.checkout_expiry_minutes,
        timeout_seconds=resolved_settings.http_timeout_seconds,
    )
    generation_client = HttpxFalGenerationClient.create(
        api_key=resolved_settings.fal_key,
        model=resolved_settings.fal_model,
        base_url=resolved_settings.fal_base_url,
        timeout_seconds=resolved_settings.http_timeout_seconds,
    )

    async def close_resources() -> None:
        await generation_client.close()

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        upload_service=UploadService(
            session_service=session_service,
            blob_store=blob_store,
            max_upload_bytes=resolved_settings.max_upload_bytes,
        ),
        payment_service=PaymentService(
            gateway=payment_gateway,
            session_service=session_service,
            retry_policy=retry_policy,
        ),
        generation_service=GenerationService(
            client=generation_client,
            session_service=session_service,
            blob_store=blob_store,
            retry_policy=retry_policy,
        ),
        cleanup_service=CleanupService(
            session_service=session_service, blob_store=blob_store
        ),
        close_resources=close_resources,
    )
