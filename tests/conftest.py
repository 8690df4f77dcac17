"""Shared test fixtures."""

import json
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from io import BytesIO
from uuid import UUID, uuid4

import pytest
from PIL import Image

from selfie_generator.config import Settings
from selfie_generator.containers import AppContainer
from selfie_generator.domain.generation import GenerationPoll
from selfie_generator.domain.payments import CheckoutReference, CheckoutStatus
from selfie_generator.domain.sessions import (
    ClientContext,
    ConsentChoices,
    DeletionRequest,
    DeletionStatus,
    GenerationStatus,
    PaymentStatus,
    ProcessingLogEntry,
    SessionRecord,
    UploadReference,
)
from selfie_generator.errors import SignatureError
from selfie_generator.services.cleanup import CleanupService
from selfie_generator.services.generation import GenerationClient, GenerationService
from selfie_generator.services.payments import PaymentGateway, PaymentService
from selfie_generator.services.retry import RetryPolicy
from selfie_generator.services.sessions import (
    DeletionRequestRepository,
    ProcessingLogRepository,
    SessionRepository,
    SessionService,
)
from selfie_generator.services.storage import BlobStore
from selfie_generator.services.uploads import UploadService


def _image_bytes(image_format: str) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (8, 8), (200, 120, 90)).save(buffer, format=image_format)
    return buffer.getvalue()


PNG_BYTES = _image_bytes("PNG")
JPEG_BYTES = _image_bytes("JPEG")
VALID_SIGNATURE = "valid-signature"


@dataclass
class MutableClock:
    """Clock that tests can move forward."""

    now: datetime = field(
        default_factory=lambda: datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[UUID, SessionRecord] = field(default_factory=dict)
    clients: dict[UUID, ClientContext] = field(default_factory=dict)

    def create_session(
        self,
        consent: ConsentChoices,
        client: ClientContext,
        created_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        session = SessionRecord(
            id=uuid4(),
            data_consent=bool(consent.data_consent),
            cookie_consent=bool(consent.cookie_consent),
            marketing_consent=consent.marketing_consent,
            payment_status=PaymentStatus.PENDING,
            checkout_id=None,
            generation_status=GenerationStatus.NOT_STARTED,
            generation_job_id=None,
            generated_image_path=None,
            upload=None,
            created_at=created_at,
            expires_at=expires_at,
        )
        self.sessions[session.id] = session
        self.clients[session.id] = client
        return session

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def get_active_session(
        self, session_id: UUID, now: datetime
    ) -> SessionRecord | None:
        session = self.sessions.get(session_id)
        if session is None or not session.is_active(now):
            return None
        return session

    def attach_upload(self, session_id: UUID, upload: UploadReference) -> None:
        session = self.sessions.get(session_id)
        if session is not None:
            self.sessions[session_id] = replace(session, upload=upload)

    def update_payment(
        self,
        session_id: UUID,
        checkout_id: str | None,
        status: PaymentStatus,
        expires_at: datetime | None,
    ) -> bool:
        session = self.sessions.get(session_id)
        if session is None or session.payment_status is not PaymentStatus.PENDING:
            return False
        self.sessions[session_id] = replace(
            session,
            payment_status=status,
            checkout_id=checkout_id or session.checkout_id,
            expires_at=expires_at or session.expires_at,
        )
        return True

    def update_generation(  # noqa: PLR0913
        self,
        session_id: UUID,
        status: GenerationStatus,
        expected: GenerationStatus | None = None,
        job_id: str | None = None,
        image_path: str | None = None,
    ) -> bool:
        session = self.sessions.get(session_id)
        if session is None:
            return False
        if expected is not None and session.generation_status is not expected:
            return False
        self.sessions[session_id] = replace(
            session,
            generation_status=status,
            generation_job_id=job_id or session.generation_job_id,
            generated_image_path=image_path or session.generated_image_path,
        )
        return True

    def delete_session(self, session_id: UUID) -> bool:
        return self.sessions.pop(session_id, None) is not None

    def list_expired_session_ids(self, now: datetime) -> list[UUID]:
        return [
            session.id
            for session in self.sessions.values()
            if session.expires_at < now
        ]


@dataclass
class InMemoryProcessingLogRepository(ProcessingLogRepository):
    """In-memory processing log repository for tests."""

    entries: dict[UUID, list[ProcessingLogEntry]] = field(default_factory=dict)

    def append(self, session_id: UUID, entry: ProcessingLogEntry) -> None:
        self.entries.setdefault(session_id, []).append(entry)

    def list_entries(
        self, session_id: UUID, limit: int | None = None
    ) -> list[ProcessingLogEntry]:
        newest_first = list(reversed(self.entries.get(session_id, [])))
        return newest_first[:limit] if limit is not None else newest_first

    def actions(self, session_id: UUID) -> list[str]:
        return [entry.action for entry in self.entries.get(session_id, [])]


@dataclass
class InMemoryDeletionRequestRepository(DeletionRequestRepository):
    """In-memory deletion request repository for tests."""

    requests: dict[UUID, DeletionRequest] = field(default_factory=dict)

    def create_request(
        self, session_id: UUID, reason: str | None, requested_at: datetime
    ) -> DeletionRequest:
        request = DeletionRequest(
            id=uuid4(),
            session_id=session_id,
            status=DeletionStatus.PENDING,
            reason=reason,
            requested_at=requested_at,
            processed_at=None,
        )
        self.requests[request.id] = request
        return request

    def get_request(self, request_id: UUID) -> DeletionRequest | None:
        return self.requests.get(request_id)

    def complete_pending(self, session_id: UUID, processed_at: datetime) -> int:
        completed = 0
        for request_id, request in list(self.requests.items()):
            if (
                request.session_id == session_id
                and request.status is DeletionStatus.PENDING
            ):
                self.requests[request_id] = replace(
                    request,
                    status=DeletionStatus.COMPLETED,
                    processed_at=processed_at,
                )
                completed += 1
        return completed


@dataclass
class InMemoryBlobStore(BlobStore):
    """In-memory blob store with optional failure injection."""

    blobs: dict[str, tuple[bytes, str]] = field(default_factory=dict)
    fail_remove: bool = False
    fail_list: bool = False

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        self.blobs[path] = (data, content_type)

    def download(self, path: str) -> bytes:
        return self.blobs[path][0]

    def remove(self, paths: list[str]) -> None:
        if self.fail_remove:
            raise RuntimeError("storage unavailable")
        for path in paths:
            self.blobs.pop(path, None)

    def list_paths(self, prefix: str) -> list[str]:
        if self.fail_list:
            raise RuntimeError("storage unavailable")
        return [path for path in self.blobs if path.startswith(f"{prefix}/")]


@dataclass
class FakePaymentGateway(PaymentGateway):
    """Fake checkout provider that records calls."""

    checkout_status: str = "paid"
    created: list[UUID] = field(default_factory=list)
    retrieved: list[str] = field(default_factory=list)
    create_errors: list[Exception] = field(default_factory=list)

    async def create_checkout(self, session_id: UUID) -> CheckoutReference:
        self.created.append(session_id)
        if self.create_errors:
            raise self.create_errors.pop(0)
        external_id = f"cs_test_{len(self.created)}"
        return CheckoutReference(
            external_id=external_id,
            redirect_url=f"https://checkout.example/{external_id}",
        )

    async def retrieve_checkout(self, external_id: str) -> CheckoutStatus:
        self.retrieved.append(external_id)
        return CheckoutStatus(
            external_id=external_id, payment_status=self.checkout_status
        )

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, object]:
        if signature != VALID_SIGNATURE:
            raise SignatureError()
        return json.loads(payload)


@dataclass
class FakeGenerationClient(GenerationClient):
    """Fake generation provider with scripted poll results."""

    job_id: str = "job-1"
    polls: list[GenerationPoll] = field(default_factory=list)
    result_bytes: bytes = JPEG_BYTES
    submit_errors: list[Exception] = field(default_factory=list)
    submitted: list[tuple[UUID, bytes, str]] = field(default_factory=list)

    async def submit(
        self, session_id: UUID, image_bytes: bytes, content_type: str
    ) -> str:
        self.submitted.append((session_id, image_bytes, content_type))
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        return self.job_id

    async def poll_status(self, job_id: str) -> GenerationPoll:
        if self.polls:
            return self.polls.pop(0)
        return GenerationPoll(status=GenerationStatus.IN_PROGRESS)

    async def download(self, result_url: str) -> bytes:
        return self.result_bytes


def stripe_event(
    event_type: str, session_id: UUID, **checkout_fields: object
) -> bytes:
    """Build a checkout webhook payload."""
    checkout: dict[str, object] = {
        "id": "cs_test_1",
        "object": "checkout.session",
        "client_reference_id": str(session_id),
        "metadata": {"sessionId": str(session_id)},
        "payment_status": "paid",
    }
    checkout.update(checkout_fields)
    return json.dumps(
        {"id": "evt_1", "type": event_type, "data": {"object": checkout}}
    ).encode()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        stripe_secret_key="sk_test_key",
        stripe_webhook_secret="whsec_test",
        fal_key="fal-key",
        cron_secret="cron-secret",
        environment="local",
    )


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def log_repository() -> InMemoryProcessingLogRepository:
    return InMemoryProcessingLogRepository()


@pytest.fixture
def deletion_repository() -> InMemoryDeletionRequestRepository:
    return InMemoryDeletionRequestRepository()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def generation_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, backoff_seconds=(0.0,))


@pytest.fixture
def session_service(  # noqa: PLR0913
    session_repository: InMemorySessionRepository,
    log_repository: InMemoryProcessingLogRepository,
    deletion_repository: InMemoryDeletionRequestRepository,
    blob_store: InMemoryBlobStore,
    clock: MutableClock,
) -> SessionService:
    return SessionService(
        session_repository=session_repository,
        log_repository=log_repository,
        deletion_repository=deletion_repository,
        blob_store=blob_store,
        clock=clock,
    )


@pytest.fixture
def upload_service(
    session_service: SessionService, blob_store: InMemoryBlobStore
) -> UploadService:
    return UploadService(session_service=session_service, blob_store=blob_store)


@pytest.fixture
def payment_service(
    session_service: SessionService,
    payment_gateway: FakePaymentGateway,
    retry_policy: RetryPolicy,
) -> PaymentService:
    return PaymentService(
        gateway=payment_gateway,
        session_service=session_service,
        retry_policy=retry_policy,
    )


@pytest.fixture
def generation_service(
    session_service: SessionService,
    generation_client: FakeGenerationClient,
    blob_store: InMemoryBlobStore,
    retry_policy: RetryPolicy,
) -> GenerationService:
    return GenerationService(
        client=generation_client,
        session_service=session_service,
        blob_store=blob_store,
        retry_policy=retry_policy,
    )


@pytest.fixture
def cleanup_service(
    session_service: SessionService, blob_store: InMemoryBlobStore
) -> CleanupService:
    return CleanupService(session_service=session_service, blob_store=blob_store)


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    session_service: SessionService,
    upload_service: UploadService,
    payment_service: PaymentService,
    generation_service: GenerationService,
    cleanup_service: CleanupService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_service=session_service,
        upload_service=upload_service,
        payment_service=payment_service,
        generation_service=generation_service,
        cleanup_service=cleanup_service,
        close_resources=close_resources,
    )


def consented() -> ConsentChoices:
    return ConsentChoices(data_consent=True, cookie_consent=True)


def uploaded_session(
    session_service: SessionService, blob_store: InMemoryBlobStore
) -> SessionRecord:
    """Create a consented session with a stored PNG upload."""
    session = session_service.create(consented())
    path = f"uploads/{session.id}.png"
    blob_store.upload(path, PNG_BYTES, "image/png")
    upload = UploadReference(
        path=path,
        filename="selfie.png",
        content_type="image/png",
        size_bytes=len(PNG_BYTES),
    )
    session_service.attach_upload(session.id, upload)
    return session_service.get_active(session.id)


def paid_session(
    session_service: SessionService, blob_store: InMemoryBlobStore
) -> SessionRecord:
    """Create an uploaded session that has completed payment."""
    session = uploaded_session(session_service, blob_store)
    session_service.update_payment_status(
        session.id, "cs_test_1", PaymentStatus.PENDING
    )
    return session_service.update_payment_status(
        session.id, "cs_test_1", PaymentStatus.PAID
    )
