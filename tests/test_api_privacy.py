"""Tests for consent, export and erasure endpoints."""

from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from selfie_generator.api.app import create_app
from selfie_generator.api.dependencies import SESSION_COOKIE
from selfie_generator.containers import AppContainer
from selfie_generator.services.sessions import SessionService
from tests.conftest import (
    InMemoryBlobStore,
    InMemorySessionRepository,
    consented,
    paid_session,
)


def _client(container: AppContainer, session_id: UUID | None = None) -> TestClient:
    cookies = {SESSION_COOKIE: str(session_id)} if session_id else None
    return TestClient(create_app(container), cookies=cookies)


def test_health(container: AppContainer) -> None:
    response = _client(container).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_submit_consent_creates_session_and_sets_cookie(
    container: AppContainer,
    session_repository: InMemorySessionRepository,
) -> None:
    response = _client(container).post(
        "/consent",
        json={"dataConsent": True, "cookieConsent": True, "marketingConsent": False},
        headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1", "user-agent": "pytest"},
    )

    assert response.status_code == 200
    body = response.json()
    session_id = UUID(body["sessionId"])
    assert body["dataRetention"] == "24 hours"
    assert "Right to erasure (deletion)" in body["rights"]
    assert session_id in session_repository.sessions
    assert session_repository.clients[session_id].ip_address == "203.0.113.9"
    set_cookie = response.headers["set-cookie"]
    assert f"{SESSION_COOKIE}={session_id}" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "samesite=strict" in set_cookie.lower()
    assert "Max-Age=86400" in set_cookie


def test_submit_consent_requires_answers(container: AppContainer) -> None:
    response = _client(container).post("/consent", json={"dataConsent": True})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_FAILED"


def test_consent_status_without_cookie(container: AppContainer) -> None:
    response = _client(container).get("/consent")

    assert response.status_code == 200
    assert response.json()["hasConsent"] is False


def test_consent_status_for_unknown_session(container: AppContainer) -> None:
    response = _client(container, uuid4()).get("/consent")

    assert response.json() == {
        "hasConsent": False,
        "message": "Session expired or invalid",
    }


def test_consent_status_lists_recent_activities(
    container: AppContainer, session_service: SessionService
) -> None:
    session = session_service.create(consented())

    response = _client(container, session.id).get("/consent")

    body = response.json()
    assert body["hasConsent"] is True
    assert body["consent"] == {"data": True, "cookies": True, "marketing": False}
    assert body["dataProcessingActivities"][0]["action"] == "session_created"
    assert body["dataProcessingActivities"][0]["legalBasis"] == "consent"


def test_data_export_requires_cookie(container: AppContainer) -> None:
    response = _client(container).get("/data-export")

    assert response.status_code == 401
    assert response.json()["error"] == "No active session found"


def test_data_export_returns_attachment(
    container: AppContainer,
    session_service: SessionService,
    blob_store: InMemoryBlobStore,
) -> None:
    session = paid_session(session_service, blob_store)

    response = _client(container, session.id).get("/data-export")

    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        f'attachment; filename="gdpr-data-export-{session.id}.json"'
    )
    export = response.json()["dataExport"]
    assert export["sessionId"] == str(session.id)
    assert export["uploadData"]["filename"] == "selfie.png"
    assert export["paymentData"] == {
        "paymentStatus": "PAID",
        "checkoutId": "cs_test_1",
    }
    actions = [item["action"] for item in export["processingActivities"]]
    assert actions[-1] == "session_created"
    assert "payment_processed" in actions


def test_data_export_reports_configured_retention(
    container: AppContainer, session_service: SessionService
) -> None:
    container.settings = container.settings.model_copy(update={"retention_hours": 12})
    session = session_service.create(consented())

    response = _client(container, session.id).get("/data-export")

    assert response.json()["dataExport"]["dataRetention"] == (
        "12 hours from creation or payment"
    )


def test_delete_requires_matching_cookie(
    container: AppContainer,
    session_service: SessionService,
    session_repository: InMemorySessionRepository,
) -> None:
    session = session_service.create(consented())

    response = _client(container, uuid4()).post(
        "/delete", json={"sessionId": str(session.id)}
    )

    assert response.status_code == 401
    assert session.id in session_repository.sessions


def test_delete_erases_session_and_reports_status(
    container: AppContainer,
    session_service: SessionService,
    session_repository: InMemorySessionRepository,
    blob_store: InMemoryBlobStore,
) -> None:
    session = paid_session(session_service, blob_store)
    client = _client(container, session.id)

    response = client.post(
        "/delete",
        json={"sessionId": str(session.id), "reason": "withdraw_consent"},
    )

    assert response.status_code == 200
    body = response.json()
    assert "Uploaded images" in body["deletedData"]
    assert session.id not in session_repository.sessions
    assert blob_store.blobs == {}
    assert f'{SESSION_COOKIE}=""' in response.headers["set-cookie"]

    status = _client(container).get("/delete", params={"id": body["deletionId"]})
    assert status.status_code == 200
    assert status.json()["status"] == "COMPLETED"
    assert status.json()["sessionId"] == str(session.id)


def test_delete_rejects_unknown_reason(
    container: AppContainer, session_service: SessionService
) -> None:
    session = session_service.create(consented())

    response = _client(container, session.id).post(
        "/delete", json={"sessionId": str(session.id), "reason": "because"}
    )

    assert response.status_code == 400


def test_deletion_status_unknown_request(container: AppContainer) -> None:
    response = _client(container).get("/delete", params={"id": str(uuid4())})

    assert response.status_code == 404
    assert response.json() == {
        "error": "Deletion request not found",
        "code": "NOT_FOUND",
    }
