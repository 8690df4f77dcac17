"""Request helpers shared by the API routers."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import Request, Response

from selfie_generator.domain.sessions import ClientContext
from selfie_generator.errors import UnauthorizedError

if TYPE_CHECKING:
    from selfie_generator.containers import AppContainer

SESSION_COOKIE = "gdpr-session"


def get_container(request: Request) -> AppContainer:
    """Return the dependency container attached to the app."""
    return request.app.state.container


def read_session_cookie(request: Request) -> UUID | None:
    """Return the session id from the cookie, ignoring malformed values."""
    raw = request.cookies.get(SESSION_COOKIE)
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        return None


def require_session_cookie(request: Request) -> UUID:
    """Return the cookie session id or reject the request."""
    session_id = read_session_cookie(request)
    if session_id is None:
        raise UnauthorizedError("No active session found")
    return session_id


def set_session_cookie(
    response: Response, session_id: UUID, container: AppContainer
) -> None:
    """Attach the httpOnly session cookie for the retention window."""
    response.set_cookie(
        SESSION_COOKIE,
        str(session_id),
        max_age=container.settings.retention_hours * 60 * 60,
        httponly=True,
        secure=container.settings.secure_cookies,
        samesite="strict",
        path="/",
    )


def client_context(request: Request) -> ClientContext:
    """Capture the first forwarded IP and user agent for security logs."""
    forwarded = request.headers.get("x-forwarded-for") or request.headers.get(
        "x-real-ip"
    )
    ip_address = forwarded.split(",")[0].strip() if forwarded else None
    if ip_address is None and request.client is not None:
        ip_address = request.client.host
    return ClientContext(
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )
