"""Error taxonomy shared by services and the HTTP layer."""


class SelfieGeneratorError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SelfieGeneratorError):
    """Request input failed validation."""

    status_code = 400
    code = "VALIDATION_FAILED"


class NotFoundError(SelfieGeneratorError):
    """Session or resource is missing or expired."""

    status_code = 404
    code = "NOT_FOUND"


class UnauthorizedError(SelfieGeneratorError):
    """Caller is not allowed to act on the resource."""

    status_code = 401
    code = "UNAUTHORIZED"


class UpstreamError(SelfieGeneratorError):
    """Payment or generation provider call failed."""

    status_code = 502
    code = "UPSTREAM_FAILED"

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class SignatureError(SelfieGeneratorError):
    """Webhook payload signature did not verify."""

    status_code = 400
    code = "INVALID_SIGNATURE"

    def __init__(self, message: str = "Invalid signature") -> None:
        super().__init__(message)
