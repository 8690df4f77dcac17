"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from selfie_generator.api.cron import router as cron_router
from selfie_generator.api.payments import router as payments_router
from selfie_generator.api.privacy import router as privacy_router
from selfie_generator.api.uploads import router as uploads_router
from selfie_generator.app_logging import configure_logging
from selfie_generator.containers import AppContainer
from selfie_generator.errors import SelfieGeneratorError, UpstreamError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(SelfieGeneratorError)
    async def handle_app_error(
        request: Request, exc: SelfieGeneratorError
    ) -> JSONResponse:
        message = exc.message
        if isinstance(exc, UpstreamError):
            logger.error(
                "Upstream provider failure: %s",
                exc.message,
                extra={"path": request.url.path, "retryable": exc.retryable},
            )
            message = "An upstream service is unavailable, please try again later"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": message, "code": exc.code},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        detail = "Invalid request"
        if errors:
            detail = str(errors[0].get("msg", detail))
        return JSONResponse(
            status_code=400,
            content={"error": detail, "code": "VALIDATION_FAILED"},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error", exc_info=exc, extra={"path": request.url.path}
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
        )

    app.include_router(privacy_router)
    app.include_router(uploads_router)
    app.include_router(payments_router)
    app.include_router(cron_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
