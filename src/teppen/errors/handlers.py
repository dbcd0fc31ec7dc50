"""FastAPI exception handlers producing the standard ErrorResponse."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from teppen.errors.exceptions import TeppenError
from teppen.models.common import ErrorDetail, ErrorResponse
from teppen.providers.errors import ProviderError, provider_error_status, to_ui_error

logger = logging.getLogger(__name__)


def _error_response(request: Request, status_code: int, detail: dict) -> JSONResponse:
    trace_id = getattr(request.state, "trace_id", "unknown")
    body = ErrorResponse(
        error=ErrorDetail(
            trace_id=trace_id,
            timestamp=datetime.now(timezone.utc),
            **detail,
        ),
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True, by_alias=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(TeppenError)
    async def teppen_error_handler(request: Request, exc: TeppenError):
        if exc.status_code >= 500:
            logger.error("request_failed", extra={"path": request.url.path, "code": exc.code})
        return _error_response(
            request,
            exc.status_code,
            {
                "code": exc.code,
                "cause": exc.message,
                "next_action": exc.next_action,
                "details": exc.details,
            },
        )

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError):
        logger.warning(
            "provider_error",
            extra={
                "path": request.url.path,
                "provider": exc.provider.value,
                "code": exc.code.value,
                "upstream_status": exc.status,
            },
        )
        ui = to_ui_error(exc)
        return _error_response(
            request,
            provider_error_status(exc),
            {
                "code": exc.code.value,
                "cause": ui.cause,
                "next_action": ui.next_action,
            },
        )
