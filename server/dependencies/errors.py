"""Maps domain errors to HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.exceptions import (
    AuthorizationError,
    ChatRAGError,
    GenerationUnavailableError,
    NotFoundError,
    OperationCancelledError,
    RetrievalError,
)

# 499: client closed request
ERROR_STATUS_CODES: dict[type[ChatRAGError], int] = {
    AuthorizationError: 403,
    NotFoundError: 404,
    OperationCancelledError: 499,
    RetrievalError: 502,
    GenerationUnavailableError: 503,
}


def register_exception_handlers(app: FastAPI) -> None:
    async def handle_domain_error(request: Request, exc: ChatRAGError) -> JSONResponse:
        status_code = ERROR_STATUS_CODES.get(type(exc), 500)
        logger = getattr(request.app.state, "logging", None)
        if logger is not None:
            logger.warning("%s %s failed with %d: %s", request.method, request.url.path, status_code, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    for error_type in ERROR_STATUS_CODES:
        app.add_exception_handler(error_type, handle_domain_error)
