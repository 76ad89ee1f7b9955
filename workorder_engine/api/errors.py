"""Mapping of domain errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from workorder_engine.domain.shared.exceptions import DomainError, ErrorType

logger = logging.getLogger(__name__)

STATUS_FOR_ERROR: dict[ErrorType, int] = {
    ErrorType.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorType.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorType.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorType.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorType.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorType.INCOMPLETE_TASKS: status.HTTP_409_CONFLICT,
    ErrorType.RESOURCE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorType.CONCURRENCY: status.HTTP_409_CONFLICT,
    ErrorType.REPOSITORY: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = STATUS_FOR_ERROR.get(exc.error_type, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "method": request.method},
            exc_info=exc,
        )
        # storage details stay in the log
        body = {"type": exc.error_type.value, "message": "Internal error", "details": {}}
    else:
        logger.info(
            "Request rejected",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_type": exc.error_type.value,
            },
        )
        body = exc.to_dict()
    return JSONResponse(status_code=status_code, content={"detail": body})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)  # type: ignore[arg-type]
