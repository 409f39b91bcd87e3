import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.errors import (
    ClusterError,
    ConflictError,
    DecryptionError,
    InvalidStateError,
    NotFoundError,
    ShipitError,
    ValidationError,
    WorkerStoppedError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (ValidationError, 400, "VALIDATION_ERROR"),
    (InvalidStateError, 400, "INVALID_STATE"),
    (NotFoundError, 404, "NOT_FOUND"),
    (ConflictError, 409, "CONFLICT"),
    (DecryptionError, 500, "DECRYPTION_ERROR"),
    (ClusterError, 502, "CLUSTER_ERROR"),
    (WorkerStoppedError, 503, "WORKER_STOPPED"),
)


def error_status(exc: ShipitError):
    for error_cls, status_code, code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status_code, code
    return 500, "INTERNAL_ERROR"


async def shipit_error_handler(request: Request, exc: ShipitError):
    """Traduit les erreurs métier en réponses HTTP"""
    status_code, code = error_status(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": code},
    )


def setup_middlewares(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ShipitError, shipit_error_handler)
