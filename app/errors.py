import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DistributionError(Exception):
    """Base class for errors raised by the distribution services."""

    code = "distribution_error"
    status_code = 400

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(DistributionError):
    code = "not_found"
    status_code = 404


class ValidationError(DistributionError):
    code = "validation_error"
    status_code = 422


class InvalidStateError(DistributionError):
    code = "invalid_state"
    status_code = 409

    def __init__(self, message: str, current_status: str | None = None):
        super().__init__(message, {"current_status": current_status})
        self.current_status = current_status


class DiscrepancyPending(DistributionError):
    """Receiver verification found discrepancies that were not confirmed.

    ``discrepancies`` holds one dict per discrepant document with the keys
    ``document_kind``, ``document_id``, ``status`` and ``notes``. The caller
    re-invokes with ``force_complete_with_discrepancies=True`` to proceed.
    """

    code = "discrepancy_pending"
    status_code = 409

    def __init__(self, discrepancies: list[dict]):
        super().__init__(
            "Documents have discrepancies. Review and confirm to proceed.",
            {"discrepancies": discrepancies},
        )
        self.discrepancies = discrepancies


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(DistributionError)
    async def distribution_error_handler(request: Request, exc: DistributionError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, exc.details),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # ctx may hold raw exception objects
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled error on %s %s", request.method, request.url.path
        )
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
