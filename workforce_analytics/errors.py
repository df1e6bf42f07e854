# Error taxonomy for the reporting engine and the FastAPI handlers that render it.
# Every error carries an HTTP status and a stable code; responses use the
# {"error": {"code", "message", "details"}} envelope.

from __future__ import annotations
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class ReportError(Exception):
    status_code = 500
    code = "REPORT_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return {"error": body}


class ValidationError(ReportError):
    """Malformed request input; never reaches the aggregation stage."""
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(f"Invalid {field}: {message}", details=[{"field": field, "message": message, "value": value}])
        self.field = field


class NotFound(ReportError):
    status_code = 404
    code = "RESOURCE_NOT_FOUND"


class SchemaUnavailable(ReportError):
    """A table the report cannot run without is missing in this deployment."""
    status_code = 400
    code = "SCHEMA_UNAVAILABLE"


class AuthorizationFailed(ReportError):
    status_code = 403
    code = "AUTHORIZATION_FAILED"


class QueryExecutionError(ReportError):
    status_code = 500
    code = "QUERY_ERROR"


async def _report_error_handler(request: Request, exc: ReportError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("report_request_failed", path=request.url.path, code=exc.code, error=exc.message)
        # database internals stay in the logs
        body = {"error": {"code": exc.code, "message": "Report query failed"}}
    else:
        logger.info("report_request_rejected", path=request.url.path, code=exc.code, error=exc.message)
        body = exc.to_dict()
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "query"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": {"code": "VALIDATION_ERROR", "message": "Validation failed", "details": details}},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReportError, _report_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
