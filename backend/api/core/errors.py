"""HTTP mapping for service errors and request validation failures"""

import logging
from typing import Any, NoReturn

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.services import errors
from api.services.errors import ServiceError

logger = logging.getLogger(__name__)

INVALID_QUERY = "InvalidQuery"
UNAUTHORIZED = "Unauthorized"
RATE_LIMITED = "RateLimited"

STATUS_BY_CODE: dict[str, int] = {
    errors.ENTRY_NOT_FOUND: 404,
    errors.GAME_NOT_FOUND: 404,
    errors.INVALID_STATUS_TRANSITION: 422,
    errors.IN_PROGRESS_CAP_REACHED: 409,
    errors.POSITION_REQUIRED: 400,
    errors.DUPLICATE_POSITIONS: 400,
    errors.QUEUE_MISMATCH: 409,
    errors.DUPLICATE_ENTRY: 409,
    errors.INVALID_PAYLOAD: 400,
    errors.DELETE_NOT_ALLOWED: 409,
}

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


def error_detail(code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {"code": code, "message": message, "details": details}


def service_error_to_http(err: ServiceError) -> HTTPException:
    """Storage failures become an opaque 500; domain errors keep code and details."""
    if err.is_storage_failure or err.code not in STATUS_BY_CODE:
        return HTTPException(status_code=500, detail=error_detail(err.code, GENERIC_FAILURE_MESSAGE))
    return HTTPException(
        status_code=STATUS_BY_CODE[err.code],
        detail=error_detail(err.code, err.message, jsonable_encoder(err.details)),
    )


def raise_for_service_error(err: ServiceError, action: str, request_id: str | None = None) -> NoReturn:
    """Log ``err`` at the right level and re-raise it as an HTTPException."""
    prefix = f"[{request_id}] " if request_id else ""
    if err.is_storage_failure:
        logger.exception(f"{prefix}{action} failed: {err.code}")
    else:
        logger.warning(f"{prefix}{action} rejected: {err.code} ({err.message})")
    raise service_error_to_http(err) from None


def query_validation_error(exc: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail=error_detail(
            INVALID_QUERY,
            "Invalid query parameters.",
            jsonable_encoder(exc.errors(include_url=False, include_context=False)),
        ),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    locations = {str(e["loc"][0]) for e in exc.errors() if e.get("loc")}
    code = errors.INVALID_PAYLOAD if "body" in locations else INVALID_QUERY
    detail = error_detail(
        code,
        "Request validation failed.",
        jsonable_encoder([{k: e[k] for k in ("loc", "msg", "type") if k in e} for e in exc.errors()]),
    )
    return JSONResponse(status_code=400, content={"detail": detail})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
