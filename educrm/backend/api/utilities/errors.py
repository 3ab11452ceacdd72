# educrm/backend/api/utilities/errors.py
import logging
from typing import Any, Dict, List

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...services.errors import ServiceError, AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)


def describe_validation_errors(errors: List[Dict[str, Any]]) -> str:
    """
    Turns pydantic error dicts into one readable sentence.

    Missing fields are reported together ("Missing required fields: a, b");
    otherwise the first error's message is used.
    """
    missing = []
    for error in errors:
        if error.get("type") != "missing":
            continue
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        if not loc:
            return "Request body is required"
        missing.append(loc[-1])
    if missing:
        return f"Missing required fields: {', '.join(dict.fromkeys(missing))}"

    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Invalid JSON body"
    message = str(first.get("msg", "Invalid request"))
    if first.get("type") == "value_error":
        # Messages raised by our own validators are already complete sentences.
        return message.removeprefix("Value error, ")
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    if loc:
        return f"{loc[-1]}: {message}"
    return message


def to_http_exception(error: ServiceError) -> HTTPException:
    """Maps a service layer exception to the matching HTTP status."""
    if isinstance(error, AuthorizationError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


# --- Application wide handlers: every error body is {"error": message} ---

async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": describe_validation_errors(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "An unexpected server error occurred."},
    )
