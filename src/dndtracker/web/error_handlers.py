import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from dndtracker.errors import AccessDeniedError, AuthenticationError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

UNAUTHENTICATED_CODE = "AUTHENTICATION_REQUIRED"


def create_json_error_response(status_code: int, message: str, error_type: str | None = None) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content)


def create_unauthenticated_response() -> JSONResponse:
    """Body of every 401 for a missing or dead session, from the gate or a route."""
    return JSONResponse(
        status_code=401,
        content={"success": False, "error": {"message": "Authentication required", "code": UNAUTHENTICATED_CODE}},
    )


async def session_required_handler(_: Request, __: Exception) -> Response:
    return create_unauthenticated_response()


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    if isinstance(exc, AuthenticationError):
        status_code = 401
        error_type = "authentication_error"
    elif isinstance(exc, AccessDeniedError):
        status_code = 403
        error_type = "access_denied"
    elif isinstance(exc, NotFoundError):
        status_code = 404
        error_type = "not_found"
    elif isinstance(exc, ValidationError):
        status_code = 400
        error_type = "validation_error"
    else:
        # Default for any other UserError subclass
        status_code = 400
        error_type = "bad_request"

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def infrastructure_error_handler(request: Request, exc: Exception) -> Response:
    """Handle backing service failures (503). The cause stays in the logs."""
    logger.error("infrastructure_error", path=request.url.path, error=repr(exc))
    return create_json_error_response(
        status_code=503,
        message="Service temporarily unavailable. Please try again.",
        error_type="service_unavailable",
    )


async def general_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("unexpected_error", path=request.url.path, exc_info=exc)
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
