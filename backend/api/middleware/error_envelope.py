"""
Error envelope middleware - Standardize all error responses.

Provides consistent error response format:
{
    "error": {
        "code": "BATCH_NOT_FOUND",
        "message": "No staging rows for batch 'b-0001'",
        "requestId": "uuid"
    }
}
"""

import logging
from flask import Flask, jsonify, g
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from scrapers.airlock.errors import AirlockError


logger = logging.getLogger('api.middleware.error')


def setup_error_handlers(app: Flask) -> None:
    """
    Set up standardized error handlers on Flask app.

    Handles:
    - AirlockError subclasses (status carried by the exception)
    - Pydantic param validation errors (400)
    - HTTP exceptions (400, 404, 500, etc.)
    - Unhandled Python exceptions

    Args:
        app: Flask application instance
    """

    @app.errorhandler(AirlockError)
    def handle_airlock_error(error):
        """Evaluation input errors and disallowed review actions."""
        logger.warning(f"{error.code}: {error}")
        details = {"batch_id": error.batch_id} if error.batch_id else None
        return make_error_response(error.code, str(error), error.status_code, details=details)

    @app.errorhandler(PydanticValidationError)
    def handle_params_error(error):
        """Invalid request params or body."""
        errors = error.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        return make_error_response(
            "INVALID_PARAMS",
            first.get("msg", "Invalid parameters"),
            field=field,
        )

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        """Handle Flask/Werkzeug HTTP exceptions."""
        # "Not Found" -> "NOT_FOUND"
        code = error.name.upper().replace(' ', '_')
        return make_error_response(code, error.description, error.code)

    @app.errorhandler(Exception)
    def handle_generic_error(error):
        """Handle unhandled Python exceptions."""
        request_id = getattr(g, 'request_id', None)

        # Log the full exception
        logger.exception(
            f"Unhandled error: {error}",
            extra={
                "event": "unhandled_error",
                "request_id": request_id,
                "error_type": type(error).__name__,
            }
        )
        return make_error_response("INTERNAL_ERROR", "An unexpected error occurred", 500)


# Error codes reference
ERROR_CODES = {
    # Client errors (4xx)
    "BAD_REQUEST": 400,
    "NOT_FOUND": 404,
    "METHOD_NOT_ALLOWED": 405,
    "CONFLICT": 409,
    "UNPROCESSABLE_ENTITY": 422,

    # Param errors
    "INVALID_PARAMS": 400,

    # Airlock errors
    "UNKNOWN_STATE": 422,
    "BATCH_NOT_FOUND": 404,
    "BATCH_STATE_MISMATCH": 422,
    "INVALID_SCRAPED_ROW": 422,
    "QUEUE_ENTRY_NOT_FOUND": 404,
    "INVALID_QUEUE_TRANSITION": 409,

    # Server errors (5xx)
    "INTERNAL_ERROR": 500,
}


def make_error_response(
    code: str,
    message: str,
    status_code: int = None,
    field: str = None,
    details: dict = None,
):
    """
    Create a standardized error response.

    Args:
        code: Error code (e.g., "INVALID_PARAMS")
        message: Human-readable error message
        status_code: HTTP status code (defaults based on error code)
        field: Optional field name that caused the error
        details: Optional additional details dict

    Returns:
        Tuple of (response, status_code)
    """
    request_id = getattr(g, 'request_id', None)

    if status_code is None:
        status_code = ERROR_CODES.get(code, 500)

    error = {
        "error": {
            "code": code,
            "message": message,
            "requestId": request_id,
        }
    }

    if field:
        error["error"]["field"] = field
    if details:
        error["error"]["details"] = details

    response = jsonify(error)
    if request_id:
        response.headers['X-Request-ID'] = request_id

    return response, status_code
