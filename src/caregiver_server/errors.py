"""Global exception handlers: map SDK exceptions to HTTP status codes.

The SDK raises typed errors rooted at ``QuestionnaireError``.  Rather than
catching these in every route, one handler looks the exception class up in
``_STATUS_BY_ERROR`` and answers with the matching status.  This keeps route
handlers clean and focused on the happy path.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from caregiver_questionnaire.errors import (
    DanglingEdgeError,
    DefinitionStateError,
    GraphIntegrityError,
    InvalidAnswerError,
    NotFoundError,
    PersistenceError,
    QuestionnaireError,
    ScoringError,
    SessionClosedError,
    SyncError,
)

logger = logging.getLogger(__name__)

# --- Exception class → HTTP status ---
# Checked in order with isinstance; first match wins, so subclasses come
# before their bases (DanglingEdgeError before GraphIntegrityError).
_STATUS_BY_ERROR: list[tuple[type[QuestionnaireError], int]] = [
    (NotFoundError, 404),
    (SessionClosedError, 409),
    (DefinitionStateError, 409),
    (InvalidAnswerError, 400),
    (ScoringError, 400),
    (DanglingEdgeError, 422),
    (GraphIntegrityError, 422),
    (SyncError, 503),
    (PersistenceError, 503),
]


# --- Client-safe messages keyed by HTTP status code ---
# Internal details (user ids, session ids, question ids) stay in the server
# log; the client receives only a generic description.
_SAFE_MESSAGES: dict[int, str] = {
    400: "Invalid answer",
    404: "Resource not found",
    409: "Resource is closed for changes",
    422: "Questionnaire definition is invalid",
    500: "Internal server error",
    503: "Storage temporarily unavailable",
}


def status_for(exc: QuestionnaireError) -> int:
    """HTTP status for an SDK exception (500 when unmapped)."""
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 500


async def questionnaire_error_handler(
    request: Request, exc: QuestionnaireError
) -> JSONResponse:
    """Map an SDK ``QuestionnaireError`` to its HTTP error response.

    The raw exception message is logged server-side but **never** sent
    to the client.
    """
    status = status_for(exc)
    if status >= 500:
        logger.error("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc)
    else:
        logger.warning("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc)
    return JSONResponse(
        status_code=status,
        content={"detail": _SAFE_MESSAGES.get(status, "Invalid request"), "error": type(exc).__name__},
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
