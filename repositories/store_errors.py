"""
Translation of PostgREST failures into the engine's error taxonomy.

PostgREST reports database failures with the PostgreSQL SQLSTATE in
`APIError.code` and its own failures with a `PGRST...` code. Only failures
that can succeed on a plain retry are reported as TransientError:

- SQLSTATE class 22 (data exception, e.g. 22P02 malformed uuid) -> ValidationError
- SQLSTATE class 23 (integrity constraint violation)              -> ConflictError
- SQLSTATE class 42 (syntax error or access rule violation)       -> ValidationError
- HTTP 4xx status codes reported in place of a SQLSTATE           -> ValidationError
- everything else (PGRST codes, connection, resource, serialization
  classes, HTTP 5xx, missing code)                                 -> TransientError
"""

from __future__ import annotations

from postgrest.exceptions import APIError

from domain.errors import ConflictError, OrderEngineError, TransientError, ValidationError

# SQLSTATE for a value that does not parse as the column type (e.g. a non-uuid id).
INVALID_TEXT_REPRESENTATION: str = "22P02"

STORE_REJECTED: str = "STORE_REJECTED"


def error_code(error: APIError) -> str:
    return str(getattr(error, "code", None) or "").strip().upper()


def is_invalid_identifier(error: APIError) -> bool:
    """True when the database rejected a key value as malformed for its column type."""

    return error_code(error) == INVALID_TEXT_REPRESENTATION


def translate_api_error(error: APIError, action: str) -> OrderEngineError:
    """Map a PostgREST APIError to the engine exception for `action`."""

    code = error_code(error)
    message = f"Failed to {action}: {error.message or error}"

    if code.isdigit() and len(code) == 3:
        if int(code) >= 500:
            return TransientError(message)
        return ValidationError(message, kind=STORE_REJECTED)

    if code.startswith("23"):
        return ConflictError(message, kind=STORE_REJECTED)
    if code.startswith(("22", "42")):
        return ValidationError(message, kind=STORE_REJECTED)
    return TransientError(message)


__all__ = [
    "INVALID_TEXT_REPRESENTATION",
    "STORE_REJECTED",
    "error_code",
    "is_invalid_identifier",
    "translate_api_error",
]
