from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    PAGE_NOT_FOUND = "PAGE_NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    FORBIDDEN = "FORBIDDEN"


# HTTP status used when the server serialises a WikiError.
HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.PAGE_NOT_FOUND: 404,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.FORBIDDEN: 403,
}


class WikiError(Exception):
    """Raised by API handlers for all expected failure conditions.

    Caught by server.py and serialised into the JSON error envelope.
    The core (repository, cache, renderer) never raises this: it signals
    absence with ``None`` and leaves the decision to the handler.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
