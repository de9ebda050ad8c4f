from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    CACHE_DIR_UNAVAILABLE = "CACHE_DIR_UNAVAILABLE"
    CACHE_DIR_NOT_PUBLIC = "CACHE_DIR_NOT_PUBLIC"
    BUNDLE_WRITE_FAILED = "BUNDLE_WRITE_FAILED"
    FONT_FETCH_FAILED = "FONT_FETCH_FAILED"
    INVALID_POSITION = "INVALID_POSITION"


class ClientAssetsError(Exception):
    """Raised for expected failure conditions.

    Cache and fetcher errors are caught by the collector, which logs them and
    degrades: bundling is disabled, individual tags are rendered, or the font
    is skipped. A render never aborts because of one of these. Only
    INVALID_POSITION, a caller mistake, propagates out of the collector.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
