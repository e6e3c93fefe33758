from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from podcastproxy.models.cache import Headers


class ErrorCode(StrEnum):
    FETCH_FAILED = "FETCH_FAILED"
    DECODE_FAILED = "DECODE_FAILED"
    EXTRACTION_MISS = "EXTRACTION_MISS"
    UNSUPPORTED_MEDIA = "UNSUPPORTED_MEDIA"
    EMPTY_FEED = "EMPTY_FEED"
    UNKNOWN_STRATEGY = "UNKNOWN_STRATEGY"
    INVALID_INPUT = "INVALID_INPUT"


class PodcastProxyError(Exception):
    """Base class for every expected failure condition.

    Hard failures (fetch, decode, unknown strategy) propagate up to the
    entry point, which serialises them with ``to_dict``. Soft failures
    (extraction miss, unsupported media) are caught per item by the merge
    engine and only logged.
    """

    code: ErrorCode = ErrorCode.FETCH_FAILED

    def __init__(
        self,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
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


class FetchError(PodcastProxyError):
    """Transport failure or an HTTP error status.

    ``content`` and ``headers`` hold whatever was read before the failure
    so callers can still make best-effort use of it.
    """

    code = ErrorCode.FETCH_FAILED

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int | None = None,
        content: bytes | None = None,
        headers: Headers | None = None,
    ) -> None:
        super().__init__(
            message,
            suggestion="The source site may be temporarily unavailable. Try again later.",
            recoverable=True,
        )
        self.url = url
        self.status_code = status_code
        self.content = content
        self.headers = headers


class DecodeError(PodcastProxyError):
    """Malformed compressed body, markup or feed XML."""

    code = ErrorCode.DECODE_FAILED


class ExtractionMiss(PodcastProxyError):
    """A selector matched nothing or a required field is absent."""

    code = ErrorCode.EXTRACTION_MISS


class UnsupportedMedia(PodcastProxyError):
    """The episode media does not have the expected audio format."""

    code = ErrorCode.UNSUPPORTED_MEDIA


class EmptyFeedError(PodcastProxyError):
    """A native feed was found and parsed but holds no items."""

    code = ErrorCode.EMPTY_FEED


class UnknownStrategy(PodcastProxyError):
    code = ErrorCode.UNKNOWN_STRATEGY


class InvalidInput(PodcastProxyError):
    code = ErrorCode.INVALID_INPUT
