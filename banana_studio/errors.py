"""
Exceptions raised by the generation adapter.
"""

from typing import Optional


# Longest body excerpt included in exception messages
BODY_SNIPPET_LENGTH = 500


def _snippet(text: str) -> str:
    if len(text) <= BODY_SNIPPET_LENGTH:
        return text
    return text[:BODY_SNIPPET_LENGTH] + "..."


class GenerationError(Exception):
    """Base exception for generation failures."""
    pass


class ConfigurationError(GenerationError):
    """Missing or empty credential, or an unusable configuration."""
    pass


class BackendError(GenerationError):
    """HTTP or SDK failure reported by a backend.

    Attributes:
        status: HTTP status code, or None for network-level failures
        body: Response body (or SDK error text) verbatim
    """

    def __init__(self, status: Optional[int], body: str = "", backend: str = "backend"):
        self.status = status
        self.body = body
        self.backend = backend
        if status is None:
            message = f"{backend} request failed: {_snippet(body)}"
        else:
            message = f"{backend} error {status}: {_snippet(body)}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """True for rate limiting (429) and server errors (5xx)."""
        if self.status is None:
            return False
        return self.status == 429 or 500 <= self.status < 600


class ResponseFormatError(GenerationError):
    """Backend answered successfully but with an unrecognized payload."""

    def __init__(self, message: str, raw: str = ""):
        self.raw = raw
        if raw:
            message = f"{message}: {_snippet(raw)}"
        super().__init__(message)


class ImageMissingError(GenerationError):
    """No image part in a response where one is required."""

    def __init__(self, message: str, text: Optional[str] = None, finish_reason: Optional[str] = None):
        self.text = text
        self.finish_reason = finish_reason
        details = []
        if finish_reason:
            details.append(f"finish reason: {finish_reason}")
        if text:
            details.append(f"model said: {_snippet(text)}")
        if details:
            message = f"{message} ({'; '.join(details)})"
        super().__init__(message)
