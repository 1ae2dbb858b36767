"""Exception hierarchy shared by the core services and the API layer.

Every error carries the HTTP status code the API should answer with, so
route handlers can let core exceptions propagate and the application-level
exception handler renders them into the ``{success, error}`` envelope.

Categories
----------
- :class:`ValidationError` (400): bad client input such as a missing or
  oversized prompt, or an unsupported locale.
- :class:`NotFoundError` (404): unknown slug.
- :class:`UpstreamError` (500): a third-party provider failed.  Prediction
  polling distinguishes :class:`PredictionFailedError` (terminal status
  reported by the provider) from :class:`PredictionTimeoutError` (attempts
  exhausted while the job was still running).
"""

from __future__ import annotations


class GenmojiError(Exception):
    """Base class for all application errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GenmojiError):
    status_code = 400


class UnsupportedLocaleError(ValidationError):
    def __init__(self, locale: str) -> None:
        super().__init__(f"Unsupported locale: {locale}")
        self.locale = locale


class NotFoundError(GenmojiError):
    status_code = 404


class UpstreamError(GenmojiError):
    """A provider call returned an error or an unusable response."""

    status_code = 500


class TranslationError(UpstreamError):
    pass


class AnalysisError(UpstreamError):
    pass


class PredictionFailedError(UpstreamError):
    """The prediction reached a terminal failure status."""

    def __init__(self, status: str = "failed", detail: str | None = None) -> None:
        message = "Prediction failed" if status == "failed" else f"Prediction {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.status = status


class PredictionTimeoutError(UpstreamError):
    def __init__(self, attempts: int) -> None:
        super().__init__("Timeout waiting for prediction")
        self.attempts = attempts
