"""
Custom exceptions for the download service.
Per-job errors end a job in the error state; the API layer maps the rest to
HTTP status codes.
"""


class MediaFetchError(Exception):
    """Base exception for all application-specific errors."""


class InvalidSubmissionError(MediaFetchError):
    """Raised when a submitted download request is missing or malformed."""


class UpstreamError(MediaFetchError):
    """
    Raised when the resolver answers with an error, an empty picker, or a
    response shape this service does not handle.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class TransportError(MediaFetchError):
    """Raised on network failures talking to the resolver or the media host."""


class StorageError(MediaFetchError):
    """Raised when an artifact cannot be written to local storage."""


class JobNotFoundError(MediaFetchError):
    """Raised for unknown download ids, or ready jobs whose file is gone."""


class InvalidTransitionError(MediaFetchError):
    """Raised when a job is asked to move to a status it cannot reach."""
