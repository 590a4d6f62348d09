"""
Exceptions for SEOLens.

Domain errors raised by the analysis engine, plus the HTTP exceptions the
API layer translates them into.
"""
from enum import Enum

from fastapi import HTTPException, status


class SEOLensError(Exception):
    """Base class for analysis engine errors."""


class FetchErrorKind(str, Enum):
    DNS = "dns"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    OTHER = "other"


class FetchError(SEOLensError):
    """The primary page could not be retrieved. Fatal to an analysis run."""

    def __init__(self, kind: FetchErrorKind, message: str, url: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.url = url


class AnalysisError(SEOLensError):
    """Content analysis call or response parsing failed."""


class MeasurementUnavailable(SEOLensError):
    """A speed measurement could not be obtained."""


class StorageError(SEOLensError):
    """Persisting a report or tracked issue failed."""


class NotFoundError(HTTPException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found"
        )


class BadRequestError(HTTPException):
    """Bad request exception."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )
