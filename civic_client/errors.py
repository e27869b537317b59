"""Exceptions raised by the civic client library."""

NETWORK_ERROR_MESSAGE = "Network error. Please check your connection."
RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."
SERVER_ERROR_MESSAGE = "Server error. Please try again later."


class CivicClientError(Exception):
    """Base class for every error the client library raises."""


class ApiError(CivicClientError):
    """A failed call against the backend REST API.

    ``status`` is 0 when no response was received at all.
    """

    def __init__(self, message, status=0, errors=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = list(errors or [])

    def __repr__(self):
        return f"ApiError(status={self.status}, message={self.message!r})"

    @property
    def is_network_error(self):
        return self.status == 0

    @classmethod
    def from_response(cls, response):
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            body.get("message") or "An error occurred",
            status=response.status_code,
            errors=body.get("errors") or [],
        )


class GeocodingError(CivicClientError):
    pass


class LocationUnavailable(CivicClientError):
    pass


class ImageAnalysisError(CivicClientError):
    pass


def user_message(error):
    """Text shown to the user for a failed operation."""
    if isinstance(error, ApiError):
        if error.status == 0:
            return NETWORK_ERROR_MESSAGE
        if error.status == 429:
            return RATE_LIMIT_MESSAGE
        if error.status >= 500:
            return SERVER_ERROR_MESSAGE
        return error.message
    return str(error) or "An unexpected error occurred"
