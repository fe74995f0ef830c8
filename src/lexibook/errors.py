"""Exception hierarchy shared by the client services and the sync server."""
from typing import Optional


class LexibookError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(LexibookError):
    """Missing or malformed input."""

    status_code = 400


class AuthenticationError(LexibookError):
    """Bad credentials or a missing/expired token."""

    status_code = 401


class Unauthenticated(AuthenticationError):
    """No credential is held locally, raised before any network call."""

    def __init__(self, message: str = "Please log in first"):
        super().__init__(message)


class NotFoundError(LexibookError):
    """Requested server-side entity does not exist."""

    status_code = 404


class NotReadyError(LexibookError):
    """The server database is still initializing; retry later."""

    status_code = 503


class NetworkError(LexibookError):
    """The server could not be reached at all."""

    status_code = 503

    def __init__(self, api_url: str):
        super().__init__(
            f"Unable to connect to the server, make sure the backend is running ({api_url})"
        )
        self.api_url = api_url


class SyncFailed(LexibookError):
    """A sync endpoint failed; local state was left untouched."""

    status_code = 502
