"""Custom exceptions for the arena REST service."""


class ArenaAPIError(Exception):
    """Base exception for arena API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ArenaNotFoundError(ArenaAPIError):
    """Resource not found (404)."""

    pass


class ArenaServerError(ArenaAPIError):
    """Server-side error (5xx) that survived all retries."""

    pass


class ArenaResponseError(ArenaAPIError):
    """Response envelope reported success=false or was malformed."""

    pass
