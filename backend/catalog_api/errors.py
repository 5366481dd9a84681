"""Error taxonomy shared by the catalog services and HTTP layer."""
from __future__ import annotations


class CatalogError(RuntimeError):
    """Base class for errors surfaced by the catalog service."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(CatalogError):
    """Raised when a catalog record or upstream item does not exist."""

    status_code = 404


class CatalogValidationError(CatalogError):
    """Raised when a write or a request is malformed."""

    status_code = 422


class MissingIdentifierError(CatalogValidationError):
    """Raised when an embed URL is requested without any external id."""


class ConflictError(CatalogError):
    """Raised when a request conflicts with the current state."""

    status_code = 409


class DuplicateKeyError(ConflictError):
    """Raised when an insert collides with a unique key."""


class GenreInUseError(ConflictError):
    """Raised when deleting a genre that is still referenced."""

    def __init__(self, movie_count: int, show_count: int) -> None:
        super().__init__(
            f"Cannot delete genre. It is used by {show_count} TV show(s) "
            f"and {movie_count} movie(s)."
        )
        self.movie_count = movie_count
        self.show_count = show_count


class SyncAlreadyRunningError(ConflictError):
    """Raised when a one-shot sync is requested while another is in flight."""


class JobAlreadyRunningError(ConflictError):
    """Raised when a sync job already holds a live lease."""


class AuthError(CatalogError):
    """Raised when a bearer token is missing or invalid."""

    status_code = 401


class PermissionDeniedError(CatalogError):
    """Raised when the caller's role does not allow the operation."""

    status_code = 403


class UpstreamError(CatalogError):
    """Raised when the external media source rejects a request."""

    status_code = 502


class UpstreamUnavailable(UpstreamError):
    """Raised on network failures, throttling and 5xx responses."""

    status_code = 503


class UpstreamNotFound(NotFoundError):
    """Raised when the external media source answers 404."""


class QueueUnavailableError(CatalogError):
    """Raised when the job queue cannot accept a job."""

    status_code = 503


class SyncConfigurationError(CatalogError):
    """Raised when the sync engine is missing required configuration."""
