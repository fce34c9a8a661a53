"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so exception handlers can
    # read it without parsing str(exception). Don't raise this directly - use a
    # specific subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # Used for "missing list for playlist X doesn't exist" and friends. We keep
    # entity_type/entity_id separate so the handler can log them structured.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(DomainException):
    """Input validation failed.

    HTTP Status: 422

    Example:
        raise ValidationError("Plex machine identifier must not be empty")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    HTTP Status: 500
    """

    pass


class AuthenticationError(DomainException):
    """Caller did not provide a usable credential.

    HTTP Status: 401

    Example:
        raise AuthenticationError("Missing X-Plex-Token header")
    """

    pass


class ExternalServiceError(DomainException):
    """External service (Spotify, Plex) returned an error.

    HTTP Status: 502 (Bad Gateway)
    """

    pass


class RateLimitExceededError(DomainException):
    """External service rate limit was exceeded after all retries.

    HTTP Status: 429
    """

    pass


# =============================================================================
# Plex discovery errors
# Hey future me - these are FATAL for the current export (no server/section means
# nothing to sync into) but never retried automatically. The API maps them to 424
# so the UI can show "check your Plex setup" instead of a generic 502.
# =============================================================================


class PlexDiscoveryError(ExternalServiceError):
    """Plex server or library could not be resolved."""

    pass


class NoServerFoundError(PlexDiscoveryError):
    """The Plex account has no device providing 'server'."""

    def __init__(self, message: str = "No Plex server found for this account") -> None:
        super().__init__(message)


class NoConnectionFoundError(PlexDiscoveryError):
    """The Plex server device lists no connection endpoints."""

    def __init__(
        self, message: str = "Plex server has no connection endpoints"
    ) -> None:
        super().__init__(message)


class NoMusicSectionError(PlexDiscoveryError):
    """The Plex server has no music (artist/audio) library section."""

    def __init__(
        self, message: str = "No music library section (artist/audio) found on Plex"
    ) -> None:
        super().__init__(message)


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "NoConnectionFoundError",
    "NoMusicSectionError",
    "NoServerFoundError",
    "PlexDiscoveryError",
    "RateLimitExceededError",
    "ValidationError",
]
