"""Custom exception handlers for the FastAPI application.

Domain exceptions raised anywhere below a router end up here and become JSON
responses with a proper status code and {"detail": message}. Without this they
would leak out as 500s with stack traces.
"""

import logging

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tunebridge.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DomainException,
    EntityNotFoundException,
    ExternalServiceError,
    PlexDiscoveryError,
    RateLimitExceededError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Looked up along the exception's MRO, so PlexDiscoveryError (424) wins over
# its ExternalServiceError parent (502).
STATUS_BY_EXCEPTION: dict[type[DomainException], int] = {
    EntityNotFoundException: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    PlexDiscoveryError: status.HTTP_424_FAILED_DEPENDENCY,
    ExternalServiceError: status.HTTP_502_BAD_GATEWAY,
    RateLimitExceededError: status.HTTP_429_TOO_MANY_REQUESTS,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for domain exceptions and upstream HTTP failures.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        for exc_type in type(exc).__mro__:
            if exc_type in STATUS_BY_EXCEPTION:
                status_code = STATUS_BY_EXCEPTION[exc_type]
                break

        log = logger.error if status_code >= 500 else logger.warning
        log(
            "%s at %s: %s",
            type(exc).__name__,
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message, "status_code": status_code},
        )
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    @app.exception_handler(httpx.HTTPStatusError)
    async def upstream_status_error_handler(
        request: Request, exc: httpx.HTTPStatusError
    ) -> JSONResponse:
        """Upstream (Plex/Spotify) answered with an error status.

        Bad token stays 401 and unknown ids stay 404, everything else is 502.
        """
        upstream = exc.response.status_code
        if upstream in (401, 403):
            status_code = status.HTTP_401_UNAUTHORIZED
        elif upstream == 404:
            status_code = status.HTTP_404_NOT_FOUND
        else:
            status_code = status.HTTP_502_BAD_GATEWAY
        logger.warning(
            "Upstream error %d at %s: %s",
            upstream,
            request.url.path,
            exc.request.url.path,
            extra={"path": request.url.path, "upstream_status": upstream},
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": f"Upstream service returned {upstream}"},
        )

    @app.exception_handler(httpx.HTTPError)
    async def upstream_error_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
        """Upstream unreachable / timed out."""
        logger.warning(
            "Upstream request failed at %s: %s",
            request.url.path,
            exc,
            extra={"path": request.url.path, "error": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": "Upstream service unavailable"},
        )
