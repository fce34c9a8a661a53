"""Health check endpoint."""

from typing import Any

from fastapi import APIRouter, Request

from tunebridge import __version__

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Liveness plus a peek at the background machinery."""
    state = request.app.state
    runner = getattr(state, "export_runner", None)
    cleanup = getattr(state, "cleanup_worker", None)
    return {
        "status": "healthy",
        "version": __version__,
        "export_jobs": runner.get_stats() if runner is not None else None,
        "missing_cache_cleanup": cleanup.get_stats() if cleanup is not None else None,
    }
