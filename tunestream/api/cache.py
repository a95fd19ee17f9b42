"""
Cache administration endpoints.

- GET /cache/status     - store statistics
- POST /cache/prewarm   - resolve a batch of queries into the cache
- DELETE /cache/clear   - flush the store
"""

from fastapi import APIRouter, Depends, Request

from tunestream.common.logging import get_logger
from tunestream.core.errors import ValidationError

from .dependencies import ServiceContainer, get_container

logger = get_logger(__name__)
router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/status")
async def cache_status(container: ServiceContainer = Depends(get_container)):
    status = await container.admin.status()
    return status.to_dict()


@router.post("/prewarm")
async def cache_prewarm(request: Request, container: ServiceContainer = Depends(get_container)):
    """
    Pre-warm the cache.

    Body: ``{"queries": ["song one", "song two"]}``. Each query is reported
    separately; one failure never fails the batch.
    """
    try:
        body = await request.json()
    except ValueError:
        body = None

    queries = body.get("queries") if isinstance(body, dict) else None
    if not isinstance(queries, list):
        raise ValidationError("'queries' must be a list of strings")

    results = await container.admin.prewarm(queries)
    succeeded = sum(1 for r in results if r.success)
    return {
        "message": f"Cache pre-warmed: {succeeded}/{len(results)} queries succeeded",
        "results": [r.to_dict() for r in results],
    }


@router.delete("/clear")
async def cache_clear(container: ServiceContainer = Depends(get_container)):
    await container.admin.clear()
    return {"message": "Cache cleared"}
