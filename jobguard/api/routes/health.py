from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness probe for load balancers and monitoring.

    Reports the storage backend class without touching the store.
    """

    services = getattr(request.app.state, "services", None)
    store = type(services.store).__name__ if services is not None else None
    return {"status": "ok", "store": store}
