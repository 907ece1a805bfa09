from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from jobguard.api.dependencies import get_cache
from jobguard.core.auth import verify_api_key
from jobguard.core.errors import ValidationAppError
from jobguard.core.rate_limit import enforce_rate_limit, rate_limit
from jobguard.schemas.cache import (
    CacheInvalidateRequest,
    CacheReadResponse,
    CacheRemovalResponse,
    CacheStatsResponse,
    CacheWriteRequest,
)
from jobguard.services import cache_keys
from jobguard.services.cache import CacheType, TTLCache

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/cache",
    tags=["Cache"],
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)

Cache = Annotated[TTLCache, Depends(get_cache)]

# Shadowed by fixed GET routes; an entry stored under one could not be read back
RESERVED_KEYS = frozenset({"stats"})


class CacheEntity(str, Enum):
    USER = "user"
    COMPANY = "company"
    OFFERS = "offers"
    APPLICATIONS = "applications"


@router.get("/stats", response_model=CacheStatsResponse)
def cache_stats(cache: Cache) -> CacheStatsResponse:
    return CacheStatsResponse(**cache.stats())


@router.post("/invalidate", response_model=CacheRemovalResponse)
def invalidate_pattern(body: CacheInvalidateRequest, cache: Cache) -> CacheRemovalResponse:
    """Remove every entry whose key starts with ``prefix``."""

    return CacheRemovalResponse(removed=cache.invalidate_cache_pattern(body.prefix))


@router.post("/entities/{entity}/invalidate", status_code=status.HTTP_204_NO_CONTENT)
def invalidate_entity(
    entity: CacheEntity,
    cache: Cache,
    entity_id: Annotated[str | None, Query(min_length=1)] = None,
) -> Response:
    """Drop the cache family affected by a mutation on ``entity``.

    ``user`` and ``company`` need ``entity_id``; ``applications`` accepts an
    optional user id; ``offers`` takes none.
    """

    if entity in (CacheEntity.USER, CacheEntity.COMPANY) and not entity_id:
        raise ValidationAppError(
            code="entity_id_required",
            message=f"entity_id is required to invalidate {entity.value} cache",
            details={"field": "entity_id"},
        )

    if entity is CacheEntity.USER:
        cache_keys.invalidate_user_cache(cache, entity_id)
    elif entity is CacheEntity.COMPANY:
        cache_keys.invalidate_company_cache(cache, entity_id)
    elif entity is CacheEntity.OFFERS:
        cache_keys.invalidate_offers_cache(cache)
    else:
        cache_keys.invalidate_applications_cache(cache, entity_id)

    logger.info("cache.entity_invalidated", extra={"entity": entity.value})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sweep", response_model=CacheRemovalResponse)
def sweep_expired(cache: Cache) -> CacheRemovalResponse:
    """Remove expired and corrupt entries."""

    return CacheRemovalResponse(removed=cache.clear_expired_cache())


@router.delete(
    "",
    response_model=CacheRemovalResponse,
    dependencies=[Depends(rate_limit("strict"))],
)
def clear_all(cache: Cache) -> CacheRemovalResponse:
    """Remove every cache entry, valid or not."""

    return CacheRemovalResponse(removed=cache.clear_all_cache())


@router.get("/{key:path}", response_model=CacheReadResponse)
def read_entry(
    key: str,
    cache: Cache,
    cache_type: Annotated[CacheType, Query(alias="type")],
) -> CacheReadResponse:
    data = cache.get_from_cache(key, cache_type)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cache miss")
    return CacheReadResponse(key=key, type=cache_type, data=data)


@router.put("/{key:path}", status_code=status.HTTP_204_NO_CONTENT)
def write_entry(key: str, body: CacheWriteRequest, cache: Cache) -> Response:
    """Cache ``data`` under ``key``. Best-effort: a full store drops the write."""

    if key in RESERVED_KEYS:
        raise ValidationAppError(
            code="reserved_cache_key",
            message=f"'{key}' is reserved by the cache API",
            details={"field": "key", "hint": ", ".join(sorted(RESERVED_KEYS))},
        )

    if body.data is None:
        raise ValidationAppError(
            code="cache_data_required",
            message="null cannot be cached; it reads back as a miss",
            details={"field": "data"},
        )

    cache.set_in_cache(key, body.type, body.data)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{key:path}", status_code=status.HTTP_204_NO_CONTENT)
def invalidate_entry(key: str, cache: Cache) -> Response:
    cache.invalidate_cache(key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
