"""Pydantic schemas for cache requests and responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from jobguard.services.cache import CacheType


class CacheWriteRequest(BaseModel):
    """Value to cache under the path key, with its semantic type."""

    type: CacheType = Field(..., description="Semantic tag selecting the time-to-live.")
    data: Any = Field(..., description="JSON value to cache.")


class CacheReadResponse(BaseModel):
    key: str
    type: CacheType
    data: Any


class CacheInvalidateRequest(BaseModel):
    prefix: str = Field(
        ...,
        min_length=1,
        description="Remove every entry whose key starts with this prefix, e.g. 'user_'.",
    )


class CacheRemovalResponse(BaseModel):
    removed: int = Field(..., ge=0, description="Number of entries removed.")


class CacheStatsResponse(BaseModel):
    prefix: str
    entries: int
    hits: int
    misses: int
    evictions: int
