from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from jobguard.api.dependencies import get_throttle_tracker
from jobguard.core.auth import verify_api_key
from jobguard.core.errors import ValidationAppError
from jobguard.core.rate_limit import enforce_rate_limit, rate_limit
from jobguard.schemas.throttle import (
    ThrottleCheckRequest,
    ThrottleCheckResponse,
    ThrottleConfigSchema,
    ThrottleKeyRequest,
)
from jobguard.services.throttle import THROTTLE_PRESETS, ThrottleConfig, ThrottleTracker
from jobguard.utils.wait_time import format_wait_time

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/throttle",
    tags=["Throttle"],
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)

Tracker = Annotated[ThrottleTracker, Depends(get_throttle_tracker)]


def _resolve_config(body: ThrottleCheckRequest) -> ThrottleConfig:
    if body.config is not None:
        return body.config.to_config()

    config = THROTTLE_PRESETS.get(body.preset or "")
    if config is None:
        raise ValidationAppError(
            code="unknown_throttle_preset",
            message=f"Unknown throttle preset: {body.preset}",
            details={"preset": body.preset or "", "hint": ", ".join(sorted(THROTTLE_PRESETS))},
        )
    return config


@router.post("/check", response_model=ThrottleCheckResponse)
def check_throttle(body: ThrottleCheckRequest, tracker: Tracker) -> ThrottleCheckResponse:
    """Decide whether an attempt may proceed, counting it when it does.

    Call before every guarded attempt (e.g. a login submit). A blocked
    decision carries the wait in milliseconds and a French message ready to
    show, e.g. "Trop de tentatives. Réessayez dans 5 minutes.".
    """

    decision = tracker.check_throttle(body.key, _resolve_config(body))
    if decision.allowed:
        return ThrottleCheckResponse(
            allowed=True,
            wait_ms=0,
            attempts_left=decision.attempts_left,
        )

    wait_time = format_wait_time(decision.wait_ms)
    return ThrottleCheckResponse(
        allowed=False,
        wait_ms=decision.wait_ms,
        attempts_left=decision.attempts_left,
        wait_time=wait_time,
        message=f"Trop de tentatives. Réessayez dans {wait_time}.",
    )


@router.post("/success", status_code=status.HTTP_204_NO_CONTENT)
def record_success(body: ThrottleKeyRequest, tracker: Tracker) -> Response:
    """Reset ``key`` after the guarded action succeeded."""

    tracker.record_success(body.key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/presets", response_model=dict[str, ThrottleConfigSchema])
def list_presets() -> dict[str, ThrottleConfigSchema]:
    """Named throttle policies accepted by ``/throttle/check``."""

    return {name: ThrottleConfigSchema.from_config(cfg) for name, cfg in THROTTLE_PRESETS.items()}


@router.delete(
    "/{key:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(rate_limit("strict"))],
)
def clear_throttle(key: str, tracker: Tracker) -> Response:
    """Administrative unlock: forget all attempts and any lockout for ``key``."""

    tracker.clear_throttle(key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
