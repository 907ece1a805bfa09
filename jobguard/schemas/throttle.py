"""Pydantic schemas for throttle requests and responses."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from jobguard.services.throttle import ThrottleConfig


class ThrottleConfigSchema(BaseModel):
    """Explicit throttle policy; every field is required."""

    min_interval_ms: int = Field(..., ge=0, description="Minimum delay between two attempts.")
    max_attempts: int = Field(..., ge=1, description="Attempts allowed per window before lockout.")
    lockout_duration_ms: int = Field(..., ge=0, description="How long a locked key stays blocked.")
    window_duration_ms: int = Field(..., ge=1, description="Sliding window for counting attempts.")

    def to_config(self) -> ThrottleConfig:
        return ThrottleConfig(
            min_interval_ms=self.min_interval_ms,
            max_attempts=self.max_attempts,
            lockout_duration_ms=self.lockout_duration_ms,
            window_duration_ms=self.window_duration_ms,
        )

    @classmethod
    def from_config(cls, config: ThrottleConfig) -> "ThrottleConfigSchema":
        return cls(
            min_interval_ms=config.min_interval_ms,
            max_attempts=config.max_attempts,
            lockout_duration_ms=config.lockout_duration_ms,
            window_duration_ms=config.window_duration_ms,
        )


class ThrottleCheckRequest(BaseModel):
    """Check (and count) one attempt on ``key``.

    Exactly one of ``preset`` or ``config`` must be given.
    """

    key: str = Field(
        ...,
        min_length=1,
        max_length=512,
        description="Action namespace plus discriminator, e.g. 'login-candidate-a@x.com'.",
    )
    preset: str | None = Field(default=None, description="Named policy, e.g. 'login'.")
    config: ThrottleConfigSchema | None = Field(default=None, description="Explicit policy.")

    @model_validator(mode="after")
    def _exactly_one_policy(self) -> "ThrottleCheckRequest":
        if (self.preset is None) == (self.config is None):
            raise ValueError("provide exactly one of 'preset' or 'config'")
        return self


class ThrottleCheckResponse(BaseModel):
    """Throttle decision plus ready-to-display feedback."""

    allowed: bool
    wait_ms: int = Field(..., ge=0)
    attempts_left: int = Field(..., ge=0)
    wait_time: str | None = Field(
        default=None, description="Human-readable wait (French) when not allowed."
    )
    message: str | None = Field(
        default=None, description="User-facing message when not allowed."
    )


class ThrottleKeyRequest(BaseModel):
    key: str = Field(..., min_length=1, max_length=512)
