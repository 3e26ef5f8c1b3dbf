"""Pydantic schemas for rate limit responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RateLimitInfo(BaseModel):
    """Quota state reported to a throttled client."""

    model_config = ConfigDict(populate_by_name=True)

    limit: int = Field(..., description="Max requests allowed in the window.")
    remaining: int = Field(..., description="Requests left in the window (0 when throttled).")
    reset_time: int = Field(
        ...,
        alias="resetTime",
        description="UNIX epoch milliseconds when the window resets.",
    )
    retry_after: int | None = Field(
        default=None,
        alias="retryAfter",
        description="Seconds to wait before retrying.",
    )


class RateLimitExceededResponse(BaseModel):
    """Body of a 429 Too Many Requests response."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(False, description="Always false for throttled requests.")
    error: str = Field("Rate limit exceeded", description="Short error label.")
    message: str = Field(..., description="Human-readable retry hint.")
    rate_limit_info: RateLimitInfo = Field(..., alias="rateLimitInfo")


class PurgeRateLimitsResponse(BaseModel):
    """Result of purging a tenant's counters."""

    identifier: str = Field(..., description="Identifier whose counters were purged.")
    removed: int = Field(..., description="Number of counters removed.")
