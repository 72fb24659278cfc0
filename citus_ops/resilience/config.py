from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RetryConfig(BaseModel):
    """Configuration for bounded retries with a fixed delay between attempts."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Maximum attempts, including the first call")
    delay_seconds: float = Field(default=3.0, ge=0, description="Fixed delay between attempts in seconds")

    retry_on_exceptions: tuple[type[Exception], ...] | None = Field(
        default=None,
        description="Exception types that trigger retry (None = all exceptions)",
    )

    reraise: bool = Field(default=True, description="Reraise the last exception after all attempts fail")


class PollConfig(BaseModel):
    """Configuration for polling a readiness probe until it reports success."""

    model_config = ConfigDict(frozen=True)

    interval_seconds: float = Field(default=3.0, ge=0, description="Delay between probes in seconds")
    timeout_seconds: float | None = Field(
        default=None,
        ge=0,
        description="Give up after this many seconds (None = poll forever)",
    )
