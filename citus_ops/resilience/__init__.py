"""Retry and polling helpers built on tenacity."""

from __future__ import annotations

from .config import PollConfig, RetryConfig
from .retry import Retry, RetryLogicError, retry, wait_until

__all__ = [
    "PollConfig",
    "Retry",
    "RetryConfig",
    "RetryLogicError",
    "retry",
    "wait_until",
]
