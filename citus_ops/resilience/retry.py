from __future__ import annotations

from collections.abc import Awaitable, Callable, Coroutine
from functools import wraps
from typing import cast

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    after_nothing,
    before_nothing,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    stop_never,
    wait_fixed,
)
from tenacity.retry import retry_base
from tenacity.stop import stop_base

from ..core.types import P, R
from .config import PollConfig, RetryConfig
from .types import BeforeSleepCallback, Probe, RetryCallback


class RetryLogicError(RuntimeError): ...


class Retry:
    def __init__(
        self,
        config: RetryConfig,
        before: RetryCallback | None = None,
        after: RetryCallback | None = None,
        before_sleep: BeforeSleepCallback | None = None,
    ) -> None:
        self._config = config
        self._before = before
        self._after = after
        self._before_sleep = before_sleep
        self._stop = stop_after_attempt(config.max_attempts)
        self._wait = wait_fixed(config.delay_seconds)
        self._retry_condition = self._build_retry_condition(config)

    def _build_retry_condition(self, config: RetryConfig) -> retry_base:
        if config.retry_on_exceptions:
            return retry_if_exception_type(config.retry_on_exceptions)
        return retry_if_exception_type(Exception)

    def __call__(
        self, func: Callable[P, Coroutine[object, object, R]]
    ) -> Callable[P, Coroutine[object, object, R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            async for attempt in AsyncRetrying(
                stop=self._stop,
                wait=self._wait,
                retry=self._retry_condition,
                before=cast(
                    Callable[[RetryCallState], Awaitable[None] | None],
                    self._before or before_nothing,
                ),
                after=cast(
                    Callable[[RetryCallState], Awaitable[None] | None],
                    self._after or after_nothing,
                ),
                before_sleep=self._before_sleep,
                reraise=self._config.reraise,
            ):
                with attempt:
                    return await func(*args, **kwargs)

            raise RetryLogicError("Async retry loop completed without success or failure")

        return wrapper


def retry(
    config: RetryConfig | None = None,
    before: RetryCallback | None = None,
    after: RetryCallback | None = None,
    before_sleep: BeforeSleepCallback | None = None,
) -> Retry:
    retry_config = config or RetryConfig()
    return Retry(retry_config, before, after, before_sleep)


def _is_not_ready(result: bool) -> bool:
    return result is not True


async def wait_until(
    probe: Probe,
    config: PollConfig,
    before_sleep: BeforeSleepCallback | None = None,
) -> bool:
    """Poll ``probe`` until it returns True.

    Parameters
    ----------
    probe
        Zero-argument coroutine function reporting readiness. Exceptions it
        raises count as "not ready yet".
    config
        Poll interval and optional timeout.
    before_sleep
        Optional tenacity callback invoked before each sleep.

    Returns
    -------
    bool
        True once the probe succeeded, False if the timeout elapsed first.
    """
    stop: stop_base = stop_never if config.timeout_seconds is None else stop_after_delay(config.timeout_seconds)

    try:
        async for attempt in AsyncRetrying(
            stop=stop,
            wait=wait_fixed(config.interval_seconds),
            retry=retry_if_result(_is_not_ready) | retry_if_exception_type(Exception),
            before_sleep=before_sleep,
            reraise=False,
        ):
            with attempt:
                ready = await probe()
            if not attempt.retry_state.outcome.failed:  # type: ignore[union-attr]
                attempt.retry_state.set_result(ready)
    except RetryError:
        return False
    return True
