"""Bounded retry helper for stats provider calls."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from .errors import TransientProviderError
from .schemas import LeagueConfig

T = TypeVar('T')
logger = logging.getLogger('threeman.retry')

# Calls are run on this pool so a hung request can be abandoned after the timeout
_timeout_pool = ThreadPoolExecutor(max_workers=16, thread_name_prefix='provider-call')


@dataclass
class FetchResult(Generic[T]):
    """Tagged outcome of a provider call: a value, or the error after the last attempt."""
    ok: bool
    value: Optional[T] = None
    error: Optional[TransientProviderError] = None

    def unwrap(self) -> T:
        if not self.ok:
            raise self.error
        return self.value


def call_with_retry(
    fn: Callable[[], T],
    attempts: int = 3,
    backoff_seconds: float = 1.0,
    timeout_seconds: Optional[float] = None,
    sleep: Callable[[float], Any] = time.sleep,
    description: str = 'provider call',
) -> FetchResult[T]:
    """
    Call fn up to `attempts` times.

    After failed attempt n the helper sleeps backoff_seconds * n. Each attempt is
    abandoned once timeout_seconds have passed. Never raises for provider
    failures; the caller decides what an exhausted call means.

    Args:
        fn: Zero-argument callable doing the provider request
        attempts: Total number of attempts (>= 1)
        backoff_seconds: Base delay between attempts
        timeout_seconds: Hard per-attempt timeout, or None for no limit
        sleep: Sleep function (injectable for tests)
        description: Label used in log lines and the error message

    Returns:
        FetchResult with ok=True and the value, or ok=False and a TransientProviderError
    """
    attempts = max(1, attempts)
    last_error = None

    for attempt in range(1, attempts + 1):
        try:
            if timeout_seconds is None:
                value = fn()
            else:
                value = _timeout_pool.submit(fn).result(timeout=timeout_seconds)
            return FetchResult(ok=True, value=value)
        except FutureTimeoutError:
            last_error = f'timed out after {timeout_seconds}s'
        except Exception as e:
            last_error = f'{type(e).__name__}: {e}'

        logger.warning(f'{description} attempt {attempt}/{attempts} failed: {last_error}')
        if attempt < attempts:
            sleep(backoff_seconds * attempt)

    error = TransientProviderError(description, attempts, last_error)
    logger.error(str(error))
    return FetchResult(ok=False, error=error)


def retry_settings(config: LeagueConfig, sleep: Optional[Callable[[float], Any]] = None) -> dict:
    """call_with_retry keyword arguments taken from a LeagueConfig."""
    settings = {
        'attempts': config.provider_attempts,
        'backoff_seconds': config.provider_backoff_seconds,
        'timeout_seconds': config.provider_timeout_seconds,
    }
    if sleep is not None:
        settings['sleep'] = sleep
    return settings
