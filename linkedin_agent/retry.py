"""Retry helpers with exponential backoff, stdlib only."""
from __future__ import annotations

import functools
import logging
import random
import time
from typing import Any, Callable, Tuple, Type

logger = logging.getLogger(__name__)


def backoff_delay(
    attempt: int,
    *,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
) -> float:
    """Delay before retrying after the given (1-based) failed attempt."""
    delay = min(base_delay * (backoff_factor ** (attempt - 1)), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


def retry_call(
    fn: Callable[[], Any],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    non_retryable: Tuple[Type[BaseException], ...] = (),
    on_retry: Callable[[int, BaseException], None] | None = None,
    sleep: Callable[[float], Any] | None = None,
    name: str | None = None,
) -> Any:
    """Call ``fn`` until it succeeds or ``max_attempts`` is exhausted.

    Exceptions in ``non_retryable`` propagate immediately even when they are
    subclasses of a ``retryable`` type. ``on_retry(attempt, exc)`` runs before
    each backoff sleep, e.g. to relaunch a browser between login attempts.
    """
    label = name or getattr(fn, "__qualname__", repr(fn))
    last_exc: BaseException | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except non_retryable:
            raise
        except retryable as exc:
            last_exc = exc
            if attempt == max_attempts:
                logger.error("%s failed after %d attempts: %s", label, max_attempts, exc)
                raise
            delay = backoff_delay(
                attempt,
                base_delay=base_delay,
                max_delay=max_delay,
                backoff_factor=backoff_factor,
                jitter=jitter,
            )
            logger.warning(
                "%s attempt %d/%d failed (%s), retrying in %.1fs",
                label,
                attempt,
                max_attempts,
                exc,
                delay,
            )
            if on_retry is not None:
                on_retry(attempt, exc)
            (sleep or time.sleep)(delay)
    raise last_exc  # type: ignore[misc]


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    non_retryable: Tuple[Type[BaseException], ...] = (),
) -> Callable:
    """Decorator: retries the wrapped function with exponential backoff."""

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return retry_call(
                lambda: fn(*args, **kwargs),
                max_attempts=max_attempts,
                base_delay=base_delay,
                max_delay=max_delay,
                backoff_factor=backoff_factor,
                jitter=jitter,
                retryable=retryable,
                non_retryable=non_retryable,
                name=fn.__qualname__,
            )

        return wrapper

    return decorator
