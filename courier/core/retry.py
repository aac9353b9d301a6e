"""Bounded retry transport — timeout, classification and exponential backoff."""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable, Coroutine
from typing import TypeVar

import httpx
import structlog
from pydantic import BaseModel, ConfigDict

from courier.exceptions import (
    HTTPResponseError,
    PermanentNetworkError,
    TransientNetworkError,
)

logger = structlog.get_logger()

T = TypeVar("T")

_RATE_LIMITED_STATUS = 429


class Classification(enum.Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


class RetryPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeout: float = 8.0
    max_retries: int = 3
    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 5.0

    def delay_for(self, retry_index: int) -> float:
        """Wait before retry number ``retry_index`` (0-based)."""
        delay: float = self.base_delay * (self.factor**retry_index)
        return min(delay, self.max_delay)


def default_classify(exc: BaseException) -> Classification:
    """Timeouts and HTTP 429 are transient; everything else is permanent."""
    if isinstance(exc, TimeoutError | httpx.TimeoutException):
        return Classification.TRANSIENT
    if isinstance(exc, HTTPResponseError):
        if exc.status_code == _RATE_LIMITED_STATUS:
            return Classification.TRANSIENT
        return Classification.PERMANENT
    lowered = str(exc).lower()
    if "timeout" in lowered or "timed out" in lowered or "429" in lowered:
        return Classification.TRANSIENT
    return Classification.PERMANENT


def _status_of(exc: BaseException) -> int | None:
    return exc.status_code if isinstance(exc, HTTPResponseError) else None


class RetryTransport:
    """Runs one outbound call under the shared retry policy.

    Each attempt races ``policy.timeout``. Transient failures are retried with
    capped exponential backoff; permanent failures bail on the first attempt.
    """

    def __init__(self, policy: RetryPolicy | None = None) -> None:
        self.policy = policy or RetryPolicy()

    async def execute(
        self,
        factory: Callable[[], Coroutine[object, object, T]],
        *,
        operation: str,
        classify: Callable[[BaseException], Classification] = default_classify,
    ) -> T:
        policy = self.policy
        attempts = policy.max_retries + 1
        last_exc: Exception | None = None
        for attempt in range(attempts):
            try:
                return await asyncio.wait_for(factory(), timeout=policy.timeout)
            except TimeoutError:
                last_exc = TimeoutError(
                    f"{operation} timed out after {policy.timeout}s"
                )
                kind = Classification.TRANSIENT
            except Exception as exc:
                last_exc = exc
                kind = classify(exc)

            if kind is Classification.PERMANENT:
                logger.warning(
                    "call_failed_permanently",
                    operation=operation,
                    attempt=attempt + 1,
                    error=str(last_exc),
                )
                raise PermanentNetworkError(
                    f"{operation} failed: {last_exc}",
                    status_code=_status_of(last_exc),
                ) from last_exc

            if attempt == attempts - 1:
                break

            delay = policy.delay_for(attempt)
            logger.warning(
                "retry_scheduled",
                operation=operation,
                attempt=attempt + 1,
                max_retries=policy.max_retries,
                delay=delay,
                error=str(last_exc),
            )
            await asyncio.sleep(delay)

        logger.error(
            "retries_exhausted",
            operation=operation,
            attempts=attempts,
            error=str(last_exc),
        )
        raise TransientNetworkError(
            f"{operation} failed after {policy.max_retries} retries: {last_exc}",
            status_code=_status_of(last_exc) if last_exc else None,
        ) from last_exc
