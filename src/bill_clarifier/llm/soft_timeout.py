"""Wall-clock cap on a model call that hands off instead of cancelling."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Awaitable, Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CallStatus(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    HANDED_OFF = "handed_off"


@dataclass
class SoftTimeoutResult(Generic[T]):
    """Tri-state outcome of :func:`call_with_soft_timeout`.

    ``task`` is set only for ``HANDED_OFF``: the call is still running and
    the caller owns its completion.
    """

    status: CallStatus
    value: T | None = None
    error: BaseException | None = None
    task: asyncio.Task | None = None

    @property
    def completed(self) -> bool:
        return self.status is CallStatus.COMPLETED

    @property
    def failed(self) -> bool:
        return self.status is CallStatus.FAILED

    @property
    def handed_off(self) -> bool:
        return self.status is CallStatus.HANDED_OFF


async def call_with_soft_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    *,
    label: str = "call",
) -> SoftTimeoutResult[T]:
    """Await *awaitable* for at most *timeout* seconds.

    The call is never cancelled. If it is still running when the timeout
    elapses, the running task is returned in a ``HANDED_OFF`` result.
    """
    task: asyncio.Task[Any] = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)

    if not done:
        logger.warning("soft_timeout_handed_off", label=label, timeout_s=timeout)
        return SoftTimeoutResult(status=CallStatus.HANDED_OFF, task=task)

    exc = task.exception()
    if exc is not None:
        return SoftTimeoutResult(status=CallStatus.FAILED, error=exc)
    return SoftTimeoutResult(status=CallStatus.COMPLETED, value=task.result())
