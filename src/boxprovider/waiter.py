"""Polling state machine for eventually consistent remote resources.

A wait has two named states, pending and target. The refresh function is
polled until it reports the target status. Any other outcome ends the wait:

- refresh raised: the error propagates at once, no retry
- status outside {pending, target}: UnexpectedState
- deadline passed: PollTimeout, carrying the last observed status

Each call owns its poll state, so concurrent waits on different resources
share nothing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from .config import MAXIMUM_REFRESH_WAIT_SECONDS, MINIMUM_REFRESH_WAIT_SECONDS
from .errors import PollTimeout, UnexpectedState

logger = logging.getLogger(__name__)

SnapshotT = TypeVar("SnapshotT")

# Returns the current snapshot and its status label
RefreshFunc = Callable[[], Awaitable[tuple[SnapshotT, str]]]


class StateWait(Generic[SnapshotT]):
    """Poll state for a single wait.

    Attributes:
        polls: Number of refresh calls made so far.
        last_status: Status reported by the most recent refresh.
    """

    def __init__(
        self,
        refresh: RefreshFunc[SnapshotT],
        *,
        pending: str,
        target: str,
        timeout: float,
        min_interval: float = MINIMUM_REFRESH_WAIT_SECONDS,
        max_interval: float = MAXIMUM_REFRESH_WAIT_SECONDS,
        label: str = "",
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive: {timeout}")
        if min_interval < 0:
            raise ValueError(f"min_interval must not be negative: {min_interval}")

        self.refresh = refresh
        self.pending = pending
        self.target = target
        self.timeout = timeout
        self.min_interval = min_interval
        self.max_interval = max(max_interval, min_interval)
        self.label = label
        self.polls = 0
        self.last_status: str | None = None

    def next_interval(self, interval: float) -> float:
        """Capped exponential backoff, never below min_interval."""
        if interval <= 0:
            return self.min_interval
        return min(max(interval * 2, self.min_interval), self.max_interval)

    async def run(self) -> SnapshotT:
        """Poll until the target status is reached.

        Returns:
            The snapshot that reported the target status.

        Raises:
            PollTimeout: If the deadline passes first.
            UnexpectedState: If a status outside {pending, target} is seen.
            Exception: Whatever the refresh function raised.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        interval = 0.0

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise self._timed_out()

            try:
                snapshot, status = await asyncio.wait_for(self.refresh(), timeout=remaining)
            except TimeoutError:
                raise self._timed_out() from None

            self.polls += 1
            self.last_status = status

            if status == self.target:
                logger.debug(
                    "Target state reached",
                    extra={"wait": self.label, "status": status, "polls": self.polls},
                )
                return snapshot

            if status != self.pending:
                raise UnexpectedState(status, self.pending, self.target)

            interval = self.next_interval(interval)
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise self._timed_out()

            logger.debug(
                "Waiting for state change",
                extra={
                    "wait": self.label,
                    "status": status,
                    "target": self.target,
                    "sleep_seconds": min(interval, remaining),
                },
            )
            await asyncio.sleep(min(interval, remaining))

    def _timed_out(self) -> PollTimeout:
        logger.warning(
            "Timed out waiting for state change",
            extra={
                "wait": self.label,
                "target": self.target,
                "last_status": self.last_status,
                "timeout_seconds": self.timeout,
                "polls": self.polls,
            },
        )
        return PollTimeout(self.target, self.last_status, self.timeout)


async def wait_for_state(
    refresh: RefreshFunc[SnapshotT],
    *,
    pending: str,
    target: str,
    timeout: float,
    min_interval: float = MINIMUM_REFRESH_WAIT_SECONDS,
    max_interval: float = MAXIMUM_REFRESH_WAIT_SECONDS,
    label: str = "",
) -> SnapshotT:
    """Block until refresh() reports the target status.

    Args:
        refresh: Coroutine function returning (snapshot, status).
        pending: Status meaning "keep waiting".
        target: Status that resolves the wait.
        timeout: Overall deadline in seconds.
        min_interval: Minimum sleep between polls.
        max_interval: Backoff cap.
        label: Name used in log records.

    Returns:
        The snapshot reporting the target status.
    """
    wait = StateWait(
        refresh,
        pending=pending,
        target=target,
        timeout=timeout,
        min_interval=min_interval,
        max_interval=max_interval,
        label=label,
    )
    return await wait.run()
