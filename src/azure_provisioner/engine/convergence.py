"""Polling for eventual consistency after a write.

Azure implements a role definition update as "create a new record, then
merge it with the old one". For a few seconds after the write, reads return
the fresh record, whose creation time equals the update time we were handed.
Once merged, the record carries the original creation time and our update
time. The waiter below keeps reading until that merged shape has been seen
several times in a row.

Transition logic (`next_state`) is a pure function so it can be tested
without sleeping; `ConvergenceWaiter` owns the clock, the deadline and the
consecutive-observation counter.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from azure_provisioner.engine.errors import ConvergenceTimeoutError, MalformedResponseError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class ConvergenceState(str, Enum):
    PENDING = "Pending"
    UPDATED = "Updated"
    FAILED = "Failed"


@dataclass(frozen=True)
class ConvergenceObservation:
    """Timestamps of one read of the remote object."""

    created_on: Any
    updated_on: Any


def next_state(observation: ConvergenceObservation, expected_updated_on: Any) -> ConvergenceState:
    """Classify one observation against the ``updated_on`` returned by the write."""
    if observation.created_on is None or observation.updated_on is None:
        return ConvergenceState.FAILED
    if observation.created_on == expected_updated_on:
        # Still the freshly created record; the merge has not happened yet.
        return ConvergenceState.PENDING
    if observation.updated_on != expected_updated_on:
        return ConvergenceState.PENDING
    return ConvergenceState.UPDATED


@dataclass
class ConvergenceWaiter:
    """Drive `next_state` until the target is observed enough times in a row.

    Any ``Pending`` observation resets the streak, so a stale read racing a
    fresh one cannot end the wait early. Exceptions raised by *observe*
    propagate immediately.
    """

    observe: Callable[[], ConvergenceObservation]
    expected_updated_on: Any
    timeout: float
    delay: float = 10.0
    poll_interval: float = 10.0
    continuous_target_occurrence: int = 5
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    def _sleep_within(self, seconds: float, deadline: float) -> None:
        remaining = deadline - self.clock()
        if remaining > 0:
            self.sleep(min(seconds, remaining))

    def wait(self) -> ConvergenceObservation:
        deadline = self.clock() + self.timeout
        last_state = ConvergenceState.PENDING
        streak = 0

        self._sleep_within(self.delay, deadline)
        while True:
            if self.clock() >= deadline:
                raise ConvergenceTimeoutError(
                    ConvergenceState.UPDATED.value, last_state.value, self.timeout
                )

            observation = self.observe()
            state = next_state(observation, self.expected_updated_on)
            logger.debug(
                "Convergence poll: state=%s streak=%d created_on=%s updated_on=%s",
                state.value,
                streak,
                observation.created_on,
                observation.updated_on,
            )

            if state is ConvergenceState.FAILED:
                missing = [
                    f"`{name}`"
                    for name in ("created_on", "updated_on")
                    if getattr(observation, name) is None
                ]
                raise MalformedResponseError(f"{' and '.join(missing)} was empty in the response")

            if state is ConvergenceState.UPDATED:
                streak += 1
                if streak >= self.continuous_target_occurrence:
                    return observation
            else:
                streak = 0
            last_state = state

            self._sleep_within(self.poll_interval, deadline)
