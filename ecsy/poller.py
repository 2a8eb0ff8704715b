"""
Poll a stack until it reaches a terminal state, streaming its events.

CloudFormation has no event stream, so the poller re-reads the event list
on every pass and diffs it against an explicit cursor: the timestamp of the
last delivered event plus the ids already delivered at that timestamp. The
backend returns events newest first and pages are not guaranteed stable, so
list position is never used to decide what is new.
"""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable

from ecsy.client import ProvisioningClient
from ecsy.config import DEFAULT_MAX_BACKOFF, DEFAULT_MAX_RETRIES, DEFAULT_POLL_INTERVAL
from ecsy.errors import (
    StackProvisioningError,
    StackQueryError,
    StackWaitCancelled,
    StackWaitTimeout,
    TransientQueryError,
)
from ecsy.models import Outcome, Stack, StackEvent

logger = logging.getLogger(__name__)

EventObserver = Callable[[StackEvent], None]


@dataclass(frozen=True)
class EventCursor:
    """High-water mark of delivered events.

    Events without a timestamp cannot be ordered against the mark, so their
    ids are kept in `untimed_ids` for the life of the cursor.
    """
    timestamp: datetime | None = None
    event_ids: frozenset[str] = field(default_factory=frozenset)
    untimed_ids: frozenset[str] = field(default_factory=frozenset)

    def is_new(self, event: StackEvent) -> bool:
        if event.timestamp is None:
            return event.event_id not in self.untimed_ids
        if self.timestamp is None or event.timestamp > self.timestamp:
            return True
        return event.timestamp == self.timestamp and event.event_id not in self.event_ids

    def advance(self, event: StackEvent) -> 'EventCursor':
        if event.timestamp is None:
            return replace(self, untimed_ids=self.untimed_ids | {event.event_id})
        if event.timestamp == self.timestamp:
            return replace(self, event_ids=self.event_ids | {event.event_id})
        return EventCursor(event.timestamp, frozenset({event.event_id}), self.untimed_ids)


def fresh_events(batch: list[StackEvent], cursor: EventCursor) -> list[StackEvent]:
    """Events in a newest-first batch that the cursor has not seen, oldest first."""
    fresh = [e for e in reversed(batch) if cursor.is_new(e)]
    if all(e.timestamp is not None for e in fresh):
        # Stable, so equal timestamps keep backend arrival order
        fresh.sort(key=lambda e: e.timestamp)
    return fresh


class StackPoller:
    """Blocks until a stack is terminal, delivering each event exactly once.

    `sleep` and `clock` are injectable so tests can run without waiting;
    `clock` must be monotonic and share a time base with any deadline passed
    to poll_until_terminal.
    """

    def __init__(
        self,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = interval
        self.max_retries = max_retries
        self.max_backoff = max_backoff
        self.sleep = sleep
        self.clock = clock

    def poll_until_terminal(
        self,
        client: ProvisioningClient,
        stack_name: str,
        on_event: EventObserver,
        deadline: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Stack:
        """Poll `stack_name` until terminal.

        Returns the final Stack on success. Raises StackProvisioningError on
        a failure terminal state, StackQueryError once transient failures are
        exhausted, and StackWaitTimeout / StackWaitCancelled when the deadline
        passes or `cancel` is set.
        """
        cursor = EventCursor()
        last_status = None
        resource_failure = None
        failures = 0

        while True:
            self._check(stack_name, last_status, deadline, cancel)

            try:
                stack = client.describe_stack(stack_name)
                if stack is None:
                    raise StackQueryError(f"Stack {stack_name} disappeared while waiting for it")
                batch = client.list_stack_events(stack_name, since=cursor.timestamp)
            except TransientQueryError as e:
                failures += 1
                if failures > self.max_retries:
                    raise StackQueryError(
                        f"Gave up querying stack {stack_name} after {failures} attempts: {e}"
                    ) from e
                delay = min(self.interval * 2 ** (failures - 1), self.max_backoff)
                logger.warning("Querying %s failed (%s), retry %d/%d in %.0fs",
                               stack_name, e, failures, self.max_retries, delay)
                self._wait(delay, stack_name, last_status, deadline, cancel)
                continue

            failures = 0
            if stack.status != last_status:
                logger.debug("Stack %s is %s", stack_name, stack.status)
                last_status = stack.status

            for event in fresh_events(batch, cursor):
                if not cursor.is_new(event):
                    continue
                on_event(event)
                cursor = cursor.advance(event)
                if event.is_failure and _is_better_failure(event, resource_failure, stack_name):
                    resource_failure = event

            outcome = stack.outcome
            if outcome is Outcome.SUCCEEDED:
                return stack
            if outcome is Outcome.FAILED:
                raise StackProvisioningError(
                    stack_name,
                    stack.status,
                    stack.status_reason,
                    resource_failure.logical_resource_id if resource_failure else "",
                    resource_failure.resource_status_reason if resource_failure else "",
                )

            self._wait(self.interval, stack_name, last_status, deadline, cancel)

    def _check(self, stack_name, last_status, deadline, cancel):
        if cancel is not None and cancel.is_set():
            raise StackWaitCancelled(stack_name, last_status)
        if deadline is not None and self.clock() >= deadline:
            raise StackWaitTimeout(stack_name, last_status)

    def _wait(self, seconds, stack_name, last_status, deadline, cancel):
        if deadline is not None:
            remaining = deadline - self.clock()
            if remaining <= 0:
                raise StackWaitTimeout(stack_name, last_status)
            seconds = min(seconds, remaining)

        if cancel is not None:
            if cancel.wait(seconds):
                raise StackWaitCancelled(stack_name, last_status)
        else:
            self.sleep(seconds)


def _is_better_failure(event: StackEvent, current: StackEvent | None, stack_name: str) -> bool:
    """Prefer the first failed resource with a reason over the stack's own summary event."""
    if not event.resource_status_reason:
        return False
    if current is None:
        return True
    return current.logical_resource_id == stack_name and event.logical_resource_id != stack_name


def poll_until_terminal(
    client: ProvisioningClient,
    stack_name: str,
    on_event: EventObserver,
    deadline: float | None = None,
    cancel: threading.Event | None = None,
    **options,
) -> Stack:
    """Poll with a one-off StackPoller built from `options`."""
    return StackPoller(**options).poll_until_terminal(
        client, stack_name, on_event, deadline=deadline, cancel=cancel
    )
