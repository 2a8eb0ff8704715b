"""Shared fixtures: a scripted provisioning backend and event factories."""

from datetime import datetime, timedelta, timezone

import pytest

from ecsy.errors import StackRejectedError
from ecsy.models import Stack, StackEvent
from ecsy.poller import StackPoller

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_event(n, status="CREATE_IN_PROGRESS", resource="Vpc", reason="", stack="s", at=None):
    """Event number `n`, `n` seconds after T0 unless `at` is given."""
    return StackEvent(
        event_id=f"evt-{n}",
        stack_name=stack,
        timestamp=at if at is not None else T0 + timedelta(seconds=n),
        logical_resource_id=resource,
        resource_status=status,
        resource_status_reason=reason,
        resource_type="AWS::EC2::VPC",
    )


class FakeProvisioningClient:
    """A ProvisioningClient whose stacks follow scripted status sequences.

    Stacks are absent until seeded with `existing()` or created with a
    script registered through `on_create()`. Each describe call advances the
    stack one step through its statuses (the last one repeats) and records a
    stack-level event for every status change. `event_batches()` replaces
    those with explicit newest-first batches. `fail_queries()` makes the next
    reads raise before answering.
    """

    def __init__(self):
        self.calls = []
        self.created = {}
        self._scripts = {}
        self._sequences = {}
        self._outputs = {}
        self._events = {}
        self._batches = {}
        self._query_failures = {}
        self._clock = 0
        self.reject = {}

    # scripting

    def existing(self, name, status, outputs=None):
        self._sequences[name] = [status]
        self._outputs[name] = outputs or {}
        self._events.setdefault(name, [])

    def on_create(self, name, statuses, outputs=None):
        self._scripts[name] = (list(statuses), outputs or {})

    def event_batches(self, name, batches):
        self._batches[name] = [list(b) for b in batches]

    def fail_queries(self, name, errors):
        self._query_failures[name] = list(errors)

    # ProvisioningClient

    def create_stack(self, name, template_body, parameters, disable_rollback, tags=None):
        self.calls.append(("create_stack", name))
        if name in self.reject:
            raise StackRejectedError(name, self.reject[name], "ValidationError")
        self.created[name] = {
            "template_body": template_body,
            "parameters": dict(parameters),
            "disable_rollback": disable_rollback,
            "tags": tags,
        }
        statuses, outputs = self._scripts.get(name, (["CREATE_COMPLETE"], {}))
        self._sequences[name] = list(statuses)
        self._outputs[name] = outputs
        self._events[name] = []
        return f"arn:aws:cloudformation:us-east-1:123456789012:stack/{name}/1"

    def describe_stack(self, name):
        self.calls.append(("describe_stack", name))
        self._maybe_fail(name)
        sequence = self._sequences.get(name)
        if not sequence:
            return None

        status = sequence.pop(0) if len(sequence) > 1 else sequence[0]
        events = self._events[name]
        if not events or events[-1].resource_status != status:
            self._clock += 1
            events.append(make_event(self._clock, status, resource=name, stack=name))

        outputs = self._outputs.get(name, {}) if status.endswith("_COMPLETE") else {}
        return Stack(name=name, status=status, outputs=dict(outputs))

    def list_stack_events(self, name, since=None):
        self.calls.append(("list_stack_events", name))
        self._maybe_fail(name)
        if name in self._batches:
            batches = self._batches[name]
            return list(batches.pop(0) if len(batches) > 1 else batches[0])
        return list(reversed(self._events.get(name, [])))

    def _maybe_fail(self, name):
        failures = self._query_failures.get(name)
        if failures:
            raise failures.pop(0)

    # assertions

    def call_names(self, kind):
        return [name for call, name in self.calls if call == kind]


class FakeClock:
    """Monotonic clock advanced only by the poller's sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def client():
    return FakeProvisioningClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def poller(clock):
    return StackPoller(interval=5, max_retries=3, max_backoff=30, sleep=clock.sleep, clock=clock)
