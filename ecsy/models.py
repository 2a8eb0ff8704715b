"""
Stack data model: statuses, events, creation context and network outputs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


# ─────────────────────────────────────────────────────────────────────────────
# STACK STATUS STATE MACHINE
# ─────────────────────────────────────────────────────────────────────────────

class Outcome(str, Enum):
    """Where a stack status sits in the lifecycle."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not Outcome.PENDING


class StackStatus(str, Enum):
    """Documented CloudFormation stack statuses.

    A fresh create walks CREATE_IN_PROGRESS -> CREATE_COMPLETE, or
    CREATE_IN_PROGRESS -> CREATE_FAILED / ROLLBACK_IN_PROGRESS ->
    ROLLBACK_COMPLETE | ROLLBACK_FAILED. The remaining members exist so an
    existing stack in any state can be classified.
    """
    CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
    CREATE_COMPLETE = "CREATE_COMPLETE"
    CREATE_FAILED = "CREATE_FAILED"
    ROLLBACK_IN_PROGRESS = "ROLLBACK_IN_PROGRESS"
    ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"
    ROLLBACK_FAILED = "ROLLBACK_FAILED"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"
    DELETE_COMPLETE = "DELETE_COMPLETE"
    DELETE_FAILED = "DELETE_FAILED"
    UPDATE_IN_PROGRESS = "UPDATE_IN_PROGRESS"
    UPDATE_COMPLETE_CLEANUP_IN_PROGRESS = "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS"
    UPDATE_COMPLETE = "UPDATE_COMPLETE"
    UPDATE_FAILED = "UPDATE_FAILED"
    UPDATE_ROLLBACK_IN_PROGRESS = "UPDATE_ROLLBACK_IN_PROGRESS"
    UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS = "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS"
    UPDATE_ROLLBACK_COMPLETE = "UPDATE_ROLLBACK_COMPLETE"
    UPDATE_ROLLBACK_FAILED = "UPDATE_ROLLBACK_FAILED"
    REVIEW_IN_PROGRESS = "REVIEW_IN_PROGRESS"
    IMPORT_IN_PROGRESS = "IMPORT_IN_PROGRESS"
    IMPORT_COMPLETE = "IMPORT_COMPLETE"
    IMPORT_ROLLBACK_IN_PROGRESS = "IMPORT_ROLLBACK_IN_PROGRESS"
    IMPORT_ROLLBACK_COMPLETE = "IMPORT_ROLLBACK_COMPLETE"
    IMPORT_ROLLBACK_FAILED = "IMPORT_ROLLBACK_FAILED"

    @property
    def outcome(self) -> Outcome:
        if self in _SUCCEEDED:
            return Outcome.SUCCEEDED
        if self in _FAILED:
            return Outcome.FAILED
        return Outcome.PENDING


_SUCCEEDED = frozenset({
    StackStatus.CREATE_COMPLETE,
    StackStatus.UPDATE_COMPLETE,
    StackStatus.IMPORT_COMPLETE,
})

_FAILED = frozenset({
    StackStatus.CREATE_FAILED,
    StackStatus.ROLLBACK_COMPLETE,
    StackStatus.ROLLBACK_FAILED,
    StackStatus.DELETE_COMPLETE,
    StackStatus.DELETE_FAILED,
    StackStatus.UPDATE_FAILED,
    StackStatus.UPDATE_ROLLBACK_COMPLETE,
    StackStatus.UPDATE_ROLLBACK_FAILED,
    StackStatus.IMPORT_ROLLBACK_COMPLETE,
    StackStatus.IMPORT_ROLLBACK_FAILED,
})


def classify(status: str) -> Outcome:
    """Map a raw backend status to an Outcome. Unknown statuses keep polling."""
    try:
        return StackStatus(status).outcome
    except ValueError:
        return Outcome.PENDING


# ─────────────────────────────────────────────────────────────────────────────
# STACKS AND EVENTS
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Stack:
    """A snapshot of a remote stack as last described by the backend."""
    name: str
    status: str
    status_reason: str = ""
    stack_id: str = ""
    outputs: dict[str, str] = field(default_factory=dict)

    @property
    def outcome(self) -> Outcome:
        return classify(self.status)


@dataclass(frozen=True)
class StackEvent:
    """One immutable status record for a resource within a stack."""
    event_id: str
    stack_name: str
    timestamp: datetime | None
    logical_resource_id: str
    resource_status: str
    resource_status_reason: str = ""
    resource_type: str = ""

    @property
    def is_failure(self) -> bool:
        return self.resource_status.endswith("_FAILED")


@dataclass
class CreateStackContext:
    """Input for a stack creation request."""
    parameters: dict[str, str] = field(default_factory=dict)
    disable_rollback: bool = False
    tags: dict[str, str] = field(default_factory=dict)


# ─────────────────────────────────────────────────────────────────────────────
# NETWORK OUTPUTS
# ─────────────────────────────────────────────────────────────────────────────

VPC_ID_OUTPUT = "VpcId"
SUBNET1_OUTPUT = "Subnet1"
SUBNET2_OUTPUT = "Subnet2"
NETWORK_OUTPUT_KEYS = (VPC_ID_OUTPUT, SUBNET1_OUTPUT, SUBNET2_OUTPUT)


@dataclass(frozen=True)
class NetworkOutputs:
    """The parts of a network stack the cluster stack needs."""
    stack_name: str
    vpc_id: str = ""
    private_subnet1_id: str = ""
    private_subnet2_id: str = ""


def network_stack_name(cluster: str) -> str:
    return f"network-stack-{cluster}"


def cluster_stack_name(cluster: str, prefix: str = "ecs") -> str:
    return f"{prefix}-{cluster}-cluster"
