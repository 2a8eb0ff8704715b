"""ecsy: provision ECS clusters by driving CloudFormation stacks."""

from ecsy.client import CloudFormationClient, ProvisioningClient
from ecsy.creator import create_stack
from ecsy.errors import EcsyError
from ecsy.events import format_stack_event, parse_stack_event_line
from ecsy.models import CreateStackContext, NetworkOutputs, Outcome, Stack, StackEvent, StackStatus
from ecsy.poller import StackPoller, poll_until_terminal
from ecsy.resolver import find_network_stack
from ecsy.workflow import ClusterOptions, ClusterProvisioner, ProvisionResult

__version__ = "0.3.0"

__all__ = [
    "CloudFormationClient",
    "ClusterOptions",
    "ClusterProvisioner",
    "CreateStackContext",
    "EcsyError",
    "NetworkOutputs",
    "Outcome",
    "ProvisionResult",
    "ProvisioningClient",
    "Stack",
    "StackEvent",
    "StackPoller",
    "StackStatus",
    "create_stack",
    "find_network_stack",
    "format_stack_event",
    "parse_stack_event_line",
    "poll_until_terminal",
]
