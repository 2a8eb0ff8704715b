"""Find an existing network stack for a cluster and read its outputs."""

import logging

from ecsy.client import ProvisioningClient
from ecsy.errors import IncompatibleStackError, MissingStackOutputError
from ecsy.models import (
    SUBNET1_OUTPUT,
    SUBNET2_OUTPUT,
    VPC_ID_OUTPUT,
    NetworkOutputs,
    Outcome,
    network_stack_name,
)

logger = logging.getLogger(__name__)


def find_network_stack(client: ProvisioningClient, cluster_name: str) -> tuple[NetworkOutputs, bool]:
    """Resolve the network stack for `cluster_name`.

    Returns (outputs, found). When the stack is absent, found is False and the
    outputs only carry the stack name to create. A stack that exists but is
    not in a success terminal state raises IncompatibleStackError; reusing a
    stack that is mid-provisioning or failed is never safe.
    """
    name = network_stack_name(cluster_name)
    stack = client.describe_stack(name)

    if stack is None:
        logger.debug("No network stack %s", name)
        return NetworkOutputs(stack_name=name), False

    if stack.outcome is not Outcome.SUCCEEDED:
        raise IncompatibleStackError(name, stack.status)

    def output(key: str) -> str:
        value = stack.outputs.get(key)
        if not value:
            raise MissingStackOutputError(name, stack.status, key)
        return value

    outputs = NetworkOutputs(
        stack_name=stack.name,
        vpc_id=output(VPC_ID_OUTPUT),
        private_subnet1_id=output(SUBNET1_OUTPUT),
        private_subnet2_id=output(SUBNET2_OUTPUT),
    )
    logger.debug("Resolved network stack %s: %s", name, outputs)
    return outputs, True
