"""Submit stack creation requests."""

import logging

from ecsy.client import ProvisioningClient
from ecsy.errors import StackRejectedError
from ecsy.models import CreateStackContext
from ecsy.templates import Template

logger = logging.getLogger(__name__)


def create_stack(
    client: ProvisioningClient,
    name: str,
    template: Template,
    context: CreateStackContext,
) -> str:
    """Submit `template` as stack `name` and return the new stack id.

    Success only means the backend accepted the request. The caller still has
    to poll the stack to a terminal state.
    """
    undeclared = template.undeclared(context.parameters)
    if undeclared:
        raise StackRejectedError(
            name,
            f"parameters not declared by the {template.name} template: {', '.join(undeclared)}",
            "UndeclaredParameters",
        )

    logger.info("Creating cloudformation stack %s", name)
    if context.disable_rollback:
        logger.info("Rollback disabled, failed resources of %s will be left in place", name)

    stack_id = client.create_stack(
        name,
        template.body,
        dict(context.parameters),
        context.disable_rollback,
        dict(context.tags) or None,
    )
    logger.debug("Stack %s accepted as %s", name, stack_id)
    return stack_id
