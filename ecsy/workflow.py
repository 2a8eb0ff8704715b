"""
Cluster provisioning workflow.

Resolve or create the network stack, then create the cluster stack with the
network outputs injected as parameters. Stacks are strictly sequential: the
cluster stack is never submitted until the network stack is in a success
terminal state and its outputs have been read back.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

from botocore.exceptions import BotoCoreError, ClientError

from ecsy.client import ProvisioningClient
from ecsy.config import DEFAULT_STACK_PREFIX
from ecsy.creator import create_stack
from ecsy.errors import ClusterRegistrationError, StackQueryError
from ecsy.models import CreateStackContext, NetworkOutputs, Stack, cluster_stack_name
from ecsy.poller import EventObserver, StackPoller
from ecsy.resolver import find_network_stack
from ecsy.templates import CLUSTER, NETWORK, TemplateProvider

logger = logging.getLogger(__name__)


@dataclass
class ClusterOptions:
    """Everything the caller decides about a cluster."""
    cluster: str
    key_name: str = "default"
    instance_type: str = "t2.micro"
    instance_count: int = 3
    docker_username: str = ""
    docker_password: str = ""
    docker_email: str = ""
    datadog_key: str = ""
    logspout_target: str = ""
    authorized_keys_url: str = ""
    disable_rollback: bool = False
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class ProvisionResult:
    cluster: str
    network: NetworkOutputs
    network_created: bool
    cluster_stack: Stack
    network_elapsed: timedelta
    cluster_elapsed: timedelta
    elapsed: timedelta


def build_cluster_parameters(network: NetworkOutputs, options: ClusterOptions) -> dict[str, str]:
    """Merge network outputs and cluster flags into the cluster stack's parameters."""
    return {
        "VpcId": network.vpc_id,
        "VpcPrivateSubnet1Id": network.private_subnet1_id,
        "VpcPrivateSubnet2Id": network.private_subnet2_id,
        "KeyName": options.key_name,
        "ECSCluster": options.cluster,
        "InstanceType": options.instance_type,
        "DesiredCapacity": str(options.instance_count),
        "DockerHubUsername": options.docker_username,
        "DockerHubPassword": options.docker_password,
        "DockerHubEmail": options.docker_email,
        "LogspoutTarget": options.logspout_target,
        "DatadogApiKey": options.datadog_key,
        "AuthorizedUsersUrl": options.authorized_keys_url,
    }


class ClusterProvisioner:
    """Drives the network and cluster stacks for one cluster."""

    def __init__(
        self,
        client: ProvisioningClient,
        templates: TemplateProvider | None = None,
        poller: StackPoller | None = None,
        ecs_client=None,
        stack_prefix: str = DEFAULT_STACK_PREFIX,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.templates = templates or TemplateProvider()
        self.poller = poller or StackPoller()
        self.ecs_client = ecs_client
        self.stack_prefix = stack_prefix
        self.clock = clock

    def provision(
        self,
        options: ClusterOptions,
        on_event: EventObserver,
        deadline: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ProvisionResult:
        started = self.clock()

        self.register_cluster(options.cluster)

        network_started = self.clock()
        network, created = self.get_or_create_network_stack(options, on_event, deadline, cancel)
        network_elapsed = timedelta(seconds=self.clock() - network_started) if created else timedelta(0)

        cluster_started = self.clock()
        stack_name = cluster_stack_name(options.cluster, self.stack_prefix)
        context = CreateStackContext(
            parameters=build_cluster_parameters(network, options),
            disable_rollback=options.disable_rollback,
            tags=options.tags,
        )
        create_stack(self.client, stack_name, self.templates.get(CLUSTER), context)
        stack = self.poller.poll_until_terminal(
            self.client, stack_name, on_event, deadline=deadline, cancel=cancel
        )
        cluster_elapsed = timedelta(seconds=self.clock() - cluster_started)
        logger.info("Cluster %s created in %s", options.cluster, cluster_elapsed)

        return ProvisionResult(
            cluster=options.cluster,
            network=network,
            network_created=created,
            cluster_stack=stack,
            network_elapsed=network_elapsed,
            cluster_elapsed=cluster_elapsed,
            elapsed=timedelta(seconds=self.clock() - started),
        )

    def get_or_create_network_stack(
        self,
        options: ClusterOptions,
        on_event: EventObserver,
        deadline: float | None = None,
        cancel: threading.Event | None = None,
    ) -> tuple[NetworkOutputs, bool]:
        """Reuse the cluster's network stack, creating it first if it is absent."""
        outputs, found = find_network_stack(self.client, options.cluster)
        if found:
            logger.info("Reusing network stack %s (%s)", outputs.stack_name, outputs.vpc_id)
            return outputs, False

        logger.info("Creating network stack for %s", options.cluster)
        context = CreateStackContext(
            parameters={},
            disable_rollback=options.disable_rollback,
            tags=options.tags,
        )
        create_stack(self.client, outputs.stack_name, self.templates.get(NETWORK), context)
        self.poller.poll_until_terminal(
            self.client, outputs.stack_name, on_event, deadline=deadline, cancel=cancel
        )

        # Outputs only exist once the stack is terminal, so read them back
        outputs, found = find_network_stack(self.client, options.cluster)
        if not found:
            raise StackQueryError(
                f"Network stack {outputs.stack_name} vanished right after it was created"
            )
        logger.info("Network stack %s created", outputs.stack_name)
        return outputs, True

    def register_cluster(self, cluster: str) -> None:
        """Create the ECS cluster name. ECS treats this as idempotent."""
        if self.ecs_client is None:
            return
        try:
            self.ecs_client.create_cluster(clusterName=cluster)
        except (ClientError, BotoCoreError) as e:
            raise ClusterRegistrationError(f"Could not register ECS cluster {cluster}: {e}") from e
        logger.debug("ECS cluster %s registered", cluster)
