"""
Provisioning client: the CloudFormation capability the orchestrator depends on.

The orchestrator only talks to ProvisioningClient. CloudFormationClient is the
boto3-backed implementation; tests substitute a scripted fake. botocore
exceptions are translated here and never leak past this module.
"""

import logging
from datetime import datetime
from typing import Protocol

from botocore.exceptions import BotoCoreError, ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as BotoConnectionError

from ecsy.errors import StackQueryError, StackRejectedError, TransientQueryError
from ecsy.models import Stack, StackEvent

logger = logging.getLogger(__name__)

CAPABILITIES = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]

THROTTLING_CODES = frozenset({
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
})


class ProvisioningClient(Protocol):
    """What the orchestrator needs from a stack provisioning backend."""

    def create_stack(
        self,
        name: str,
        template_body: str,
        parameters: dict[str, str],
        disable_rollback: bool,
        tags: dict[str, str] | None = None,
    ) -> str:
        """Submit a stack for creation and return its id."""
        ...

    def describe_stack(self, name: str) -> Stack | None:
        """Return the stack, or None when no stack has that name."""
        ...

    def list_stack_events(self, name: str, since: datetime | None = None) -> list[StackEvent]:
        """Return events newest first, stopping once events predate `since`."""
        ...


# ─────────────────────────────────────────────────────────────────────────────
# ERROR TRANSLATION
# ─────────────────────────────────────────────────────────────────────────────

def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", str(error))


def _is_transient(error: ClientError) -> bool:
    if _error_code(error) in THROTTLING_CODES:
        return True
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    return status >= 500


def _is_missing_stack(error: ClientError) -> bool:
    return _error_code(error) == "ValidationError" and "does not exist" in _error_message(error)


def _query_error(name: str, action: str, error: Exception) -> Exception:
    if isinstance(error, (BotoConnectionError, HTTPClientError)):
        return TransientQueryError(f"{action} {name} failed: {error}")
    if isinstance(error, ClientError) and _is_transient(error):
        return TransientQueryError(f"{action} {name} failed: {_error_message(error)}")
    return StackQueryError(f"{action} {name} failed: {error}")


# ─────────────────────────────────────────────────────────────────────────────
# BOTO3 IMPLEMENTATION
# ─────────────────────────────────────────────────────────────────────────────

class CloudFormationClient:
    """ProvisioningClient backed by a boto3 `cloudformation` client."""

    def __init__(self, cfn):
        self.cfn = cfn

    def create_stack(
        self,
        name: str,
        template_body: str,
        parameters: dict[str, str],
        disable_rollback: bool,
        tags: dict[str, str] | None = None,
    ) -> str:
        request = {
            'StackName': name,
            'TemplateBody': template_body,
            'Parameters': [
                {'ParameterKey': k, 'ParameterValue': v} for k, v in parameters.items()
            ],
            'DisableRollback': disable_rollback,
            'Capabilities': CAPABILITIES,
        }
        if tags:
            request['Tags'] = [{'Key': k, 'Value': v} for k, v in tags.items()]

        logger.debug("CreateStack %s with parameters %s", name, sorted(parameters))
        try:
            response = self.cfn.create_stack(**request)
        except ClientError as e:
            raise StackRejectedError(name, _error_message(e), _error_code(e)) from e
        except BotoCoreError as e:
            raise StackRejectedError(name, str(e)) from e
        return response['StackId']

    def describe_stack(self, name: str) -> Stack | None:
        try:
            response = self.cfn.describe_stacks(StackName=name)
        except ClientError as e:
            if _is_missing_stack(e):
                logger.debug("Stack %s does not exist", name)
                return None
            raise _query_error(name, "DescribeStacks", e) from e
        except BotoCoreError as e:
            raise _query_error(name, "DescribeStacks", e) from e

        if not response['Stacks']:
            return None

        stack = response['Stacks'][0]
        return Stack(
            name=stack['StackName'],
            status=stack['StackStatus'],
            status_reason=stack.get('StackStatusReason', ''),
            stack_id=stack.get('StackId', ''),
            outputs={o['OutputKey']: o.get('OutputValue', '') for o in stack.get('Outputs', [])},
        )

    def list_stack_events(self, name: str, since: datetime | None = None) -> list[StackEvent]:
        events = []
        paginator = self.cfn.get_paginator('describe_stack_events')
        try:
            for page in paginator.paginate(StackName=name):
                for raw in page.get('StackEvents', []):
                    event = _event_from_api(raw)
                    # Pages run newest first, so everything after this is older still
                    if since and event.timestamp and event.timestamp < since:
                        return events
                    events.append(event)
        except (ClientError, BotoCoreError) as e:
            raise _query_error(name, "DescribeStackEvents", e) from e
        return events


def _event_from_api(raw: dict) -> StackEvent:
    return StackEvent(
        event_id=raw.get('EventId', ''),
        stack_name=raw.get('StackName', ''),
        timestamp=raw.get('Timestamp'),
        logical_resource_id=raw.get('LogicalResourceId', ''),
        resource_status=raw.get('ResourceStatus', ''),
        resource_status_reason=raw.get('ResourceStatusReason', ''),
        resource_type=raw.get('ResourceType', ''),
    )
