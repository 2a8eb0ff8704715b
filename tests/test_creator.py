"""Tests for stack creation requests."""

import pytest

from ecsy.creator import create_stack
from ecsy.errors import StackRejectedError
from ecsy.models import CreateStackContext
from ecsy.templates import Template

TEMPLATE = Template(name="cluster", body="Resources: {}", parameters=frozenset({"VpcId", "KeyName"}))


def test_submits_body_parameters_and_rollback_flag(client):
    context = CreateStackContext(parameters={"VpcId": "vpc-1"}, disable_rollback=True, tags={"team": "ops"})

    stack_id = create_stack(client, "ecs-demo-cluster", TEMPLATE, context)

    assert stack_id.endswith("ecs-demo-cluster/1")
    request = client.created["ecs-demo-cluster"]
    assert request["template_body"] == "Resources: {}"
    assert request["parameters"] == {"VpcId": "vpc-1"}
    assert request["disable_rollback"] is True
    assert request["tags"] == {"team": "ops"}


def test_rollback_is_enabled_by_default(client):
    create_stack(client, "s", TEMPLATE, CreateStackContext())

    assert client.created["s"]["disable_rollback"] is False
    assert client.created["s"]["tags"] is None


def test_does_not_poll(client):
    create_stack(client, "s", TEMPLATE, CreateStackContext())

    assert client.call_names("describe_stack") == []
    assert client.call_names("list_stack_events") == []


def test_backend_rejection_propagates(client):
    client.reject["s"] = "Stack [s] already exists"

    with pytest.raises(StackRejectedError) as exc:
        create_stack(client, "s", TEMPLATE, CreateStackContext())

    assert exc.value.stack_name == "s"


def test_undeclared_parameters_are_rejected_before_submission(client):
    context = CreateStackContext(parameters={"VpcId": "vpc-1", "Bogus": "x"})

    with pytest.raises(StackRejectedError, match="Bogus") as exc:
        create_stack(client, "s", TEMPLATE, context)

    assert exc.value.code == "UndeclaredParameters"
    assert client.call_names("create_stack") == []
