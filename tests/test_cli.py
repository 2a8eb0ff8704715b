"""Tests for the ecsy command line."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import NoRegionError

from ecsy import cli
from ecsy.config import Settings

OUTPUTS = {"VpcId": "vpc-1", "Subnet1": "subnet-a", "Subnet2": "subnet-b"}


@pytest.fixture
def fake(client):
    return client


@pytest.fixture
def aws(fake):
    """Patch every AWS touchpoint of the CLI with fakes."""
    session = MagicMock()
    session.region_name = "us-east-1"
    with patch.object(cli, "get_aws_session", return_value=session), \
            patch.object(cli, "check_credentials", return_value="arn:aws:iam::123456789012:user/ops"), \
            patch.object(cli, "cloudformation_client"), \
            patch.object(cli, "ecs_client") as ecs, \
            patch.object(cli, "CloudFormationClient", return_value=fake), \
            patch.object(cli, "is_interactive", return_value=False):
        yield ecs


def test_create_cluster_flags():
    args = cli.build_parser().parse_args([
        "create-cluster", "--cluster", "demo", "--type", "m4.large", "--count", "5",
        "--disable-rollback", "--datadog-key", "dd", "--authorized-keys", "https://keys.example.com",
    ])

    options = cli.options_from_args(args, args.cluster, "ops")

    assert options.cluster == "demo"
    assert options.key_name == "ops"
    assert options.instance_type == "m4.large"
    assert options.instance_count == 5
    assert options.disable_rollback is True
    assert options.datadog_key == "dd"
    assert options.authorized_keys_url == "https://keys.example.com"


def test_flags_override_settings():
    args = cli.build_parser().parse_args([
        "--profile", "ops", "--region", "eu-west-1",
        "create-cluster", "--timeout", "0", "--poll-interval", "2",
    ])

    settings = cli.settings_from_args(args, Settings())

    assert settings.profile == "ops"
    assert settings.region == "eu-west-1"
    assert settings.timeout is None
    assert settings.poll_interval == 2


def test_command_is_required():
    with pytest.raises(SystemExit) as exc:
        cli.build_parser().parse_args([])

    assert exc.value.code == 2


@pytest.mark.parametrize("status,style", [
    ("CREATE_COMPLETE", "green"),
    ("CREATE_FAILED", "red"),
    ("ROLLBACK_IN_PROGRESS", "yellow"),
    ("ROLLBACK_COMPLETE", "yellow"),
    ("CREATE_IN_PROGRESS", ""),
])
def test_event_style(status, style):
    assert cli.event_style(status) == style


def test_create_cluster_end_to_end(aws, fake, capsys):
    fake.on_create("network-stack-demo", ["CREATE_IN_PROGRESS", "CREATE_COMPLETE"], OUTPUTS)
    fake.on_create("ecs-demo-cluster", ["CREATE_IN_PROGRESS", "CREATE_COMPLETE"])

    code = cli.run(["create-cluster", "--cluster", "demo", "--keyname", "ops", "--poll-interval", "0.01"])

    assert code == cli.EXIT_OK
    assert fake.call_names("create_stack") == ["network-stack-demo", "ecs-demo-cluster"]
    assert fake.created["ecs-demo-cluster"]["parameters"]["KeyName"] == "ops"
    aws.return_value.create_cluster.assert_called_once_with(clusterName="demo")
    out = capsys.readouterr().out
    assert "CREATE_COMPLETE" in out
    assert "Cluster demo created" in out


def test_create_cluster_failure_exit_code(aws, fake, capsys):
    fake.existing("network-stack-demo", "ROLLBACK_COMPLETE")

    code = cli.run(["create-cluster", "--cluster", "demo", "--keyname", "ops"])

    assert code == cli.EXIT_FAILED
    assert fake.call_names("create_stack") == []
    assert "ROLLBACK_COMPLETE" in capsys.readouterr().out


def test_create_cluster_needs_a_name_when_not_interactive(aws, fake):
    assert cli.run(["create-cluster", "--keyname", "ops"]) == cli.EXIT_FAILED
    assert fake.calls == []


def test_show_network(aws, fake, capsys):
    fake.existing("network-stack-demo", "CREATE_COMPLETE", OUTPUTS)

    assert cli.run(["show-network", "--cluster", "demo"]) == cli.EXIT_OK
    out = capsys.readouterr().out
    assert "vpc-1" in out
    assert "subnet-b" in out


def test_show_network_absent(aws, fake, capsys):
    assert cli.run(["show-network", "--cluster", "demo"]) == cli.EXIT_OK
    assert "network-stack-demo" in capsys.readouterr().out


def test_failure_summary_reports_elapsed_time(aws, fake, capsys):
    fake.existing("network-stack-demo", "CREATE_COMPLETE", OUTPUTS)
    fake.on_create("ecs-demo-cluster", ["CREATE_IN_PROGRESS", "CREATE_FAILED"])

    code = cli.run(["create-cluster", "--cluster", "demo", "--keyname", "ops", "--poll-interval", "0.01"])

    assert code == cli.EXIT_FAILED
    out = capsys.readouterr().out
    assert "Cluster demo failed after 0:00:0" in out
    assert "CREATE_FAILED" in out


def test_tags_reach_both_stacks(aws, fake):
    fake.on_create("network-stack-demo", ["CREATE_COMPLETE"], OUTPUTS)

    code = cli.run([
        "create-cluster", "--cluster", "demo", "--keyname", "ops", "--poll-interval", "0.01",
        "--tag", "team=ops", "--tag", "env=dev",
    ])

    assert code == cli.EXIT_OK
    assert fake.created["network-stack-demo"]["tags"] == {"team": "ops", "env": "dev"}
    assert fake.created["ecs-demo-cluster"]["tags"] == {"team": "ops", "env": "dev"}


@pytest.mark.parametrize("flags", [
    ["--poll-interval", "-1"],
    ["--poll-interval", "0"],
    ["--timeout", "-5"],
    ["--count", "0"],
    ["--tag", "no-equals"],
])
def test_bad_flag_values_are_usage_errors(flags):
    with pytest.raises(SystemExit) as exc:
        cli.build_parser().parse_args(["create-cluster", *flags])

    assert exc.value.code == 2


def test_bad_flag_is_rejected_before_any_stack_is_submitted(aws, fake):
    with pytest.raises(SystemExit):
        cli.run(["create-cluster", "--cluster", "demo", "--keyname", "ops", "--poll-interval", "-1"])

    assert fake.calls == []


def test_bad_environment_value_fails_cleanly(monkeypatch, capsys):
    monkeypatch.setenv("ECSY_MAX_RETRIES", "lots")

    assert cli.run(["show-network", "--cluster", "demo"]) == cli.EXIT_FAILED
    assert "ECSY_MAX_RETRIES" in capsys.readouterr().out


def test_missing_region_is_reported_not_raised(capsys):
    session = MagicMock()
    session.client.side_effect = NoRegionError()

    with patch.object(cli, "get_aws_session", return_value=session):
        assert cli.run(["show-network", "--cluster", "demo"]) == cli.EXIT_FAILED

    assert "region" in capsys.readouterr().out
