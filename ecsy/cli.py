#!/usr/bin/env python3
"""
ecsy command line

Commands:
  create-cluster  Resolve or create the network stack, then create the
                  cluster stack and wait for it, printing every stack event.
  show-network    Show the network stack outputs a cluster would reuse.
"""

import argparse
import sys
import time
from datetime import timedelta

import questionary
from questionary import Style
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from ecsy.client import CloudFormationClient
from ecsy.config import Settings, cloudformation_client, ecs_client, get_aws_session
from ecsy.console import configure_logging, console
from ecsy.errors import EcsyError, StackWaitAborted
from ecsy.events import format_stack_event
from ecsy.models import StackEvent
from ecsy.poller import StackPoller
from ecsy.preflight import check_credentials, check_url_reachable, list_key_pairs
from ecsy.resolver import find_network_stack
from ecsy.workflow import ClusterOptions, ClusterProvisioner, ProvisionResult


# ─────────────────────────────────────────────────────────────────────────────
# STYLING
# ─────────────────────────────────────────────────────────────────────────────

PROMPT_STYLE = Style([
    ('qmark', 'fg:cyan bold'),
    ('question', 'bold'),
    ('answer', 'fg:green'),
    ('pointer', 'fg:cyan bold'),
    ('highlighted', 'fg:cyan'),
    ('selected', 'fg:green'),
])

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


def event_style(status: str) -> str:
    """Colour for an event line, keyed off the resource status."""
    if status.endswith("_FAILED"):
        return "red"
    if "ROLLBACK" in status or status.startswith("DELETE"):
        return "yellow"
    if status.endswith("_COMPLETE"):
        return "green"
    return ""


def is_interactive() -> bool:
    return sys.stdin.isatty()


def positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def non_negative_float(value: str) -> float:
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {value}")
    return number


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def key_value(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return key, val


# ─────────────────────────────────────────────────────────────────────────────
# ARGUMENTS
# ─────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='ecsy', description="Provision ECS clusters with CloudFormation")
    parser.add_argument('--profile', help='AWS profile to use')
    parser.add_argument('--region', help='AWS region')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show debug logging')
    commands = parser.add_subparsers(dest='command', required=True)

    create = commands.add_parser('create-cluster', help='Create an ECS cluster')
    create.add_argument('--cluster', help='The name of the ECS cluster to create')
    create.add_argument('--keyname', help='The EC2 keypair to use for instances')
    create.add_argument('--type', dest='instance_type', default='t2.micro', help='The EC2 instance type to use')
    create.add_argument('--count', type=positive_int, default=3, help='The number of instances to use')
    create.add_argument('--docker-username', default='', help='The docker Username to use')
    create.add_argument('--docker-password', default='', help='The docker Password to use')
    create.add_argument('--docker-email', default='', help='The docker Email to use')
    create.add_argument('--datadog-key', default='', help='The datadog api key')
    create.add_argument('--logspout-target', default='', help='The endpoint to push logspout output to')
    create.add_argument('--authorized-keys', default='', help='A URL to fetch a SSH authorized_keys file from')
    create.add_argument('--disable-rollback', action='store_true',
                        help="Don't rollback created infrastructure if a failure occurs")
    create.add_argument('--tag', action='append', type=key_value, default=[], metavar='KEY=VALUE',
                        help='Tag both stacks, may be repeated')
    create.add_argument('--timeout', type=non_negative_float,
                        help='Seconds to wait for both stacks before giving up (0 waits forever)')
    create.add_argument('--poll-interval', type=positive_float, help='Seconds between status polls')
    create.add_argument('--yes', '-y', action='store_true', help='Skip the confirmation prompt')

    show = commands.add_parser('show-network', help='Show the network stack outputs for a cluster')
    show.add_argument('--cluster', required=True, help='The name of the ECS cluster')

    return parser


def settings_from_args(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    settings = base or Settings.from_env()
    if args.profile:
        settings.profile = args.profile
    if args.region:
        settings.region = args.region
    if getattr(args, 'poll_interval', None) is not None:
        settings.poll_interval = args.poll_interval
    timeout = getattr(args, 'timeout', None)
    if timeout is not None:
        settings.timeout = timeout if timeout > 0 else None
    return settings


def options_from_args(args: argparse.Namespace, cluster: str, key_name: str) -> ClusterOptions:
    return ClusterOptions(
        cluster=cluster,
        key_name=key_name,
        instance_type=args.instance_type,
        instance_count=args.count,
        docker_username=args.docker_username,
        docker_password=args.docker_password,
        docker_email=args.docker_email,
        datadog_key=args.datadog_key,
        logspout_target=args.logspout_target,
        authorized_keys_url=args.authorized_keys,
        disable_rollback=args.disable_rollback,
        tags=dict(args.tag),
    )


# ─────────────────────────────────────────────────────────────────────────────
# INTERACTIVE PROMPTS
# ─────────────────────────────────────────────────────────────────────────────

def ask_cluster_name() -> str | None:
    return questionary.text(
        "Cluster name:",
        validate=lambda x: len(x.strip()) > 0 or "Required",
        style=PROMPT_STYLE,
    ).ask()


def choose_key_name(session) -> str:
    """Pick an EC2 key pair, falling back to 'default'."""
    if not is_interactive():
        return "default"
    keys = list_key_pairs(session)
    if not keys:
        return "default"
    if len(keys) == 1:
        console.print(f"[green]✓[/green] Using key pair: {keys[0]}")
        return keys[0]
    return questionary.select("SSH key pair:", choices=keys, style=PROMPT_STYLE).ask() or "default"


def display_plan(options: ClusterOptions, settings: Settings):
    table = Table(title="Cluster Plan", show_header=False, border_style="cyan")
    table.add_column("Field", style="dim")
    table.add_column("Value", style="green")

    table.add_row("Cluster", options.cluster)
    table.add_row("Region", settings.region or "from profile")
    table.add_row("Instances", f"{options.instance_count} x {options.instance_type}")
    table.add_row("Key pair", options.key_name)
    if options.logspout_target:
        table.add_row("Logspout", options.logspout_target)
    if options.datadog_key:
        table.add_row("Datadog", "enabled")
    if options.authorized_keys_url:
        table.add_row("Authorized keys", options.authorized_keys_url)
    if options.tags:
        table.add_row("Tags", ", ".join(f"{k}={v}" for k, v in options.tags.items()))
    table.add_row("Rollback", "[yellow]disabled[/yellow]" if options.disable_rollback else "enabled")
    table.add_row("Timeout", f"{settings.timeout:.0f}s" if settings.timeout else "none")

    console.print(table)


def display_failure(cluster: str, elapsed: timedelta):
    console.print(Panel(f"[bold red]❌ Cluster {escape(cluster)} failed after {elapsed}[/bold red]", border_style="red"))


def display_result(result: ProvisionResult):
    lines = [f"[bold green]✅ Cluster {result.cluster} created![/bold green]", ""]
    if result.network_created:
        lines.append(f"Network stack [cyan]{result.network.stack_name}[/cyan] created in {result.network_elapsed}")
    else:
        lines.append(f"Network stack [cyan]{result.network.stack_name}[/cyan] reused")
    lines.append(f"Cluster stack [cyan]{result.cluster_stack.name}[/cyan] created in {result.cluster_elapsed}")
    lines.append(f"[dim]Total {result.elapsed}[/dim]")
    console.print(Panel("\n".join(lines), border_style="green"))


# ─────────────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────────────

def create_cluster(args: argparse.Namespace, settings: Settings) -> int:
    console.print(Panel.fit(
        "[bold cyan]ecsy[/bold cyan]\n[dim]ECS Cluster Provisioning[/dim]",
        border_style="cyan"
    ))
    console.print()

    session = get_aws_session(settings.profile, settings.region)
    arn = check_credentials(session)
    console.print(f"[green]✓[/green] AWS identity: [dim]{arn}[/dim]")
    if session.region_name:
        settings.region = session.region_name
        console.print(f"[green]✓[/green] Region: {session.region_name}")

    cluster = args.cluster
    if not cluster:
        if not is_interactive():
            console.print("[red]❌ --cluster is required[/red]")
            return EXIT_FAILED
        cluster = ask_cluster_name()
        if not cluster:
            console.print("[yellow]Cancelled[/yellow]")
            return EXIT_FAILED

    options = options_from_args(args, cluster.strip(), args.keyname or choose_key_name(session))

    if options.authorized_keys_url:
        problem = check_url_reachable(options.authorized_keys_url)
        if problem:
            console.print(f"[yellow]⚠ {escape(problem)}[/yellow]")

    console.print()
    display_plan(options, settings)
    console.print()

    if not args.yes and is_interactive():
        if not questionary.confirm("Proceed with provisioning?", default=True, style=PROMPT_STYLE).ask():
            console.print("[yellow]Cancelled[/yellow]")
            return EXIT_FAILED

    provisioner = ClusterProvisioner(
        CloudFormationClient(cloudformation_client(session)),
        poller=StackPoller(
            interval=settings.poll_interval,
            max_retries=settings.max_retries,
            max_backoff=settings.max_backoff,
        ),
        ecs_client=ecs_client(session),
        stack_prefix=settings.stack_prefix,
    )
    started = time.monotonic()
    deadline = started + settings.timeout if settings.timeout else None

    if settings.region:
        cf_url = f"https://{settings.region}.console.aws.amazon.com/cloudformation/home?region={settings.region}#/stacks"
        console.print("[cyan]📊 Track progress in AWS Console:[/cyan]")
        console.print(f"   [link={cf_url}]{cf_url}[/link]")
        console.print()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"Provisioning {options.cluster}...", total=None)

            def on_event(event: StackEvent):
                console.print(Text(format_stack_event(event), style=event_style(event.resource_status)))
                progress.update(task, description=f"{event.stack_name}: {event.resource_status}")

            result = provisioner.provision(options, on_event, deadline=deadline)
    except EcsyError:
        display_failure(options.cluster, timedelta(seconds=round(time.monotonic() - started)))
        raise

    display_result(result)
    return EXIT_OK


def show_network(args: argparse.Namespace, settings: Settings) -> int:
    session = get_aws_session(settings.profile, settings.region)
    client = CloudFormationClient(cloudformation_client(session))
    outputs, found = find_network_stack(client, args.cluster)

    if not found:
        console.print(f"[yellow]No network stack {outputs.stack_name} yet, create-cluster will create it[/yellow]")
        return EXIT_OK

    table = Table(title=outputs.stack_name, show_header=False, border_style="cyan")
    table.add_column("Output", style="dim")
    table.add_column("Value", style="green")
    table.add_row("VPC", outputs.vpc_id)
    table.add_row("Private subnet 1", outputs.private_subnet1_id)
    table.add_row("Private subnet 2", outputs.private_subnet2_id)
    console.print(table)
    return EXIT_OK


COMMANDS = {
    'create-cluster': create_cluster,
    'show-network': show_network,
}


# ─────────────────────────────────────────────────────────────────────────────
# MAIN
# ─────────────────────────────────────────────────────────────────────────────

def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = settings_from_args(args)
    except ValueError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        return EXIT_FAILED
    configure_logging(args.verbose, settings.log_level)

    try:
        return COMMANDS[args.command](args, settings)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted. Stacks already submitted keep provisioning in AWS; "
                      "check the CloudFormation console for their state.[/yellow]")
        return EXIT_INTERRUPTED
    except StackWaitAborted as e:
        console.print(f"[yellow]⚠ {escape(str(e))}[/yellow]")
        return EXIT_FAILED
    except EcsyError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        return EXIT_FAILED


def main():
    sys.exit(run())


if __name__ == '__main__':
    main()
