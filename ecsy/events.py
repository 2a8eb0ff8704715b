"""
Render stack events as single console lines.

    12:04:31 CREATE_IN_PROGRESS       ECSAutoScalingGroup Resource creation Initiated

The formatter is total: any field may be empty or unrecognized and it still
produces one line. The resource id and status survive a format/parse round
trip.
"""

from ecsy.models import StackEvent

STATUS_WIDTH = 24
PLACEHOLDER = "-"
NO_TIME = "--:--:--"


def _field(value: str | None) -> str:
    text = " ".join((value or "").split())
    return text.replace(" ", "_") or PLACEHOLDER


def format_stack_event(event: StackEvent) -> str:
    """Format one event as `<time> <status> <resource> [<reason>]`."""
    try:
        when = event.timestamp.strftime("%H:%M:%S") if event.timestamp else NO_TIME
    except (AttributeError, ValueError):
        when = NO_TIME

    line = f"{when} {_field(event.resource_status):<{STATUS_WIDTH}} {_field(event.logical_resource_id)}"

    reason = " ".join((event.resource_status_reason or "").split())
    if reason:
        line = f"{line} {reason}"
    return line


def parse_stack_event_line(line: str) -> tuple[str, str]:
    """Recover (logical_resource_id, resource_status) from a formatted line."""
    parts = line.split(None, 3)
    if len(parts) < 3:
        raise ValueError(f"Not a stack event line: {line!r}")
    _, status, resource_id = parts[:3]
    return (
        "" if resource_id == PLACEHOLDER else resource_id,
        "" if status == PLACEHOLDER else status,
    )
