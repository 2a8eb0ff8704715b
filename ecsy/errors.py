"""
Error taxonomy for stack provisioning.

Every error raised by ecsy derives from EcsyError so the CLI can catch one
type at the top level. "Not found" is deliberately absent: a missing network
stack is an expected outcome, reported by the resolver as found=False.
"""


class EcsyError(Exception):
    """Base class for all ecsy errors."""


class PreflightError(EcsyError):
    """The environment cannot be used to provision (e.g. no AWS credentials)."""


class StackRejectedError(EcsyError):
    """The backend refused a create request synchronously. Never retried."""

    def __init__(self, stack_name: str, message: str, code: str | None = None):
        self.stack_name = stack_name
        self.code = code
        detail = f"{code}: {message}" if code else message
        super().__init__(f"Stack {stack_name} was rejected: {detail}")


class IncompatibleStackError(EcsyError):
    """A stack with the expected name exists but cannot be reused."""

    def __init__(self, stack_name: str, status: str, message: str | None = None):
        self.stack_name = stack_name
        self.status = status
        super().__init__(
            message or f"Stack {stack_name} exists but is in state {status}, refusing to reuse it"
        )


class MissingStackOutputError(IncompatibleStackError):
    """An existing stack lacks an output the cluster stack depends on."""

    def __init__(self, stack_name: str, status: str, output_key: str):
        self.output_key = output_key
        super().__init__(
            stack_name, status, f"Stack {stack_name} has no output named {output_key!r}"
        )


class TransientQueryError(EcsyError):
    """A read against the backend failed in a way that is worth retrying."""


class StackQueryError(EcsyError):
    """A read against the backend failed for good."""


class StackProvisioningError(EcsyError):
    """The stack reached a failure terminal state."""

    def __init__(
        self,
        stack_name: str,
        status: str,
        status_reason: str = "",
        resource_id: str = "",
        resource_reason: str = "",
    ):
        self.stack_name = stack_name
        self.status = status
        self.status_reason = status_reason
        self.resource_id = resource_id
        self.resource_reason = resource_reason

        message = f"Stack {stack_name} failed with status {status}"
        if resource_id:
            message += f": {resource_id}"
            if resource_reason:
                message += f" ({resource_reason})"
        elif status_reason:
            message += f": {status_reason}"
        super().__init__(message)


class StackWaitAborted(EcsyError):
    """Polling stopped before a terminal state. The remote stack may still be provisioning."""

    def __init__(self, stack_name: str, last_status: str | None, reason: str):
        self.stack_name = stack_name
        self.last_status = last_status
        status = last_status or "unknown"
        super().__init__(
            f"Stopped waiting for stack {stack_name} ({reason}); "
            f"last seen status {status}, actual end state is unknown"
        )


class StackWaitTimeout(StackWaitAborted):
    """The caller's deadline passed while the stack was still in progress."""

    def __init__(self, stack_name: str, last_status: str | None):
        super().__init__(stack_name, last_status, "deadline exceeded")


class StackWaitCancelled(StackWaitAborted):
    """The caller cancelled polling."""

    def __init__(self, stack_name: str, last_status: str | None):
        super().__init__(stack_name, last_status, "cancelled")


class ClusterRegistrationError(EcsyError):
    """The ECS cluster name could not be registered."""
