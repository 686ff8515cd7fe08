"""Error taxonomy for instance orchestration."""


class LinodeployError(Exception):
    """Base class for every error raised by the orchestrator."""


class NotFoundError(LinodeployError):
    """A catalog lookup missed, or the instance no longer exists."""


class ConstraintError(LinodeployError):
    """A safety precondition the remote API does not enforce was violated."""


class UnsupportedOperationError(LinodeployError):
    """The requested transition cannot be performed safely on the remote side."""


class JobTimeoutError(LinodeployError, TimeoutError):
    """Remote jobs did not converge before the deadline.

    The outcome is unknown: the remote job may still complete after the
    local wait gives up.
    """

    def __init__(self, linode_id, timeout):
        self.linode_id = linode_id
        self.timeout = timeout
        super().__init__(f"Jobs for linode {linode_id} didn't complete in {timeout:.0f}s")


class RemoteError(LinodeployError):
    """The remote API call failed or returned an error payload."""

    def __init__(self, action, message, codes=()):
        self.action = action
        self.codes = tuple(codes)
        super().__init__(f"{action}: {message}")


class InvariantViolationError(LinodeployError):
    """Observed remote state violates an assumed cardinality."""
