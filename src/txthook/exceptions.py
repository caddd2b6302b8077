"""Hook exceptions.

Every error the hook reports to the ACME client derives from HookError,
which carries the process exit code used by the command line entry point.
"""

from collections.abc import Sequence

# Exit code acmetool-style clients treat as "event not handled by this hook"
UNHANDLED_EXIT_CODE = 42


class HookError(Exception):
    """Base exception for hook failures."""

    exit_code: int = 1


class ConfigError(HookError):
    """Configuration is missing or invalid."""

    pass


class UnknownEventError(HookError):
    """The hook was invoked with an event it does not handle."""

    exit_code = UNHANDLED_EXIT_CODE

    def __init__(self, event: str):
        self.event = event
        super().__init__(f"Unknown event: {event}")


class BackendError(HookError):
    """A DNS record backend failed to read or apply a change."""

    pass


class BackendUnreachableError(BackendError):
    """The backend cannot be used at all (missing tool, file or server).

    Raised before any mutation is attempted.
    """

    pass


class CommandError(BackendError):
    """An external command exited with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        message = f"{self.args_list[0]} exited with status {returncode}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class ResolverError(HookError):
    """A DNS lookup could not be completed."""

    pass


class PropagationTimeoutError(HookError):
    """Nameservers did not converge on the expected record in time."""

    def __init__(
        self,
        record_name: str,
        nameserver: str,
        expected: str | None,
        observed: list[str] | None,
        elapsed: float,
        absent: str | None = None,
    ):
        self.record_name = record_name
        self.nameserver = nameserver
        self.expected = expected
        self.observed = observed
        self.elapsed = elapsed
        self.absent = absent
        if expected is not None:
            want = f"{expected!r} at TXT {record_name}"
        elif absent is not None:
            want = f"{absent!r} to leave TXT {record_name}"
        else:
            want = f"absence of TXT {record_name}"
        super().__init__(
            f"Timed out after {elapsed:.0f}s waiting for {want} on {nameserver} (last seen: {observed!r})"
        )


class RevertFailedError(HookError):
    """Undoing a change after a failed commit or a timeout failed.

    The backend may now hold a state the caller was not told about.
    The error that triggered the revert is kept in `cause`; the failed
    write or commit is chained as __cause__.
    """

    def __init__(self, message: str, cause: HookError):
        self.cause = cause
        super().__init__(message)
