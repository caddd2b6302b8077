"""Running the external tools backends depend on (make, nsupdate)."""

import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path

from txthook._logging import Timer, get_logger
from txthook.exceptions import BackendUnreachableError, CommandError

logger = get_logger(__name__)


def require_command(command: str) -> str:
    """Locate an executable on PATH.

    Args:
        command: Command name or path.

    Returns:
        The resolved path.

    Raises:
        BackendUnreachableError: If the command is not available.
    """
    path = shutil.which(command)
    if path is None:
        raise BackendUnreachableError(f"Required command not found: {command}")
    return path


def run_command(
    args: Sequence[str],
    input: str | None = None,
    cwd: Path | None = None,
) -> str:
    """Run an external command and return its stdout.

    Args:
        args: Command and arguments.
        input: Text fed to the command's stdin.
        cwd: Working directory for the command.

    Returns:
        The command's standard output.

    Raises:
        BackendUnreachableError: If the executable does not exist.
        CommandError: If the command exits with a non-zero status.
    """
    args = list(args)
    logger.debug("Running command", extra={"command": args, "cwd": str(cwd) if cwd else None})

    with Timer() as timer:
        try:
            result = subprocess.run(
                args,
                input=input,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise BackendUnreachableError(f"Required command not found: {args[0]}") from e

    if result.returncode != 0:
        logger.error(
            "Command failed",
            extra={
                "command": args,
                "returncode": result.returncode,
                "stderr": result.stderr,
                "elapsed_ms": timer.elapsed_ms,
            },
        )
        raise CommandError(args, result.returncode, result.stderr)

    logger.debug(
        "Command finished",
        extra={"command": args, "elapsed_ms": timer.elapsed_ms},
    )
    return result.stdout
