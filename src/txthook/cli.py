"""Command line entry point invoked by the ACME client.

Usage::

    txthook challenge-dns-start <hostname> <target-file> <txt-value>
    txthook challenge-dns-stop <hostname> <target-file> <txt-value>

Any other event exits with status 42 so the client knows the event was
not handled. The target file argument is accepted and ignored.
"""

import argparse
import os
import sys

from pydantic import ValidationError

from txthook._logging import configure_cli_logging, get_logger
from txthook.backends import create_backend
from txthook.config import load_config
from txthook.exceptions import UNHANDLED_EXIT_CODE, HookError
from txthook.hook import ChallengeHook
from txthook.models import ChallengeRecord, HookEvent
from txthook.poller import PropagationPoller
from txthook.resolver import Resolver

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ``txthook`` CLI.

    Returns:
        Configured :class:`~argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(
        prog="txthook",
        description="ACME DNS-01 hook publishing challenge TXT records",
        epilog="Configuration is read from TXTHOOK_* environment variables.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log at DEBUG level (overrides TXTHOOK_LOG_LEVEL)",
    )
    parser.add_argument("event", help="Hook event (e.g. challenge-dns-start)")
    parser.add_argument("args", nargs="*", help="Event arguments: hostname, target file, TXT value")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Args:
        argv: Optional argument list (defaults to ``sys.argv[1:]``).

    Returns:
        Process exit status.
    """
    if argv is None:
        argv = sys.argv[1:]
    parser = _build_parser()
    ns = parser.parse_args(_separate_options(argv))

    level = "DEBUG" if ns.verbose else os.environ.get("TXTHOOK_LOG_LEVEL", "INFO")
    handler = configure_cli_logging(level)
    try:
        return _run(parser, ns.event, ns.args)
    finally:
        get_logger("txthook").removeHandler(handler)


def _separate_options(argv: list[str]) -> list[str]:
    """Insert "--" after the leading options.

    Options are only recognized before the event. Everything after it is
    positional, since TXT values are base64url and may begin with "-".
    """
    i = 0
    while i < len(argv) and argv[i].startswith("-"):
        if argv[i] == "--":
            return argv
        i += 1
    return [*argv[:i], "--", *argv[i:]]


def _run(parser: argparse.ArgumentParser, event: str, args: list[str]) -> int:
    if event not in {e.value for e in HookEvent}:
        logger.debug("Ignoring event %s", event)
        return UNHANDLED_EXIT_CODE

    if len(args) != 3:
        parser.error(f"{event} expects <hostname> <target-file> <txt-value>")
    hostname, _target_file, value = args

    try:
        config = load_config()
    except HookError as e:
        logger.error("%s", e)
        return e.exit_code

    if config.backend is None:
        logger.debug("No record backend configured, leaving %s to other hooks", event)
        return UNHANDLED_EXIT_CODE

    try:
        record = ChallengeRecord(hostname=hostname, value=value)
    except ValidationError as e:
        logger.error("Invalid challenge arguments: %s", e)
        return 1

    resolver = Resolver(timeout=config.dns_timeout)
    poller = PropagationPoller(resolver, timeout=config.timeout, interval=config.interval)
    try:
        hook = ChallengeHook(create_backend(config, resolver), resolver, poller)
        hook.handle(event, record)
    except HookError as e:
        logger.error("%s for %s failed: %s", event, record.hostname, e)
        return e.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
