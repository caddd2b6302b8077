"""Propagation confirmation against authoritative nameservers."""

import time
from collections.abc import Callable, Sequence

from txthook._logging import get_hostname_extra, get_logger
from txthook.exceptions import PropagationTimeoutError, ResolverError
from txthook.resolver import Resolver

logger = get_logger(__name__)


class PropagationPoller:
    """Waits until every nameserver serves the expected TXT state.

    Nameservers are checked one after another, each polled at a fixed
    interval until it matches. The timeout is a single budget for the
    whole call, not per nameserver, so a slow first server leaves less
    time for the ones after it.

    Args:
        resolver: Resolver used to query each nameserver.
        timeout: Total seconds allowed for one confirm() call.
        interval: Seconds to wait between polls of the same nameserver.
        clock: Monotonic time source.
        sleep: Sleep function.
    """

    def __init__(
        self,
        resolver: Resolver,
        timeout: float = 90,
        interval: float = 5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.resolver = resolver
        self.timeout = timeout
        self.interval = interval
        self._clock = clock
        self._sleep = sleep

    @staticmethod
    def matches(observed: list[str] | None, expected: str | None, absent: str | None = None) -> bool:
        """Check an observed TXT answer against the expectation.

        Args:
            observed: TXT strings answered, or None if the query failed.
            expected: Value that must be present, or None for "no value present".
            absent: With expected None, only this value must be missing;
                other values at the name are allowed.

        Returns:
            True if the answer satisfies the expectation.
        """
        if observed is None:
            return False
        if expected is None:
            if absent is not None:
                return absent not in observed
            return not observed
        return expected in observed

    def _observe(self, name: str, server: str) -> list[str] | None:
        try:
            return self.resolver.query_txt(name, server)
        except ResolverError as e:
            logger.warning(
                "Nameserver query failed",
                extra={"record_name": name, "nameserver": server, "error": str(e), **get_hostname_extra()},
            )
            return None

    def confirm(
        self,
        name: str,
        expected: str | None,
        nameservers: Sequence[str],
        absent: str | None = None,
    ) -> None:
        """Poll nameservers until each one serves the expected state.

        Args:
            name: TXT record name.
            expected: Value that must be served, or None to wait for absence.
            nameservers: Server addresses, checked in order.
            absent: With expected None, wait only for this value to disappear.

        Raises:
            PropagationTimeoutError: If the shared budget runs out before
                every nameserver matched. Later nameservers are not queried.
        """
        start = self._clock()

        for server in nameservers:
            polls = 0
            while True:
                observed = self._observe(name, server)
                polls += 1
                elapsed = self._clock() - start

                if self.matches(observed, expected, absent):
                    logger.info(
                        "Nameserver converged",
                        extra={
                            "record_name": name,
                            "nameserver": server,
                            "polls": polls,
                            "elapsed": elapsed,
                            **get_hostname_extra(),
                        },
                    )
                    break

                if elapsed >= self.timeout:
                    logger.error(
                        "Propagation timed out",
                        extra={
                            "record_name": name,
                            "nameserver": server,
                            "observed": observed,
                            "elapsed": elapsed,
                            **get_hostname_extra(),
                        },
                    )
                    raise PropagationTimeoutError(name, server, expected, observed, elapsed, absent)

                logger.debug(
                    "Waiting for nameserver",
                    extra={"record_name": name, "nameserver": server, "observed": observed},
                )
                self._sleep(min(self.interval, self.timeout - elapsed))
