"""Challenge lifecycle: publish or retract a TXT record and confirm it."""

from txthook._logging import Timer, get_hostname_extra, get_logger, reset_hostname, set_hostname
from txthook.backends.base import RecordBackend
from txthook.exceptions import (
    BackendError,
    HookError,
    PropagationTimeoutError,
    RevertFailedError,
    UnknownEventError,
)
from txthook.models import ChallengeOutcome, ChallengeRecord, ChallengeState, HookEvent
from txthook.poller import PropagationPoller
from txthook.resolver import Resolver

logger = get_logger(__name__)


class ChallengeHook:
    """Drives one DNS-01 challenge record through its lifecycle.

    A change is committed to the backend and then confirmed on every
    authoritative nameserver. If the commit fails or confirmation times
    out, the change is undone and recommitted before the failure is
    reported. Success is only reported once every nameserver serves the
    requested state, even when nothing had to be written.

    Args:
        backend: Record backend holding the zone data.
        resolver: Resolver used for zone and nameserver discovery.
        poller: Propagation poller.
    """

    def __init__(self, backend: RecordBackend, resolver: Resolver, poller: PropagationPoller):
        self.backend = backend
        self.resolver = resolver
        self.poller = poller
        self.state = ChallengeState.IDLE

    def _transition(self, state: ChallengeState, record: ChallengeRecord) -> None:
        logger.debug(
            "Challenge state change",
            extra={
                "record_name": record.name,
                "from_state": str(self.state),
                "state": str(state),
                **get_hostname_extra(),
            },
        )
        self.state = state

    def handle(self, event: str, record: ChallengeRecord) -> ChallengeOutcome:
        """Dispatch a lifecycle event.

        Args:
            event: Event name passed by the ACME client.
            record: The challenge record.

        Returns:
            The outcome of the operation.

        Raises:
            UnknownEventError: If the event is not a DNS challenge event.
        """
        if event == HookEvent.CHALLENGE_DNS_START:
            return self.start(record)
        if event == HookEvent.CHALLENGE_DNS_STOP:
            return self.stop(record)
        raise UnknownEventError(event)

    def start(self, record: ChallengeRecord) -> ChallengeOutcome:
        """Publish the challenge record and wait until it is served.

        If the backend already holds the value nothing is written, but the
        nameservers are still polled before success is reported.

        Raises:
            BackendUnreachableError: If the backend is unusable (nothing is changed).
            BackendError: If committing failed (the value is removed again).
            PropagationTimeoutError: If the record was not served in time
                (a value added by this call is removed again).
            RevertFailedError: If removing the value again failed.
        """
        return self._run(HookEvent.CHALLENGE_DNS_START, record)

    def stop(self, record: ChallengeRecord) -> ChallengeOutcome:
        """Retract the challenge record and wait until it is gone.

        Only the given value is removed; other values at the same name
        stay. If the backend does not hold the value nothing is written,
        but the nameservers are still polled before success is reported.

        Raises:
            BackendUnreachableError: If the backend is unusable (nothing is changed).
            BackendError: If committing failed (the value is restored).
            PropagationTimeoutError: If the value was still served at timeout
                (a value removed by this call is restored).
            RevertFailedError: If restoring the value failed.
        """
        return self._run(HookEvent.CHALLENGE_DNS_STOP, record)

    def _run(self, event: HookEvent, record: ChallengeRecord) -> ChallengeOutcome:
        token = set_hostname(record.hostname)
        self.state = ChallengeState.IDLE
        try:
            with Timer() as timer:
                outcome = self._execute(event, record)
            outcome.elapsed_ms = timer.elapsed_ms
            logger.info(
                "Challenge record confirmed" if outcome.changed else "Challenge record already in place",
                extra={
                    "event": str(event),
                    "record_name": record.name,
                    "zone": outcome.zone,
                    "nameservers": outcome.nameservers,
                    "elapsed_ms": timer.elapsed_ms,
                    **get_hostname_extra(),
                },
            )
            return outcome
        finally:
            reset_hostname(token)

    def _execute(self, event: HookEvent, record: ChallengeRecord) -> ChallengeOutcome:
        publishing = event == HookEvent.CHALLENGE_DNS_START

        self.backend.check()
        zone = self.resolver.find_apex(record.name)
        nameservers = self.resolver.nameservers(zone)
        if not nameservers:
            logger.warning(
                "Zone has no nameservers to poll",
                extra={"zone": zone, "record_name": record.name, **get_hostname_extra()},
            )
        current = self.backend.read(record.name)

        if publishing:
            changed = record.value not in current
            expected, absent = record.value, None
        else:
            changed = record.value in current
            # Other values at the name (e.g. a wildcard challenge) stay published
            others = [value for value in current if value != record.value]
            expected, absent = None, (record.value if others else None)

        if changed:
            self._transition(ChallengeState.MUTATING, record)
            if publishing:
                self.backend.add(record.name, record.value)
            else:
                self.backend.remove(record.name, record.value)
            try:
                self.backend.commit()
            except BackendError as e:
                self._compensate(record, publishing, e)
                raise
        else:
            logger.debug(
                "Backend already in requested state",
                extra={"record_name": record.name, "values": current, **get_hostname_extra()},
            )

        self._transition(ChallengeState.POLLING, record)
        try:
            self.poller.confirm(record.name, expected, nameservers, absent=absent)
        except PropagationTimeoutError as timeout:
            self._transition(ChallengeState.TIMED_OUT, record)
            if changed:
                self._compensate(record, publishing, timeout)
            raise

        self._transition(ChallengeState.CONFIRMED, record)
        return ChallengeOutcome(
            record=record,
            event=event,
            state=self.state,
            zone=zone,
            nameservers=nameservers,
            changed=changed,
        )

    def _compensate(self, record: ChallengeRecord, published: bool, cause: HookError) -> None:
        """Undo a change that failed to commit or propagate. Not retried."""
        self._transition(ChallengeState.COMPENSATING, record)
        try:
            if published:
                self.backend.remove(record.name, record.value)
            else:
                self.backend.add(record.name, record.value)
            self.backend.commit()
        except BackendError as e:
            self._transition(ChallengeState.REVERT_FAILED, record)
            logger.error(
                "Reverting challenge record failed",
                extra={"record_name": record.name, "error": str(e), **get_hostname_extra()},
            )
            raise RevertFailedError(f"Reverting {record.name} after failure ({cause}) failed: {e}", cause) from e

        self._transition(ChallengeState.REVERTED, record)
        logger.warning(
            "Challenge record reverted",
            extra={"record_name": record.name, "cause": str(cause), **get_hostname_extra()},
        )
