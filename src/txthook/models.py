"""Pydantic models for challenge records and hook outcomes."""

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

ACME_CHALLENGE_LABEL = "_acme-challenge"

# =============================================================================
# Enums
# =============================================================================


class HookEvent(StrEnum):
    """Lifecycle events the hook handles."""

    CHALLENGE_DNS_START = "challenge-dns-start"
    CHALLENGE_DNS_STOP = "challenge-dns-stop"


class ChallengeState(StrEnum):
    """States of a single challenge invocation.

    IDLE -> MUTATING -> POLLING -> {CONFIRMED, TIMED_OUT}
    TIMED_OUT -> COMPENSATING -> {REVERTED, REVERT_FAILED}
    """

    IDLE = "idle"
    MUTATING = "mutating"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"
    COMPENSATING = "compensating"
    REVERTED = "reverted"
    REVERT_FAILED = "revert_failed"


class BackendType(StrEnum):
    """Supported DNS record backends."""

    TINYDNS = "tinydns"
    NSUPDATE = "nsupdate"
    POWERDNS = "powerdns"


# =============================================================================
# Pydantic Models
# =============================================================================


class ChallengeRecord(BaseModel):
    """A DNS-01 TXT record to publish or retract."""

    hostname: str = Field(min_length=1)
    value: str = Field(min_length=1)

    model_config = {"frozen": True}

    @field_validator("hostname")
    @classmethod
    def normalize_hostname(cls, hostname: str) -> str:
        """Lowercase, drop the trailing dot and any wildcard label."""
        hostname = hostname.strip().lower()
        if hostname.startswith("*."):
            hostname = hostname[2:]
        hostname = hostname.rstrip(".")
        if not hostname:
            raise ValueError("hostname must not be empty")
        return hostname

    @property
    def name(self) -> str:
        """Fully-qualified TXT record name (without trailing dot)."""
        return f"{ACME_CHALLENGE_LABEL}.{self.hostname}"


class ChallengeOutcome(BaseModel):
    """Result of a successful challenge invocation."""

    record: ChallengeRecord
    event: HookEvent
    state: ChallengeState
    zone: str
    nameservers: list[str]
    changed: bool
    elapsed_ms: float = 0
