"""Hook configuration.

Settings are resolved in order:
1. Explicit values passed to HookConfig.
2. TXTHOOK_* environment variables (the ACME client passes its
   environment through to hooks).
3. Field defaults.
"""

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from txthook.exceptions import ConfigError
from txthook.models import BackendType

ENV_PREFIX = "TXTHOOK_"

_ENV_MAP = {
    "backend": "BACKEND",
    "timeout": "TIMEOUT",
    "interval": "INTERVAL",
    "ttl": "TTL",
    "dns_timeout": "DNS_TIMEOUT",
    "tinydns_root": "TINYDNS_ROOT",
    "tinydns_data": "TINYDNS_DATA",
    "make_command": "MAKE",
    "nsupdate_command": "NSUPDATE",
    "nsupdate_server": "NSUPDATE_SERVER",
    "nsupdate_port": "NSUPDATE_PORT",
    "nsupdate_key": "NSUPDATE_KEY",
    "powerdns_url": "POWERDNS_URL",
    "powerdns_key": "POWERDNS_KEY",
    "powerdns_server_id": "POWERDNS_SERVER_ID",
    "powerdns_notify": "POWERDNS_NOTIFY",
}


class HookConfig(BaseModel):
    """Configuration for the hook and its backend."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    backend: BackendType | None = Field(default=None, description="Record backend to use")
    timeout: float = Field(default=90, gt=0, description="Propagation timeout in seconds")
    interval: float = Field(default=5, gt=0, description="Seconds between polls")
    ttl: int = Field(default=60, ge=0, description="TTL of published TXT records")
    dns_timeout: float = Field(default=5, gt=0, description="Per-query DNS timeout")

    tinydns_root: Path = Field(default=Path("/etc/tinydns/root"))
    tinydns_data: str = Field(default="data")
    make_command: str = Field(default="make")

    nsupdate_command: str = Field(default="nsupdate")
    nsupdate_server: str | None = None
    nsupdate_port: int | None = Field(default=None, gt=0, lt=65536)
    nsupdate_key: Path | None = None

    powerdns_url: str | None = None
    powerdns_key: str | None = None
    powerdns_server_id: str = Field(default="localhost")
    powerdns_notify: bool = False

    @model_validator(mode="before")
    @classmethod
    def resolve_from_env(cls, values: Any) -> Any:
        """Fall back to TXTHOOK_* environment variables for missing settings."""
        if not isinstance(values, dict):
            return values
        values = dict(values)
        for field, suffix in _ENV_MAP.items():
            if values.get(field) in (None, ""):
                env_value = os.environ.get(ENV_PREFIX + suffix)
                if env_value:
                    values[field] = env_value
                else:
                    values.pop(field, None)
        return values

    @model_validator(mode="after")
    def check_backend_settings(self) -> "HookConfig":
        """Validate cross-field constraints."""
        if self.interval > self.timeout:
            raise ValueError("interval must not exceed timeout")
        if self.backend == BackendType.NSUPDATE and not self.nsupdate_server:
            raise ValueError("nsupdate backend requires TXTHOOK_NSUPDATE_SERVER")
        if self.backend == BackendType.POWERDNS and not (self.powerdns_url and self.powerdns_key):
            raise ValueError("powerdns backend requires TXTHOOK_POWERDNS_URL and TXTHOOK_POWERDNS_KEY")
        return self


def load_config(**overrides: Any) -> HookConfig:
    """Build a HookConfig, converting validation failures to ConfigError.

    Args:
        **overrides: Explicit settings taking precedence over the environment.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If a setting is missing or invalid.
    """
    try:
        return HookConfig(**overrides)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
