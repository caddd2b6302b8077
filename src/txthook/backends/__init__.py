"""DNS record backends for challenge TXT records."""

from txthook.backends.base import RecordBackend
from txthook.backends.nsupdate import NsupdateBackend
from txthook.backends.powerdns import PowerDnsBackend
from txthook.backends.tinydns import TinydnsBackend
from txthook.config import HookConfig
from txthook.exceptions import ConfigError
from txthook.models import BackendType
from txthook.resolver import Resolver

__all__ = [
    "RecordBackend",
    "NsupdateBackend",
    "PowerDnsBackend",
    "TinydnsBackend",
    "create_backend",
]


def create_backend(config: HookConfig, resolver: Resolver) -> RecordBackend:
    """Build the backend selected by the configuration.

    Args:
        config: Hook configuration.
        resolver: Resolver shared with backends that read DNS directly.

    Returns:
        A configured RecordBackend.

    Raises:
        ConfigError: If no backend is configured or its required
            settings are missing.
    """
    if config.backend == BackendType.TINYDNS:
        return TinydnsBackend(
            root=config.tinydns_root,
            data=config.tinydns_data,
            ttl=config.ttl,
            make_command=config.make_command,
        )
    if config.backend == BackendType.NSUPDATE:
        if not config.nsupdate_server:
            raise ConfigError("nsupdate backend requires TXTHOOK_NSUPDATE_SERVER")
        return NsupdateBackend(
            server=config.nsupdate_server,
            resolver=resolver,
            port=config.nsupdate_port,
            key_file=config.nsupdate_key,
            ttl=config.ttl,
            command=config.nsupdate_command,
        )
    if config.backend == BackendType.POWERDNS:
        if not (config.powerdns_url and config.powerdns_key):
            raise ConfigError("powerdns backend requires TXTHOOK_POWERDNS_URL and TXTHOOK_POWERDNS_KEY")
        return PowerDnsBackend(
            api_url=config.powerdns_url,
            api_key=config.powerdns_key,
            server_id=config.powerdns_server_id,
            ttl=config.ttl,
            notify=config.powerdns_notify,
        )
    raise ConfigError("No record backend configured (set TXTHOOK_BACKEND)")
