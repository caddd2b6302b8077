"""RFC 2136 dynamic update backend driving the nsupdate tool."""

from pathlib import Path

from txthook._logging import get_logger
from txthook.backends.base import RecordBackend
from txthook.commands import require_command, run_command
from txthook.exceptions import BackendUnreachableError, ResolverError
from txthook.resolver import Resolver

logger = get_logger(__name__)


def quote_txt(value: str) -> str:
    """Quote a TXT value for nsupdate's zone-file syntax."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class NsupdateBackend(RecordBackend):
    """Record backend for servers accepting dynamic updates.

    Changes are staged as nsupdate commands and sent together by
    commit(). TSIG signing is left to nsupdate through its key file.

    Args:
        server: Primary server receiving updates (name or address).
        resolver: Resolver used to read back the primary's view.
        port: Update port, if not 53.
        key_file: TSIG key file passed to nsupdate -k.
        ttl: TTL of added records.
        command: nsupdate executable.
    """

    def __init__(
        self,
        server: str,
        resolver: Resolver,
        port: int | None = None,
        key_file: Path | None = None,
        ttl: int = 60,
        command: str = "nsupdate",
    ):
        self.server = server
        self.resolver = resolver
        self.port = port
        self.key_file = key_file
        self.ttl = ttl
        self.command = command
        self.pending: list[str] = []

    def check(self) -> None:
        require_command(self.command)
        if self.key_file is not None and not Path(self.key_file).is_file():
            raise BackendUnreachableError(f"nsupdate key file not found: {self.key_file}")

    def add(self, name: str, value: str) -> None:
        self.pending.append(f"update add {name.rstrip('.')}. {self.ttl} IN TXT {quote_txt(value)}")

    def remove(self, name: str, value: str) -> None:
        self.pending.append(f"update delete {name.rstrip('.')}. IN TXT {quote_txt(value)}")

    def script(self) -> str:
        """Render the staged changes as nsupdate input."""
        server = f"server {self.server}"
        if self.port is not None:
            server = f"{server} {self.port}"
        return "\n".join([server, *self.pending, "send", ""])

    def commit(self) -> None:
        """Send staged updates to the primary in a single nsupdate run."""
        if not self.pending:
            return

        args = [self.command]
        if self.key_file is not None:
            args.extend(["-k", str(self.key_file)])

        try:
            run_command(args, input=self.script())
        finally:
            changes = len(self.pending)
            self.pending.clear()
        logger.info("Dynamic update sent", extra={"server": self.server, "changes": changes})

    def read(self, name: str) -> list[str]:
        """Read the TXT values from the primary server."""
        try:
            addresses = self.resolver.addresses(self.server)
            if not addresses:
                raise BackendUnreachableError(f"Cannot resolve update server {self.server}")
            values = self.resolver.query_txt(name, addresses[0])
        except ResolverError as e:
            raise BackendUnreachableError(f"Cannot query update server {self.server}: {e}") from e
        return values
