"""tinydns backend: edits the tinydns-data source file and rebuilds data.cdb."""

import os
import re
from pathlib import Path

from txthook._logging import get_logger
from txthook.backends.base import RecordBackend
from txthook.commands import require_command, run_command
from txthook.exceptions import BackendError, BackendUnreachableError

logger = get_logger(__name__)

BEGIN_MARKER = "#txthook:begin"
END_MARKER = "#txthook:end"

_OCTAL_ESCAPE = re.compile(rb"\\([0-7]{3})")


def escape(text: str) -> str:
    """Escape a field for tinydns-data.

    Colons, backslashes and bytes outside printable ASCII are written
    as three-digit octal escapes.
    """
    out = []
    for byte in text.encode():
        if byte < 0x20 or byte > 0x7E or byte in b":\\":
            out.append(f"\\{byte:03o}")
        else:
            out.append(chr(byte))
    return "".join(out)


def unescape(field: str) -> str:
    """Reverse escape()."""
    raw = _OCTAL_ESCAPE.sub(lambda m: bytes([int(m.group(1), 8)]), field.encode())
    return raw.decode(errors="replace")


class TinydnsBackend(RecordBackend):
    """Record backend for djbdns tinydns.

    Challenge records are kept in a block of the data file delimited by
    marker comments, so the rest of the file is never rewritten. The
    block is appended to the file the first time a record is added.

    Args:
        root: tinydns root directory (holds data, data.cdb and the Makefile).
        data: Name of the data file inside root.
        ttl: TTL written on TXT lines.
        make_command: Command that rebuilds data.cdb when run in root.
    """

    def __init__(
        self,
        root: Path,
        data: str = "data",
        ttl: int = 60,
        make_command: str = "make",
    ):
        self.root = Path(root)
        self.data_path = self.root / data
        self.ttl = ttl
        self.make_command = make_command
        self._dirty = False

    def check(self) -> None:
        if not self.root.is_dir():
            raise BackendUnreachableError(f"tinydns root not found: {self.root}")
        if not self.data_path.is_file():
            raise BackendUnreachableError(f"tinydns data file not found: {self.data_path}")
        require_command(self.make_command)

    def _load(self) -> list[str]:
        try:
            return self.data_path.read_text().splitlines()
        except OSError as e:
            raise BackendError(f"Cannot read {self.data_path}: {e}") from e

    def _save(self, lines: list[str]) -> None:
        tmp = self.data_path.with_name(self.data_path.name + ".tmp")
        try:
            tmp.write_text("".join(f"{line}\n" for line in lines))
            os.replace(tmp, self.data_path)
        except OSError as e:
            raise BackendError(f"Cannot write {self.data_path}: {e}") from e
        self._dirty = True

    def _find_block(self, lines: list[str]) -> tuple[int, int] | None:
        """Return the (begin, end) marker indices, or None if there is no block."""
        begin = end = None
        for i, line in enumerate(lines):
            stripped = line.strip()
            if stripped == BEGIN_MARKER and begin is None:
                begin = i
            elif stripped == END_MARKER and begin is not None:
                end = i
                break
        if begin is None:
            return None
        if end is None:
            raise BackendError(f"{self.data_path}: {BEGIN_MARKER} without {END_MARKER}")
        return begin, end

    def _format(self, name: str, value: str) -> str:
        return f"'{escape(name)}:{escape(value)}:{self.ttl}"

    @staticmethod
    def _parse(line: str) -> tuple[str, str] | None:
        """Parse a TXT line into (name, value)."""
        if not line.startswith("'"):
            return None
        fields = line[1:].split(":")
        if len(fields) < 2:
            return None
        return unescape(fields[0]).lower(), unescape(fields[1])

    def _records(self, lines: list[str]) -> list[tuple[int, str, str]]:
        block = self._find_block(lines)
        if block is None:
            return []
        begin, end = block
        records = []
        for i in range(begin + 1, end):
            parsed = self._parse(lines[i])
            if parsed is not None:
                records.append((i, *parsed))
        return records

    def add(self, name: str, value: str) -> None:
        name = name.rstrip(".").lower()
        lines = self._load()
        if any(n == name and v == value for _, n, v in self._records(lines)):
            logger.debug("TXT line already present", extra={"record_name": name})
            return

        block = self._find_block(lines)
        if block is None:
            lines.extend([BEGIN_MARKER, self._format(name, value), END_MARKER])
        else:
            lines.insert(block[1], self._format(name, value))
        self._save(lines)
        logger.info("TXT line added", extra={"record_name": name, "path": str(self.data_path)})

    def remove(self, name: str, value: str) -> None:
        name = name.rstrip(".").lower()
        lines = self._load()
        doomed = {i for i, n, v in self._records(lines) if n == name and v == value}
        if not doomed:
            logger.debug("TXT line not present", extra={"record_name": name})
            return
        self._save([line for i, line in enumerate(lines) if i not in doomed])
        logger.info("TXT line removed", extra={"record_name": name, "path": str(self.data_path)})

    def commit(self) -> None:
        """Rebuild data.cdb if the data file changed since the last commit."""
        if not self._dirty:
            return
        run_command([self.make_command], cwd=self.root)
        self._dirty = False
        logger.info("tinydns data rebuilt", extra={"root": str(self.root)})

    def read(self, name: str) -> list[str]:
        name = name.rstrip(".").lower()
        return [v for _, n, v in self._records(self._load()) if n == name]
