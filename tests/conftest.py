"""Pytest fixtures for txthook test suite."""

import logging
import logging.handlers
from collections.abc import Generator

import pytest

from txthook.backends.base import RecordBackend
from txthook.exceptions import BackendError, BackendUnreachableError, ResolverError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's TXTHOOK_* settings out of tests."""
    import os

    for name in list(os.environ):
        if name.startswith("TXTHOOK_"):
            monkeypatch.delenv(name)


class FakeClock:
    """Monotonic clock that only advances when sleep() is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeResolver:
    """Resolver serving scripted answers.

    `answers` maps a nameserver to the TXT answers it gives on
    successive polls; the last answer repeats. An answer may be a
    ResolverError instance to simulate a failed query.
    """

    def __init__(
        self,
        answers: dict[str, list] | None = None,
        zone: str = "example.com",
        nameservers: list[str] | None = None,
    ) -> None:
        self.answers = answers or {}
        self.zone = zone
        self._nameservers = nameservers if nameservers is not None else list(self.answers)
        self.queries: list[tuple[str, str | None]] = []

    def query_txt(self, name: str, server: str | None = None) -> list[str]:
        self.queries.append((name, server))
        script = self.answers.get(server, [[]])
        polls = sum(1 for _, s in self.queries if s == server)
        answer = script[min(polls, len(script)) - 1]
        if isinstance(answer, ResolverError):
            raise answer
        return list(answer)

    def nameservers(self, zone: str) -> list[str]:
        return list(self._nameservers)

    def find_apex(self, name: str) -> str:
        return self.zone

    def polls(self, server: str) -> int:
        return sum(1 for _, s in self.queries if s == server)


class FakeBackend(RecordBackend):
    """In-memory record backend recording every call.

    `records` is the committed state and `staged` the pending one, both
    mapping a name to its list of values. Commits whose 0-based index is
    in `failing_commits` raise BackendError and publish nothing.
    """

    def __init__(self, records: dict[str, list[str]] | None = None) -> None:
        self.records = {name: list(values) for name, values in (records or {}).items()}
        self.staged = {name: list(values) for name, values in self.records.items()}
        self.calls: list[tuple] = []
        self.unreachable = False
        self.failing_commits: set[int] = set()

    def check(self) -> None:
        self.calls.append(("check",))
        if self.unreachable:
            raise BackendUnreachableError("backend down")

    def add(self, name: str, value: str) -> None:
        self.calls.append(("add", name, value))
        values = self.staged.setdefault(name, [])
        if value not in values:
            values.append(value)

    def remove(self, name: str, value: str) -> None:
        self.calls.append(("remove", name, value))
        values = self.staged.get(name, [])
        if value in values:
            values.remove(value)
        if not values:
            self.staged.pop(name, None)

    def commit(self) -> None:
        commits = sum(1 for call in self.calls if call[0] == "commit")
        self.calls.append(("commit",))
        if commits in self.failing_commits:
            raise BackendError("commit failed")
        self.records = {name: list(values) for name, values in self.staged.items()}

    def read(self, name: str) -> list[str]:
        self.calls.append(("read", name))
        return list(self.records.get(name, []))

    def mutations(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in ("add", "remove", "commit")]


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock for deterministic polling."""
    return FakeClock()


@pytest.fixture
def backend() -> FakeBackend:
    """An empty in-memory backend."""
    return FakeBackend()


@pytest.fixture
def make_backend() -> type[FakeBackend]:
    """Factory for in-memory backends with initial records."""
    return FakeBackend


@pytest.fixture
def make_resolver() -> type[FakeResolver]:
    """Factory for scripted resolvers."""
    return FakeResolver


class LogCapture:
    """Helper class to capture and inspect log records."""

    def __init__(self, handler: logging.handlers.MemoryHandler) -> None:
        self._handler = handler

    @property
    def records(self) -> list[logging.LogRecord]:
        """Get all captured log records."""
        return self._handler.buffer

    def get_records(
        self, level: int | None = None, name: str | None = None
    ) -> list[logging.LogRecord]:
        """Get log records filtered by level and/or logger name.

        Args:
            level: Filter by log level (e.g., logging.INFO).
            name: Filter by logger name prefix (e.g., "txthook.poller").

        Returns:
            List of matching log records.
        """
        records = self.records
        if level is not None:
            records = [r for r in records if r.levelno == level]
        if name is not None:
            records = [r for r in records if r.name.startswith(name)]
        return records

    def get_messages(self, level: int | None = None, name: str | None = None) -> list[str]:
        """Get log messages filtered by level and/or logger name."""
        return [r.getMessage() for r in self.get_records(level, name)]

    def clear(self) -> None:
        """Clear all captured log records."""
        self._handler.buffer.clear()


@pytest.fixture
def log_capture() -> Generator[LogCapture]:
    """Capture logs from the txthook package during a test.

    Usage:
        def test_something(log_capture):
            # do something that logs
            assert "Nameserver converged" in log_capture.get_messages(logging.INFO)
    """
    handler = logging.handlers.MemoryHandler(capacity=1000)
    handler.setLevel(logging.DEBUG)

    txthook_logger = logging.getLogger("txthook")
    original_level = txthook_logger.level
    txthook_logger.setLevel(logging.DEBUG)
    txthook_logger.addHandler(handler)

    try:
        yield LogCapture(handler)
    finally:
        txthook_logger.removeHandler(handler)
        txthook_logger.setLevel(original_level)
        handler.close()
