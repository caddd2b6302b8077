"""Abstract base class for DNS record backends."""

from abc import ABC, abstractmethod


class RecordBackend(ABC):
    """Abstract interface for DNS record backends.

    Backends stage TXT record changes with add() and remove() and make
    them visible to nameservers with commit(). Record names are passed
    fully-qualified without a trailing dot.
    """

    @abstractmethod
    def check(self) -> None:
        """Verify the backend can be used.

        Called before any mutation.

        Raises:
            BackendUnreachableError: If the backend's tools, files or
                server are not available.
        """
        ...

    @abstractmethod
    def add(self, name: str, value: str) -> None:
        """Stage a TXT value.

        Other values at the same name are kept. Adding a value that is
        already present changes nothing.

        Args:
            name: Record name.
            value: TXT value.

        Raises:
            BackendError: If the change cannot be staged.
        """
        ...

    @abstractmethod
    def remove(self, name: str, value: str) -> None:
        """Stage the removal of one TXT value.

        Other values at the same name are kept.

        Args:
            name: Record name.
            value: TXT value to remove.

        Raises:
            BackendError: If the change cannot be staged.
        """
        ...

    @abstractmethod
    def commit(self) -> None:
        """Publish staged changes.

        Raises:
            BackendError: If publishing fails.
        """
        ...

    @abstractmethod
    def read(self, name: str) -> list[str]:
        """Read the TXT values the backend holds for a name.

        Args:
            name: Record name.

        Returns:
            Every value stored at the name, empty if there are none.
        """
        ...
