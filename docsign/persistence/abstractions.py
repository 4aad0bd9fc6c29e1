"""Abstract persistence interfaces (SOLID - Interface Segregation, Dependency Inversion)."""

from abc import ABC, abstractmethod
from typing import Optional


class StorageError(Exception):
    """Raised when storage operations fail."""

    pass


class StorageWriteError(StorageError):
    """Raised when persisting data fails; the previous content is left in place."""

    pass


class IKeyValueStore(ABC):
    """String key-value persistence addressable by the host environment."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        :param key: Storage key.
        :return: Stored string, or None if the key is absent.
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Replace the value stored under key.

        :raises StorageWriteError: If the value could not be persisted.
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key; a missing key is not an error."""
        pass


class IDocumentStore(ABC):
    """Opaque byte storage keyed by a document locator."""

    @abstractmethod
    def fetch(self, locator: str) -> bytes:
        """
        Fetch document bytes.

        :raises StorageError: If the document cannot be read.
        """
        pass

    @abstractmethod
    def store(
        self,
        locator: str,
        content: bytes,
        content_type: str = "application/pdf",
        metadata: dict[str, str] | None = None,
    ) -> str:
        """
        Write document bytes in a single replace; readers never see partial content.

        :return: The locator written.
        :raises StorageWriteError: If the write fails.
        """
        pass

    @abstractmethod
    def delete(self, locator: str) -> None:
        """Delete a document; a missing document is not an error."""
        pass

    @abstractmethod
    def exists(self, locator: str) -> bool:
        """Return True if the document exists."""
        pass

    def metadata(self, locator: str) -> dict[str, str]:
        """Metadata stored with the document (empty by default)."""
        return {}
