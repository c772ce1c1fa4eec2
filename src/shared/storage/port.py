"""Local durable storage port (abstract interface).

A tiny key/value contract for text blobs that must survive a process
restart: the cart lines and the product snapshots each live under their own
key. Adapters decide where the bytes go (memory for tests, files on disk for
a real client).
"""

from abc import ABC, abstractmethod


class LocalStorage(ABC):
    """Abstract durable key/value store for serialized state."""

    @abstractmethod
    def read(self, key: str) -> str | None:
        """Return the stored text for ``key`` or None if nothing was written."""
        ...

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Durably replace the text stored under ``key``."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Forget ``key``. Deleting a missing key is a no-op."""
        ...
