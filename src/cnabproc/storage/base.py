"""Abstract blob storage interface."""

from abc import ABC, abstractmethod


def blob_key_for(file_id: str, file_name: str) -> str:
    """Return the storage key of an uploaded file."""
    return f"uploads/{file_id}/{file_name}"


class BlobStore(ABC):
    """Byte storage addressed by relative keys."""

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, replacing any previous content.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the content stored under ``key``.

        Raises:
            BlobNotFoundError: If nothing is stored under ``key``
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return True if ``key`` holds content."""
        pass
