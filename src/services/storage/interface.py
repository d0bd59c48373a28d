"""
Abstract Storage Interfaces

DESIGN DECISION: Stores talk to two collaborators through abstract interfaces:
1. Local key/value storage (the browser's localStorage on the web client)
2. A remote record service per domain (authoritative in cloud mode)
3. A remote category service for the finance category lists

This allows us to:
1. Swap the HTTP service for an in-memory fake in tests
2. Keep file-backed and in-memory local storage interchangeable
3. Keep reconciliation logic decoupled from transport details

The interfaces are intentionally small. Local storage is synchronous and
string-valued; the remote service is asynchronous and dict-valued.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class LocalStorageInterface(ABC):
    """
    Synchronous, capacity-limited key/value string storage.

    Implementations raise StorageQuotaExceededError when a write would go
    over capacity. Callers must catch it.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None when the key is absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Store a string under a key.

        Raises:
            StorageQuotaExceededError: If capacity would be exceeded
            StorageError: If the medium is unavailable
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key. Removing a missing key is a no-op."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """All keys currently stored."""
        pass


class RecordServiceInterface(ABC):
    """
    Remote authoritative record service for one domain.

    Every call is authenticated with a short-lived bearer token. Errors are
    raised as RemoteServiceError subclasses carrying an HTTP-like status.
    """

    @abstractmethod
    async def list_records(self, token: str) -> list[dict[str, Any]]:
        """
        Fetch every record of the domain for the token's owner.

        Returns:
            Records in wire shape (camelCase keys, string ids)
        """
        pass

    @abstractmethod
    async def create_record(self, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Create one record.

        NOT idempotent: each call creates a new remote record.

        Returns:
            The authoritative record, including its server-assigned id
        """
        pass

    @abstractmethod
    async def update_record(
        self,
        token: str,
        record_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Apply a partial update.

        Returns:
            The updated fields (possibly the whole record)

        Raises:
            NotFoundError: If the record doesn't exist
        """
        pass

    @abstractmethod
    async def delete_record(self, token: str, record_id: str) -> None:
        """
        Delete one record.

        Raises:
            NotFoundError: If the record doesn't exist
        """
        pass


class CategoryServiceInterface(ABC):
    """Remote finance category lists, keyed by group."""

    @abstractmethod
    async def list_categories(self, token: str) -> Optional[dict[str, Any]]:
        """
        Fetch every category list.

        Returns:
            {"expenses": [...], "incomes": [...], "investments": [...]},
            or None when the owner has none stored yet
        """
        pass

    @abstractmethod
    async def add_category(self, token: str, group: str, category: str) -> None:
        pass

    @abstractmethod
    async def remove_category(self, token: str, group: str, category: str) -> None:
        """
        Raises:
            NotFoundError: If the group has no such category
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageQuotaExceededError(StorageError):
    """Local storage is full."""

    def __init__(self, key: str, required_bytes: int, quota_bytes: int):
        self.key = key
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes
        super().__init__(
            f"Local storage quota exceeded writing {key!r}: "
            f"{required_bytes} bytes needed, quota is {quota_bytes}"
        )


class RemoteServiceError(StorageError):
    """A remote call failed with an HTTP-like status."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class AccessDeniedError(RemoteServiceError):
    """401/403: expired session or inactive subscription."""
    pass


class NotFoundError(RemoteServiceError):
    """Entity not found in storage."""

    def __init__(self, message: str, status: Optional[int] = 404):
        super().__init__(message, status)


class TransientRemoteError(RemoteServiceError):
    """Network failure or timeout; no status was received."""
    pass


ACCESS_DENIED_STATUSES = frozenset({401, 403})


def is_access_denied(error: BaseException) -> bool:
    """Classify an error as access denied (401/403)."""
    if isinstance(error, AccessDeniedError):
        return True
    status = getattr(error, "status", None)
    return isinstance(status, int) and status in ACCESS_DENIED_STATUSES
