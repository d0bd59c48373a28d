"""
Storage Services Package

Provides abstract interfaces and concrete implementations for record storage:
local key/value storage (in-memory or file-backed) and the remote record
service over HTTP. Both sides are swappable behind their interfaces.
"""

from src.services.storage.interface import (
    ACCESS_DENIED_STATUSES,
    AccessDeniedError,
    CategoryServiceInterface,
    LocalStorageInterface,
    NotFoundError,
    RecordServiceInterface,
    RemoteServiceError,
    StorageError,
    StorageQuotaExceededError,
    TransientRemoteError,
    is_access_denied,
)
from src.services.storage.local import (
    DEFAULT_QUOTA_BYTES,
    FileLocalStorage,
    InMemoryLocalStorage,
)
from src.services.storage.http import HttpCategoryService, HttpRecordService, raise_for_status

__all__ = [
    # Interfaces
    "LocalStorageInterface",
    "CategoryServiceInterface",
    "RecordServiceInterface",
    # Exceptions
    "ACCESS_DENIED_STATUSES",
    "AccessDeniedError",
    "NotFoundError",
    "RemoteServiceError",
    "StorageError",
    "StorageQuotaExceededError",
    "TransientRemoteError",
    "is_access_denied",
    # Local storage
    "DEFAULT_QUOTA_BYTES",
    "FileLocalStorage",
    "InMemoryLocalStorage",
    # HTTP implementation
    "HttpCategoryService",
    "HttpRecordService",
    "raise_for_status",
]
