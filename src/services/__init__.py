"""Services package."""

from src.services.identity import (
    AccountProfile,
    IdentityProvider,
    OperatingMode,
    StaticIdentityProvider,
    SubscriptionStatus,
    is_subscription_active,
    resolve_operating_mode,
)
from src.services.storage import (
    AccessDeniedError,
    FileLocalStorage,
    HttpRecordService,
    InMemoryLocalStorage,
    LocalStorageInterface,
    NotFoundError,
    RecordServiceInterface,
    RemoteServiceError,
    StorageError,
    StorageQuotaExceededError,
    TransientRemoteError,
    is_access_denied,
)

__all__ = [
    # Identity
    "AccountProfile",
    "IdentityProvider",
    "OperatingMode",
    "StaticIdentityProvider",
    "SubscriptionStatus",
    "is_subscription_active",
    "resolve_operating_mode",
    # Storage services
    "AccessDeniedError",
    "FileLocalStorage",
    "HttpRecordService",
    "InMemoryLocalStorage",
    "LocalStorageInterface",
    "NotFoundError",
    "RecordServiceInterface",
    "RemoteServiceError",
    "StorageError",
    "StorageQuotaExceededError",
    "TransientRemoteError",
    "is_access_denied",
]
