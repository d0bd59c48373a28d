"""Identity and operating mode package."""

from src.services.identity.provider import (
    AccountProfile,
    IdentityProvider,
    OperatingMode,
    StaticIdentityProvider,
    SubscriptionStatus,
    is_subscription_active,
    resolve_operating_mode,
)

__all__ = [
    "AccountProfile",
    "IdentityProvider",
    "OperatingMode",
    "StaticIdentityProvider",
    "SubscriptionStatus",
    "is_subscription_active",
    "resolve_operating_mode",
]
