"""
Identity and Operating Mode

Stores consult identity at every decision point: which local key namespace
to use (user id), whether the remote service is authoritative (operating
mode) and which bearer token to send.

OPERATING MODES:
- guest: local storage only, no remote calls
- authenticated: remote service authoritative, local storage as cache
  and as the fallback when access is denied

A signed-in user whose subscription lapsed operates in guest mode; a
pending cancellation keeps cloud mode until the paid window closes.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.services.storage.interface import AccessDeniedError


class OperatingMode(str, Enum):
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PENDING_CANCEL = "pending_cancel"
    CANCELED = "canceled"
    SUSPENDED = "suspended"


class AccountProfile(BaseModel):
    """Account profile as returned by the account endpoint."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    display_name: str = ""
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    active_until: Optional[datetime] = Field(
        default=None,
        description="End of the paid window for a pending cancellation"
    )
    canceled_at: Optional[datetime] = None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_subscription_active(
    profile: Optional[AccountProfile],
    now: Optional[datetime] = None,
) -> bool:
    """
    Whether a profile grants access to the remote service.

    An unknown profile is treated as active; the remote service has the
    final word and answers 403 otherwise.
    """
    if profile is None:
        return True
    if profile.subscription_status == SubscriptionStatus.ACTIVE:
        return True
    if (
        profile.subscription_status == SubscriptionStatus.PENDING_CANCEL
        and profile.active_until is not None
    ):
        current = _as_utc(now or datetime.now(timezone.utc))
        return _as_utc(profile.active_until) >= current
    return False


def resolve_operating_mode(
    is_guest: bool,
    user_id: Optional[str],
    profile: Optional[AccountProfile] = None,
    now: Optional[datetime] = None,
) -> OperatingMode:
    """Decide between guest and authenticated operation."""
    if is_guest or not user_id:
        return OperatingMode.GUEST
    if is_subscription_active(profile, now):
        return OperatingMode.AUTHENTICATED
    return OperatingMode.GUEST


class IdentityProvider(ABC):
    """Who is using the stores and how to authenticate as them."""

    @property
    @abstractmethod
    def user_id(self) -> Optional[str]:
        """Stable user id, or None for guests."""
        pass

    @property
    @abstractmethod
    def mode(self) -> OperatingMode:
        """Current operating mode."""
        pass

    @abstractmethod
    async def get_token(self) -> str:
        """
        Return a fresh short-lived bearer token.

        Raises:
            AccessDeniedError: If no session is available
        """
        pass


TokenSource = Union[str, Callable[[], Union[str, Awaitable[str]]]]


class StaticIdentityProvider(IdentityProvider):
    """
    Identity with a fixed user and mode.

    The token may be a string or a (sync or async) callable so that token
    refresh stays with the caller.
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        token: Optional[TokenSource] = None,
        is_guest: bool = False,
        profile: Optional[AccountProfile] = None,
    ):
        self._user_id = user_id
        self._token = token
        self._mode = resolve_operating_mode(is_guest, user_id, profile)

    @classmethod
    def guest(cls) -> "StaticIdentityProvider":
        return cls(is_guest=True)

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def mode(self) -> OperatingMode:
        return self._mode

    async def get_token(self) -> str:
        if self._token is None:
            raise AccessDeniedError("No active session", 401)
        if isinstance(self._token, str):
            return self._token
        token = self._token()
        if hasattr(token, "__await__"):
            token = await token
        return token
