"""Tests for identity and operating mode resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from src.services.identity import (
    AccountProfile,
    OperatingMode,
    StaticIdentityProvider,
    SubscriptionStatus,
    is_subscription_active,
    resolve_operating_mode,
)
from src.services.storage import AccessDeniedError


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def profile(status, active_until=None):
    return AccountProfile(subscription_status=status, active_until=active_until)


class TestSubscriptionStatus:

    def test_missing_profile_counts_as_active(self):
        assert is_subscription_active(None, NOW)

    def test_active(self):
        assert is_subscription_active(profile(SubscriptionStatus.ACTIVE), NOW)

    def test_pending_cancel_inside_paid_window(self):
        assert is_subscription_active(
            profile(SubscriptionStatus.PENDING_CANCEL, NOW + timedelta(days=3)), NOW
        )

    def test_pending_cancel_after_paid_window(self):
        assert not is_subscription_active(
            profile(SubscriptionStatus.PENDING_CANCEL, NOW - timedelta(seconds=1)), NOW
        )

    def test_pending_cancel_without_end_date(self):
        assert not is_subscription_active(profile(SubscriptionStatus.PENDING_CANCEL), NOW)

    @pytest.mark.parametrize("status", [SubscriptionStatus.CANCELED, SubscriptionStatus.SUSPENDED])
    def test_inactive_statuses(self, status):
        assert not is_subscription_active(profile(status, NOW + timedelta(days=30)), NOW)

    def test_profile_parses_wire_shape(self):
        parsed = AccountProfile.model_validate({
            "displayName": "Ana",
            "subscriptionStatus": "pending_cancel",
            "activeUntil": "2024-06-10T00:00:00Z",
        })
        assert parsed.subscription_status == SubscriptionStatus.PENDING_CANCEL
        assert is_subscription_active(parsed, NOW)

    def test_naive_active_until_is_treated_as_utc(self):
        naive = profile(SubscriptionStatus.PENDING_CANCEL, datetime(2024, 6, 2))
        assert is_subscription_active(naive, NOW)


class TestOperatingMode:

    def test_guest_flag_wins(self):
        assert resolve_operating_mode(True, "user-1", None, NOW) == OperatingMode.GUEST

    def test_no_user_is_guest(self):
        assert resolve_operating_mode(False, None, None, NOW) == OperatingMode.GUEST

    def test_unknown_profile_is_authenticated(self):
        assert resolve_operating_mode(False, "user-1", None, NOW) == OperatingMode.AUTHENTICATED

    def test_lapsed_subscription_is_guest(self):
        lapsed = profile(SubscriptionStatus.PENDING_CANCEL, NOW - timedelta(days=1))
        assert resolve_operating_mode(False, "user-1", lapsed, NOW) == OperatingMode.GUEST


class TestStaticIdentityProvider:

    @pytest.mark.asyncio
    async def test_string_token(self):
        identity = StaticIdentityProvider(user_id="u", token="abc")
        assert identity.mode == OperatingMode.AUTHENTICATED
        assert await identity.get_token() == "abc"

    @pytest.mark.asyncio
    async def test_callable_tokens(self):
        async def refresh():
            return "fresh"

        assert await StaticIdentityProvider(user_id="u", token=lambda: "sync").get_token() == "sync"
        assert await StaticIdentityProvider(user_id="u", token=refresh).get_token() == "fresh"

    @pytest.mark.asyncio
    async def test_missing_token_is_access_denied(self):
        identity = StaticIdentityProvider(user_id="u")
        with pytest.raises(AccessDeniedError) as exc_info:
            await identity.get_token()
        assert exc_info.value.status == 401

    def test_guest(self):
        identity = StaticIdentityProvider.guest()
        assert identity.mode == OperatingMode.GUEST
        assert identity.user_id is None
