"""
Tests for the finance category store.
"""

import json

import pytest

from src.models.audit import AuditEventType
from src.models.records import DEFAULT_CATEGORIES, CategoryGroup, FinanceCategories
from src.services.identity import StaticIdentityProvider
from src.services.storage import RemoteServiceError
from src.store import FinanceCategoryStore, MutationPath, NoticeLevel, StoreState
from tests.conftest import FakeCategoryService


@pytest.fixture
def category_service():
    return FakeCategoryService()


@pytest.fixture
def make_categories(storage, category_service, notifier, audit_logger, cloud_identity):
    created = []

    def factory(identity=None, service=None, delay: float = 0.01) -> FinanceCategoryStore:
        store = FinanceCategoryStore(
            identity=identity or cloud_identity,
            local_storage=storage,
            service=service or category_service,
            audit_logger=audit_logger,
            notifier=notifier,
            background_sync_delay=delay,
        )
        created.append(store)
        return store

    yield factory

    for store in created:
        store.close()


class TestFinanceCategoriesModel:

    def test_defaults(self):
        categories = FinanceCategories()
        assert categories.expenses == list(DEFAULT_CATEGORIES["expenses"])
        assert categories.for_group(CategoryGroup.INVESTMENTS)[0] == "Renda fixa"

    def test_malformed_group_falls_back_to_defaults(self):
        categories = FinanceCategories.model_validate({"expenses": None, "incomes": "x", "investments": ["A", "", 3]})

        assert categories.expenses == list(DEFAULT_CATEGORIES["expenses"])
        assert categories.incomes == list(DEFAULT_CATEGORIES["incomes"])
        assert categories.investments == ["A"]

    def test_contains_ignores_case(self):
        categories = FinanceCategories(expenses=["Pets"])
        assert categories.contains(CategoryGroup.EXPENSES, "pETS")
        assert not categories.contains(CategoryGroup.INCOMES, "Pets")


class TestGuestCategories:
    """Local-only category lists."""

    @pytest.mark.asyncio
    async def test_load_defaults_without_remote_calls(self, make_categories, guest_identity, category_service):
        store = make_categories(identity=guest_identity)

        assert await store.load() == StoreState.READY_LOCAL
        assert store.for_group("expenses") == list(DEFAULT_CATEGORIES["expenses"])
        assert category_service.calls == []

    @pytest.mark.asyncio
    async def test_add_prepends_and_persists(self, make_categories, guest_identity, storage):
        store = make_categories(identity=guest_identity)
        await store.load()

        result = await store.add("expenses", "  Pets  ")

        assert result.success
        assert result.path == MutationPath.LOCAL
        assert result.records == [{"group": "expenses", "category": "Pets"}]
        assert store.for_group("expenses")[0] == "Pets"
        stored = json.loads(storage.get_item("finance_categories_local_state_guest"))
        assert stored["expenses"][0] == "Pets"
        assert stored["incomes"] == list(DEFAULT_CATEGORIES["incomes"])

    @pytest.mark.asyncio
    async def test_reload_restores_lists(self, make_categories, guest_identity):
        store = make_categories(identity=guest_identity)
        await store.load()
        await store.add(CategoryGroup.INCOMES, "Bonus")
        await store.remove("incomes", "Outros")

        reloaded = make_categories(identity=guest_identity)
        await reloaded.load()

        assert reloaded.for_group("incomes") == ["Bonus", "Salário", "Freelance", "Investimentos"]

    @pytest.mark.asyncio
    async def test_corrupt_snapshot_loads_defaults(self, make_categories, guest_identity, storage):
        storage.set_item("finance_categories_local_state_guest", "{not json")
        store = make_categories(identity=guest_identity)

        await store.load()

        assert store.categories == FinanceCategories()


class TestCategoryValidation:
    """Rejected before any I/O."""

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, make_categories, category_service, audit_logger):
        store = make_categories()
        await store.load()

        result = await store.add("expenses", "   ")

        assert not result.success
        assert result.path == MutationPath.NONE
        assert [issue.issue_type for issue in result.issues] == ["missing"]
        assert category_service.call_count("add") == 0
        assert audit_logger.events[-1].event_type == AuditEventType.MUTATION_REJECTED

    @pytest.mark.asyncio
    async def test_duplicate_is_case_insensitive(self, make_categories, category_service):
        store = make_categories()
        await store.load()

        result = await store.add("expenses", "moradia")

        assert not result.success
        assert result.issues[0].issue_type == "duplicate"
        assert category_service.call_count("add") == 0

    @pytest.mark.asyncio
    async def test_unknown_group_rejected(self, make_categories):
        store = make_categories()
        await store.load()

        added = await store.add("pets", "Food")
        removed = await store.remove("pets", "Food")

        assert added.issues[0].field == "group"
        assert removed.issues[0].field == "group"

    @pytest.mark.asyncio
    async def test_remove_needs_exact_match(self, make_categories, category_service):
        store = make_categories()
        await store.load()

        result = await store.remove("expenses", "moradia")

        assert not result.success
        assert result.issues[0].issue_type == "not_found"
        assert category_service.call_count("remove") == 0


class TestCloudCategories:
    """Remote category service is authoritative."""

    @pytest.mark.asyncio
    async def test_load_null_response_uses_defaults(self, make_categories, category_service, storage):
        store = make_categories()

        assert await store.load() == StoreState.READY_REMOTE
        assert store.categories == FinanceCategories()
        cached = json.loads(storage.get_item("finance_categories_remote_cache_user-1"))
        assert cached["expenses"] == list(DEFAULT_CATEGORIES["expenses"])

    @pytest.mark.asyncio
    async def test_load_partial_response_fills_missing_groups(self, make_categories):
        service = FakeCategoryService({"expenses": ["Pets"]})
        store = make_categories(service=service)

        await store.load()

        assert store.for_group("expenses") == ["Pets"]
        assert store.for_group("investments") == list(DEFAULT_CATEGORIES["investments"])

    @pytest.mark.asyncio
    async def test_cache_painted_before_fetch_fails(self, make_categories, category_service, storage, notifier):
        storage.set_item(
            "finance_categories_remote_cache_user-1",
            json.dumps({"expenses": ["Cached"], "incomes": [], "investments": []}),
        )
        category_service.fail_list = RemoteServiceError("Internal error", 500)
        store = make_categories()

        assert await store.load() == StoreState.READY_STALE
        assert store.for_group("expenses") == ["Cached"]
        assert notifier.history[-1].level == NoticeLevel.ERROR

    @pytest.mark.asyncio
    async def test_add_sends_trimmed_name_and_syncs(self, make_categories, category_service):
        store = make_categories()
        await store.load()

        result = await store.add("investments", " Crypto ")
        await store.flush()

        assert result.path == MutationPath.REMOTE
        assert ("add", ("investments", "Crypto")) in category_service.calls
        assert category_service.call_count("list") == 2
        assert store.for_group("investments")[0] == "Crypto"
        assert not store.sync_pending

    @pytest.mark.asyncio
    async def test_remove_missing_remotely_counts_as_removed(self, make_categories, category_service):
        store = make_categories()
        await store.load()

        result = await store.remove("expenses", "Transporte")

        assert result.success
        assert result.path == MutationPath.REMOTE
        assert "Transporte" not in store.for_group("expenses")

    @pytest.mark.asyncio
    async def test_access_denied_completes_locally(self, make_categories, category_service, storage, notifier):
        store = make_categories()
        await store.load()
        category_service.deny(403)

        result = await store.add("expenses", "Pets")

        assert result.success
        assert result.path == MutationPath.LOCAL_FALLBACK
        assert "Renew to sync" in result.notice.message
        stored = json.loads(storage.get_item("finance_categories_local_state_user-1"))
        assert stored["expenses"][0] == "Pets"

    @pytest.mark.asyncio
    async def test_load_access_denied_switches_to_local(self, make_categories, category_service):
        category_service.deny(401)
        store = make_categories()

        assert await store.load() == StoreState.READY_LOCAL

        result = await store.remove("incomes", "Freelance")

        assert result.path == MutationPath.LOCAL
        assert category_service.call_count("remove") == 0

    @pytest.mark.asyncio
    async def test_failed_add_leaves_lists_unchanged(self, make_categories, category_service, notifier):
        store = make_categories()
        await store.load()
        category_service.fail_write = RemoteServiceError("Internal error", 500)

        result = await store.add("expenses", "Pets")

        assert not result.success
        assert result.notice.level == NoticeLevel.ERROR
        assert store.for_group("expenses") == list(DEFAULT_CATEGORIES["expenses"])

    @pytest.mark.asyncio
    async def test_broken_token_resolves_as_failure(self, make_categories, notifier):
        def broken_token():
            raise RuntimeError("identity backend down")

        store = make_categories(identity=StaticIdentityProvider(user_id="user-1", token=broken_token))

        assert await store.load() == StoreState.READY_STALE
        result = await store.add("expenses", "Pets")

        assert not result.success
        assert result.path == MutationPath.REMOTE
        assert notifier.history[-1].level == NoticeLevel.ERROR

    @pytest.mark.asyncio
    async def test_result_after_reset_is_discarded(self, make_categories, category_service, guest_identity):
        store = make_categories()
        await store.load()
        original_add = category_service.add_category

        async def add_then_switch(token, group, category):
            await original_add(token, group, category)
            await store.reset(guest_identity)

        category_service.add_category = add_then_switch

        result = await store.add("expenses", "Pets")

        assert not result.success
        assert store.state == StoreState.UNINITIALIZED
        assert store.categories == FinanceCategories()
