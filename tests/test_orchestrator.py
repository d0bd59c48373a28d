"""Tests for wiring the stores together."""

import pytest

from src.config import Settings
from src.orchestrator import (
    StoreRegistry,
    create_app_components,
    create_http_category_service,
    create_http_service_factory,
    create_local_storage,
)
from src.services.identity import StaticIdentityProvider
from src.services.storage import (
    FileLocalStorage,
    HttpCategoryService,
    HttpRecordService,
    InMemoryLocalStorage,
)
from src.store import ALL_DOMAINS, EXPENSES, TASKS, FinanceCategoryStore, StoreState
from tests.conftest import FakeCategoryService, FakeRecordService, expense_payload


@pytest.fixture
def services():
    return {}


@pytest.fixture
def category_service():
    return FakeCategoryService()


@pytest.fixture
def registry(services, category_service, storage, cloud_identity):
    def factory(spec):
        services[spec.name] = FakeRecordService()
        return services[spec.name]

    registry = create_app_components(
        cloud_identity,
        settings=Settings(),
        local_storage=storage,
        service_factory=factory,
        category_service=category_service,
    )
    yield registry
    registry.close()


class TestCreateAppComponents:

    def test_one_store_per_domain(self, registry, services):
        assert isinstance(registry, StoreRegistry)
        assert registry.domains == [spec.name for spec in ALL_DOMAINS]
        assert set(services) == set(registry.domains)
        assert registry["tasks"].spec is TASKS
        assert registry.expenses.spec is EXPENSES

    def test_max_occurrences_from_settings(self, registry):
        assert registry.max_occurrences == 24

    @pytest.mark.asyncio
    async def test_load_all(self, registry):
        states = await registry.load_all()
        assert set(states.values()) == {StoreState.READY_REMOTE}

    @pytest.mark.asyncio
    async def test_switch_identity_resets_and_reloads(self, registry, services):
        await registry.load_all()
        await registry.expenses.create(expense_payload())

        states = await registry.switch_identity(StaticIdentityProvider.guest())

        assert set(states.values()) == {StoreState.READY_LOCAL}
        assert registry.expenses.records == []
        assert services["expenses"].call_count("create") == 1

    @pytest.mark.asyncio
    async def test_balance_snapshot(self, registry):
        await registry.load_all()
        await registry.expenses.create(expense_payload(amount=300))
        await registry.incomes.create({
            "description": "Salary",
            "amount": 1000,
            "category": "Work",
            "source": "Acme",
            "date": "2024-01-05",
        })

        snapshot = registry.balance_snapshot()

        assert snapshot.total_expenses == 300.0
        assert snapshot.net_balance == 700.0

    @pytest.mark.asyncio
    async def test_categories_store_is_managed(self, registry, category_service):
        assert isinstance(registry.categories, FinanceCategoryStore)

        states = await registry.load_all()
        assert states["finance_categories"] == StoreState.READY_REMOTE

        await registry.categories.add("expenses", "Pets")
        await registry.flush()
        assert category_service.call_count("list") == 2

        states = await registry.switch_identity(StaticIdentityProvider.guest())
        assert states["finance_categories"] == StoreState.READY_LOCAL
        assert "Pets" not in registry.categories.for_group("expenses")

    @pytest.mark.asyncio
    async def test_shared_notifier(self, registry):
        await registry.load_all()
        await registry.tasks.create({"title": "Call bank", "dueDate": "2024-02-01"})
        assert registry.notifier.history[-1].domain == "tasks"


class TestDefaults:

    def test_local_storage_from_settings(self, monkeypatch, tmp_path):
        monkeypatch.delenv("PAI_LOCAL_DIRECTORY", raising=False)
        assert isinstance(create_local_storage(Settings()), InMemoryLocalStorage)

        monkeypatch.setenv("PAI_LOCAL_DIRECTORY", str(tmp_path))
        assert isinstance(create_local_storage(Settings()), FileLocalStorage)

    def test_http_services_share_base_url(self, monkeypatch):
        monkeypatch.setenv("PAI_API_BASE_URL", "https://pai.test/api")
        factory = create_http_service_factory(Settings())

        service = factory(TASKS)

        assert isinstance(service, HttpRecordService)
        assert service.url == "https://pai.test/api/tasks"

    def test_http_category_service_url(self, monkeypatch):
        monkeypatch.setenv("PAI_API_BASE_URL", "https://pai.test/api/")
        service = create_http_category_service(Settings())

        assert isinstance(service, HttpCategoryService)
        assert service.url == "https://pai.test/api/finance/categories"
