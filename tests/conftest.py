"""
Shared fixtures and fakes.

No test talks to a real network: the remote service is an in-memory fake
that records every call and can be told to deny access or fail.
"""

import itertools
from typing import Any, Optional

import pytest

from src.audit import AuditLogger
from src.models.records import DEFAULT_CATEGORIES
from src.services.identity import StaticIdentityProvider
from src.services.storage import (
    AccessDeniedError,
    CategoryServiceInterface,
    InMemoryLocalStorage,
    NotFoundError,
    RecordServiceInterface,
    RemoteServiceError,
)
from src.store import EXPENSES, DomainSpec, Notifier, ReconcilingStore


class FakeRecordService(RecordServiceInterface):
    """In-memory remote record service."""

    def __init__(self, records: Optional[list[dict[str, Any]]] = None):
        self.records: dict[str, dict[str, Any]] = {r["id"]: dict(r) for r in records or []}
        self.calls: list[tuple[str, Any]] = []
        self.denied_status: Optional[int] = None
        self.fail_list: Optional[Exception] = None
        self.fail_write: Optional[Exception] = None
        self.fail_create_at: Optional[int] = None
        self._ids = itertools.count(1)
        self._creates = 0

    def deny(self, status: int = 403) -> None:
        self.denied_status = status

    def restore(self) -> None:
        self.denied_status = None

    def _check_access(self) -> None:
        if self.denied_status is not None:
            raise AccessDeniedError("Subscription inactive", self.denied_status)

    def call_count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    async def list_records(self, token: str) -> list[dict[str, Any]]:
        self.calls.append(("list", token))
        self._check_access()
        if self.fail_list is not None:
            raise self.fail_list
        return [dict(r) for r in self.records.values()]

    async def create_record(self, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", dict(payload)))
        self._creates += 1
        if self.fail_create_at is not None:
            if self._creates >= self.fail_create_at:
                raise self.fail_write or RemoteServiceError("Internal error", 500)
        elif self.fail_write is not None:
            raise self.fail_write
        self._check_access()
        record = {**payload, "id": f"srv-{next(self._ids)}"}
        self.records[record["id"]] = record
        return dict(record)

    async def update_record(
        self,
        token: str,
        record_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        self.calls.append(("update", (record_id, dict(payload))))
        self._check_access()
        if self.fail_write is not None:
            raise self.fail_write
        if record_id not in self.records:
            raise NotFoundError(f"{record_id} not found")
        self.records[record_id].update(payload)
        return dict(self.records[record_id])

    async def delete_record(self, token: str, record_id: str) -> None:
        self.calls.append(("delete", record_id))
        self._check_access()
        if self.fail_write is not None:
            raise self.fail_write
        if record_id not in self.records:
            raise NotFoundError(f"{record_id} not found")
        del self.records[record_id]


class FakeCategoryService(CategoryServiceInterface):
    """In-memory remote category service."""

    def __init__(self, categories: Optional[dict[str, list[str]]] = None):
        self.categories = categories
        self.calls: list[tuple[str, Any]] = []
        self.denied_status: Optional[int] = None
        self.fail_list: Optional[Exception] = None
        self.fail_write: Optional[Exception] = None

    def deny(self, status: int = 403) -> None:
        self.denied_status = status

    def _check(self, failure: Optional[Exception]) -> None:
        if self.denied_status is not None:
            raise AccessDeniedError("Subscription inactive", self.denied_status)
        if failure is not None:
            raise failure

    def call_count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    async def list_categories(self, token: str) -> Optional[dict[str, Any]]:
        self.calls.append(("list", token))
        self._check(self.fail_list)
        if self.categories is None:
            return None
        return {group: list(items) for group, items in self.categories.items()}

    async def add_category(self, token: str, group: str, category: str) -> None:
        self.calls.append(("add", (group, category)))
        self._check(self.fail_write)
        if self.categories is None:
            self.categories = {key: list(items) for key, items in DEFAULT_CATEGORIES.items()}
        self.categories[group] = [category] + self.categories.get(group, [])

    async def remove_category(self, token: str, group: str, category: str) -> None:
        self.calls.append(("remove", (group, category)))
        self._check(self.fail_write)
        if self.categories is None or category not in self.categories.get(group, []):
            raise NotFoundError(f"{category} not found")
        self.categories[group] = [item for item in self.categories[group] if item != category]


def expense_payload(**overrides) -> dict[str, Any]:
    payload = {
        "description": "Rent",
        "amount": 1500.0,
        "category": "Housing",
        "date": "2024-01-31",
        "paymentMethod": "pix",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def guest_identity():
    return StaticIdentityProvider.guest()


@pytest.fixture
def cloud_identity():
    return StaticIdentityProvider(user_id="user-1", token="token-abc")


@pytest.fixture
def storage():
    return InMemoryLocalStorage()


@pytest.fixture
def service():
    return FakeRecordService()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def make_store(storage, service, notifier, audit_logger, cloud_identity):
    """Build a store with the shared fakes; keyword overrides allowed."""
    created = []

    def factory(
        spec: DomainSpec = EXPENSES,
        identity=None,
        local_storage=None,
        record_service=None,
        delay: float = 0.01,
        **kwargs,
    ) -> ReconcilingStore:
        store = ReconcilingStore(
            spec=spec,
            identity=identity or cloud_identity,
            local_storage=local_storage or storage,
            service=record_service or service,
            audit_logger=audit_logger,
            notifier=notifier,
            background_sync_delay=delay,
            **kwargs,
        )
        created.append(store)
        return store

    yield factory

    for store in created:
        store.close()
