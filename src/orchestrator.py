"""
Main Orchestrator for PAI

This module wires the record core together:
1. Reads settings once
2. Builds the shared collaborators (local storage, HTTP services,
   audit logger, notifier)
3. Creates one ReconcilingStore per domain plus the FinanceCategoryStore
   and hands them out as a StoreRegistry

DESIGN DECISION: Collaborators are constructed here and injected. No store
reaches for settings, sessions or singletons on its own, so every store can
be built in tests with fakes.
"""

import asyncio
from typing import Callable, Iterator, Optional

import requests
import structlog

from src.audit import AuditLogger, configure_logging
from src.config import Settings, get_settings
from src.models.records import MAX_OCCURRENCES
from src.queries import BalanceSnapshot, compute_balance_snapshot
from src.services.identity import IdentityProvider
from src.services.storage import (
    CategoryServiceInterface,
    FileLocalStorage,
    HttpCategoryService,
    HttpRecordService,
    InMemoryLocalStorage,
    LocalStorageInterface,
    RecordServiceInterface,
)
from src.store import (
    ALL_DOMAINS,
    DomainSpec,
    DualModeStore,
    FinanceCategoryStore,
    Notifier,
    ReconcilingStore,
    StoreState,
)


logger = structlog.get_logger(__name__)

ServiceFactory = Callable[[DomainSpec], RecordServiceInterface]


class StoreRegistry:
    """
    All domain stores of one session.

    Stores are addressed by domain name (registry["tasks"]) or through the
    named properties.
    """

    def __init__(
        self,
        stores: dict[str, ReconcilingStore],
        notifier: Notifier,
        audit_logger: AuditLogger,
        local_storage: LocalStorageInterface,
        max_occurrences: int = MAX_OCCURRENCES,
        categories: Optional[FinanceCategoryStore] = None,
    ):
        self._stores = stores
        self._categories = categories
        self.notifier = notifier
        self.audit_logger = audit_logger
        self.local_storage = local_storage
        # Upper bound forms should offer; the expander clamps regardless
        self.max_occurrences = min(max_occurrences, MAX_OCCURRENCES)

    def __getitem__(self, domain: str) -> ReconcilingStore:
        return self._stores[domain]

    def __iter__(self) -> Iterator[ReconcilingStore]:
        return iter(self._stores.values())

    def __len__(self) -> int:
        return len(self._stores)

    @property
    def domains(self) -> list[str]:
        return list(self._stores)

    @property
    def expenses(self) -> ReconcilingStore:
        return self._stores["expenses"]

    @property
    def incomes(self) -> ReconcilingStore:
        return self._stores["incomes"]

    @property
    def investments(self) -> ReconcilingStore:
        return self._stores["investments"]

    @property
    def tasks(self) -> ReconcilingStore:
        return self._stores["tasks"]

    @property
    def notes(self) -> ReconcilingStore:
        return self._stores["notes"]

    @property
    def calendar(self) -> ReconcilingStore:
        return self._stores["calendar"]

    @property
    def relationships(self) -> ReconcilingStore:
        return self._stores["relationships"]

    @property
    def timeclock(self) -> ReconcilingStore:
        return self._stores["timeclock"]

    @property
    def categories(self) -> Optional[FinanceCategoryStore]:
        return self._categories

    def _all_stores(self) -> list[DualModeStore]:
        stores: list[DualModeStore] = list(self._stores.values())
        if self._categories is not None:
            stores.append(self._categories)
        return stores

    async def load_all(self) -> dict[str, StoreState]:
        """Load every store; returns the resulting state per store name."""
        stores = self._all_stores()
        states = await asyncio.gather(*(store.load() for store in stores))
        return {store.name: state for store, state in zip(stores, states)}

    async def switch_identity(self, identity: IdentityProvider) -> dict[str, StoreState]:
        """Reset every store for a new operating mode and reload."""
        logger.info("switching_identity", mode=identity.mode.value)
        for store in self._all_stores():
            await store.reset(identity)
        return await self.load_all()

    async def flush(self) -> None:
        """Run pending background syncs now."""
        await asyncio.gather(*(store.flush() for store in self._all_stores()))

    def close(self) -> None:
        for store in self._all_stores():
            store.close()

    def balance_snapshot(self) -> BalanceSnapshot:
        return compute_balance_snapshot(
            self.expenses.records,
            self.incomes.records,
            self.investments.records,
        )


def create_local_storage(settings: Settings) -> LocalStorageInterface:
    """File-backed storage when a directory is configured, in-memory otherwise."""
    local_settings = settings.local_storage
    if local_settings.directory is not None:
        return FileLocalStorage(local_settings.directory, local_settings.quota_bytes)
    return InMemoryLocalStorage(local_settings.quota_bytes)


def create_http_service_factory(
    settings: Settings,
    session: Optional[requests.Session] = None,
) -> ServiceFactory:
    """One HttpRecordService per domain, sharing a requests session."""
    api = settings.api
    session = session or requests.Session()

    def factory(spec: DomainSpec) -> RecordServiceInterface:
        return HttpRecordService(
            path=spec.path,
            list_key=spec.list_key,
            item_key=spec.item_key,
            base_url=api.base_url,
            timeout_seconds=api.timeout_seconds,
            list_retry_attempts=api.list_retry_attempts,
            session=session,
        )

    return factory


def create_http_category_service(
    settings: Settings,
    session: Optional[requests.Session] = None,
) -> CategoryServiceInterface:
    api = settings.api
    return HttpCategoryService(
        base_url=api.base_url,
        timeout_seconds=api.timeout_seconds,
        list_retry_attempts=api.list_retry_attempts,
        session=session,
    )


def create_app_components(
    identity: IdentityProvider,
    settings: Optional[Settings] = None,
    local_storage: Optional[LocalStorageInterface] = None,
    service_factory: Optional[ServiceFactory] = None,
    category_service: Optional[CategoryServiceInterface] = None,
    notifier: Optional[Notifier] = None,
    audit_logger: Optional[AuditLogger] = None,
    domains: tuple[DomainSpec, ...] = ALL_DOMAINS,
) -> StoreRegistry:
    """
    Factory function to create all application components.

    Args:
        identity: Identity collaborator shared by every store
        settings: Settings (loaded from the environment when omitted)
        local_storage: Local storage (built from settings when omitted)
        service_factory: Builds the remote service of a domain
                         (HTTP services when omitted)
        category_service: Remote finance category service
                          (HTTP service when omitted)
        notifier: Notice side channel
        audit_logger: Audit trail
        domains: Domains to build stores for

    Returns:
        StoreRegistry with one unloaded store per domain
    """
    settings = settings or get_settings()
    configure_logging(settings.app)

    store_settings = settings.store
    local_storage = local_storage or create_local_storage(settings)
    session = None
    if service_factory is None or category_service is None:
        session = requests.Session()
    service_factory = service_factory or create_http_service_factory(settings, session)
    category_service = category_service or create_http_category_service(settings, session)
    notifier = notifier or Notifier()
    audit_logger = audit_logger or AuditLogger()

    stores = {
        spec.name: ReconcilingStore(
            spec=spec,
            identity=identity,
            local_storage=local_storage,
            service=service_factory(spec),
            audit_logger=audit_logger,
            notifier=notifier,
            background_sync_delay=store_settings.background_sync_delay_seconds,
            guest_user_id=store_settings.guest_user_id,
        )
        for spec in domains
    }
    categories = FinanceCategoryStore(
        identity=identity,
        local_storage=local_storage,
        service=category_service,
        audit_logger=audit_logger,
        notifier=notifier,
        background_sync_delay=store_settings.background_sync_delay_seconds,
        guest_user_id=store_settings.guest_user_id,
    )
    logger.info("app_components_created", domains=list(stores), mode=identity.mode.value)

    return StoreRegistry(
        stores,
        notifier,
        audit_logger,
        local_storage,
        max_occurrences=store_settings.max_occurrences,
        categories=categories,
    )
