"""
Finance Category Store

Holds the category lists offered by the expense, income and investment
forms. It follows the same dual-mode rules as the record stores: guest mode
keeps the lists in local storage, cloud mode sends every change to the
remote category service and refreshes the lists in the background, and a
401/403 completes the change locally.

Lists are kept newest first. Duplicates are detected case-insensitively;
removal matches the exact name.
"""

from typing import Any, Optional, Union

from src.audit import AuditLogger
from src.models.records import CategoryGroup, FinanceCategories
from src.models.validation import ValidationIssue
from src.services.identity import IdentityProvider
from src.services.storage import (
    CategoryServiceInterface,
    LocalStorageInterface,
    NotFoundError,
    RemoteServiceError,
    is_access_denied,
)
from src.store.base import DualModeStore, MutationPath, MutationResult
from src.store.notices import Notifier


CATEGORIES_NAME = "finance_categories"
CATEGORY_LABEL = "Category"


def _issue(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="error")


class FinanceCategoryStore(DualModeStore):
    """
    Dual-mode store for the finance category lists.

    Args:
        identity: Identity collaborator, consulted at every decision
        local_storage: Synchronous key/value storage
        service: Remote category service
        audit_logger: Audit trail (a private one is created when omitted)
        notifier: Notice side channel (a private one is created when omitted)
        background_sync_delay: Debounce delay in seconds
        guest_user_id: Namespace of local keys when there is no user id
    """

    def __init__(
        self,
        identity: IdentityProvider,
        local_storage: LocalStorageInterface,
        service: CategoryServiceInterface,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
        background_sync_delay: float = 2.0,
        guest_user_id: str = "guest",
    ):
        super().__init__(
            CATEGORIES_NAME,
            CATEGORY_LABEL,
            identity,
            local_storage,
            audit_logger=audit_logger,
            notifier=notifier,
            background_sync_delay=background_sync_delay,
            guest_user_id=guest_user_id,
        )
        self._service = service
        self._categories = FinanceCategories()

    @property
    def categories(self) -> FinanceCategories:
        return self._categories.model_copy(deep=True)

    def for_group(self, group: Union[CategoryGroup, str]) -> list[str]:
        return self._categories.for_group(CategoryGroup(group))

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def _local_state_key(self) -> str:
        return f"{CATEGORIES_NAME}_local_state_{self._namespace}"

    def _remote_cache_key(self) -> str:
        return f"{CATEGORIES_NAME}_remote_cache_{self._namespace}"

    def _empty_snapshot(self) -> FinanceCategories:
        return FinanceCategories()

    def _parse_snapshot(self, raw: Any) -> Optional[FinanceCategories]:
        if isinstance(raw, dict) and isinstance(raw.get("categories"), dict):
            raw = raw["categories"]
        if not isinstance(raw, dict):
            return None
        return FinanceCategories.model_validate(raw)

    def _current_snapshot(self) -> FinanceCategories:
        return self._categories

    def _apply_snapshot(self, snapshot: FinanceCategories) -> None:
        self._categories = snapshot

    def _dump_snapshot(self, snapshot: FinanceCategories) -> dict[str, list[str]]:
        return snapshot.model_dump()

    def _snapshot_size(self, snapshot: FinanceCategories) -> int:
        return sum(len(snapshot.for_group(group)) for group in CategoryGroup)

    async def _list_remote(self, token: str) -> Any:
        return await self._service.list_categories(token)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _resolve_group(self, group: Union[CategoryGroup, str]) -> Optional[CategoryGroup]:
        try:
            return CategoryGroup(group)
        except ValueError:
            return None

    def _replace_group(self, group: CategoryGroup, items: list[str]) -> None:
        self._categories = self._categories.model_copy(update={group.value: items})

    async def _apply_add(self, group: CategoryGroup, category: str, path: MutationPath) -> None:
        # The list may have changed while a remote call was in flight
        if not self._categories.contains(group, category):
            self._replace_group(group, [category] + self._categories.for_group(group))
        if path != MutationPath.REMOTE:
            await self._persist_local()
        await self._audit.log_record_mutated("create", self._name, f"{group.value}:{category}", path.value)

    async def _apply_remove(self, group: CategoryGroup, category: str, path: MutationPath) -> None:
        remaining = [item for item in self._categories.for_group(group) if item != category]
        self._replace_group(group, remaining)
        if path != MutationPath.REMOTE:
            await self._persist_local()
        await self._audit.log_record_mutated("delete", self._name, f"{group.value}:{category}", path.value)

    async def add(
        self,
        group: Union[CategoryGroup, str],
        category: str,
        silent: bool = False,
    ) -> MutationResult:
        """
        Add a category to the front of a group.

        The name is trimmed. Empty names and case-insensitive duplicates
        are rejected before any I/O.
        """
        resolved = self._resolve_group(group)
        name = category.strip() if isinstance(category, str) else ""

        issues = []
        if resolved is None:
            issues.append(_issue("group", "invalid_value", f"Unknown category group {group!r}"))
        if not name:
            issues.append(_issue("category", "missing", "Category name is required"))
        elif resolved is not None and self._categories.contains(resolved, name):
            issues.append(_issue("category", "duplicate", f"Category {name!r} already exists"))
        if issues:
            return await self._reject("add", issues)

        entry = {"group": resolved.value, "category": name}
        if self._use_local_path():
            await self._apply_add(resolved, name, MutationPath.LOCAL)
            return MutationResult(
                success=True,
                path=MutationPath.LOCAL,
                records=[entry],
                notice=self._notify("add", "success", silent),
            )

        generation = self._generation
        try:
            await self._call_remote(self._service.add_category, resolved.value, name)
        except RemoteServiceError as e:
            if not self._is_current(generation):
                return MutationResult(success=False, path=MutationPath.REMOTE)
            if is_access_denied(e):
                await self._audit.log_access_denied_fallback(self._name, "create", e.status)
                await self._apply_add(resolved, name, MutationPath.LOCAL_FALLBACK)
                return MutationResult(
                    success=True,
                    path=MutationPath.LOCAL_FALLBACK,
                    records=[entry],
                    notice=self._notify("add", "fallback"),
                )
            self._log.error("category_add_failed", group=resolved.value, error=str(e), status=e.status)
            await self._audit.log_mutation_failed("create", self._name, str(e), e.status)
            return MutationResult(
                success=False,
                path=MutationPath.REMOTE,
                notice=self._notify("add", "error"),
            )

        if not self._is_current(generation):
            return MutationResult(success=False, path=MutationPath.REMOTE)
        await self._apply_add(resolved, name, MutationPath.REMOTE)
        self._schedule_sync()
        return MutationResult(
            success=True,
            path=MutationPath.REMOTE,
            records=[entry],
            notice=self._notify("add", "success", silent),
        )

    async def remove(
        self,
        group: Union[CategoryGroup, str],
        category: str,
        silent: bool = False,
    ) -> MutationResult:
        """
        Remove a category from a group by exact name.

        A remote 404 counts as already removed.
        """
        resolved = self._resolve_group(group)
        if resolved is None:
            return await self._reject(
                "remove", [_issue("group", "invalid_value", f"Unknown category group {group!r}")],
            )
        if category not in self._categories.for_group(resolved):
            return MutationResult(
                success=False,
                path=MutationPath.NONE,
                issues=[_issue("category", "not_found", f"No category {category!r} in {resolved.value}")],
            )

        entry = {"group": resolved.value, "category": category}
        if self._use_local_path():
            await self._apply_remove(resolved, category, MutationPath.LOCAL)
            return MutationResult(
                success=True,
                path=MutationPath.LOCAL,
                records=[entry],
                notice=self._notify("remove", "success", silent),
            )

        generation = self._generation
        try:
            await self._call_remote(self._service.remove_category, resolved.value, category)
        except NotFoundError:
            self._log.info("category_missing_remotely", group=resolved.value)
        except RemoteServiceError as e:
            if not self._is_current(generation):
                return MutationResult(success=False, path=MutationPath.REMOTE)
            if is_access_denied(e):
                await self._audit.log_access_denied_fallback(self._name, "delete", e.status)
                await self._apply_remove(resolved, category, MutationPath.LOCAL_FALLBACK)
                return MutationResult(
                    success=True,
                    path=MutationPath.LOCAL_FALLBACK,
                    records=[entry],
                    notice=self._notify("remove", "fallback"),
                )
            self._log.error("category_remove_failed", group=resolved.value, error=str(e), status=e.status)
            await self._audit.log_mutation_failed("delete", self._name, str(e), e.status)
            return MutationResult(
                success=False,
                path=MutationPath.REMOTE,
                notice=self._notify("remove", "error"),
            )

        if not self._is_current(generation):
            return MutationResult(success=False, path=MutationPath.REMOTE)
        await self._apply_remove(resolved, category, MutationPath.REMOTE)
        self._schedule_sync()
        return MutationResult(
            success=True,
            path=MutationPath.REMOTE,
            records=[entry],
            notice=self._notify("remove", "success", silent),
        )
