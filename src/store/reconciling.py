"""
Reconciling Record Store

One store per domain owns the in-memory collection that the UI renders and
decides, for every load and mutation, where data lives:

- guest mode (or after the remote service denied access on load): local
  key/value storage is the only persistence; the whole collection is
  written back after every change
- cloud mode: the remote service is authoritative; each mutation is sent
  remotely and the returned record is merged by id, then a debounced
  background sync replaces the collection with a fresh remote snapshot

Loading, background sync and lifecycle come from DualModeStore.

DESIGN DECISION: Mutations never raise. Validation problems come back in
the MutationResult; everything the user should see goes through the
Notifier. A 401/403 on a mutation completes that mutation locally and tells
the user to renew; it is never retried remotely.

CONCURRENCY: everything runs on one asyncio event loop. Every remote call
is a suspension point. Sibling creates of one recurrence are awaited one
after the other. A generation counter detects results that arrive after
reset() or close(); those results are discarded.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Union
from uuid import UUID

from src.audit import AuditLogger, create_correlation_id
from src.models.records import RecordPayload, RecurrenceSpec
from src.models.validation import ValidationIssue
from src.recurrence import expand
from src.services.identity import IdentityProvider
from src.services.storage import (
    LocalStorageInterface,
    NotFoundError,
    RecordServiceInterface,
    RemoteServiceError,
    is_access_denied,
)
from src.store.base import Discarded, DualModeStore, MutationPath, MutationResult
from src.store.domains import DomainSpec, merge_records, remove_record
from src.store.notices import Notifier
from src.validation import RecordValidator, to_wire_keys


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _new_local_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# STORE
# =============================================================================

class ReconcilingStore(DualModeStore):
    """
    Dual-mode record store for one domain.

    Args:
        spec: Domain descriptor
        identity: Identity collaborator, consulted at every decision
        local_storage: Synchronous key/value storage
        service: Remote record service for the domain
        audit_logger: Audit trail (a private one is created when omitted)
        notifier: Notice side channel (a private one is created when omitted)
        background_sync_delay: Debounce delay in seconds
        guest_user_id: Namespace of local keys when there is no user id
        id_factory: Generates ids for locally created records
        clock: Returns the ISO timestamp used for createdAt/updatedAt stamps
    """

    def __init__(
        self,
        spec: DomainSpec,
        identity: IdentityProvider,
        local_storage: LocalStorageInterface,
        service: RecordServiceInterface,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
        background_sync_delay: float = 2.0,
        guest_user_id: str = "guest",
        id_factory: Callable[[], str] = _new_local_id,
        clock: Callable[[], str] = _utc_iso,
    ):
        super().__init__(
            spec.name,
            spec.label,
            identity,
            local_storage,
            audit_logger=audit_logger,
            notifier=notifier,
            background_sync_delay=background_sync_delay,
            guest_user_id=guest_user_id,
        )
        self._spec = spec
        self._service = service
        self._new_id = id_factory
        self._clock = clock
        self._validator = RecordValidator(
            spec.draft_model,
            spec.record_model,
            supports_recurrence=spec.supports_recurrence,
        )
        self._records: list[dict[str, Any]] = []

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def spec(self) -> DomainSpec:
        return self._spec

    @property
    def records(self) -> list[dict[str, Any]]:
        """The in-memory collection, in canonical order (a copy)."""
        return [dict(record) for record in self._records]

    def get(self, record_id: str) -> Optional[dict[str, Any]]:
        for record in self._records:
            if record.get("id") == record_id:
                return dict(record)
        return None

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def _local_state_key(self) -> str:
        return self._spec.local_state_key(self._namespace)

    def _remote_cache_key(self) -> str:
        return self._spec.remote_cache_key(self._namespace)

    def _empty_snapshot(self) -> list[dict[str, Any]]:
        return []

    def _parse_snapshot(self, raw: Any) -> Optional[list[dict[str, Any]]]:
        if isinstance(raw, dict):
            # Older snapshots wrapped the list in an object keyed by domain
            raw = raw.get(self._spec.name)
        if not isinstance(raw, list):
            return None
        return self._spec.normalize_all(raw)

    def _current_snapshot(self) -> list[dict[str, Any]]:
        return self._records

    def _apply_snapshot(self, snapshot: list[dict[str, Any]]) -> None:
        self._records = snapshot

    async def _list_remote(self, token: str) -> Any:
        return await self._service.list_records(token)

    def _stamp_new(self, record: dict[str, Any]) -> dict[str, Any]:
        if self._spec.stamps_timestamps:
            now = self._clock()
            record.setdefault("createdAt", now)
            record["updatedAt"] = now
        return record

    def _stamp_update(self, record: dict[str, Any]) -> dict[str, Any]:
        if self._spec.stamps_timestamps:
            record["updatedAt"] = self._clock()
        return record

    def _authoritative(self, sent: Mapping[str, Any], received: Any, record_id: Optional[str] = None) -> dict[str, Any]:
        """Merge a remote response over what was sent and validate it."""
        merged = dict(sent)
        if isinstance(received, Mapping):
            merged.update(received)
        if record_id is not None:
            merged["id"] = record_id
        record = self._spec.normalize(merged)
        if record is None:
            raise RemoteServiceError(f"Malformed {self._spec.name} record in remote response")
        return record

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _not_found(self, record_id: str) -> MutationResult:
        issue = ValidationIssue(
            field="id",
            issue_type="not_found",
            message=f"No {self._spec.label.lower()} with id {record_id!r}",
            severity="error",
        )
        return MutationResult(success=False, path=MutationPath.NONE, issues=[issue])

    def _expand_payloads(
        self,
        draft: dict[str, Any],
        recurrence: Optional[RecurrenceSpec],
        correlation_id: UUID,
    ) -> list[dict[str, Any]]:
        """One payload per scheduled date, tagged as siblings when more than one."""
        if not self._spec.supports_recurrence or recurrence is None:
            return [draft]
        date_field = self._spec.date_fields[0]
        schedule = expand(draft[date_field], recurrence.frequency, recurrence.occurrences)
        if len(schedule) == 1:
            return [draft]

        total = len(schedule)
        return [
            {
                **draft,
                date_field: scheduled,
                "recurrenceId": str(correlation_id),
                "recurrenceIndex": index,
                "recurrenceTotal": total,
            }
            for index, scheduled in enumerate(schedule, start=1)
        ]

    async def _create_locally(
        self,
        payloads: list[dict[str, Any]],
        path: MutationPath,
        correlation_id: UUID,
    ) -> list[dict[str, Any]]:
        created = [self._stamp_new({**payload, "id": self._new_id()}) for payload in payloads]
        self._records = merge_records(self._records, created, self._spec)
        await self._persist_local()
        for record in created:
            await self._audit.log_record_mutated(
                "create", self._spec.name, record["id"], path.value, correlation_id,
            )
        return created

    async def create(
        self,
        payload: Union[Mapping[str, Any], RecordPayload],
        recurrence: Union[RecurrenceSpec, Mapping[str, Any], None] = None,
        silent: bool = False,
    ) -> MutationResult:
        """
        Create a record, or one record per scheduled date of a recurrence.

        Args:
            payload: Form payload (wire keys or Python names) or a draft model
            recurrence: Optional {frequency, occurrences}; finance domains only
            silent: Suppress the success notice

        Returns:
            MutationResult; never raises for storage or remote failures
        """
        if isinstance(recurrence, Mapping):
            recurrence = RecurrenceSpec.model_validate(recurrence)

        validation = self._validator.validate_create(payload, recurrence)
        if not validation.is_valid:
            return await self._reject("create", validation.issues)

        correlation_id = create_correlation_id()
        payloads = self._expand_payloads(validation.normalized, recurrence, correlation_id)

        if self._use_local_path():
            created = await self._create_locally(payloads, MutationPath.LOCAL, correlation_id)
            return MutationResult(
                success=True,
                path=MutationPath.LOCAL,
                records=created,
                notice=self._notify("create", "success", silent),
            )

        generation = self._generation
        created: list[dict[str, Any]] = []
        for position, body in enumerate(payloads):
            try:
                response = await self._call_remote(self._service.create_record, body)
                if not self._is_current(generation):
                    raise Discarded()
                record = self._authoritative(body, response)
            except Discarded:
                self._log.info("create_result_discarded", created=len(created))
                return MutationResult(success=False, path=MutationPath.REMOTE, records=created)
            except RemoteServiceError as e:
                if not self._is_current(generation):
                    return MutationResult(success=False, path=MutationPath.REMOTE, records=created)
                if is_access_denied(e):
                    self._log.warning("create_access_denied", status=e.status, remaining=len(payloads) - position)
                    await self._audit.log_access_denied_fallback(
                        self._spec.name, "create", e.status, correlation_id,
                    )
                    fallback = await self._create_locally(
                        payloads[position:], MutationPath.LOCAL_FALLBACK, correlation_id,
                    )
                    if created:
                        self._schedule_sync()
                    return MutationResult(
                        success=True,
                        path=MutationPath.LOCAL_FALLBACK,
                        records=created + fallback,
                        notice=self._notify("create", "fallback"),
                    )

                self._log.error("create_failed", error=str(e), status=e.status, created=len(created))
                await self._audit.log_mutation_failed(
                    "create", self._spec.name, str(e), e.status, correlation_id=correlation_id,
                )
                if created:
                    # Keep the siblings that already exist remotely
                    self._schedule_sync()
                return MutationResult(
                    success=False,
                    path=MutationPath.REMOTE,
                    records=created,
                    notice=self._notify("create", "error"),
                )

            self._records = merge_records(self._records, [record], self._spec)
            created.append(record)
            await self._audit.log_record_mutated(
                "create", self._spec.name, record["id"], MutationPath.REMOTE.value, correlation_id,
            )

        self._schedule_sync()
        return MutationResult(
            success=True,
            path=MutationPath.REMOTE,
            records=created,
            notice=self._notify("create", "success", silent),
        )

    async def _update_locally(self, merged: dict[str, Any], path: MutationPath) -> dict[str, Any]:
        record = self._stamp_update(dict(merged))
        self._records = merge_records(self._records, [record], self._spec)
        await self._persist_local()
        await self._audit.log_record_mutated("update", self._spec.name, record["id"], path.value)
        return record

    async def update(
        self,
        record_id: str,
        partial: Mapping[str, Any],
        silent: bool = False,
    ) -> MutationResult:
        """
        Apply a partial update to one record.

        Never re-expands a recurrence and never touches siblings.
        """
        current = self.get(record_id)
        if current is None:
            return self._not_found(record_id)

        validation = self._validator.validate_update(current, partial)
        if not validation.is_valid:
            return await self._reject("update", validation.issues)
        merged = validation.normalized

        if self._use_local_path():
            record = await self._update_locally(merged, MutationPath.LOCAL)
            return MutationResult(
                success=True,
                path=MutationPath.LOCAL,
                records=[record],
                notice=self._notify("update", "success", silent),
            )

        # Only the changed fields travel, with their validated values
        known = self._spec.wire_fields() - {"id"}
        body = {
            key: merged.get(key)
            for key in to_wire_keys(self._spec.record_model, partial)
            if key in known
        }

        generation = self._generation
        try:
            response = await self._call_remote(self._service.update_record, record_id, body)
            if not self._is_current(generation):
                raise Discarded()
            record = self._authoritative(merged, response, record_id)
        except Discarded:
            self._log.info("update_result_discarded", record_id=record_id)
            return MutationResult(success=False, path=MutationPath.REMOTE)
        except RemoteServiceError as e:
            if not self._is_current(generation):
                return MutationResult(success=False, path=MutationPath.REMOTE)
            if is_access_denied(e):
                await self._audit.log_access_denied_fallback(self._spec.name, "update", e.status)
                record = await self._update_locally(merged, MutationPath.LOCAL_FALLBACK)
                return MutationResult(
                    success=True,
                    path=MutationPath.LOCAL_FALLBACK,
                    records=[record],
                    notice=self._notify("update", "fallback"),
                )
            self._log.error("update_failed", record_id=record_id, error=str(e), status=e.status)
            await self._audit.log_mutation_failed(
                "update", self._spec.name, str(e), e.status, record_id=record_id,
            )
            return MutationResult(
                success=False,
                path=MutationPath.REMOTE,
                notice=self._notify("update", "error"),
            )

        self._records = merge_records(self._records, [record], self._spec)
        await self._audit.log_record_mutated("update", self._spec.name, record_id, MutationPath.REMOTE.value)
        self._schedule_sync()
        return MutationResult(
            success=True,
            path=MutationPath.REMOTE,
            records=[record],
            notice=self._notify("update", "success", silent),
        )

    async def _delete_locally(self, record_id: str, path: MutationPath) -> None:
        self._records = remove_record(self._records, record_id)
        await self._persist_local()
        await self._audit.log_record_mutated("delete", self._spec.name, record_id, path.value)

    async def delete(self, record_id: str, silent: bool = False) -> MutationResult:
        """
        Delete one record.

        A remote 404 counts as already deleted.
        """
        current = self.get(record_id)
        if current is None:
            return self._not_found(record_id)

        if self._use_local_path():
            await self._delete_locally(record_id, MutationPath.LOCAL)
            return MutationResult(
                success=True,
                path=MutationPath.LOCAL,
                records=[current],
                notice=self._notify("delete", "success", silent),
            )

        generation = self._generation
        try:
            await self._call_remote(self._service.delete_record, record_id)
        except NotFoundError:
            self._log.info("delete_missing_remotely", record_id=record_id)
        except RemoteServiceError as e:
            if not self._is_current(generation):
                return MutationResult(success=False, path=MutationPath.REMOTE)
            if is_access_denied(e):
                await self._audit.log_access_denied_fallback(self._spec.name, "delete", e.status)
                await self._delete_locally(record_id, MutationPath.LOCAL_FALLBACK)
                return MutationResult(
                    success=True,
                    path=MutationPath.LOCAL_FALLBACK,
                    records=[current],
                    notice=self._notify("delete", "fallback"),
                )
            self._log.error("delete_failed", record_id=record_id, error=str(e), status=e.status)
            await self._audit.log_mutation_failed(
                "delete", self._spec.name, str(e), e.status, record_id=record_id,
            )
            return MutationResult(
                success=False,
                path=MutationPath.REMOTE,
                notice=self._notify("delete", "error"),
            )

        if not self._is_current(generation):
            return MutationResult(success=False, path=MutationPath.REMOTE)
        self._records = remove_record(self._records, record_id)
        await self._audit.log_record_mutated("delete", self._spec.name, record_id, MutationPath.REMOTE.value)
        self._schedule_sync()
        return MutationResult(
            success=True,
            path=MutationPath.REMOTE,
            records=[current],
            notice=self._notify("delete", "success", silent),
        )
