"""
Dual-Mode Store Base

What every PAI store shares, whatever it holds:

- the operating mode decision (guest or access denied -> local storage,
  otherwise the remote service)
- the load state machine with a painted remote cache
- remote calls that always resolve into the storage error taxonomy
- the debounced background sync
- generation tracking so results arriving after reset()/close() are dropped

STATE MACHINE:

    UNINITIALIZED -> GUEST_LOADING -> READY_LOCAL
    UNINITIALIZED -> REMOTE_LOADING -> READY_STALE -> READY_REMOTE
                                                   -> READY_LOCAL  (access denied)
                                                   (stays READY_STALE on other errors)

reset() returns to UNINITIALIZED when the operating mode changes.

Subclasses own the snapshot (what is held in memory) and its JSON shape.
"""

import asyncio
import json
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, Field

from src.audit import AuditLogger
from src.models.validation import ValidationIssue
from src.services.identity import IdentityProvider, OperatingMode
from src.services.storage import (
    LocalStorageInterface,
    RemoteServiceError,
    StorageError,
    TransientRemoteError,
    is_access_denied,
)
from src.store.notices import (
    ACCESS_SUSPENDED_MESSAGE,
    FAILURE_MESSAGES,
    FALLBACK_MESSAGES,
    REMOTE_LOAD_FAILED_MESSAGE,
    SUCCESS_MESSAGES,
    Notice,
    Notifier,
)


logger = structlog.get_logger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    GUEST_LOADING = "guest_loading"
    REMOTE_LOADING = "remote_loading"
    READY_LOCAL = "ready_local"
    READY_STALE = "ready_stale"
    READY_REMOTE = "ready_remote"


class MutationPath(str, Enum):
    """Where a mutation was persisted."""
    LOCAL = "local"
    REMOTE = "remote"
    LOCAL_FALLBACK = "local_fallback"
    NONE = "none"


class MutationResult(BaseModel):
    """Outcome of a create, update or delete."""

    success: bool
    path: MutationPath = MutationPath.NONE
    records: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Records created or updated (the removed record for deletes)"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)
    notice: Optional[Notice] = None


class Discarded(Exception):
    """A remote result arrived after reset() or close()."""


# =============================================================================
# BASE STORE
# =============================================================================

class DualModeStore:
    """
    Base class for stores that live locally or remotely depending on mode.

    Args:
        name: Name used in logs, audit events, notices and local keys
        label: Singular noun used in notices ("Expense", "Category")
        identity: Identity collaborator, consulted at every decision
        local_storage: Synchronous key/value storage
        audit_logger: Audit trail (a private one is created when omitted)
        notifier: Notice side channel (a private one is created when omitted)
        background_sync_delay: Debounce delay in seconds
        guest_user_id: Namespace of local keys when there is no user id
    """

    def __init__(
        self,
        name: str,
        label: str,
        identity: IdentityProvider,
        local_storage: LocalStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
        background_sync_delay: float = 2.0,
        guest_user_id: str = "guest",
    ):
        self._name = name
        self._label = label
        self._identity = identity
        self._local = local_storage
        self._audit = audit_logger or AuditLogger()
        self._notifier = notifier or Notifier()
        self._sync_delay = background_sync_delay
        self._guest_user_id = guest_user_id

        self._state = StoreState.UNINITIALIZED
        self._generation = 0
        self._mounted = True
        self._sync_timer: Optional[asyncio.TimerHandle] = None
        self._sync_tasks: set[asyncio.Task] = set()
        self._log = logger.bind(domain=name)

    # -------------------------------------------------------------------------
    # Snapshot hooks
    # -------------------------------------------------------------------------

    def _local_state_key(self) -> str:
        raise NotImplementedError

    def _remote_cache_key(self) -> str:
        raise NotImplementedError

    def _empty_snapshot(self) -> Any:
        raise NotImplementedError

    def _parse_snapshot(self, raw: Any) -> Optional[Any]:
        """Turn decoded JSON into a snapshot; None when unusable."""
        raise NotImplementedError

    def _current_snapshot(self) -> Any:
        raise NotImplementedError

    def _apply_snapshot(self, snapshot: Any) -> None:
        raise NotImplementedError

    def _dump_snapshot(self, snapshot: Any) -> Any:
        """JSON-serializable form of a snapshot."""
        return snapshot

    def _snapshot_size(self, snapshot: Any) -> int:
        return len(snapshot)

    async def _list_remote(self, token: str) -> Any:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def identity(self) -> IdentityProvider:
        return self._identity

    @property
    def is_loading(self) -> bool:
        return self._state in (StoreState.GUEST_LOADING, StoreState.REMOTE_LOADING)

    @property
    def sync_pending(self) -> bool:
        """True while a background sync is scheduled or running."""
        return self._sync_timer is not None or bool(self._sync_tasks)

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    @property
    def _namespace(self) -> str:
        return self._identity.user_id or self._guest_user_id

    def _is_guest(self) -> bool:
        return self._identity.mode == OperatingMode.GUEST

    def _use_local_path(self) -> bool:
        return self._is_guest() or self._state == StoreState.READY_LOCAL

    def _is_current(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    # -------------------------------------------------------------------------
    # Local persistence
    # -------------------------------------------------------------------------

    def _read_snapshot(self, key: str) -> Optional[Any]:
        """Read a stored snapshot; None when absent or unreadable."""
        try:
            stored = self._local.get_item(key)
        except StorageError as e:
            self._log.error("local_storage_read_failed", key=key, error=str(e))
            return None
        if not stored:
            return None
        try:
            raw = json.loads(stored)
        except ValueError as e:
            self._log.error("local_snapshot_corrupt", key=key, error=str(e))
            return None
        snapshot = self._parse_snapshot(raw)
        if snapshot is None:
            self._log.error("local_snapshot_unexpected_shape", key=key)
        return snapshot

    async def _write_snapshot(self, key: str, snapshot: Any) -> bool:
        try:
            self._local.set_item(key, json.dumps(self._dump_snapshot(snapshot), ensure_ascii=False))
        except StorageError as e:
            # In-memory state stays authoritative for this session
            self._log.warning("local_storage_write_failed", key=key, error=str(e))
            await self._audit.log_local_storage_write_failed(self._name, key, str(e))
            return False
        return True

    async def _persist_local(self) -> None:
        await self._write_snapshot(self._local_state_key(), self._current_snapshot())

    def _load_local_snapshot(self) -> Any:
        snapshot = self._read_snapshot(self._local_state_key())
        return self._empty_snapshot() if snapshot is None else snapshot

    # -------------------------------------------------------------------------
    # Remote access
    # -------------------------------------------------------------------------

    async def _call_remote(self, operation: Callable[..., Any], *args: Any) -> Any:
        """
        Fetch a token and run one remote call.

        Failures outside the storage error taxonomy (a broken token
        provider, a misbehaving service) are raised as TransientRemoteError
        so every caller resolves them like any other remote failure.
        """
        try:
            token = await self._identity.get_token()
            return await operation(token, *args)
        except RemoteServiceError:
            raise
        except Exception as e:
            self._log.error(
                "remote_collaborator_failed",
                operation=getattr(operation, "__name__", repr(operation)),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransientRemoteError(f"{type(e).__name__}: {e}") from e

    async def _fetch_remote(self, generation: int) -> Any:
        """Fetch the full remote snapshot and refresh the remote cache."""
        # Key fixed before awaiting: the identity may change meanwhile
        cache_key = self._remote_cache_key()
        raw = await self._call_remote(self._list_remote)
        snapshot = self._parse_snapshot(raw)
        if snapshot is None:
            snapshot = self._empty_snapshot()
        if self._is_current(generation):
            await self._write_snapshot(cache_key, snapshot)
        return snapshot

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> StoreState:
        """
        Load the snapshot for the current operating mode.

        Cloud mode paints the cached remote snapshot first (READY_STALE),
        then replaces it with the fetched one (READY_REMOTE).
        """
        self._generation += 1
        generation = self._generation
        self._mounted = True

        if self._is_guest():
            self._state = StoreState.GUEST_LOADING
            snapshot = self._load_local_snapshot()
            self._apply_snapshot(snapshot)
            self._state = StoreState.READY_LOCAL
            await self._audit.log_snapshot_loaded(self._name, "local", self._snapshot_size(snapshot))
            return self._state

        self._state = StoreState.REMOTE_LOADING
        cached = self._read_snapshot(self._remote_cache_key())
        if cached is not None:
            self._apply_snapshot(cached)
            self._state = StoreState.READY_STALE
            await self._audit.log_snapshot_loaded(self._name, "cache", self._snapshot_size(cached))

        try:
            snapshot = await self._fetch_remote(generation)
        except RemoteServiceError as e:
            if not self._is_current(generation):
                return self._state
            if is_access_denied(e):
                self._log.warning("remote_access_denied", status=e.status)
                await self._audit.log_access_denied_fallback(self._name, "load", e.status)
                self._notifier.error(ACCESS_SUSPENDED_MESSAGE, self._name)
                self._apply_snapshot(self._load_local_snapshot())
                self._state = StoreState.READY_LOCAL
                return self._state

            self._log.error("remote_load_failed", error=str(e), status=e.status)
            await self._audit.log_remote_load_failed(self._name, str(e), e.status)
            self._notifier.error(REMOTE_LOAD_FAILED_MESSAGE.format(domain=self._name), self._name)
            # Keep whatever the cache painted (possibly nothing)
            self._state = StoreState.READY_STALE
            return self._state

        if not self._is_current(generation):
            return self._state
        self._apply_snapshot(snapshot)
        self._state = StoreState.READY_REMOTE
        await self._audit.log_snapshot_loaded(self._name, "remote", self._snapshot_size(snapshot))
        return self._state

    # -------------------------------------------------------------------------
    # Mutation outcomes
    # -------------------------------------------------------------------------

    def _notify(self, operation: str, level: str, silent: bool = False) -> Optional[Notice]:
        if level == "success":
            if silent:
                return None
            return self._notifier.success(SUCCESS_MESSAGES[operation].format(label=self._label), self._name)
        if level == "fallback":
            return self._notifier.success(FALLBACK_MESSAGES[operation].format(label=self._label), self._name)
        return self._notifier.error(FAILURE_MESSAGES[operation].format(label=self._label.lower()), self._name)

    async def _reject(self, operation: str, issues: list[ValidationIssue]) -> MutationResult:
        await self._audit.log_mutation_rejected(
            operation,
            self._name,
            [issue.model_dump() for issue in issues],
        )
        return MutationResult(success=False, path=MutationPath.NONE, issues=issues)

    # -------------------------------------------------------------------------
    # Background sync
    # -------------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._sync_timer is not None:
            self._sync_timer.cancel()
            self._sync_timer = None

    def _schedule_sync(self) -> None:
        """(Re)start the debounce timer; rapid mutations collapse to one sync."""
        if not self._mounted or self._is_guest():
            return
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._sync_timer = loop.call_later(self._sync_delay, self._start_sync)

    def _start_sync(self) -> None:
        self._sync_timer = None
        task = asyncio.ensure_future(self.sync())
        self._sync_tasks.add(task)
        task.add_done_callback(self._sync_tasks.discard)

    async def sync(self) -> bool:
        """
        Replace the in-memory snapshot with a fresh remote one.

        Returns True when the snapshot was applied.
        """
        if self._is_guest():
            return False
        generation = self._generation
        try:
            snapshot = await self._fetch_remote(generation)
        except Exception as e:
            # Runs as a detached task; nothing may escape it
            self._log.error("background_sync_failed", error=str(e), status=getattr(e, "status", None))
            await self._audit.log_background_sync(self._name, error_message=str(e))
            return False

        if not self._is_current(generation):
            return False
        self._apply_snapshot(snapshot)
        if self._state == StoreState.READY_STALE:
            self._state = StoreState.READY_REMOTE
        await self._audit.log_background_sync(self._name, record_count=self._snapshot_size(snapshot))
        return True

    async def flush(self) -> None:
        """Run a pending background sync now and wait for running ones."""
        if self._sync_timer is not None:
            self._cancel_timer()
            self._start_sync()
        if self._sync_tasks:
            await asyncio.gather(*list(self._sync_tasks), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _cancel_background_work(self) -> None:
        self._cancel_timer()
        for task in list(self._sync_tasks):
            task.cancel()

    async def reset(self, identity: Optional[IdentityProvider] = None) -> None:
        """
        Forget everything after an operating mode change.

        In-flight results from before the reset are discarded.
        """
        self._generation += 1
        self._cancel_background_work()
        if identity is not None:
            self._identity = identity
        self._apply_snapshot(self._empty_snapshot())
        self._state = StoreState.UNINITIALIZED
        self._mounted = True
        await self._audit.log_store_reset(self._name)

    def close(self) -> None:
        """Unmount: cancel the debounce timer and discard in-flight results."""
        self._mounted = False
        self._cancel_background_work()
