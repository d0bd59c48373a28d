"""
HTTP Record and Category Services

Implements RecordServiceInterface and CategoryServiceInterface against the
PAI REST API with requests.

One record service instance per domain. The API wraps bodies in per-domain
envelopes ({"items": [...]}, {"task": {...}}, ...), which are unwrapped here
so stores only ever see plain camelCase record dicts.

Blocking requests calls run in a worker thread (asyncio.to_thread) so every
remote call is a suspension point for the event loop.

DESIGN DECISION: Only list calls are retried (tenacity, transient errors
only). Creates are not idempotent, so a retried POST could create a
duplicate; writes are never retried.
"""

import asyncio
from typing import Any, Optional

import requests
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.services.storage.interface import (
    ACCESS_DENIED_STATUSES,
    AccessDeniedError,
    CategoryServiceInterface,
    NotFoundError,
    RecordServiceInterface,
    RemoteServiceError,
    TransientRemoteError,
)


logger = structlog.get_logger(__name__)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"Request failed with status {response.status_code}"


def raise_for_status(response: requests.Response) -> None:
    """Translate an HTTP error status into the storage error taxonomy."""
    status = response.status_code
    if status < 400:
        return
    message = _error_message(response)
    if status in ACCESS_DENIED_STATUSES:
        raise AccessDeniedError(message, status)
    if status == 404:
        raise NotFoundError(message, status)
    raise RemoteServiceError(message, status)


class _HttpTransport:
    """
    Authenticated JSON calls against one endpoint of the PAI API.

    Args:
        url: Endpoint URL
        timeout_seconds: Per-request timeout
        list_retry_attempts: Total attempts for GET calls
        session: Optional shared requests.Session
        retry_wait: Optional tenacity wait strategy for GET retries
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 15.0,
        list_retry_attempts: int = 3,
        session: Optional[requests.Session] = None,
        retry_wait=None,
    ):
        self._url = url
        self._timeout = timeout_seconds
        self._list_retry_attempts = max(1, list_retry_attempts)
        self._session = session or requests.Session()
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

    @property
    def url(self) -> str:
        return self._url

    def _request(
        self,
        method: str,
        url: str,
        token: str,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.warning("remote_request_failed", method=method, url=url, error=str(e))
            raise TransientRemoteError(f"{method} {url} failed: {e}")

        raise_for_status(response)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise RemoteServiceError(
                f"{method} {url} returned a non-JSON body",
                response.status_code,
            )

    async def _send(
        self,
        method: str,
        url: str,
        token: str,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> Any:
        return await asyncio.to_thread(self._request, method, url, token, payload, params)

    async def _get(self, token: str) -> Any:
        """GET the endpoint, retrying transient failures."""
        body = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._list_retry_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception_type(TransientRemoteError),
            reraise=True,
        ):
            with attempt:
                body = await self._send("GET", self._url, token)
        return body


class HttpRecordService(_HttpTransport, RecordServiceInterface):
    """
    Remote record service for one domain.

    Args:
        path: Domain path relative to the API base ("/tasks")
        list_key: Envelope key of list responses ("tasks")
        item_key: Envelope key of single-record responses ("task")
        base_url: API base URL
        timeout_seconds: Per-request timeout
        list_retry_attempts: Total attempts for list calls
        session: Optional shared requests.Session
        retry_wait: Optional tenacity wait strategy for list retries
    """

    def __init__(
        self,
        path: str,
        list_key: str,
        item_key: str,
        base_url: str,
        timeout_seconds: float = 15.0,
        list_retry_attempts: int = 3,
        session: Optional[requests.Session] = None,
        retry_wait=None,
    ):
        super().__init__(
            base_url.rstrip("/") + "/" + path.strip("/"),
            timeout_seconds=timeout_seconds,
            list_retry_attempts=list_retry_attempts,
            session=session,
            retry_wait=retry_wait,
        )
        self._list_key = list_key
        self._item_key = item_key

    def _unwrap_list(self, body: Any) -> list[dict[str, Any]]:
        if isinstance(body, list):
            items = body
        elif isinstance(body, dict):
            items = body.get(self._list_key) or []
        else:
            items = []
        return [item for item in items if isinstance(item, dict)]

    def _unwrap_item(self, body: Any) -> dict[str, Any]:
        if not isinstance(body, dict):
            raise RemoteServiceError(f"Unexpected response body from {self._url}")
        if self._item_key not in body:
            # Some endpoints (finance updates) answer with the bare record
            return body
        value = body[self._item_key]
        if isinstance(value, list):
            # Finance creates answer with every record the server expanded;
            # the first one is the record just created.
            if not value:
                raise RemoteServiceError(f"Empty {self._item_key!r} envelope from {self._url}")
            value = value[0]
        if not isinstance(value, dict):
            raise RemoteServiceError(f"Unexpected {self._item_key!r} envelope from {self._url}")
        return value

    async def list_records(self, token: str) -> list[dict[str, Any]]:
        return self._unwrap_list(await self._get(token))

    async def create_record(self, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = await self._send("POST", self._url, token, payload)
        return self._unwrap_item(body)

    async def update_record(
        self,
        token: str,
        record_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        body = await self._send("PATCH", f"{self._url}/{record_id}", token, payload)
        if body is None:
            return {}
        return self._unwrap_item(body)

    async def delete_record(self, token: str, record_id: str) -> None:
        await self._send("DELETE", f"{self._url}/{record_id}", token)


class HttpCategoryService(_HttpTransport, CategoryServiceInterface):
    """
    Finance category lists over HTTP.

    GET /finance/categories answers {"categories": {...}} or null;
    adds and removes address one group at a time.
    """

    def __init__(
        self,
        base_url: str,
        path: str = "/finance/categories",
        timeout_seconds: float = 15.0,
        list_retry_attempts: int = 3,
        session: Optional[requests.Session] = None,
        retry_wait=None,
    ):
        super().__init__(
            base_url.rstrip("/") + "/" + path.strip("/"),
            timeout_seconds=timeout_seconds,
            list_retry_attempts=list_retry_attempts,
            session=session,
            retry_wait=retry_wait,
        )

    async def list_categories(self, token: str) -> Optional[dict[str, Any]]:
        body = await self._get(token)
        if isinstance(body, dict) and "categories" in body:
            body = body["categories"]
        return body if isinstance(body, dict) else None

    async def add_category(self, token: str, group: str, category: str) -> None:
        await self._send("POST", f"{self._url}/{group}", token, {"category": category})

    async def remove_category(self, token: str, group: str, category: str) -> None:
        await self._send("DELETE", f"{self._url}/{group}", token, params={"category": category})
