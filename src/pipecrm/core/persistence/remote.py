"""
Remote table adapter (PostgREST-compatible HTTP API).

Talks to a hosted Postgres table through its REST gateway:

    GET    /rest/v1/{table}?select=*&order=updated_at.desc   list all
    POST   /rest/v1/{table}   (Prefer: resolution=merge-duplicates)   upsert
    PATCH  /rest/v1/{table}?id=eq.{id}                        partial update
    DELETE /rest/v1/{table}?id=eq.{id}                        delete

Expected table columns: id (text primary key), name, status, phone, email,
website, notes (text), tasks, onboarding (jsonb), created_at, updated_at
(timestamptz).

Every failure (transport error, non-2xx status, malformed body) surfaces
as PersistenceTransientError. Requests are never retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from pipecrm.core.accounts.models import DEFAULT_STAGES, Account
from pipecrm.core.exceptions import PersistenceTransientError

from .adapter import register_adapter
from .normalize import account_from_row, account_to_row

if TYPE_CHECKING:
    from pipecrm.core.config.models import RemoteConfig

logger = logging.getLogger(__name__)


@register_adapter("remote")
class RemoteAdapter:
    """
    Persistence adapter for a remote accounts table.

    Example:
        >>> adapter = RemoteAdapter("https://xyz.example.co", api_key="anon-key")
        >>> accounts = adapter.load_all()
        >>> adapter.patch(accounts[0].id, {"status": "Live"})
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = "accounts",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        default_status: str = DEFAULT_STAGES[0],
    ) -> None:
        """
        Initialize the remote adapter.

        Args:
            base_url: Project URL (e.g., https://xyz.example.co)
            api_key: API key sent as ``apikey`` and bearer token
            table: Table name
            timeout: Per-request timeout in seconds
            client: Pre-built httpx client (tests inject a MockTransport)
            default_status: Status for rows that have none
        """
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.default_status = default_status
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls, config: RemoteConfig, default_status: str = DEFAULT_STAGES[0]) -> RemoteAdapter:
        return cls(
            base_url=config.url or "",
            api_key=config.api_key or "",
            table=config.table,
            timeout=config.timeout,
            default_status=default_status,
        )

    @property
    def adapter_name(self) -> str:
        return "remote"

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        logger.debug("%s %s params=%s", method, self.endpoint, params)
        try:
            response = self._client.request(
                method,
                self.endpoint,
                params=params,
                json=json,
                headers=self._headers(prefer),
            )
        except httpx.HTTPError as e:
            raise PersistenceTransientError(
                "remote", f"{method} {self.table} failed: {e}", method=method
            ) from e

        if response.is_error:
            detail = response.text[:200]
            raise PersistenceTransientError(
                "remote",
                f"{method} {self.table} returned HTTP {response.status_code}: {detail}",
                method=method,
                status_code=response.status_code,
            )
        return response

    def load_all(self) -> list[Account]:
        response = self._request("GET", params={"select": "*", "order": "updated_at.desc"})
        try:
            rows = response.json()
        except ValueError as e:
            raise PersistenceTransientError("remote", f"Malformed response body: {e}") from e
        if not isinstance(rows, list):
            raise PersistenceTransientError(
                "remote", f"Expected a list of rows, got {type(rows).__name__}"
            )
        return [account_from_row(row, default_status=self.default_status) for row in rows]

    def upsert(self, account: Account) -> None:
        self._request(
            "POST",
            json=[account_to_row(account)],
            prefer="resolution=merge-duplicates,return=minimal",
        )

    def patch(self, account_id: str, fields: Mapping[str, Any]) -> None:
        self._request(
            "PATCH",
            params={"id": f"eq.{account_id}"},
            json=dict(fields),
            prefer="return=minimal",
        )

    def delete(self, account_id: str) -> None:
        self._request("DELETE", params={"id": f"eq.{account_id}"}, prefer="return=minimal")

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
