"""Cloudflare D1 database backend."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from rbac_authority.exceptions import ConstraintViolationError, StorageError
from rbac_authority.protocols.database import Row, bind_named_params

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"


class CloudflareD1Database:
    """Cloudflare D1 database backend.

    Uses the Cloudflare D1 query API for SQL database operations.
    D1 speaks the SQLite dialect and enforces foreign keys by default.
    """

    def __init__(
        self,
        account_id: str | None = None,
        database_id: str | None = None,
        api_token: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize D1 database.

        Args:
            account_id: Cloudflare account ID
            database_id: D1 database ID
            api_token: Cloudflare API token
            base_url: Cloudflare API base URL
            timeout_seconds: HTTP timeout per query
            transport: Optional httpx transport (used by tests)
            **kwargs: Ignored
        """
        if not account_id or not database_id or not api_token:
            raise ValueError(
                "CloudflareD1Database requires account_id, database_id and api_token. "
                "Use 'sqlite' backend for development."
            )

        self.account_id = account_id
        self.database_id = database_id
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def query_url(self) -> str:
        """URL of the D1 query endpoint."""
        return f"{self.base_url}/accounts/{self.account_id}/d1/database/{self.database_id}/query"

    def _headers(self) -> dict[str, str]:
        """Get API request headers."""
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def _query(self, sql: str, values: tuple[Any, ...]) -> list[dict[str, Any]]:
        """Run one statement and return its result rows.

        Raises:
            ConstraintViolationError: If D1 reports a failed constraint
            StorageError: If D1 rejects the query for any other reason
        """
        async with httpx.AsyncClient(
            transport=self._transport, timeout=self.timeout_seconds
        ) as client:
            response = await client.post(
                self.query_url,
                headers=self._headers(),
                json={"sql": sql, "params": list(values)},
            )

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.status_code != 200 or not payload.get("success", False):
            errors = payload.get("errors") or [{}]
            message = errors[0].get("message") or f"HTTP {response.status_code}"
            if ConstraintViolationError.is_constraint_message(message):
                raise ConstraintViolationError.from_message(message)
            raise StorageError(f"D1 query failed: {message}")

        results = payload.get("result") or [{}]
        return results[0].get("results") or []

    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
    ) -> list[Row]:
        """Execute a query and return results."""
        sql, values = bind_named_params(query, params)
        rows = await self._query(sql, values)
        return [Row(_data=dict(row)) for row in rows]

    async def execute_many(
        self,
        query: str,
        params_list: list[dict[str, Any]],
    ) -> None:
        """Execute a query multiple times with different parameters."""
        for params in params_list:
            sql, values = bind_named_params(query, params)
            await self._query(sql, values)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["CloudflareD1Database"]:
        """Start a transaction.

        The D1 HTTP API has no interactive transactions, so statements run
        as they are issued. Integrity relies on the schema's unique indexes
        and foreign keys.
        """
        yield self

    async def close(self) -> None:
        """No-op; a client is opened per query."""
        pass
