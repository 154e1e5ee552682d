"""Tests for Cloudflare D1 database backend."""

import json

import httpx
import pytest

from rbac_authority.backends.database.cloudflare_d1 import CloudflareD1Database
from rbac_authority.exceptions import ConstraintViolationError, StorageError


def d1_success(rows: list[dict]) -> httpx.Response:
    """Build a successful D1 query response."""
    return httpx.Response(
        200,
        json={
            "result": [{"results": rows, "success": True, "meta": {}}],
            "success": True,
            "errors": [],
            "messages": [],
        },
    )


def d1_failure(message: str, status_code: int = 400) -> httpx.Response:
    """Build a failed D1 query response."""
    return httpx.Response(
        status_code,
        json={
            "result": None,
            "success": False,
            "errors": [{"code": 7500, "message": message}],
            "messages": [],
        },
    )


class RecordingTransport:
    """Collects requests and replies with queued responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responses.pop(0)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_db(recorder: RecordingTransport) -> CloudflareD1Database:
    return CloudflareD1Database(
        account_id="acct-1",
        database_id="db-1",
        api_token="token-1",
        transport=recorder.transport(),
    )


class TestCloudflareD1Init:
    """Tests for CloudflareD1Database construction."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"database_id": "db", "api_token": "t"},
            {"account_id": "a", "api_token": "t"},
            {"account_id": "a", "database_id": "db"},
        ],
    )
    def test_requires_credentials(self, kwargs):
        """Missing account, database or token is rejected."""
        with pytest.raises(ValueError, match="requires"):
            CloudflareD1Database(**kwargs)

    def test_query_url(self):
        """Query URL targets the account and database."""
        db = CloudflareD1Database(
            account_id="acct", database_id="db", api_token="t",
            base_url="https://api.example.com/client/v4/",
        )
        assert db.query_url == "https://api.example.com/client/v4/accounts/acct/d1/database/db/query"


class TestCloudflareD1Database:
    """Tests for CloudflareD1Database queries."""

    @pytest.mark.asyncio
    async def test_execute_sends_positional_params(self):
        """Named params are sent as positional D1 params."""
        recorder = RecordingTransport(d1_success([{"id": 3, "name": "admin"}]))
        db = make_db(recorder)

        rows = await db.execute(
            "SELECT id, name FROM roles WHERE name = :name AND id > :id",
            {"id": 0, "name": "admin"},
        )

        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/client/v4/accounts/acct-1/d1/database/db-1/query"
        assert request.headers["Authorization"] == "Bearer token-1"
        body = json.loads(request.content)
        assert body == {
            "sql": "SELECT id, name FROM roles WHERE name = ? AND id > ?",
            "params": ["admin", 0],
        }
        assert rows[0].id == 3
        assert rows[0].name == "admin"

    @pytest.mark.asyncio
    async def test_execute_without_results(self):
        """Statements without result rows return an empty list."""
        recorder = RecordingTransport(
            httpx.Response(200, json={"result": [{"success": True}], "success": True})
        )
        db = make_db(recorder)

        assert await db.execute("CREATE TABLE t (id INTEGER)") == []
        assert json.loads(recorder.requests[0].content)["params"] == []

    @pytest.mark.asyncio
    async def test_unique_violation(self):
        """D1 unique failures become ConstraintViolationError."""
        recorder = RecordingTransport(
            d1_failure("UNIQUE constraint failed: user_roles.user_id, user_roles.role_id: SQLITE_CONSTRAINT")
        )
        db = make_db(recorder)

        with pytest.raises(ConstraintViolationError) as exc_info:
            await db.execute("INSERT INTO user_roles (user_id, role_id) VALUES (:u, :r)", {"u": 1, "r": 1})

        assert exc_info.value.kind == "unique"

    @pytest.mark.asyncio
    async def test_foreign_key_violation(self):
        """D1 foreign key failures are classified."""
        recorder = RecordingTransport(d1_failure("FOREIGN KEY constraint failed: SQLITE_CONSTRAINT"))
        db = make_db(recorder)

        with pytest.raises(ConstraintViolationError) as exc_info:
            await db.execute("INSERT INTO user_roles (user_id, role_id) VALUES (1, 99)")

        assert exc_info.value.kind == "foreign_key"

    @pytest.mark.asyncio
    async def test_other_failure(self):
        """Other D1 failures raise StorageError."""
        recorder = RecordingTransport(d1_failure("no such table: roles: SQLITE_ERROR"))
        db = make_db(recorder)

        with pytest.raises(StorageError, match="no such table") as exc_info:
            await db.execute("SELECT * FROM roles")

        assert not isinstance(exc_info.value, ConstraintViolationError)

    @pytest.mark.asyncio
    async def test_non_json_error(self):
        """Non-JSON error bodies still raise StorageError."""
        recorder = RecordingTransport(httpx.Response(502, text="Bad Gateway"))
        db = make_db(recorder)

        with pytest.raises(StorageError, match="HTTP 502"):
            await db.execute("SELECT 1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [[], ["unexpected"], "ok", None])
    async def test_non_object_json_body(self, body):
        """JSON bodies that are not objects raise StorageError."""
        recorder = RecordingTransport(httpx.Response(200, json=body))
        db = make_db(recorder)

        with pytest.raises(StorageError, match="HTTP 200"):
            await db.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self):
        """Network errors from httpx are not wrapped."""

        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        db = CloudflareD1Database(
            account_id="a", database_id="d", api_token="t",
            transport=httpx.MockTransport(fail),
        )

        with pytest.raises(httpx.ConnectError):
            await db.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_execute_many(self):
        """execute_many issues one query per parameter set."""
        recorder = RecordingTransport(d1_success([]), d1_success([]))
        db = make_db(recorder)

        await db.execute_many(
            "INSERT INTO roles (name) VALUES (:name)",
            [{"name": "a"}, {"name": "b"}],
        )

        params = [json.loads(r.content)["params"] for r in recorder.requests]
        assert params == [["a"], ["b"]]

    @pytest.mark.asyncio
    async def test_transaction_yields_self(self):
        """transaction() yields the backend and issues no requests."""
        recorder = RecordingTransport()
        db = make_db(recorder)

        async with db.transaction() as tx:
            assert tx is db

        assert recorder.requests == []
        await db.close()
