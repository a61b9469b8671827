"""Tests for the typed client: wire format against scripted servers."""

from __future__ import annotations

import pytest
from conftest import Reply

from warlot import (
    CallOptions,
    DecodeError,
    InitProjectRequest,
    IssueKeyRequest,
    ResolveProjectRequest,
    RetryError,
    RetryPolicy,
    SQLError,
    SQLRequest,
)

AUTH = {"api_key": "wk_0123456789abcdef", "holder_id": "0xH", "project_name": "demo"}


class TestProjects:
    def test_init_project_decodes_pascal_case(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"ProjectID": "p1", "DBID": "d1", "TxDigest": "tx", "SignatureHex": "ab"}))
        client = make_client(server.url, **AUTH)

        out = client.init_project(InitProjectRequest("0xH", "demo", "0xOWNER", include_pass=True))

        assert (out.project_id, out.db_id, out.tx_digest, out.signature_hex) == ("p1", "d1", "tx", "ab")
        call = server.calls[0]
        assert call.path == "/warlotSql/projects/init"
        assert call.json()["owner_address"] == "0xOWNER"
        assert call.json()["include_pass"] is True
        # lifecycle calls carry no project credentials
        assert "x-api-key" not in call.headers

    def test_issue_api_key_uses_camel_case(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"apiKey": "wk_new", "url": "http://x/p1"}))
        out = make_client(server.url).issue_api_key(IssueKeyRequest("p1", "0xH", "demo", "0xU"))

        assert out.api_key == "wk_new"
        assert server.calls[0].path == "/auth/issue"
        assert server.calls[0].json() == {"projectId": "p1", "projectHolder": "0xH", "projectName": "demo", "user": "0xU"}

    def test_resolve_normalizes_legacy_fields(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"exists_meta": True, "ProjectID": "legacy-p", "DBID": "legacy-d"}))
        out = make_client(server.url).resolve_project(ResolveProjectRequest("0xH", "demo"))

        assert out.exists_meta is True
        assert out.project_id == "legacy-p"
        assert out.db_id == "legacy-d"

    def test_resolve_prefers_modern_fields(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"project_id": "p", "ProjectID": "old", "action": "use_existing"}))
        out = make_client(server.url).resolve_project(ResolveProjectRequest("0xH", "demo"))
        assert out.project_id == "p"
        assert out.action == "use_existing"


class TestSQL:
    def test_exec_sql_sends_auth_and_idempotency_headers(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"ok": True, "row_count": 1}))
        client = make_client(server.url, **AUTH)

        out = client.exec_sql(
            "p/1",
            SQLRequest("INSERT INTO t VALUES (?)", ["a"]),
            CallOptions(idempotency_key="once", headers={"x-trace": "t1"}),
        )

        assert out.ok and out.row_count == 1
        call = server.calls[0]
        assert call.path == "/warlotSql/projects/p%2F1/sql"
        assert call.json() == {"sql": "INSERT INTO t VALUES (?)", "params": ["a"]}
        assert call.headers["x-api-key"] == AUTH["api_key"]
        assert call.headers["x-holder-id"] == "0xH"
        assert call.headers["x-project-name"] == "demo"
        assert call.headers["x-idempotency-key"] == "once"
        assert call.headers["x-trace"] == "t1"
        assert call.headers["user-agent"].startswith("warlot-python/")

    def test_exec_sql_raises_sql_error_on_ok_false(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"ok": False, "error": "no such table: t"}))

        with pytest.raises(SQLError, match="no such table") as excinfo:
            make_client(server.url, **AUTH).exec_sql("p1", SQLRequest("SELECT * FROM t"))
        assert excinfo.value.response.ok is False

    def test_per_call_retry_policy(self, scripted, make_client) -> None:
        server = scripted(Reply(503, ""), Reply(200, {"ok": True}))
        client = make_client(server.url, **AUTH)

        with pytest.raises(RetryError):
            client.exec_sql("p1", SQLRequest("SELECT 1"), CallOptions(retry=RetryPolicy(max_retries=0)))
        assert len(server.calls) == 1

    def test_exec_sql_stream(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"ok": True, "rows": [{"n": 1}, {"n": 2}]}))

        with make_client(server.url, **AUTH).exec_sql_stream("p1", SQLRequest("SELECT n FROM t")) as scanner:
            rows = list(scanner)
        assert rows == [{"n": 1}, {"n": 2}]
        assert scanner.err is None

    def test_exec_sql_stream_rejects_non_object(self, scripted, make_client) -> None:
        server = scripted(Reply(200, "[]"))
        with pytest.raises(DecodeError):
            make_client(server.url, **AUTH).exec_sql_stream("p1", SQLRequest("SELECT 1"))


class TestTables:
    def test_browse_sends_only_positive_paging(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"limit": 5, "offset": 0, "table": "t", "rows": []}))
        client = make_client(server.url, **AUTH)

        client.browse_rows("p1", "my table", limit=5, offset=0)
        client.browse_rows("p1", "t", limit=0, offset=-1)

        assert server.calls[0].path == "/warlotSql/projects/p1/tables/my%20table/rows"
        assert server.calls[0].query == "limit=5"
        assert server.calls[1].query == ""

    def test_open_ended_responses(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"table": "t", "columns": []}))
        client = make_client(server.url, **AUTH)

        assert client.get_table_schema("p1", "t") == {"table": "t", "columns": []}
        assert client.get_project_status("p1") == {"table": "t", "columns": []}
        assert [c.path for c in server.calls] == [
            "/warlotSql/projects/p1/tables/t/schema",
            "/warlotSql/projects/p1/status",
        ]

    def test_commit_posts_empty_object(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"ok": True}))
        assert make_client(server.url, **AUTH).commit_project("p1") == {"ok": True}
        assert server.calls[0].method == "POST"
        assert server.calls[0].json() == {}

    def test_count_and_list(self, scripted, make_client) -> None:
        server = scripted(Reply(200, {"project_id": "p1", "table_count": 2, "tables": ["a", "b"]}))
        project = make_client(server.url, **AUTH).project("p1")

        assert project.count().table_count == 2
        assert project.tables().tables == ["a", "b"]

    def test_open_ended_response_must_be_object(self, scripted, make_client) -> None:
        server = scripted(Reply(200, "[1]"))
        with pytest.raises(DecodeError):
            make_client(server.url, **AUTH).get_project_status("p1")
