"""Tests for the mock gateway's project registry."""

from __future__ import annotations

import pytest

try:
    from warlot.server import ProjectManager, ServerError, split_statements

    HAS_SERVER_DEPS = True
except ImportError:
    HAS_SERVER_DEPS = False


pytestmark = pytest.mark.skipif(
    not HAS_SERVER_DEPS, reason="Server dependencies not installed"
)


@pytest.fixture
def manager():
    manager = ProjectManager()
    yield manager
    manager.close()


@pytest.fixture
def record(manager):
    return manager.init_project("0xH", "demo", "0xO")


class TestSplitStatements:
    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT 1",
            "WITH t AS (SELECT 1 AS a) SELECT a FROM t",
            "DESCRIBE products",
            "PRAGMA table_info('products')",
        ],
    )
    def test_row_returning(self, sql: str) -> None:
        (statement,) = split_statements(sql, has_params=False)
        assert statement.returns_rows is True
        assert statement.writes is False

    @pytest.mark.parametrize(
        "sql",
        [
            "CREATE TABLE t (id INTEGER)",
            "INSERT INTO t VALUES (?)",
            "UPDATE t SET id = 2",
            "DELETE FROM t",
            "DROP TABLE t",
        ],
    )
    def test_writes(self, sql: str) -> None:
        (statement,) = split_statements(sql, has_params=False)
        assert statement.writes is True
        assert statement.returns_rows is False

    def test_single_statement_keeps_its_text(self) -> None:
        sql = "select  id from   t where id = ?"
        assert split_statements(sql, has_params=True)[0].sql == sql

    def test_script_is_split(self) -> None:
        statements = split_statements("CREATE TABLE t (id INTEGER); INSERT INTO t VALUES (1); SELECT * FROM t", False)
        assert [s.returns_rows for s in statements] == [False, False, True]

    def test_trailing_semicolon_is_one_statement(self) -> None:
        assert len(split_statements("SELECT 1;", has_params=False)) == 1

    def test_script_with_params_is_rejected(self) -> None:
        with pytest.raises(ServerError) as excinfo:
            split_statements("SELECT ?; SELECT ?", has_params=True)
        assert (excinfo.value.status_code, excinfo.value.code) == (400, "params_with_script")

    def test_empty_script_is_rejected(self) -> None:
        with pytest.raises(ServerError) as excinfo:
            split_statements(";", has_params=False)
        assert excinfo.value.code == "empty_sql"


class TestRegistry:
    def test_init_requires_fields(self, manager) -> None:
        with pytest.raises(ServerError) as excinfo:
            manager.init_project("0xH", "", "0xO")
        assert excinfo.value.status_code == 400

    def test_duplicate_name_conflicts(self, manager, record) -> None:
        with pytest.raises(ServerError) as excinfo:
            manager.init_project("0xH", "demo", "0xO")
        assert excinfo.value.status_code == 409
        # the same name is free for another holder
        assert manager.init_project("0xOther", "demo", "0xO").project_id != record.project_id

    def test_resolve(self, manager, record) -> None:
        assert manager.resolve("0xH", "demo") is record
        assert manager.resolve("0xH", "missing") is None

    def test_unknown_project(self, manager) -> None:
        with pytest.raises(ServerError) as excinfo:
            manager.get("nope")
        assert excinfo.value.status_code == 404

    def test_issue_and_check_key(self, manager, record) -> None:
        key = manager.issue_key(record.project_id, "0xH", "demo")
        assert key.startswith("wk_")
        manager.check_key(record.project_id, key)

        with pytest.raises(ServerError) as excinfo:
            manager.check_key(record.project_id, "wk_other")
        assert excinfo.value.status_code == 403

        with pytest.raises(ServerError) as excinfo:
            manager.check_key(record.project_id, "")
        assert excinfo.value.status_code == 401

    def test_issue_key_checks_ownership(self, manager, record) -> None:
        with pytest.raises(ServerError) as excinfo:
            manager.issue_key(record.project_id, "0xIntruder", "demo")
        assert excinfo.value.status_code == 403

    def test_writer_pass_only_with_include_pass(self, manager) -> None:
        assert manager.init_project("0xH", "a", "0xO", include_pass=True).writer_pass_id
        assert manager.init_project("0xH", "b", "0xO").writer_pass_id == ""


class TestExecution:
    def test_write_counts_rows_and_pending_changes(self, manager, record) -> None:
        pid = record.project_id
        assert manager.run(pid, "CREATE TABLE t (id INTEGER)").cursor is None
        result = manager.run(pid, "INSERT INTO t VALUES (1), (2)")
        assert result.row_count == 2
        assert manager.status(pid)["pending_changes"] == 2

    def test_select_returns_open_cursor(self, manager, record) -> None:
        pid = record.project_id
        manager.run(pid, "CREATE TABLE t (id INTEGER, name TEXT)")
        manager.run(pid, "INSERT INTO t VALUES (?, ?)", [1, "ada"])

        result = manager.run(pid, "SELECT id, name FROM t WHERE id = ?", [1])
        try:
            assert result.columns == ["id", "name"]
            assert result.cursor.fetchall() == [(1, "ada")]
        finally:
            result.cursor.close()

    def test_sql_error(self, manager, record) -> None:
        with pytest.raises(ServerError) as excinfo:
            manager.run(record.project_id, "SELECT * FROM nowhere")
        assert (excinfo.value.status_code, excinfo.value.code) == (400, "sql_error")

    def test_projects_are_isolated(self, manager, record) -> None:
        other = manager.init_project("0xH", "other", "0xO")
        manager.run(record.project_id, "CREATE TABLE only_here (id INTEGER)")
        assert manager.list_tables(record.project_id) == ["only_here"]
        assert manager.list_tables(other.project_id) == []

    def test_schema_and_missing_table(self, manager, record) -> None:
        pid = record.project_id
        manager.run(pid, "CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT NOT NULL, note TEXT)")

        schema = manager.table_schema(pid, "t")
        assert schema["table"] == "t"
        columns = {c["name"]: c for c in schema["columns"]}
        assert list(columns) == ["id", "name", "note"]
        assert columns["id"]["primary_key"] is True
        assert columns["name"]["nullable"] is False
        assert columns["note"]["nullable"] is True

        with pytest.raises(ServerError) as excinfo:
            manager.browse(pid, "missing", 10, 0)
        assert excinfo.value.status_code == 404

    def test_commit_resets_pending_changes(self, manager, record) -> None:
        pid = record.project_id
        manager.run(pid, "CREATE TABLE t (id INTEGER)")

        first = manager.commit(pid)
        assert (first["sequence"], first["committed_changes"]) == (1, 1)
        second = manager.commit(pid)
        assert (second["sequence"], second["committed_changes"]) == (2, 0)

        status = manager.status(pid)
        assert status["commit_count"] == 2
        assert status["last_commit"] == second
        assert status["pending_changes"] == 0

    def test_file_backed_databases(self, tmp_path) -> None:
        manager = ProjectManager(str(tmp_path))
        try:
            record = manager.init_project("0xH", "demo", "0xO")
            manager.run(record.project_id, "CREATE TABLE t (id INTEGER)")
        finally:
            manager.close()
        assert (tmp_path / f"{record.project_id}.duckdb").exists()
