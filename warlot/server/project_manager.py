"""Project registry for the mock gateway.

Each project owns its own DuckDB database. Writes bump a pending-change
counter that a commit resets, mirroring the gateway's
"execute now, anchor later" lifecycle.
"""

from __future__ import annotations

import hashlib
import logging
import os
import secrets
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import duckdb
import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from .shared import ServerError

logger = logging.getLogger(__name__)

# Statements answered with rows rather than a row count
ROW_RETURNING = (exp.Query, exp.Describe, exp.Show, exp.Pragma)
ROW_KEYWORDS = frozenset(["SELECT", "WITH", "VALUES", "FROM", "SHOW", "DESCRIBE", "SUMMARIZE", "PRAGMA", "TABLE", "EXPLAIN"])


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _hex_digest(*parts: Any) -> str:
    return hashlib.sha256(":".join(str(p) for p in parts).encode("utf-8")).hexdigest()


@dataclass
class Statement:
    """One parsed statement of a SQL request."""

    sql: str
    returns_rows: bool
    writes: bool


@dataclass
class ProjectRecord:
    """State of one mock project.

    Attributes:
        project_id: Public project identifier
        db_id: Identifier of the backing database
        holder_id: Owning holder
        project_name: Name, unique per holder
        owner_address: Address the project was created for
        connection: DuckDB connection of the project database
        pending_changes: Write statements executed since the last commit
        commits: Commit receipts, oldest first
        api_keys: Keys accepted for project-scoped calls
    """

    project_id: str
    db_id: str
    holder_id: str
    project_name: str
    owner_address: str
    connection: duckdb.DuckDBPyConnection
    include_pass: bool = False
    deletable: bool = False
    writer_pass_id: str = ""
    created_at: str = field(default_factory=_now)
    pending_changes: int = 0
    commits: list[dict[str, Any]] = field(default_factory=list)
    api_keys: set[str] = field(default_factory=set)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def _returns_rows(expression: exp.Expression) -> bool:
    if isinstance(expression, exp.Command):
        return str(expression.this).upper() in ROW_KEYWORDS
    return isinstance(expression, ROW_RETURNING)


def split_statements(sql: str, has_params: bool) -> list[Statement]:
    """Split ``sql`` into statements and classify each one.

    A single statement keeps its original text; scripts are re-rendered
    statement by statement. Text sqlglot cannot parse is passed to DuckDB
    untouched and classified by its leading keyword.
    """
    try:
        expressions = [e for e in sqlglot.parse(sql, read="duckdb") if e is not None and e.key != "semicolon"]
    except (ParseError, TokenError):
        keyword = sql.lstrip().split(None, 1)[0].upper() if sql.strip() else ""
        returns_rows = keyword in ROW_KEYWORDS
        return [Statement(sql, returns_rows, not returns_rows)]

    if not expressions:
        raise ServerError(400, "empty_sql", "empty SQL statement")
    if len(expressions) > 1 and has_params:
        raise ServerError(400, "params_with_script", "parameters require a single statement")

    statements = []
    for expression in expressions:
        text = sql if len(expressions) == 1 else expression.sql(dialect="duckdb")
        returns_rows = _returns_rows(expression)
        statements.append(Statement(text, returns_rows, not returns_rows))
    return statements


class ProjectManager:
    """Thread-safe registry of mock projects.

    Args:
        db_path: ``:memory:`` for in-memory databases, otherwise a directory
            receiving one ``<project_id>.duckdb`` file per project
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._projects: dict[str, ProjectRecord] = {}
        self._by_name: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Registry
    # =========================================================================

    def init_project(
        self,
        holder_id: str,
        project_name: str,
        owner_address: str,
        include_pass: bool = False,
        deletable: bool = False,
    ) -> ProjectRecord:
        """Create a project.

        Raises:
            ServerError: Missing fields or the name is taken for this holder
        """
        if not holder_id or not project_name or not owner_address:
            raise ServerError(400, "invalid_request", "holder_id, project_name and owner_address are required")

        with self._lock:
            if (holder_id, project_name) in self._by_name:
                raise ServerError(409, "project_exists", f"project {project_name!r} already exists")
            project_id = uuid.uuid4().hex
            record = ProjectRecord(
                project_id=project_id,
                db_id=uuid.uuid4().hex,
                holder_id=holder_id,
                project_name=project_name,
                owner_address=owner_address,
                connection=self._connect(project_id),
                include_pass=include_pass,
                deletable=deletable,
                writer_pass_id=secrets.token_hex(16) if include_pass else "",
            )
            self._projects[project_id] = record
            self._by_name[(holder_id, project_name)] = project_id

        logger.info("created project %s (%s/%s)", project_id, holder_id, project_name)
        return record

    def resolve(self, holder_id: str, project_name: str) -> ProjectRecord | None:
        with self._lock:
            project_id = self._by_name.get((holder_id, project_name))
            return self._projects.get(project_id) if project_id else None

    def get(self, project_id: str) -> ProjectRecord:
        """Return a project.

        Raises:
            ServerError: Unknown project (404)
        """
        with self._lock:
            record = self._projects.get(project_id)
        if record is None:
            raise ServerError(404, "project_not_found", f"project {project_id!r} not found")
        return record

    def issue_key(self, project_id: str, holder_id: str, project_name: str) -> str:
        """Issue an API key after checking the holder owns the project."""
        record = self.get(project_id)
        if record.holder_id != holder_id or record.project_name != project_name:
            raise ServerError(403, "forbidden", "holder or project name does not match project")
        key = "wk_" + secrets.token_hex(20)
        with record.lock:
            record.api_keys.add(key)
        return key

    def check_key(self, project_id: str, key: str) -> None:
        """Validate an API key for a project.

        Raises:
            ServerError: Missing key (401), unknown project (404) or wrong key (403)
        """
        if not key:
            raise ServerError(401, "unauthorized", "missing x-api-key header")
        record = self.get(project_id)
        with record.lock:
            valid = key in record.api_keys
        if not valid:
            raise ServerError(403, "forbidden", "invalid API key for project")

    def close(self) -> None:
        with self._lock:
            records = list(self._projects.values())
            self._projects.clear()
            self._by_name.clear()
        for record in records:
            record.connection.close()

    # =========================================================================
    # SQL
    # =========================================================================

    def run(self, project_id: str, sql: str, params: list[Any] | None = None) -> Result:
        """Run ``sql`` and describe its outcome.

        For a row-returning final statement the result holds an open cursor
        that the caller must close once the rows are consumed.

        Raises:
            ServerError: Parse or execution failure (400)
        """
        record = self.get(project_id)
        statements = split_statements(sql, bool(params))
        cursor = record.connection.cursor()
        affected = 0
        try:
            for statement in statements:
                if params:
                    cursor.execute(statement.sql, list(params))
                else:
                    cursor.execute(statement.sql)
                if statement.writes:
                    affected += _affected_rows(cursor)
                    with record.lock:
                        record.pending_changes += 1
        except duckdb.Error as e:
            cursor.close()
            raise ServerError(400, "sql_error", str(e)) from None

        if statements[-1].returns_rows:
            columns = [column[0] for column in cursor.description or []]
            return Result(cursor=cursor, columns=columns)
        cursor.close()
        return Result(row_count=affected)

    # =========================================================================
    # Tables
    # =========================================================================

    def list_tables(self, project_id: str) -> list[str]:
        record = self.get(project_id)
        with record.connection.cursor() as cursor:
            rows = cursor.execute(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_schema = 'main' AND table_type = 'BASE TABLE' "
                "ORDER BY table_name"
            ).fetchall()
        return [row[0] for row in rows]

    def browse(self, project_id: str, table: str, limit: int, offset: int) -> Result:
        """Open a cursor over one page of ``table``."""
        record = self.get(project_id)
        self._check_table(project_id, table)
        cursor = record.connection.cursor()
        cursor.execute(f"SELECT * FROM {_quote(table)} LIMIT ? OFFSET ?", [limit, offset])
        return Result(cursor=cursor, columns=[column[0] for column in cursor.description or []])

    def table_schema(self, project_id: str, table: str) -> dict[str, Any]:
        record = self.get(project_id)
        self._check_table(project_id, table)
        with record.connection.cursor() as cursor:
            rows = cursor.execute(f"PRAGMA table_info({_literal(table)})").fetchall()
        return {
            "table": table,
            "columns": [
                {
                    "name": name,
                    "type": column_type,
                    "nullable": not notnull,
                    "default": default,
                    "primary_key": bool(pk),
                }
                for _cid, name, column_type, notnull, default, pk in rows
            ],
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def status(self, project_id: str) -> dict[str, Any]:
        record = self.get(project_id)
        table_count = len(self.list_tables(project_id))
        with record.lock:
            last_commit = record.commits[-1] if record.commits else None
            return {
                "project_id": record.project_id,
                "db_id": record.db_id,
                "holder_id": record.holder_id,
                "project_name": record.project_name,
                "owner_address": record.owner_address,
                "deletable": record.deletable,
                "created_at": record.created_at,
                "table_count": table_count,
                "pending_changes": record.pending_changes,
                "commit_count": len(record.commits),
                "last_commit": last_commit,
            }

    def commit(self, project_id: str) -> dict[str, Any]:
        """Anchor pending changes and reset the counter."""
        record = self.get(project_id)
        with record.lock:
            sequence = len(record.commits) + 1
            committed_at = _now()
            receipt = {
                "ok": True,
                "project_id": record.project_id,
                "sequence": sequence,
                "committed_changes": record.pending_changes,
                "committed_at": committed_at,
                "tx_digest": _hex_digest(record.project_id, sequence, record.pending_changes, committed_at),
            }
            record.commits.append(receipt)
            record.pending_changes = 0
        logger.info("committed project %s (sequence %d)", project_id, sequence)
        return receipt

    # =========================================================================
    # Helpers
    # =========================================================================

    def _connect(self, project_id: str) -> duckdb.DuckDBPyConnection:
        if self._db_path == ":memory:":
            return duckdb.connect(":memory:")
        os.makedirs(self._db_path, exist_ok=True)
        return duckdb.connect(os.path.join(self._db_path, f"{project_id}.duckdb"))

    def _check_table(self, project_id: str, table: str) -> None:
        if table not in self.list_tables(project_id):
            raise ServerError(404, "table_not_found", f"table {table!r} not found")


@dataclass
class Result:
    """Outcome of a SQL call: an open cursor with its columns, or a row count."""

    cursor: duckdb.DuckDBPyConnection | None = None
    columns: list[str] = field(default_factory=list)
    row_count: int = 0


def _affected_rows(cursor: duckdb.DuckDBPyConnection) -> int:
    description = cursor.description
    if not description or str(description[0][0]).lower() != "count":
        return 0
    row = cursor.fetchone()
    return int(row[0]) if row and row[0] is not None else 0


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"
