"""HTTP request handlers for the mock gateway.

Handlers:
    init_project: POST /warlotSql/projects/init
    resolve_project: POST /warlotSql/projects/resolve
    issue_key: POST /auth/issue
    execute_sql: POST /warlotSql/projects/{project_id}/sql
    list_tables: GET /warlotSql/projects/{project_id}/tables
    count_tables: GET /warlotSql/projects/{project_id}/tables/count
    browse_rows: GET /warlotSql/projects/{project_id}/tables/{table}/rows
    table_schema: GET /warlotSql/projects/{project_id}/tables/{table}/schema
    project_status: GET /warlotSql/projects/{project_id}/status
    commit_project: POST /warlotSql/projects/{project_id}/commit
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING, Any, Iterator

from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse, StreamingResponse

from .serializers import serialize_rows, stream_rows_document
from .shared import ServerError, get_projects

if TYPE_CHECKING:
    import duckdb
    from starlette.requests import Request

logger = logging.getLogger(__name__)

DEFAULT_BROWSE_LIMIT = 50
MAX_BROWSE_LIMIT = 1000


async def _json_body(request: Request) -> dict[str, Any]:
    body = await request.body()
    if not body:
        return {}
    try:
        data = await request.json()
    except ValueError:
        raise ServerError(400, "invalid_json", "request body is not valid JSON") from None
    if not isinstance(data, dict):
        raise ServerError(400, "invalid_json", "request body must be a JSON object")
    return data


def _int_param(request: Request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ServerError(400, "invalid_request", f"{name} must be an integer") from None
    return value if value >= 0 else default


def _drain(cursor: duckdb.DuckDBPyConnection, batch_size: int) -> Iterator[list[tuple]]:
    try:
        while True:
            batch = cursor.fetchmany(batch_size)
            if not batch:
                return
            yield batch
    finally:
        cursor.close()


# =============================================================================
# Projects
# =============================================================================


async def init_project(request: Request) -> JSONResponse:
    """Create a project and answer with its (PascalCase) identifiers."""
    body = await _json_body(request)
    record = await run_in_threadpool(
        get_projects(request).init_project,
        str(body.get("holder_id", "")),
        str(body.get("project_name", "")),
        str(body.get("owner_address", "")),
        bool(body.get("include_pass", False)),
        bool(body.get("deletable", False)),
    )
    digest = hashlib.sha256(f"{record.project_id}:{record.db_id}".encode()).hexdigest()
    return JSONResponse(
        {
            "ProjectID": record.project_id,
            "DBID": record.db_id,
            "WriterPassID": record.writer_pass_id,
            "BlobID": hashlib.sha256(record.db_id.encode()).hexdigest()[:32],
            "TxDigest": hashlib.sha256(f"init:{record.project_id}".encode()).hexdigest(),
            "CSVHashHex": hashlib.sha256(b"").hexdigest(),
            "DigestHex": digest,
            "SignatureHex": hashlib.sha256(f"{digest}:{record.owner_address}".encode()).hexdigest(),
        }
    )


async def resolve_project(request: Request) -> JSONResponse:
    """Look a project up by holder and name."""
    body = await _json_body(request)
    record = get_projects(request).resolve(str(body.get("holder_id", "")), str(body.get("project_name", "")))
    if record is None:
        return JSONResponse(
            {"exists_meta": False, "exists_chain": False, "project_id": "", "db_id": "", "action": "init"}
        )
    return JSONResponse(
        {
            "exists_meta": True,
            "exists_chain": bool(record.commits),
            "project_id": record.project_id,
            "db_id": record.db_id,
            "action": "use_existing",
        }
    )


async def issue_key(request: Request) -> JSONResponse:
    """Issue an API key for a project owned by the given holder."""
    body = await _json_body(request)
    project_id = str(body.get("projectId", ""))
    if not project_id or not body.get("user"):
        raise ServerError(400, "invalid_request", "projectId and user are required")
    key = await run_in_threadpool(
        get_projects(request).issue_key,
        project_id,
        str(body.get("projectHolder", "")),
        str(body.get("projectName", "")),
    )
    base = str(request.base_url).rstrip("/")
    return JSONResponse({"apiKey": key, "url": f"{base}/warlotSql/projects/{project_id}"})


# =============================================================================
# SQL
# =============================================================================


async def execute_sql(request: Request) -> JSONResponse | StreamingResponse:
    """Execute SQL; row results are streamed in batches."""
    project_id = request.path_params["project_id"]
    body = await _json_body(request)
    sql = body.get("sql")
    params = body.get("params") or []
    if not isinstance(sql, str) or not sql.strip():
        raise ServerError(400, "invalid_request", "sql is required")
    if not isinstance(params, list):
        raise ServerError(400, "invalid_request", "params must be an array")

    logger.debug("project %s executing SQL: %s", project_id, sql)
    result = await run_in_threadpool(get_projects(request).run, project_id, sql, params)

    if result.cursor is None:
        return JSONResponse({"ok": True, "row_count": result.row_count})

    batch_size = request.app.state.stream_batch
    return StreamingResponse(
        stream_rows_document(result.columns, _drain(result.cursor, batch_size)),
        media_type="application/json",
    )


# =============================================================================
# Tables
# =============================================================================


async def list_tables(request: Request) -> JSONResponse:
    tables = await run_in_threadpool(get_projects(request).list_tables, request.path_params["project_id"])
    return JSONResponse({"tables": tables})


async def count_tables(request: Request) -> JSONResponse:
    project_id = request.path_params["project_id"]
    tables = await run_in_threadpool(get_projects(request).list_tables, project_id)
    return JSONResponse({"project_id": project_id, "table_count": len(tables)})


async def browse_rows(request: Request) -> JSONResponse:
    """Return one page of a table.

    Query Parameters:
        limit: Page size (default 50, capped at 1000)
        offset: Rows to skip (default 0)
    """
    project_id = request.path_params["project_id"]
    table = request.path_params["table"]
    limit = min(_int_param(request, "limit", DEFAULT_BROWSE_LIMIT) or DEFAULT_BROWSE_LIMIT, MAX_BROWSE_LIMIT)
    offset = _int_param(request, "offset", 0)

    def fetch() -> list[dict]:
        result = get_projects(request).browse(project_id, table, limit, offset)
        try:
            return serialize_rows(result.columns, result.cursor.fetchall())
        finally:
            result.cursor.close()

    rows = await run_in_threadpool(fetch)
    return JSONResponse({"limit": limit, "offset": offset, "table": table, "rows": rows})


async def table_schema(request: Request) -> JSONResponse:
    schema = await run_in_threadpool(
        get_projects(request).table_schema,
        request.path_params["project_id"],
        request.path_params["table"],
    )
    return JSONResponse(schema)


# =============================================================================
# Lifecycle
# =============================================================================


async def project_status(request: Request) -> JSONResponse:
    status = await run_in_threadpool(get_projects(request).status, request.path_params["project_id"])
    return JSONResponse(status)


async def commit_project(request: Request) -> JSONResponse:
    await _json_body(request)
    receipt = await run_in_threadpool(get_projects(request).commit, request.path_params["project_id"])
    return JSONResponse(receipt)


async def fallback_route(request: Request) -> JSONResponse:
    """Fallback route to log unmatched requests."""
    logger.warning("unmatched request: %s %s", request.method, request.url)
    return JSONResponse({"ok": False, "error": "route not found"}, status_code=404)
