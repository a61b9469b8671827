"""Client for the warlot SQL gateway.

The client wraps one :class:`~warlot.transport.Executor` and exposes one
method per gateway endpoint:

- Projects: init_project, issue_api_key, resolve_project
- SQL: exec_sql, exec_sql_stream
- Tables: list_tables, browse_rows, get_table_schema, get_table_count
- Lifecycle: get_project_status, commit_project

Project-scoped calls carry the configured ``x-api-key``, ``x-holder-id`` and
``x-project-name`` headers; the project lifecycle calls (init, issue, resolve)
do not.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any, Self, TypeVar
from urllib.parse import quote

import requests

from .errors import SQLError
from .models import (
    BrowseRowsResponse,
    CommitResponse,
    InitProjectRequest,
    InitProjectResponse,
    IssueKeyRequest,
    IssueKeyResponse,
    ListTablesResponse,
    ProjectStatus,
    ResolveProjectRequest,
    ResolveProjectResponse,
    SQLRequest,
    SQLResponse,
    TableCountResponse,
    TableSchema,
    open_mapping,
)
from .options import CallOptions, ClientConfig
from .project import Project
from .stream import RowScanner
from .transport import Executor, RequestDescriptor
from .transport.headers import (
    API_KEY_HEADER,
    HOLDER_ID_HEADER,
    PROJECT_NAME_HEADER,
    merge_headers,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _segment(value: str) -> str:
    return quote(value, safe="")


def _project_path(project_id: str, *parts: str) -> str:
    path = f"/warlotSql/projects/{_segment(project_id)}"
    for part in parts:
        path += "/" + part
    return path


class Client:
    """Typed client for one gateway.

    Args:
        config: Client configuration; defaults to :class:`ClientConfig` defaults
        session: ``requests.Session`` to reuse; the client creates and owns one
            when omitted

    Example::

        with Client(ClientConfig(api_key="...")) as client:
            resp = client.exec_sql(project_id, SQLRequest("SELECT 1 AS one"))
    """

    def __init__(self, config: ClientConfig | None = None, session: requests.Session | None = None) -> None:
        self.config = config or ClientConfig()
        self._executor = Executor(
            self.config.base_url,
            session=session,
            user_agent=self.config.user_agent or None,
            timeout=self.config.timeout,
            policy=self.config.retry,
            before_hooks=self.config.before_hooks,
            after_hooks=self.config.after_hooks,
        )

    # =========================================================================
    # Projects
    # =========================================================================

    def init_project(self, request: InitProjectRequest, options: CallOptions | None = None) -> InitProjectResponse:
        """Create a project and return its identifiers."""
        return self._call(
            "POST",
            "/warlotSql/projects/init",
            options,
            payload=request.to_dict(),
            decode=InitProjectResponse.from_dict,
        )

    def issue_api_key(self, request: IssueKeyRequest, options: CallOptions | None = None) -> IssueKeyResponse:
        """Issue an API key for a project."""
        return self._call(
            "POST",
            "/auth/issue",
            options,
            payload=request.to_dict(),
            decode=IssueKeyResponse.from_dict,
        )

    def resolve_project(
        self, request: ResolveProjectRequest, options: CallOptions | None = None
    ) -> ResolveProjectResponse:
        """Look up a project by holder and name."""
        return self._call(
            "POST",
            "/warlotSql/projects/resolve",
            options,
            payload=request.to_dict(),
            decode=ResolveProjectResponse.from_dict,
        )

    def project(self, project_id: str) -> Project:
        """Return a handle bound to ``project_id``."""
        return Project(project_id, self)

    # =========================================================================
    # SQL
    # =========================================================================

    def exec_sql(self, project_id: str, request: SQLRequest, options: CallOptions | None = None) -> SQLResponse:
        """Execute one SQL statement.

        Raises:
            SQLError: The gateway answered 2xx with ``ok: false``
        """
        response = self._call(
            "POST",
            _project_path(project_id, "sql"),
            options,
            payload=request.to_dict(),
            decode=SQLResponse.from_dict,
            auth=True,
        )
        if not response.ok and response.error:
            raise SQLError(response.error, response)
        return response

    def exec_sql_stream(
        self,
        project_id: str,
        request: SQLRequest,
        options: CallOptions | None = None,
        field: str = "rows",
        decode: Callable[[Any], Any] | None = None,
    ) -> RowScanner:
        """Execute a SELECT and stream its rows.

        The returned scanner has already consumed the opening ``{`` of the
        body. The caller must close it (or use it as a context manager).

        Raises:
            DecodeError: The body is not a JSON object
        """
        options = options or CallOptions()
        response = self._executor.execute_streaming(
            self._descriptor("POST", _project_path(project_id, "sql"), options, request.to_dict(), auth=True),
            options.retry,
            cancel=options.cancel,
            deadline=options.deadline,
        )
        scanner = RowScanner.from_response(response, field=field, decode=decode)
        try:
            scanner.start()
        except BaseException:
            scanner.close()
            raise
        return scanner

    # =========================================================================
    # Tables
    # =========================================================================

    def list_tables(self, project_id: str, options: CallOptions | None = None) -> ListTablesResponse:
        return self._call(
            "GET",
            _project_path(project_id, "tables"),
            options,
            decode=ListTablesResponse.from_dict,
            auth=True,
        )

    def browse_rows(
        self,
        project_id: str,
        table: str,
        limit: int = 0,
        offset: int = 0,
        options: CallOptions | None = None,
    ) -> BrowseRowsResponse:
        """Fetch one page of a table's rows.

        Only positive ``limit`` and ``offset`` values are sent; otherwise the
        gateway applies its own defaults.
        """
        params = {}
        if limit > 0:
            params["limit"] = limit
        if offset > 0:
            params["offset"] = offset
        return self._call(
            "GET",
            _project_path(project_id, "tables", _segment(table), "rows"),
            options,
            params=params or None,
            decode=BrowseRowsResponse.from_dict,
            auth=True,
        )

    def get_table_schema(self, project_id: str, table: str, options: CallOptions | None = None) -> TableSchema:
        return self._call(
            "GET",
            _project_path(project_id, "tables", _segment(table), "schema"),
            options,
            decode=open_mapping,
            auth=True,
        )

    def get_table_count(self, project_id: str, options: CallOptions | None = None) -> TableCountResponse:
        return self._call(
            "GET",
            _project_path(project_id, "tables", "count"),
            options,
            decode=TableCountResponse.from_dict,
            auth=True,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def get_project_status(self, project_id: str, options: CallOptions | None = None) -> ProjectStatus:
        return self._call(
            "GET",
            _project_path(project_id, "status"),
            options,
            decode=open_mapping,
            auth=True,
        )

    def commit_project(self, project_id: str, options: CallOptions | None = None) -> CommitResponse:
        """Persist the project's pending changes."""
        return self._call(
            "POST",
            _project_path(project_id, "commit"),
            options,
            payload={},
            decode=open_mapping,
            auth=True,
        )

    # =========================================================================
    # Plumbing
    # =========================================================================

    def close(self) -> None:
        self._executor.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def _auth_headers(self) -> dict[str, str]:
        headers = {}
        if self.config.api_key:
            headers[API_KEY_HEADER] = self.config.api_key
        if self.config.holder_id:
            headers[HOLDER_ID_HEADER] = self.config.holder_id
        if self.config.project_name:
            headers[PROJECT_NAME_HEADER] = self.config.project_name
        return headers

    def _descriptor(
        self,
        method: str,
        path: str,
        options: CallOptions,
        payload: Any = None,
        params: dict[str, Any] | None = None,
        auth: bool = False,
    ) -> RequestDescriptor:
        auth_headers = self._auth_headers() if auth else {}
        return RequestDescriptor(
            method=method,
            path=path,
            headers=merge_headers(auth_headers, options.build_headers()),
            payload=payload,
            params=params,
        )

    def _call(
        self,
        method: str,
        path: str,
        options: CallOptions | None,
        decode: Callable[[Any], T],
        payload: Any = None,
        params: dict[str, Any] | None = None,
        auth: bool = False,
    ) -> T:
        options = options or CallOptions()
        descriptor = self._descriptor(method, path, options, payload, params, auth)
        result = self._executor.execute(
            descriptor,
            options.retry,
            decode,
            cancel=options.cancel,
            deadline=options.deadline,
        )
        if result is None:
            # Empty success body
            logger.debug("%s %s returned an empty body", method, path)
            return decode({})
        return result
