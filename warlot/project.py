"""Project-bound handle forwarding to :class:`~warlot.client.Client`."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .models import (
    BrowseRowsResponse,
    CommitResponse,
    ListTablesResponse,
    ProjectStatus,
    Row,
    SQLRequest,
    SQLResponse,
    TableCountResponse,
    TableSchema,
)
from .options import CallOptions
from .pager import Pager

if TYPE_CHECKING:
    from .client import Client
    from .stream import RowScanner


@dataclass(frozen=True)
class Project:
    """A project ID bound to a client."""

    id: str
    client: Client

    def sql(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        options: CallOptions | None = None,
    ) -> SQLResponse:
        return self.client.exec_sql(self.id, SQLRequest(sql, list(params or [])), options)

    def sql_stream(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        options: CallOptions | None = None,
        decode: Callable[[Any], Any] | None = None,
    ) -> RowScanner:
        return self.client.exec_sql_stream(self.id, SQLRequest(sql, list(params or [])), options, decode=decode)

    def tables(self, options: CallOptions | None = None) -> ListTablesResponse:
        return self.client.list_tables(self.id, options)

    def browse(
        self,
        table: str,
        limit: int = 0,
        offset: int = 0,
        options: CallOptions | None = None,
    ) -> BrowseRowsResponse:
        return self.client.browse_rows(self.id, table, limit, offset, options)

    def schema(self, table: str, options: CallOptions | None = None) -> TableSchema:
        return self.client.get_table_schema(self.id, table, options)

    def count(self, options: CallOptions | None = None) -> TableCountResponse:
        return self.client.get_table_count(self.id, options)

    def status(self, options: CallOptions | None = None) -> ProjectStatus:
        return self.client.get_project_status(self.id, options)

    def commit(self, options: CallOptions | None = None) -> CommitResponse:
        return self.client.commit_project(self.id, options)

    def pager(self, table: str, limit: int, options: CallOptions | None = None) -> Pager[Row]:
        """Iterate a table page by page, starting at offset 0."""

        def fetch(limit: int, offset: int) -> list[Row]:
            return self.browse(table, limit, offset, options).rows

        return Pager(fetch, limit)
