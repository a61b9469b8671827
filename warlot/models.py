"""Request and response shapes for the gateway endpoints.

Field names follow the wire format of each endpoint, which mixes
snake_case, camelCase and (legacy) PascalCase keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

Row = dict[str, Any]

# Open-ended shapes; the backend is free to evolve them
TableSchema = dict[str, Any]
ProjectStatus = dict[str, Any]
CommitResponse = dict[str, Any]


# =============================================================================
# Projects
# =============================================================================


@dataclass
class InitProjectRequest:
    holder_id: str
    project_name: str
    owner_address: str
    epoch_set: int = 0
    cycle_end: int = 0
    writers_len: int = 0
    track_back_len: int = 0
    draft_epoch_dur: int = 0
    include_pass: bool = False
    deletable: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "holder_id": self.holder_id,
            "project_name": self.project_name,
            "owner_address": self.owner_address,
            "epoch_set": self.epoch_set,
            "cycle_end": self.cycle_end,
            "writers_len": self.writers_len,
            "track_back_len": self.track_back_len,
            "draft_epoch_dur": self.draft_epoch_dur,
            "include_pass": self.include_pass,
            "deletable": self.deletable,
        }


@dataclass
class InitProjectResponse:
    project_id: str = ""
    db_id: str = ""
    writer_pass_id: str = ""
    blob_id: str = ""
    tx_digest: str = ""
    csv_hash_hex: str = ""
    digest_hex: str = ""
    signature_hex: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InitProjectResponse:
        return cls(
            project_id=data.get("ProjectID", ""),
            db_id=data.get("DBID", ""),
            writer_pass_id=data.get("WriterPassID", ""),
            blob_id=data.get("BlobID", ""),
            tx_digest=data.get("TxDigest", ""),
            csv_hash_hex=data.get("CSVHashHex", ""),
            digest_hex=data.get("DigestHex", ""),
            signature_hex=data.get("SignatureHex", ""),
        )


@dataclass
class IssueKeyRequest:
    project_id: str
    project_holder: str
    project_name: str
    user: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "projectHolder": self.project_holder,
            "projectName": self.project_name,
            "user": self.user,
        }


@dataclass
class IssueKeyResponse:
    api_key: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IssueKeyResponse:
        return cls(api_key=data.get("apiKey", ""), url=data.get("url", ""))


@dataclass
class ResolveProjectRequest:
    holder_id: str
    project_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"holder_id": self.holder_id, "project_name": self.project_name}


@dataclass
class ResolveProjectResponse:
    """Project lookup result.

    Older gateways answer with PascalCase ``ProjectID``/``DBID``; those are
    folded into ``project_id``/``db_id`` when the modern keys are absent.
    """

    exists_meta: bool = False
    exists_chain: bool = False
    project_id: str = ""
    db_id: str = ""
    action: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResolveProjectResponse:
        return cls(
            exists_meta=bool(data.get("exists_meta", False)),
            exists_chain=bool(data.get("exists_chain", False)),
            project_id=data.get("project_id") or data.get("ProjectID") or "",
            db_id=data.get("db_id") or data.get("DBID") or "",
            action=data.get("action", ""),
        )


@dataclass
class TableCountResponse:
    project_id: str = ""
    table_count: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableCountResponse:
        return cls(
            project_id=data.get("project_id", ""),
            table_count=int(data.get("table_count", 0)),
        )


# =============================================================================
# SQL
# =============================================================================


@dataclass
class SQLRequest:
    sql: str
    params: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"sql": self.sql, "params": list(self.params)}


@dataclass
class SQLResponse:
    """Result of a SQL call.

    DDL/DML statements report ``row_count``; SELECTs report ``rows``.
    """

    ok: bool = False
    row_count: int | None = None
    rows: list[Row] = field(default_factory=list)
    error: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SQLResponse:
        row_count = data.get("row_count")
        return cls(
            ok=bool(data.get("ok", False)),
            row_count=int(row_count) if row_count is not None else None,
            rows=list(data.get("rows") or []),
            error=data.get("error") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"ok": self.ok}
        if self.row_count is not None:
            result["row_count"] = self.row_count
        if self.rows:
            result["rows"] = self.rows
        if self.error:
            result["error"] = self.error
        return result


# =============================================================================
# Tables
# =============================================================================


@dataclass
class ListTablesResponse:
    tables: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ListTablesResponse:
        return cls(tables=list(data.get("tables") or []))


@dataclass
class BrowseRowsResponse:
    limit: int = 0
    offset: int = 0
    table: str = ""
    rows: list[Row] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BrowseRowsResponse:
        return cls(
            limit=int(data.get("limit", 0)),
            offset=int(data.get("offset", 0)),
            table=data.get("table", ""),
            rows=list(data.get("rows") or []),
        )


def open_mapping(data: Any) -> dict[str, Any]:
    """Decode an open-ended JSON object response."""
    if not isinstance(data, dict):
        raise TypeError(f"expected JSON object, got {type(data).__name__}")
    return data
