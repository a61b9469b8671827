import json
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Iterable, Iterator, List, Sequence
from uuid import UUID


def serialize_item(item: Any) -> Any:
    """
    Serializes a single cell value to a JSON-compatible value.
    """
    if item is None:
        return None
    if isinstance(item, (date, datetime, time)):
        return item.isoformat()
    if isinstance(item, Decimal):
        # str() preserves precision
        return str(item)
    if isinstance(item, bytes):
        return item.hex()
    if isinstance(item, (UUID, timedelta)):
        return str(item)
    if isinstance(item, (list, tuple)):
        return [serialize_item(v) for v in item]
    if isinstance(item, dict):
        return {str(k): serialize_item(v) for k, v in item.items()}
    return item


def serialize_row(columns: Sequence[str], row: Sequence[Any]) -> dict:
    """Maps one row tuple onto its column names."""
    return {name: serialize_item(cell) for name, cell in zip(columns, row)}


def serialize_rows(columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> List[dict]:
    return [serialize_row(columns, row) for row in rows]


def stream_rows_document(columns: Sequence[str], batches: Iterable[List[tuple]]) -> Iterator[bytes]:
    """
    Renders {"ok": true, "rows": [...]} incrementally, one batch of rows
    per chunk, so large results never sit in memory as one document.
    """
    yield b'{"ok":true,"rows":['
    first = True
    for batch in batches:
        if not batch:
            continue
        parts = [json.dumps(serialize_row(columns, row)) for row in batch]
        chunk = ",".join(parts)
        if not first:
            chunk = "," + chunk
        first = False
        yield chunk.encode("utf-8")
    yield b"]}"
