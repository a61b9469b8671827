"""Typed mapping of SELECT results."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from .errors import DecodeError

if TYPE_CHECKING:
    from .options import CallOptions
    from .project import Project

T = TypeVar("T")


def map_row(row: Mapping[str, Any], row_type: Callable[..., T]) -> T:
    """Build ``row_type`` from one result row.

    Dataclasses receive only the columns matching their declared fields;
    extra columns are ignored. Any other ``row_type`` is called with the row
    mapping itself.
    """
    if not isinstance(row, Mapping):
        raise DecodeError(f"row decoding failed: expected object, got {type(row).__name__}")
    try:
        if dataclasses.is_dataclass(row_type):
            names = {f.name for f in dataclasses.fields(row_type) if f.init}
            return row_type(**{k: v for k, v in row.items() if k in names})
        return row_type(row)
    except (TypeError, ValueError, KeyError) as e:
        raise DecodeError(f"row decoding failed: {e}") from e


def query(
    project: Project,
    sql: str,
    params: Sequence[Any] | None = None,
    row_type: Callable[..., T] = dict,
    options: CallOptions | None = None,
) -> list[T]:
    """Run a SELECT and map every row through ``row_type``.

    Args:
        project: Project to query
        sql: Statement text
        params: Positional parameters
        row_type: Dataclass or callable taking the row mapping
        options: Per-call options

    Returns:
        The mapped rows, in result order

    Raises:
        DecodeError: A row could not be mapped
    """
    response = project.sql(sql, params, options)
    return [map_row(row, row_type) for row in response.rows]
