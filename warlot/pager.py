"""Offset-based page iteration."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from typing import Generic, TypeVar

T = TypeVar("T")

FetchPage = Callable[[int, int], Sequence[T]]


class Pager(Generic[T]):
    """Walks an offset-paginated source until it returns an empty page.

    ``fetch(limit, offset)`` is called once per :meth:`next`. The offset
    advances by the number of rows actually returned, so a short page does
    not end iteration; only an empty one does. A failed fetch leaves the
    cursor where it was, so calling :meth:`next` again retries that page.

    Not safe for concurrent use.
    """

    def __init__(self, fetch: FetchPage[T], limit: int, offset: int = 0) -> None:
        self._fetch = fetch
        self.limit = limit
        self.offset = offset
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def next(self) -> list[T] | None:
        """Return the next page, or None once the source is exhausted."""
        if self._done:
            return None
        rows = list(self._fetch(self.limit, self.offset))
        if not rows:
            self._done = True
            return None
        self.offset += len(rows)
        return rows

    def __iter__(self) -> Iterator[list[T]]:
        while (page := self.next()) is not None:
            yield page
