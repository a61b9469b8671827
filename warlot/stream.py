"""Incremental row streaming for large SELECT results.

A SQL response has the shape ``{"ok": true, "rows": [{...}, {...}, ...]}``.
:class:`RowScanner` walks that document token by token straight off the
network, so only one decoded row (plus a small read buffer) is held in
memory at a time.

A scanner is bound to one response and one consumer; it is not safe to call
:meth:`RowScanner.next` from several threads.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import Callable, Iterable, Iterator
from enum import Enum
from types import TracebackType
from typing import Any, Self

import requests

from .errors import DecodeError, TransportError, WarlotError

_WHITESPACE = " \t\r\n"
_NUMBER_CHARS = frozenset("0123456789+-.eE")
_decoder = json.JSONDecoder()

DEFAULT_CHUNK_SIZE = 8192


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class JSONTokenReader:
    """Pull-style JSON reader over an iterable of byte chunks.

    Structural characters are consumed one at a time; complete values are
    decoded with :meth:`json.JSONDecoder.raw_decode` once enough input has
    been buffered. Consumed input is discarded whenever more is read.

    Malformed input raises ``ValueError``.
    """

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self._chunks = iter(chunks)
        self._utf8 = codecs.getincrementaldecoder("utf-8")()
        self._buf = ""
        self._pos = 0
        self._eof = False

    def _fill(self) -> bool:
        """Append the next decoded chunk to the buffer. Returns False at end of input."""
        while not self._eof:
            try:
                chunk = next(self._chunks)
            except StopIteration:
                self._eof = True
                text = self._utf8.decode(b"", final=True)
            else:
                text = self._utf8.decode(chunk)

            if self._pos:
                self._buf = self._buf[self._pos:]
                self._pos = 0
            if text:
                self._buf += text
                return True
        return False

    def peek(self) -> str:
        """Return the next non-whitespace character without consuming it ("" at end)."""
        while True:
            buf = self._buf
            pos = self._pos
            while pos < len(buf) and buf[pos] in _WHITESPACE:
                pos += 1
            self._pos = pos
            if pos < len(buf):
                return buf[pos]
            if not self._fill():
                return ""

    def accept(self, delim: str) -> bool:
        """Consume ``delim`` if it is the next character."""
        if self.peek() == delim:
            self._pos += 1
            return True
        return False

    def expect(self, delim: str) -> None:
        """Consume ``delim`` or raise ValueError."""
        found = self.peek()
        if found != delim:
            raise ValueError(f"expected {delim!r}, found {found or 'end of input'!r}")
        self._pos += 1

    def read_value(self) -> Any:
        """Decode the next complete JSON value."""
        if not self.peek():
            raise ValueError("unexpected end of input")
        while True:
            try:
                value, end = _decoder.raw_decode(self._buf, self._pos)
            except json.JSONDecodeError:
                if self._fill():
                    continue
                raise
            # A number running up to the end of the buffer may continue in the
            # next chunk ("12" + "34", "1.5e" + "3")
            if _is_number(value) and self._tail_is_numeric(end) and self._fill():
                continue
            self._pos = end
            return value

    def _tail_is_numeric(self, end: int) -> bool:
        return all(c in _NUMBER_CHARS for c in self._buf[end:])

    def read_key(self) -> str:
        """Read an object key and its trailing colon."""
        key = self.read_value()
        if not isinstance(key, str):
            raise ValueError(f"expected object key, found {key!r}")
        self.expect(":")
        return key

    def skip_value(self) -> None:
        self.read_value()


class ScanState(Enum):
    START = "start"
    SEEKING = "seeking"
    IN_ARRAY = "in_array"
    DONE = "done"


class RowScanner:
    """Iterates the elements of one array field of a streamed JSON object.

    Usage::

        with client.exec_sql_stream(project_id, SQLRequest("SELECT * FROM t")) as scanner:
            while scanner.next():
                handle(scanner.row)
            if scanner.err:
                raise scanner.err

    ``next`` never raises for stream problems: it returns False and records
    the failure in :attr:`err`. The underlying response is released when the
    array ends, on the first error, or on :meth:`close`.

    Args:
        chunks: Byte chunks of the response body
        field: Name of the top-level field holding the array
        decode: Optional mapping applied to each decoded element
        closer: Releases the underlying connection
        origin: ``(method, url)`` used to describe read failures
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        field: str = "rows",
        decode: Callable[[Any], Any] | None = None,
        closer: Callable[[], None] | None = None,
        origin: tuple[str, str] = ("GET", "<stream>"),
    ) -> None:
        self.field = field
        self.row: Any = None
        self._reader = JSONTokenReader(chunks)
        self._decode = decode
        self._closer = closer
        self._origin = origin
        self._state = ScanState.START
        self._first = True
        self._err: WarlotError | None = None

    @classmethod
    def from_response(
        cls,
        response: requests.Response,
        field: str = "rows",
        decode: Callable[[Any], Any] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> RowScanner:
        """Bind a scanner to an open streaming response."""
        return cls(
            response.iter_content(chunk_size),
            field=field,
            decode=decode,
            closer=response.close,
            origin=(response.request.method or "GET", response.url),
        )

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def err(self) -> WarlotError | None:
        """The terminal error, or None if the stream ended cleanly (or is still open)."""
        return self._err

    def start(self) -> None:
        """Consume the opening brace of the response object.

        Raises:
            DecodeError: The body does not start with a JSON object
        """
        if self._state is not ScanState.START:
            return
        if not self._advance(self._open_object) and self._err is not None:
            raise self._err

    def next(self) -> bool:
        """Decode the next row into :attr:`row`.

        Returns:
            True if a row was decoded; False at the end of the array or on error
        """
        if self._state is ScanState.DONE:
            return False
        if self._state is ScanState.START and not self._advance(self._open_object):
            return False
        if self._state is ScanState.SEEKING and not self._advance(self._seek):
            return False
        return self._advance(self._next_element)

    def close(self) -> None:
        """Release the underlying connection. Safe to call repeatedly."""
        closer, self._closer = self._closer, None
        if closer is not None:
            closer()

    def __iter__(self) -> Iterator[Any]:
        while self.next():
            yield self.row

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def _advance(self, step: Callable[[], bool]) -> bool:
        try:
            return step()
        except (ValueError, TypeError, KeyError) as e:
            self._fail(DecodeError(f"stream decode: {e}"), e)
        except (requests.RequestException, OSError) as e:
            method, url = self._origin
            self._fail(TransportError(method, url, e), e)
        return False

    def _fail(self, error: WarlotError, cause: BaseException) -> None:
        error.__cause__ = cause
        self._err = error
        self._finish()

    def _finish(self) -> None:
        self._state = ScanState.DONE
        self.row = None
        self.close()

    def _open_object(self) -> bool:
        self._reader.expect("{")
        self._state = ScanState.SEEKING
        return True

    def _seek(self) -> bool:
        reader = self._reader
        while True:
            if reader.accept("}"):
                raise ValueError(f"field {self.field!r} not found")
            key = reader.read_key()
            if key == self.field:
                if not reader.accept("["):
                    raise ValueError(f"unexpected token after {self.field!r}: {reader.peek() or 'end of input'!r}")
                self._state = ScanState.IN_ARRAY
                return True
            reader.skip_value()
            if reader.peek() != "}":
                reader.expect(",")

    def _next_element(self) -> bool:
        reader = self._reader
        if reader.accept("]"):
            self._finish()
            return False
        if self._first:
            self._first = False
        else:
            reader.expect(",")
        value = reader.read_value()
        self.row = self._decode(value) if self._decode is not None else value
        return True
