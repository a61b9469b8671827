"""Exception hierarchy for the warlot client.

Every terminal failure raised by the client derives from :class:`WarlotError`.
Callers pick a recovery strategy by the exception class:

- APIError: the gateway answered with a non-2xx status
- TransportError: no response was obtained (DNS, connect, TLS, reset)
- DecodeError: a success body (or streamed body) could not be decoded
- RetryError: retryable failures exhausted the retry budget
- RequestCancelled / DeadlineExceeded: the call was aborted from outside
- SQLError: the SQL endpoint reported ``ok: false``
- MigrationError: a migration run stopped on a failing file
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import SQLResponse


class WarlotError(Exception):
    """Base class for all client errors."""


class APIError(WarlotError):
    """Structured representation of a non-2xx response.

    Attributes:
        status_code: HTTP status code of the response
        body: Raw response body text, kept verbatim
        message: Parsed ``message`` (or ``error``) field, empty if absent
        code: Optional server-provided machine code
        details: Optional server-provided details payload
    """

    def __init__(
        self,
        status_code: int,
        body: str = "",
        message: str = "",
        code: str = "",
        details: Any = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.message = message
        self.code = code
        self.details = details
        super().__init__(self._render())

    def _render(self) -> str:
        msg = self.message or self.body
        if self.code:
            return f"warlot API {self.status_code} ({self.code}): {msg}"
        return f"warlot API {self.status_code}: {msg}"

    @property
    def retryable(self) -> bool:
        from .transport.classify import is_retryable

        return is_retryable(self.status_code)


class TransportError(WarlotError):
    """No response was received for a request."""

    def __init__(self, method: str, url: str, cause: BaseException) -> None:
        super().__init__(f"{method} {url}: {cause}")
        self.method = method
        self.url = url
        self.__cause__ = cause


class DecodeError(WarlotError):
    """A response body did not match the expected JSON shape."""

    def __init__(self, message: str, body: str | None = None) -> None:
        if body is not None:
            message = f"{message} (body={body})"
        super().__init__(message)
        self.body = body


class RetryError(WarlotError):
    """Retryable failures exhausted the attempt budget.

    Attributes:
        attempts: Total number of attempts made
        last_error: The failure observed on the final attempt
    """

    def __init__(self, attempts: int, last_error: WarlotError) -> None:
        super().__init__(f"warlot request failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
        self.__cause__ = last_error

    @property
    def api_error(self) -> APIError | None:
        """The last structured API error, if the final attempt got a response."""
        if isinstance(self.last_error, APIError):
            return self.last_error
        return None


class RequestCancelled(WarlotError):
    """The caller's cancellation signal fired while the call was suspended."""


class DeadlineExceeded(RequestCancelled):
    """The per-call deadline elapsed before the call completed."""


class SQLError(WarlotError):
    """The SQL endpoint returned a success status with ``ok: false``."""

    def __init__(self, message: str, response: SQLResponse) -> None:
        super().__init__(message)
        self.response = response


class MigrationError(WarlotError):
    """A migration file could not be read, applied or recorded.

    Attributes:
        name: File name of the failing migration
        applied: Migrations applied by this run before the failure
    """

    def __init__(self, message: str, name: str = "", applied: list[str] | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.applied = list(applied or [])
