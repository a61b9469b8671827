"""Retrying request executor.

One attempt loop serves both call styles:

- ``execute``: reads the whole body and decodes it on success
- ``execute_streaming``: hands the still-open response to the caller on success

Transport failures, 429 and 5xx responses are retried with jittered
exponential backoff (see :mod:`.backoff`), honouring ``Retry-After`` when the
server asks for a longer wait. Any other non-2xx status and any decode
failure end the call immediately.

The loop suspends in two places only: while a request is in flight and while
sleeping between attempts. Both honour an optional ``threading.Event``
cancellation signal and an optional per-call deadline.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

import requests

from ..errors import (
    DeadlineExceeded,
    DecodeError,
    RequestCancelled,
    RetryError,
    TransportError,
    WarlotError,
)
from .backoff import RetryPolicy, advance_backoff, compute_jittered_delay
from .classify import build_api_error, is_retryable
from .headers import merge_headers, redact_headers
from .retry_after import parse_retry_after

logger = logging.getLogger(__name__)

T = TypeVar("T")

RequestHook = Callable[["RequestDescriptor", int], None]
ResponseHook = Callable[[int | None, bytes | None, BaseException | None, int], None]

# How often an in-flight request checks the cancellation signal
CANCEL_POLL_INTERVAL = 0.05

# Longest wait between attempts; a longer Retry-After ends the call
MAX_RETRY_WAIT = 300.0


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to (re)build one request.

    Attributes:
        method: HTTP method
        path: Path relative to the executor's base URL
        headers: Caller headers (auth, idempotency, extras)
        payload: Raw bytes or a JSON-serializable value; None for no body
        params: Optional query string parameters
    """

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    payload: Any = None
    params: Mapping[str, Any] | None = None

    def build_body(self) -> bytes | None:
        """Serialize the payload afresh; bodies are never reused across attempts."""
        if self.payload is None:
            return None
        if isinstance(self.payload, (bytes, bytearray)):
            return bytes(self.payload)
        return json.dumps(self.payload).encode("utf-8")


class Executor:
    """Sends requests against one base URL with retry and observation hooks.

    Configuration is read-only after construction; a single executor may be
    shared by concurrent callers, each call keeping its own attempt state.

    Args:
        base_url: API origin, without trailing slash
        session: ``requests.Session`` to send with; one is created if omitted
        user_agent: Value for the User-Agent header, if any
        timeout: Per-attempt network timeout in seconds
        policy: Default retry policy for calls that do not pass their own
        before_hooks: Called with ``(descriptor, attempt)`` before each send;
            the descriptor carries the outgoing headers with secrets masked
        after_hooks: Called with ``(status, body, error, attempt)`` after each
            attempt; ``status`` is None on transport failure and ``body`` is
            None for a streamed success
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        user_agent: str | None = None,
        timeout: float = 30.0,
        policy: RetryPolicy | None = None,
        before_hooks: Sequence[RequestHook] = (),
        after_hooks: Sequence[ResponseHook] = (),
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.policy = policy or RetryPolicy()
        self._session = session or requests.Session()
        self._owns_session = session is None
        self._before_hooks = tuple(before_hooks)
        self._after_hooks = tuple(after_hooks)
        self._pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()

    def url_for(self, path: str) -> str:
        return self.base_url + path

    def execute(
        self,
        descriptor: RequestDescriptor,
        policy: RetryPolicy | None = None,
        decode: Callable[[Any], T] | None = None,
        *,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> T | None:
        """Send a request and decode its JSON body.

        Args:
            descriptor: Request to send
            policy: Retry policy for this call (defaults to the executor's)
            decode: Maps the parsed JSON body to the result; skipped when None
                or when the body is empty
            cancel: Event that aborts the call when set
            deadline: Seconds the whole call (all attempts and waits) may take

        Returns:
            The decoded body, or None

        Raises:
            APIError: Non-retryable status
            DecodeError: Malformed success body
            RetryError: Retry budget exhausted
            RequestCancelled: ``cancel`` fired or ``deadline`` elapsed
        """

        def on_success(response: requests.Response, body: bytes | None) -> T | None:
            if decode is None or not body:
                return None
            text = body.decode("utf-8", errors="replace")
            try:
                payload = json.loads(text)
            except ValueError as e:
                raise DecodeError(f"decode response: {e}", body=text) from e
            try:
                return decode(payload)
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                raise DecodeError(f"decode response: {e}", body=text) from e

        return self._run(descriptor, policy, on_success, stream=False, cancel=cancel, deadline=deadline)

    def execute_streaming(
        self,
        descriptor: RequestDescriptor,
        policy: RetryPolicy | None = None,
        *,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> requests.Response:
        """Send a request and return the open response on success.

        The body of a successful response is left unread; the caller owns the
        connection and must close the response. Only the phase before a
        success status is retried.
        """
        return self._run(
            descriptor,
            policy,
            lambda response, body: response,
            stream=True,
            cancel=cancel,
            deadline=deadline,
        )

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.shutdown(wait=False)
                self._pool = None
        if self._owns_session:
            self._session.close()

    def _run(
        self,
        descriptor: RequestDescriptor,
        policy: RetryPolicy | None,
        on_success: Callable[[requests.Response, bytes | None], Any],
        *,
        stream: bool,
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> Any:
        policy = (policy or self.policy).normalized()
        backoff, max_backoff = policy.initial_backoff, policy.max_backoff
        deadline_at = time.monotonic() + deadline if deadline is not None else None
        url = self.url_for(descriptor.path)
        last_error: WarlotError | None = None

        for attempt in range(policy.max_retries + 1):
            _check_interrupted(cancel, deadline_at, last_error)
            headers = self._headers_for(descriptor)
            self._notify_request(replace(descriptor, headers=redact_headers(headers)), url, attempt)

            retry_after = None
            try:
                response = self._send(descriptor, url, headers, stream, cancel, deadline_at)
            except requests.RequestException as e:
                error = TransportError(descriptor.method, url, e)
                self._notify_response(descriptor, url, None, None, error, attempt)
                last_error = error
            else:
                ok = 200 <= response.status_code < 300
                body = None if (stream and ok) else response.content
                try:
                    self._notify_response(descriptor, url, response.status_code, body, None, attempt)
                except BaseException:
                    if stream and ok:
                        response.close()
                    raise
                if ok:
                    return on_success(response, body)

                api_error = build_api_error(response.status_code, body)
                if not is_retryable(response.status_code):
                    raise api_error
                last_error = api_error
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if retry_after is not None and retry_after > backoff:
                    backoff = retry_after

            if attempt == policy.max_retries:
                break

            delay = compute_jittered_delay(backoff, max_backoff)
            if retry_after is not None and retry_after > delay:
                delay = retry_after
            if delay > MAX_RETRY_WAIT:
                logger.debug("giving up on %s %s: server asked to wait %.0fs", descriptor.method, url, delay)
                raise RetryError(attempt + 1, last_error) from last_error
            logger.debug(
                "retrying %s %s in %.3fs after attempt %d: %s",
                descriptor.method,
                url,
                delay,
                attempt,
                last_error,
            )
            _wait(delay, cancel, deadline_at, last_error)
            backoff = advance_backoff(backoff, max_backoff)

        if last_error is None:
            raise WarlotError(f"{descriptor.method} {url}: no attempt was made")
        raise RetryError(policy.max_retries + 1, last_error) from last_error

    def _headers_for(self, descriptor: RequestDescriptor) -> dict[str, str]:
        static = {"Content-Type": "application/json"}
        if self.user_agent:
            static["User-Agent"] = self.user_agent
        return merge_headers(static, descriptor.headers)

    def _send(
        self,
        descriptor: RequestDescriptor,
        url: str,
        headers: dict[str, str],
        stream: bool,
        cancel: threading.Event | None,
        deadline_at: float | None,
    ) -> requests.Response:
        request = self._session.prepare_request(
            requests.Request(
                descriptor.method,
                url,
                headers=headers,
                data=descriptor.build_body(),
                params=descriptor.params,
            )
        )
        timeout = self.timeout
        capped = False
        if deadline_at is not None:
            remaining = deadline_at - time.monotonic()
            if remaining < timeout:
                timeout = max(remaining, 0.001)
                capped = True

        try:
            if cancel is None:
                return self._transmit(request, timeout, stream)
            future = self._get_pool().submit(self._transmit, request, timeout, stream)
            return self._await(future, cancel, descriptor, url)
        except requests.Timeout as e:
            if capped:
                raise DeadlineExceeded(f"{descriptor.method} {url}: deadline exceeded while in flight") from e
            raise

    def _await(
        self,
        future: Future,
        cancel: threading.Event,
        descriptor: RequestDescriptor,
        url: str,
    ) -> requests.Response:
        while True:
            try:
                return future.result(timeout=CANCEL_POLL_INTERVAL)
            except FutureTimeout:
                if cancel.is_set():
                    future.add_done_callback(_close_abandoned)
                    raise RequestCancelled(f"{descriptor.method} {url}: cancelled while in flight") from None

    def _transmit(self, request: requests.PreparedRequest, timeout: float, stream: bool) -> requests.Response:
        response = self._session.send(request, timeout=timeout, stream=True)
        if not (stream and 200 <= response.status_code < 300):
            # Buffer failure bodies and buffered successes; releases the connection
            _ = response.content
        return response

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(thread_name_prefix="warlot-send")
            return self._pool

    def _notify_request(self, descriptor: RequestDescriptor, url: str, attempt: int) -> None:
        logger.debug(
            "request %s %s attempt=%d headers=%s",
            descriptor.method,
            url,
            attempt,
            descriptor.headers,
        )
        for hook in self._before_hooks:
            hook(descriptor, attempt)

    def _notify_response(
        self,
        descriptor: RequestDescriptor,
        url: str,
        status: int | None,
        body: bytes | None,
        error: BaseException | None,
        attempt: int,
    ) -> None:
        logger.debug(
            "response %s %s status=%s attempt=%d",
            descriptor.method,
            url,
            status if status is not None else 0,
            attempt,
        )
        for hook in self._after_hooks:
            hook(status, body, error, attempt)


def _check_interrupted(
    cancel: threading.Event | None,
    deadline_at: float | None,
    last_error: WarlotError | None,
) -> None:
    if cancel is not None and cancel.is_set():
        raise RequestCancelled("request cancelled") from last_error
    if deadline_at is not None and time.monotonic() >= deadline_at:
        raise DeadlineExceeded("request deadline exceeded") from last_error


def _wait(
    delay: float,
    cancel: threading.Event | None,
    deadline_at: float | None,
    last_error: WarlotError | None,
) -> None:
    if deadline_at is not None and time.monotonic() + delay >= deadline_at:
        raise DeadlineExceeded(f"request deadline exceeded before retry (wanted {delay:.3f}s)") from last_error
    if cancel is None:
        time.sleep(delay)
    elif cancel.wait(delay):
        raise RequestCancelled("request cancelled during backoff") from last_error


def _close_abandoned(future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()
