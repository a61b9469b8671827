"""Client-wide and per-call configuration."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Any

from . import __version__
from .transport import RequestHook, ResponseHook, RetryPolicy
from .transport.headers import IDEMPOTENCY_KEY_HEADER, merge_headers

DEFAULT_BASE_URL = "https://warlot-api.onrender.com"
DEFAULT_USER_AGENT = f"warlot-python/{__version__}"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class ClientConfig:
    """Configuration shared by every call made through one client.

    Attributes:
        base_url: API origin
        api_key: Sent as ``x-api-key`` on project-scoped calls
        holder_id: Sent as ``x-holder-id`` on project-scoped calls
        project_name: Sent as ``x-project-name`` on project-scoped calls
        user_agent: User-Agent header value
        timeout: Per-attempt network timeout in seconds
        retry: Default retry policy
        before_hooks: Observers called before every attempt
        after_hooks: Observers called after every attempt
    """

    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    holder_id: str = ""
    project_name: str = ""
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = DEFAULT_TIMEOUT
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    before_hooks: tuple[RequestHook, ...] = ()
    after_hooks: tuple[ResponseHook, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "before_hooks", tuple(self.before_hooks))
        object.__setattr__(self, "after_hooks", tuple(self.after_hooks))

    def with_overrides(self, **changes: Any) -> ClientConfig:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass
class CallOptions:
    """Options for a single call.

    Attributes:
        headers: Extra headers for this call
        idempotency_key: Sent as ``x-idempotency-key`` so retried writes apply once
        cancel: Event that aborts the call when set
        deadline: Seconds the whole call may take, retries included
        retry: Retry policy overriding the client default
    """

    headers: dict[str, str] = field(default_factory=dict)
    idempotency_key: str = ""
    cancel: threading.Event | None = None
    deadline: float | None = None
    retry: RetryPolicy | None = None

    def build_headers(self) -> dict[str, str]:
        extra = {}
        if self.idempotency_key:
            extra[IDEMPOTENCY_KEY_HEADER] = self.idempotency_key
        return merge_headers(self.headers, extra)
