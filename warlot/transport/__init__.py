"""HTTP transport for the warlot client.

Modules:
    backoff: Retry policy and jittered exponential backoff
    retry_after: Retry-After header parsing
    classify: Retryability and structured API errors
    headers: Header merging and credential redaction
    executor: Retrying buffered and streaming request execution
"""

from .backoff import (
    RetryPolicy,
    advance_backoff,
    compute_jittered_delay,
    normalize_backoff,
    normalize_retries,
)
from .classify import build_api_error, is_retryable
from .executor import Executor, RequestDescriptor, RequestHook, ResponseHook
from .headers import mask_secret, merge_headers, redact_headers
from .retry_after import parse_retry_after

__all__ = [
    # Executor
    "Executor",
    "RequestDescriptor",
    "RequestHook",
    "ResponseHook",
    # Backoff
    "RetryPolicy",
    "advance_backoff",
    "compute_jittered_delay",
    "normalize_backoff",
    "normalize_retries",
    # Classification
    "build_api_error",
    "is_retryable",
    "parse_retry_after",
    # Headers
    "mask_secret",
    "merge_headers",
    "redact_headers",
]
