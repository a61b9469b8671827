"""Environment-driven settings for the CLI and the local mock gateway.

Client environment variables:
    WARLOT_BASE_URL: API origin
    WARLOT_API_KEY: Project API key
    WARLOT_HOLDER: Holder ID
    WARLOT_PNAME: Project name
    WARLOT_TIMEOUT: Request timeout in seconds
    WARLOT_RETRIES: Retries on 429/5xx and transport errors
    WARLOT_BACKOFF_INIT_MS: Initial backoff in milliseconds
    WARLOT_BACKOFF_MAX_MS: Backoff ceiling in milliseconds

Mock gateway environment variables:
    WARLOT_MOCK_DB_PATH: DuckDB database file (in-memory by default)
    WARLOT_MOCK_STREAM_BATCH: Rows fetched per batch when streaming results
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .options import DEFAULT_BASE_URL, ClientConfig
from .transport import RetryPolicy

ENV_BASE_URL = "WARLOT_BASE_URL"
ENV_API_KEY = "WARLOT_API_KEY"
ENV_HOLDER_ID = "WARLOT_HOLDER"
ENV_PROJECT_NAME = "WARLOT_PNAME"
ENV_TIMEOUT = "WARLOT_TIMEOUT"
ENV_RETRIES = "WARLOT_RETRIES"
ENV_BACKOFF_INIT_MS = "WARLOT_BACKOFF_INIT_MS"
ENV_BACKOFF_MAX_MS = "WARLOT_BACKOFF_MAX_MS"

ENV_MOCK_DB_PATH = "WARLOT_MOCK_DB_PATH"
ENV_MOCK_STREAM_BATCH = "WARLOT_MOCK_STREAM_BATCH"

# CLI defaults favour patience over latency
DEFAULT_TIMEOUT = 90
DEFAULT_RETRIES = 5
DEFAULT_BACKOFF_INIT_MS = 1000
DEFAULT_BACKOFF_MAX_MS = 8000

DEFAULT_MOCK_DB_PATH = ":memory:"
DEFAULT_MOCK_STREAM_BATCH = 500


def env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    """Read an integer variable; missing or malformed values give ``default``."""
    value = environ.get(key, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """Connection settings resolved from the environment and CLI flags."""

    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    holder_id: str = ""
    project_name: str = ""
    timeout: int = DEFAULT_TIMEOUT
    retries: int = DEFAULT_RETRIES
    backoff_init_ms: int = DEFAULT_BACKOFF_INIT_MS
    backoff_max_ms: int = DEFAULT_BACKOFF_MAX_MS

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            base_url=env.get(ENV_BASE_URL) or DEFAULT_BASE_URL,
            api_key=env.get(ENV_API_KEY, ""),
            holder_id=env.get(ENV_HOLDER_ID, ""),
            project_name=env.get(ENV_PROJECT_NAME, ""),
            timeout=env_int(env, ENV_TIMEOUT, DEFAULT_TIMEOUT),
            retries=env_int(env, ENV_RETRIES, DEFAULT_RETRIES),
            backoff_init_ms=env_int(env, ENV_BACKOFF_INIT_MS, DEFAULT_BACKOFF_INIT_MS),
            backoff_max_ms=env_int(env, ENV_BACKOFF_MAX_MS, DEFAULT_BACKOFF_MAX_MS),
        )

    def to_client_config(self) -> ClientConfig:
        return ClientConfig(
            base_url=self.base_url,
            api_key=self.api_key,
            holder_id=self.holder_id,
            project_name=self.project_name,
            timeout=float(self.timeout),
            retry=RetryPolicy(
                max_retries=self.retries,
                initial_backoff=self.backoff_init_ms / 1000,
                max_backoff=self.backoff_max_ms / 1000,
            ),
        )


@dataclass
class MockSettings:
    """Settings of the local mock gateway."""

    db_path: str = DEFAULT_MOCK_DB_PATH
    stream_batch: int = DEFAULT_MOCK_STREAM_BATCH

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> MockSettings:
        env = os.environ if environ is None else environ
        batch = env_int(env, ENV_MOCK_STREAM_BATCH, DEFAULT_MOCK_STREAM_BATCH)
        return cls(
            db_path=env.get(ENV_MOCK_DB_PATH) or DEFAULT_MOCK_DB_PATH,
            stream_batch=batch if batch > 0 else DEFAULT_MOCK_STREAM_BATCH,
        )
