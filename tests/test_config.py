import pytest

from warlot.config import MockSettings, Settings, env_int
from warlot.options import DEFAULT_BASE_URL


def test_defaults_without_environment() -> None:
    settings = Settings.from_env({})
    assert settings.base_url == DEFAULT_BASE_URL
    assert (settings.timeout, settings.retries) == (90, 5)
    assert (settings.backoff_init_ms, settings.backoff_max_ms) == (1000, 8000)


def test_reads_environment() -> None:
    settings = Settings.from_env(
        {
            "WARLOT_BASE_URL": "http://localhost:8000/",
            "WARLOT_API_KEY": "wk_abc",
            "WARLOT_HOLDER": "0xH",
            "WARLOT_PNAME": "demo",
            "WARLOT_TIMEOUT": "12",
            "WARLOT_RETRIES": "2",
            "WARLOT_BACKOFF_INIT_MS": "250",
            "WARLOT_BACKOFF_MAX_MS": "4000",
        }
    )
    config = settings.to_client_config()

    assert config.base_url == "http://localhost:8000"
    assert (config.api_key, config.holder_id, config.project_name) == ("wk_abc", "0xH", "demo")
    assert config.timeout == 12.0
    assert config.retry.max_retries == 2
    assert config.retry.initial_backoff == pytest.approx(0.25)
    assert config.retry.max_backoff == pytest.approx(4.0)


@pytest.mark.parametrize("raw", ["", "abc", "1.5", " "])
def test_invalid_integers_fall_back(raw: str) -> None:
    assert env_int({"X": raw}, "X", 7) == 7


def test_mock_settings() -> None:
    assert MockSettings.from_env({}) == MockSettings(":memory:", 500)
    settings = MockSettings.from_env({"WARLOT_MOCK_DB_PATH": "/tmp/wm", "WARLOT_MOCK_STREAM_BATCH": "0"})
    assert settings.db_path == "/tmp/wm"
    assert settings.stream_batch == 500
