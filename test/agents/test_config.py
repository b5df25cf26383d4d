"""Settings の環境変数読み込みを検証するテスト。"""

import pytest

from services.config import Settings

ENV_NAMES = [
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "GEMINI_API_BASE_URL",
    "GEMINI_TIMEOUT_MS",
    "GEMINI_TEMPERATURE",
    "GEMINI_MAX_OUTPUT_TOKENS",
    "MAX_MESSAGE_LENGTH",
    "ENGINE_VERSION",
    "ENVIRONMENT",
    "RATE_LIMIT_MAX",
    "RATE_LIMIT_WINDOW_SECONDS",
    "MAX_BODY_BYTES",
]


@pytest.fixture
def clean_env(monkeypatch):
    """設定関連の環境変数を空にし、.env の読み込みを無効化する。"""
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
    monkeypatch.setattr("services.config.load_dotenv", lambda: False)
    return monkeypatch


def test_from_env_uses_defaults(clean_env):
    """未設定時は既定値を使うことを確認する。"""
    settings = Settings.from_env()

    assert settings.gemini_api_key == ""
    assert settings.gemini_model == "gemini-1.5-flash"
    assert settings.gemini_timeout_ms == 30000
    assert settings.max_message_length == 10000
    assert settings.max_body_bytes == 1048576
    assert settings.engine_version == "1.0.0"
    assert settings.is_production is False


def test_from_env_reads_values(clean_env):
    """環境変数の値を反映することを確認する。"""
    clean_env.setenv("GEMINI_API_KEY", "k")
    clean_env.setenv("GEMINI_MODEL", "gemini-2.0-flash")
    clean_env.setenv("GEMINI_API_BASE_URL", "http://localhost:9999/")
    clean_env.setenv("GEMINI_TIMEOUT_MS", "1500")
    clean_env.setenv("MAX_MESSAGE_LENGTH", "200")
    clean_env.setenv("ENGINE_VERSION", "2.0.0")
    clean_env.setenv("ENVIRONMENT", "Production")
    clean_env.setenv("MAX_BODY_BYTES", "2048")

    settings = Settings.from_env()

    assert settings.gemini_api_key == "k"
    assert settings.gemini_model == "gemini-2.0-flash"
    assert settings.gemini_base_url == "http://localhost:9999"
    assert settings.gemini_timeout_ms == 1500
    assert settings.max_message_length == 200
    assert settings.engine_version == "2.0.0"
    assert settings.max_body_bytes == 2048
    assert settings.is_production is True


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_from_env_falls_back_on_invalid_integer(clean_env, value):
    """不正な整数値は既定値に置き換えることを確認する。"""
    clean_env.setenv("GEMINI_TIMEOUT_MS", value)
    assert Settings.from_env().gemini_timeout_ms == 30000


def test_repr_hides_api_key():
    """repr に認証キーが含まれないことを確認する。"""
    settings = Settings(gemini_api_key="super-secret")
    assert "super-secret" not in repr(settings)
