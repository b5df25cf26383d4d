"""プロセス全体で共有する読み取り専用の設定を提供する。

入出力: 環境変数(.env を含む) -> Settings。
制約:
    - 起動後は変更しない（frozen dataclass）
    - リクエスト単位の値は保持しない

Note:
    - GEMINI_API_KEY は repr/ログに一切出力しない
    - 数値の環境変数が不正な場合は既定値を採用する
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"


def _int_env(name: str, default: int) -> int:
    """整数の環境変数を読み取る。不正値は既定値に置き換える。"""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("invalid integer for %s, using default %s", name, default)
        return default
    if value <= 0:
        logger.warning("non-positive value for %s, using default %s", name, default)
        return default
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("invalid float for %s, using default %s", name, default)
        return default


@dataclass(frozen=True)
class Settings:
    """分析エンジンの設定値。

    Args:
        gemini_api_key: Gemini API の認証キー（空文字は未設定扱い）
        gemini_model: 呼び出すモデル名
        gemini_base_url: Gemini REST API のベースURL
        gemini_timeout_ms: 外部呼び出しのタイムアウト(ms)
        gemini_temperature: 生成時の temperature
        gemini_max_output_tokens: 生成トークン上限
        max_message_length: サニタイズ後の最大文字数
        engine_version: レスポンスに付与するエンジンバージョン
        environment: 実行環境名（production で詳細情報を抑止）
        rate_limit_max: 時間窓あたりの最大リクエスト数
        rate_limit_window_seconds: レート制限の時間窓(秒)
        max_body_bytes: リクエストボディの最大バイト数
    """

    gemini_api_key: str = field(default="", repr=False)
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    gemini_timeout_ms: int = 30000
    gemini_temperature: float = 0.2
    gemini_max_output_tokens: int = 2048
    max_message_length: int = 10000
    engine_version: str = "1.0.0"
    environment: str = "development"
    rate_limit_max: int = 60
    rate_limit_window_seconds: int = 900
    max_body_bytes: int = 1_048_576

    @property
    def is_production(self) -> bool:
        """本番モードかどうかを返す。"""
        return self.environment.strip().lower() == "production"

    @classmethod
    def from_env(cls) -> Settings:
        """環境変数から Settings を構築する。

        Returns:
            Settings: 環境変数を反映した設定

        Note:
            - カレントディレクトリの .env があれば先に読み込む
            - 既に設定済みの環境変数は .env で上書きしない
        """
        load_dotenv()
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
            gemini_model=os.getenv("GEMINI_MODEL", "").strip() or DEFAULT_GEMINI_MODEL,
            gemini_base_url=(
                os.getenv("GEMINI_API_BASE_URL", "").strip() or DEFAULT_GEMINI_BASE_URL
            ).rstrip("/"),
            gemini_timeout_ms=_int_env("GEMINI_TIMEOUT_MS", 30000),
            gemini_temperature=_float_env("GEMINI_TEMPERATURE", 0.2),
            gemini_max_output_tokens=_int_env("GEMINI_MAX_OUTPUT_TOKENS", 2048),
            max_message_length=_int_env("MAX_MESSAGE_LENGTH", 10000),
            engine_version=os.getenv("ENGINE_VERSION", "").strip() or "1.0.0",
            environment=os.getenv("ENVIRONMENT", "").strip() or "development",
            rate_limit_max=_int_env("RATE_LIMIT_MAX", 60),
            rate_limit_window_seconds=_int_env("RATE_LIMIT_WINDOW_SECONDS", 900),
            max_body_bytes=_int_env("MAX_BODY_BYTES", 1_048_576),
        )
