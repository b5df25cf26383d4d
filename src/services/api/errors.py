"""例外を HTTP ステータスと安全なエラーボディへ対応付ける分類器を提供する。

入出力: Exception -> ErrorResponse(status, body)。
制約:
    - 未分類の例外は常に 500 とし、メッセージ・詳細を漏らさない
    - production モードでは details を常に null にする

Note:
    - 対応表は _ERROR_TABLE のみで管理する（先頭一致で判定）
    - 認証キーは details に含まれない前提だが、文字列値は念のため置換する
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from services.inference.errors import (
    InputValidationError,
    MalformedBodyError,
    PipelineError,
    RemoteError,
    SchemaError,
)

INTERNAL_ERROR_MESSAGE = "Erro interno do servidor. Tente novamente."


class ErrorBody(BaseModel):
    """エラーレスポンスのボディ。"""

    error: str
    code: int
    message: str
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ErrorResponse:
    """分類結果（ステータスとボディ）。"""

    status_code: int
    body: ErrorBody


_ERROR_TABLE: tuple[tuple[type[PipelineError], int, str], ...] = (
    (InputValidationError, 400, "ValidationError"),
    (MalformedBodyError, 400, "InvalidJSON"),
    (RemoteError, 502, "GeminiError"),
    (SchemaError, 422, "SchemaError"),
)


def _scrub(value: Any, secret: str) -> Any:
    """details 内の文字列から secret を取り除く。"""
    if isinstance(value, str):
        return value.replace(secret, "***") if secret in value else value
    if isinstance(value, dict):
        return {key: _scrub(item, secret) for key, item in value.items()}
    if isinstance(value, list):
        return [_scrub(item, secret) for item in value]
    return value


def classify_error(
    exc: BaseException,
    production: bool = False,
    secret: str = "",
) -> ErrorResponse:
    """例外を分類し、クライアントへ返すレスポンスを生成する。

    Args:
        exc: 送出された例外
        production: True の場合 details を抑止する
        secret: レスポンスから除去すべき認証キー

    Returns:
        ErrorResponse: HTTP ステータスとエラーボディ
    """
    for error_type, status_code, tag in _ERROR_TABLE:
        if isinstance(exc, error_type):
            details = None if production else exc.details
            message = exc.message
            if secret:
                details = _scrub(details, secret)
                message = _scrub(message, secret)
            return ErrorResponse(
                status_code=status_code,
                body=ErrorBody(error=tag, code=status_code, message=message, details=details),
            )

    return ErrorResponse(
        status_code=500,
        body=ErrorBody(
            error="InternalServerError",
            code=500,
            message=INTERNAL_ERROR_MESSAGE,
            details=None,
        ),
    )
