"""分析パイプラインの型付き例外を提供する。

入出力: message/details -> 例外オブジェクト。
制約:
    - 各ステージは自身の種別の例外のみを送出する
    - details は JSON 化可能な dict または None に限定する

Note:
    - HTTP ステータスへの対応付けは services.api.errors が担う
    - details に認証キーを含めてはならない
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """パイプライン失敗の基底例外。

    Args:
        message: クライアントへ返却可能な安全なメッセージ
        details: 診断用の構造化情報（本番では返却されない）
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def kind(self) -> str | None:
        """details の tipo（失敗種別）を返す。"""
        if not self.details:
            return None
        return self.details.get("tipo")


class InputValidationError(PipelineError):
    """入力ペイロードが不正な場合の例外。"""


class MalformedBodyError(PipelineError):
    """リクエストボディが JSON として解析できない場合の例外。"""


class RemoteError(PipelineError):
    """Gemini API 呼び出しの失敗（タイムアウトを含む）を表す例外。"""


class SchemaError(PipelineError):
    """モデル応答の解析・正規化・スキーマ検証の失敗を表す例外。"""
