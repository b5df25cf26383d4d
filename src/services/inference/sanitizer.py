"""リクエストペイロードから安全な分析対象テキストを取り出す Sanitizer を提供する。

入出力: payload(dict) -> str。
制約:
    - mensagem 欠落/非文字列/空文字/上限超過は InputValidationError とする
    - 長さ判定はサニタイズ後の文字列に対して行う

Note:
    - 処理順は タグ除去 -> 空白圧縮 -> 改行圧縮 -> trim に固定する
    - 大文字小文字・句読点・Unicode には手を加えない
"""

from __future__ import annotations

from collections.abc import Mapping
import re
from typing import Any

from services.inference.errors import InputValidationError

FIELD_NAME = "mensagem"

_TAG_PATTERN = re.compile(r"<[^>]*>")
_SPACES_PATTERN = re.compile(r" {2,}")
_NEWLINES_PATTERN = re.compile(r"\n{3,}")


def strip_tags(text: str) -> str:
    """HTML風のタグ `<...>` を除去する。"""
    return _TAG_PATTERN.sub("", text)


def collapse_whitespace(text: str) -> str:
    """タブ・連続スペースを1つに、3つ以上の改行を2つに圧縮し trim する。"""
    text = text.replace("\t", " ")
    text = _SPACES_PATTERN.sub(" ", text)
    text = _NEWLINES_PATTERN.sub("\n\n", text)
    return text.strip()


class InputSanitizer:
    """入力ペイロードの検証とサニタイズを行うクラス。"""

    def __init__(self, max_length: int = 10000) -> None:
        """Sanitizerを初期化する。

        Args:
            max_length: サニタイズ後に許容する最大文字数
        """
        self.max_length = max_length

    def sanitize(self, payload: Any) -> str:
        """ペイロードを検証し、サニタイズ済みテキストを返す。

        Args:
            payload: リクエストボディ（dict想定、それ以外も受け付ける）

        Returns:
            str: 空でなく上限以内のサニタイズ済みテキスト

        Raises:
            InputValidationError: mensagem が欠落・非文字列・空・上限超過の場合
        """
        if not isinstance(payload, Mapping) or FIELD_NAME not in payload:
            raise InputValidationError(
                'Campo obrigatório ausente: "mensagem".',
                {"campo": FIELD_NAME, "tipo": "missing_field"},
            )

        value = payload[FIELD_NAME]
        if not isinstance(value, str):
            raise InputValidationError(
                'O campo "mensagem" deve ser uma string.',
                {
                    "campo": FIELD_NAME,
                    "tipo": "invalid_type",
                    "recebido": type(value).__name__,
                },
            )

        # タグのみの入力はサニタイズ後に空になるため、両方の時点で判定する。
        trimmed = value.strip()
        sanitized = collapse_whitespace(strip_tags(trimmed)) if trimmed else ""
        if not sanitized:
            raise InputValidationError(
                'O campo "mensagem" não pode estar vazio.',
                {"campo": FIELD_NAME, "tipo": "empty_string"},
            )

        if len(sanitized) > self.max_length:
            raise InputValidationError(
                f'O campo "mensagem" excede o limite de {self.max_length} caracteres '
                f"(recebido: {len(sanitized)}).",
                {
                    "campo": FIELD_NAME,
                    "tipo": "max_length_exceeded",
                    "limite": self.max_length,
                    "recebido": len(sanitized),
                },
            )

        return sanitized
