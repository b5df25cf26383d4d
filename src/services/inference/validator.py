"""分析レスポンスを最終検証する Schema Gate（ResponseValidator）を提供する。

入出力: payload(dict) -> dict(検証済み)。
制約:
    - contracts/analysis_response.schema.json (Draft7) を唯一の判定基準とする
    - スキーマ未定義のフィールドは検証前に除去する
    - 違反は最初の1件ではなく全件を SchemaError に集約する

Note:
    - 検証済みの値を再検証しても同一内容を返す（冪等）
    - 入力オブジェクトは変更せず、除去後のコピーを返す
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator, FormatChecker

from services.inference.errors import SchemaError

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "contracts/analysis_response.schema.json"


def load_schema(path: Path = SCHEMA_PATH) -> dict[str, Any]:
    """JSON Schema ファイルを読み込む。"""
    return json.loads(path.read_text(encoding="utf-8"))


@dataclass(frozen=True)
class SchemaViolation:
    """スキーマ違反1件を表すデータ。"""

    location: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"local": self.location, "mensagem": self.message}


def strip_undeclared(instance: Any, schema: dict[str, Any]) -> Any:
    """スキーマで宣言されていないプロパティを再帰的に除去したコピーを返す。

    Args:
        instance: 対象の値
        schema: instance に対応するサブスキーマ

    Returns:
        Any: 未宣言フィールドを除いた値（入力は変更しない）

    Note:
        - additionalProperties が false の object のみ除去対象とする
        - oneOf を持つ要素は、dict の場合 object 側の分岐に従って除去する
    """
    if isinstance(instance, dict):
        if "properties" not in schema:
            for branch in schema.get("oneOf", []):
                if branch.get("type") == "object":
                    return strip_undeclared(instance, branch)
            return deepcopy(instance)

        properties = schema["properties"]
        closed = schema.get("additionalProperties", True) is False
        result: dict[str, Any] = {}
        for key, value in instance.items():
            if key in properties:
                result[key] = strip_undeclared(value, properties[key])
            elif not closed:
                result[key] = deepcopy(value)
        return result

    if isinstance(instance, list):
        items = schema.get("items")
        if isinstance(items, dict):
            return [strip_undeclared(item, items) for item in instance]
        return deepcopy(instance)

    return instance


def _location(path: Any) -> str:
    parts = [str(part) for part in path]
    return "/" + "/".join(parts) if parts else "(raiz)"


class ResponseValidator:
    """分析レスポンスの最終構造検証を行うクラス。"""

    def __init__(self, schema: dict[str, Any] | None = None) -> None:
        """Validatorを初期化する。

        Args:
            schema: 検証に用いる JSON Schema（未指定時は contracts から読み込む）
        """
        self.schema = schema or load_schema()
        Draft7Validator.check_schema(self.schema)
        self._validator = Draft7Validator(self.schema, format_checker=FormatChecker())

    def violations(self, payload: Any) -> list[SchemaViolation]:
        """payload のスキーマ違反を全件返す。違反がなければ空リスト。"""
        errors = sorted(
            self._validator.iter_errors(payload),
            key=lambda error: (_location(error.absolute_path), error.message),
        )
        return [
            SchemaViolation(location=_location(error.absolute_path), message=error.message)
            for error in errors
        ]

    def validate(self, payload: Any) -> dict[str, Any]:
        """未宣言フィールドを除去したうえでスキーマ検証を行う。

        Args:
            payload: ResponseNormalizer が生成した辞書

        Returns:
            dict[str, Any]: 検証を通過した辞書（未宣言フィールド除去済み）

        Raises:
            SchemaError: スキーマ違反が1件以上ある場合、または入れ子が深すぎて走査できない場合
        """
        try:
            stripped = strip_undeclared(payload, self.schema)
            issues = self.violations(stripped)
        except RecursionError as exc:
            raise SchemaError(
                "Resposta interna não atende ao schema de validação.",
                {
                    "tipo": "schema_validation_failed",
                    "erros": [
                        SchemaViolation(
                            location="(raiz)",
                            message="nesting depth exceeds the supported limit",
                        ).as_dict()
                    ],
                },
            ) from exc
        if issues:
            raise SchemaError(
                "Resposta interna não atende ao schema de validação.",
                {
                    "tipo": "schema_validation_failed",
                    "erros": [issue.as_dict() for issue in issues],
                },
            )
        return stripped
