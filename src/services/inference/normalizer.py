"""Gemini の生テキストを正規化済みの分析結果へ変換する ResponseNormalizer を提供する。

入出力: raw_text(str) -> dict(JSON)。
制約:
    - JSON として解析できない場合は SchemaError(json_parse_error) を送出する
    - 入れ子が深すぎて解析できない JSON も json_parse_error として扱う
    - analise/metricas が object でない場合は SchemaError を送出する
    - 数値化できないメトリクスは拒否し、範囲外の値は [0.0, 10.0] に丸める

Note:
    - fatos/inferencias/hipoteses が配列でない場合は空配列に補正する
    - timestamp/engine_version はモデルの値を破棄し、常にサーバー側で付与する
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import math
from typing import Any

from services.inference.errors import SchemaError

logger = logging.getLogger(__name__)

METRIC_NAMES = (
    "risco_emocional",
    "indice_manipulacao",
    "ambivalencia",
    "coerencia_interna",
)
ANALYSIS_LISTS = ("fatos", "inferencias", "hipoteses")

METRIC_MIN = 0.0
METRIC_MAX = 10.0
EXCERPT_LENGTH = 200


def coerce_metric(value: Any) -> float | None:
    """メトリクス値を有限の float に変換する。変換できない場合は None。"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        # float に収まらない巨大な整数は符号に応じて上下限へ寄せる。
        try:
            number = float(value)
        except OverflowError:
            return METRIC_MAX if value > 0 else METRIC_MIN
    elif isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def clamp(value: float) -> float:
    return min(METRIC_MAX, max(METRIC_MIN, value))


class ResponseNormalizer:
    """モデル応答を解析し、メトリクスとメタデータを正規化するクラス。"""

    def __init__(self, engine_version: str = "1.0.0") -> None:
        self.engine_version = engine_version

    def normalize(self, raw_text: str) -> dict[str, Any]:
        """生テキストを解析して正規化済みの辞書を返す。

        Args:
            raw_text: GeminiClient が返した生テキスト

        Returns:
            dict[str, Any]: analise/metricas/justificativa/timestamp/engine_version

        Raises:
            SchemaError: JSON 解析失敗・必須セクション欠落・不正なメトリクス
        """
        try:
            data = json.loads(raw_text)
        except (TypeError, ValueError, RecursionError) as exc:
            excerpt = raw_text[:EXCERPT_LENGTH] if isinstance(raw_text, str) else ""
            raise SchemaError(
                "A Gemini retornou uma resposta que não é JSON válido.",
                {"tipo": "json_parse_error", "trecho": excerpt},
            ) from exc

        if not isinstance(data, dict):
            raise SchemaError(
                "A resposta da Gemini não é um objeto JSON.",
                {"tipo": "missing_field", "campo": "(raiz)"},
            )

        analysis = self._require_section(data, "analise")
        metrics = self._require_section(data, "metricas")

        normalized_metrics = {
            name: self._normalize_metric(metrics.get(name), name) for name in METRIC_NAMES
        }

        # 構造系の配列は欠落を許容し、空配列へ補正する。
        normalized_analysis = {}
        for name in ANALYSIS_LISTS:
            items = analysis.get(name)
            if not isinstance(items, list):
                logger.debug("analise.%s is not a list, defaulting to []", name)
                items = []
            normalized_analysis[name] = items

        justification = data.get("justificativa")

        return {
            "analise": normalized_analysis,
            "metricas": normalized_metrics,
            "justificativa": justification if isinstance(justification, str) else "",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "engine_version": self.engine_version,
        }

    def _require_section(self, data: dict[str, Any], name: str) -> dict[str, Any]:
        section = data.get(name)
        if not isinstance(section, dict):
            raise SchemaError(
                f'Campo "{name}" ausente ou inválido na resposta Gemini.',
                {"tipo": "missing_field", "campo": name},
            )
        return section

    def _normalize_metric(self, value: Any, name: str) -> float:
        """メトリクスを数値化し、範囲内に丸める。

        Raises:
            SchemaError: 有限の数値に変換できない場合
        """
        number = coerce_metric(value)
        if number is None:
            # NaN/Infinity は JSON レスポンスに載せられないため文字列化する。
            received = str(value) if isinstance(value, float) else value
            raise SchemaError(
                f'Métrica inválida: "{name}" não é um número válido.',
                {"tipo": "invalid_metric", "metrica": name, "valor_recebido": received},
            )
        return clamp(number)
