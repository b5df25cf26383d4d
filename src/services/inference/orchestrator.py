"""Sanitizer -> PromptBuilder -> GeminiClient -> Normalizer -> Validator を統合する Orchestrator を提供する。

入出力: payload(dict) -> dict(JSON)。
制約:
    - 実行順は Sanitizer -> PromptBuilder -> GeminiClient -> Normalizer -> Validator に固定する
    - いずれかのステージの失敗は後続を実行せずにそのまま伝播する
    - 再試行は行わない（外部呼び出しの失敗はリクエスト全体の失敗とする）

Note:
    - リクエスト間で共有するのは読み取り専用の設定のみ
    - 外部呼び出し（GeminiClient）が唯一の中断・キャンセル点となる
"""

from __future__ import annotations

import logging
from typing import Any

from services.config import Settings
from services.inference.gemini_client import GeminiClient
from services.inference.normalizer import ResponseNormalizer
from services.inference.prompt import PromptBuilder
from services.inference.sanitizer import InputSanitizer
from services.inference.validator import ResponseValidator

logger = logging.getLogger(__name__)


class Orchestrator:
    """分析パイプラインの各ステージを順に実行する。"""

    def __init__(
        self,
        settings: Settings | None = None,
        sanitizer: InputSanitizer | None = None,
        prompt_builder: PromptBuilder | None = None,
        invoker: GeminiClient | None = None,
        normalizer: ResponseNormalizer | None = None,
        validator: ResponseValidator | None = None,
    ) -> None:
        """Orchestratorを初期化する。

        Args:
            settings: プロセス設定（未指定時は既定値）
            sanitizer: InputSanitizer実装（未指定時は設定から生成）
            prompt_builder: PromptBuilder実装（未指定時は設定から生成）
            invoker: GeminiClient実装（未指定時は設定から生成）
            normalizer: ResponseNormalizer実装（未指定時は設定から生成）
            validator: ResponseValidator実装（未指定時は既定スキーマ）
        """
        settings = settings or Settings()
        self.sanitizer = sanitizer or InputSanitizer(settings.max_message_length)
        self.prompt_builder = prompt_builder or PromptBuilder(settings.engine_version)
        self.invoker = invoker or GeminiClient(settings)
        self.normalizer = normalizer or ResponseNormalizer(settings.engine_version)
        self.validator = validator or ResponseValidator()

    async def run(self, payload: Any) -> dict[str, Any]:
        """リクエストペイロードを分析し、検証済みの結果を返す。

        Args:
            payload: mensagem を含むリクエストボディ

        Returns:
            dict[str, Any]: Schema Gate を通過した分析結果

        Raises:
            InputValidationError: 入力が不正な場合
            RemoteError: Gemini 呼び出しが失敗した場合
            SchemaError: モデル応答の解析・検証に失敗した場合
        """
        text = self.sanitizer.sanitize(payload)
        logger.debug("sanitized input length=%d", len(text))

        prompt = self.prompt_builder.build(text)

        raw_text = await self.invoker.generate(prompt)
        logger.debug("received model response length=%d", len(raw_text))

        normalized = self.normalizer.normalize(raw_text)
        validated = self.validator.validate(normalized)

        logger.info("analysis completed engine_version=%s", validated["engine_version"])
        return validated
