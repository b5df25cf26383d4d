"""Gemini API を呼び出してモデルの生テキストを取得する GeminiClient を提供する。

入出力: CompiledPrompt -> str(フェンス除去済みの生テキスト)。
制約:
    - 認証キー未設定時はネットワークに触れず RemoteError を送出する
    - 呼び出しはタイムアウト付きで1回のみ行い、再試行しない

Note:
    - 認証キーは x-goog-api-key ヘッダでのみ送信し、URL・ログ・例外に含めない
    - タイムアウト時は asyncio.wait_for により HTTP リクエストごとキャンセルする
    - _call_api を分離し、テストでモック可能にする
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

import httpx

from services.config import Settings
from services.inference.errors import RemoteError
from services.inference.prompt import CompiledPrompt

logger = logging.getLogger(__name__)

_LEADING_FENCE = re.compile(r"^```[\w-]*\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```$")

TOP_P = 0.8
TOP_K = 40


def strip_code_fence(text: str) -> str:
    """先頭/末尾のコードフェンス（```json ... ```）を除去する。"""
    text = text.strip()
    text = _LEADING_FENCE.sub("", text)
    text = _TRAILING_FENCE.sub("", text)
    return text.strip()


class GeminiClient:
    """Gemini REST API のクライアント。"""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """GeminiClientを初期化する。

        Args:
            settings: プロセス設定（認証キー・モデル・タイムアウト等）
            transport: httpx のトランスポート（テスト時に差し替える）
        """
        self.api_key = settings.gemini_api_key
        self.model = settings.gemini_model
        self.base_url = settings.gemini_base_url
        self.timeout_ms = settings.gemini_timeout_ms
        self.temperature = settings.gemini_temperature
        self.max_output_tokens = settings.gemini_max_output_tokens
        self.transport = transport

    async def generate(self, prompt: CompiledPrompt) -> str:
        """プロンプトを送信し、モデル応答のテキストを返す。

        Args:
            prompt: PromptBuilder が生成したプロンプト

        Returns:
            str: コードフェンスを除去した生テキスト

        Raises:
            RemoteError: 認証キー未設定・タイムアウト・空応答・API失敗時
        """
        if not self.api_key:
            raise RemoteError(
                "GEMINI_API_KEY não configurada. Defina a variável de ambiente.",
                {"tipo": "missing_credential"},
            )

        logger.info("calling gemini model=%s timeout_ms=%s", self.model, self.timeout_ms)
        try:
            raw_text = await asyncio.wait_for(
                self._call_api(prompt),
                timeout=self.timeout_ms / 1000,
            )
        except asyncio.TimeoutError as exc:
            raise RemoteError(
                f"Timeout atingido após {self.timeout_ms}ms na chamada à Gemini API.",
                {"tipo": "timeout", "timeout_ms": self.timeout_ms},
            ) from exc
        except RemoteError:
            raise
        except Exception as exc:
            raise RemoteError(
                "Falha na comunicação com a Gemini API.",
                {"tipo": "api_error", "mensagem_original": self._redact(str(exc))},
            ) from exc

        if not isinstance(raw_text, str) or not raw_text.strip():
            raise RemoteError(
                "Resposta vazia recebida da Gemini API.",
                {"tipo": "empty_response"},
            )

        return strip_code_fence(raw_text)

    def build_request_body(self, prompt: CompiledPrompt) -> dict[str, Any]:
        """generateContent のリクエストボディを組み立てる。"""
        return {
            "systemInstruction": {"parts": [{"text": prompt.system_instruction}]},
            "contents": [{"role": "user", "parts": [{"text": prompt.user_prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "topP": TOP_P,
                "topK": TOP_K,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    async def _call_api(self, prompt: CompiledPrompt) -> str | None:
        """generateContent を呼び出し、候補テキストを連結して返す。

        Returns:
            str | None: 候補が存在しない場合は None

        Note:
            - HTTP エラーは httpx.HTTPStatusError として呼び出し元へ伝播する
            - タイムアウトは呼び出し元の wait_for が管理する
        """
        url = f"{self.base_url}/v1beta/models/{self.model}:generateContent"
        async with httpx.AsyncClient(transport=self.transport, timeout=None) as client:
            response = await client.post(
                url,
                headers={"x-goog-api-key": self.api_key},
                json=self.build_request_body(prompt),
            )
            response.raise_for_status()
            data = response.json()

        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates:
            return None

        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        texts = [part.get("text", "") for part in parts if isinstance(part, dict)]
        return "".join(texts) or None

    def _redact(self, message: str) -> str:
        """例外メッセージから認証キーを除去する。"""
        if self.api_key and self.api_key in message:
            return message.replace(self.api_key, "***")
        return message
