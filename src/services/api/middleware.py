"""API 全体に適用するレート制限・ボディサイズ制限・セキュリティヘッダを提供する。

入出力: クライアント識別子 -> RateLimitDecision / レスポンスヘッダ。
制約:
    - レート制限はクライアントアドレス単位の固定時間窓で判定する
    - 分析パイプライン本体はこのモジュールに依存しない

Note:
    - カウンタはプロセス内メモリのみで保持する
    - 期限切れの時間窓は時間窓1回分ごとにまとめて破棄する
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import time
from typing import Callable

SECURITY_HEADERS: dict[str, str] = {
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'self'; object-src 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}

RATE_LIMIT_MESSAGE = "Limite de requisições atingido. Tente novamente em alguns minutos."
PAYLOAD_TOO_LARGE_MESSAGE = "O corpo da requisição excede o tamanho máximo permitido."
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass(frozen=True)
class RateLimitDecision:
    """1リクエストに対するレート制限の判定結果。"""

    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_seconds),
        }


class FixedWindowRateLimiter:
    """クライアントごとに固定時間窓でリクエスト数を制限するクラス。"""

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: int = 900,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """RateLimiterを初期化する。

        Args:
            max_requests: 時間窓あたりの最大リクエスト数
            window_seconds: 時間窓の長さ(秒)
            clock: 現在時刻(秒)を返す関数（テスト時に差し替える）
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_prune = clock()

    def hit(self, key: str) -> RateLimitDecision:
        """key のリクエストを1件記録し、許可可否を返す。"""
        now = self.clock()
        if now - self._last_prune >= self.window_seconds:
            self._prune(now)

        started_at, count = self._windows.get(key, (now, 0))
        if now - started_at >= self.window_seconds:
            started_at, count = now, 0

        count += 1
        self._windows[key] = (started_at, count)

        reset_seconds = max(0, math.ceil(started_at + self.window_seconds - now))
        return RateLimitDecision(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_seconds=reset_seconds,
        )

    def reset(self) -> None:
        """全クライアントのカウンタを破棄する。"""
        self._windows.clear()

    def _prune(self, now: float) -> None:
        expired = [
            key
            for key, (started_at, _) in self._windows.items()
            if now - started_at >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._last_prune = now
