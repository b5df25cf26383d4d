"""ヘルスチェックエンドポイントの疎通を検証するテストを提供する。

入出力: GET /health -> HTTPレスポンス。
制約:
    - ステータスコードは 200
    - レスポンスJSONは status/engine_version/timestamp を含む

Note:
    - DEMO_URL がある場合は実URLを検証する
    - DEMO_URL 未指定時は TestClient でローカル検証する
"""

from __future__ import annotations

from datetime import datetime
import os
from typing import Any

import requests
from fastapi.testclient import TestClient

from services.api.main import app

BASE_URL = os.environ.get("DEMO_URL", "").strip()


def _get(path: str) -> Any:
    """環境に応じて GET リクエストのレスポンスを取得する。

    Returns:
        Any: requests.Response または TestClient のレスポンス
    """
    if BASE_URL:
        return requests.get(f"{BASE_URL}{path}", timeout=10)

    client = TestClient(app)
    return client.get(path)


def test_health_endpoint_returns_200():
    """GET /health が 200 を返すことを確認する。"""
    resp = _get("/health")
    assert resp.status_code == 200


def test_health_response_has_status_ok():
    """GET /health のJSONが status=ok を返すことを確認する。"""
    resp = _get("/health")
    assert resp.json().get("status") == "ok"


def test_health_response_has_engine_version_and_timestamp():
    """engine_version と ISO 8601 の timestamp を返すことを確認する。"""
    body = _get("/health").json()
    assert body["engine_version"]
    assert datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00"))


def test_health_response_has_security_headers():
    """セキュリティヘッダが付与されることを確認する。"""
    resp = _get("/health")
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "SAMEORIGIN"


def test_unknown_route_returns_structured_404():
    """未定義ルートが構造化された 404 を返すことを確認する。"""
    resp = _get("/nao-existe")
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"] == "NotFound"
    assert body["code"] == 404
    assert "/nao-existe" in body["message"]
