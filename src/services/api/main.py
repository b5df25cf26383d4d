"""行動言語分析エンジンの API エンドポイントを提供する。

入出力: POST /analisar, GET /health -> JSONレスポンス。
制約:
    - /analisar は {"mensagem": str} を受け取り、Schema Gate 通過済みのJSONのみを返す
    - 失敗時は {error, code, message, details} 形式で返し、production では details を null にする
    - 全レスポンスにセキュリティヘッダとレート制限ヘッダを付与する
    - MAX_BODY_BYTES を超えるボディは 413 で拒否し、パイプラインを実行しない

Note:
    - /analisar は Orchestrator を経由して5ステージのパイプラインを実行する
    - 例外は classify_error に集約してステータスへ変換する
    - GEMINI_API_KEY はログにもレスポンスにも出力しない
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus
import logging
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from services.api.errors import ErrorBody, classify_error
from services.api.middleware import (
    BODY_METHODS,
    PAYLOAD_TOO_LARGE_MESSAGE,
    RATE_LIMIT_MESSAGE,
    SECURITY_HEADERS,
    FixedWindowRateLimiter,
)
from services.config import Settings
from services.inference.errors import (
    InputValidationError,
    MalformedBodyError,
    PipelineError,
)
from services.inference.orchestrator import Orchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = Settings.from_env()
orchestrator = Orchestrator(settings)
rate_limiter = FixedWindowRateLimiter(
    max_requests=settings.rate_limit_max,
    window_seconds=settings.rate_limit_window_seconds,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """起動時に設定の概要をログ出力する。"""
    logger.info("engine version: %s", settings.engine_version)
    logger.info("gemini model: %s", settings.gemini_model)
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not configured; /analisar will return 502")
    yield


app = FastAPI(
    title="behavior-analysis-engine",
    version=settings.engine_version,
    lifespan=lifespan,
)


class AnalyzeRequest(BaseModel):
    """/analisar のリクエストボディ。

    Args:
        mensagem: 分析対象の自然文（型検証は InputSanitizer が行う）
    """

    mensagem: Any = None


def _error_response(exc: BaseException) -> JSONResponse:
    result = classify_error(
        exc,
        production=settings.is_production,
        secret=settings.gemini_api_key,
    )
    return JSONResponse(status_code=result.status_code, content=result.body.model_dump())


def _unhandled_response(exc: Exception) -> JSONResponse:
    if settings.is_production:
        logger.error("unhandled %s: %s", type(exc).__name__, exc)
    else:
        logger.error("unhandled %s: %s", type(exc).__name__, exc, exc_info=exc)
    return _error_response(exc)


@app.middleware("http")
async def catch_unhandled(request: Request, call_next):
    """未分類の例外をミドルウェア内で 500 に変換する。

    Note:
        - 外側のミドルウェアを通るため、500 にもセキュリティヘッダとレート制限ヘッダが付く
    """
    try:
        return await call_next(request)
    except Exception as exc:
        return _unhandled_response(exc)


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    """上限を超えるリクエストボディを 413 で拒否する。

    Note:
        - Content-Length が無い場合のみボディを読み込んで実サイズを測る
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit():
        size = int(declared)
    elif request.method in BODY_METHODS:
        size = len(await request.body())
    else:
        size = 0

    limit = settings.max_body_bytes
    if size <= limit:
        return await call_next(request)

    logger.warning("request body of %d bytes exceeds limit of %d", size, limit)
    body = ErrorBody(
        error="PayloadTooLarge",
        code=413,
        message=PAYLOAD_TOO_LARGE_MESSAGE,
        details=None if settings.is_production else {"limite": limit, "recebido": size},
    )
    return JSONResponse(status_code=413, content=body.model_dump())


@app.middleware("http")
async def rate_limit(request: Request, call_next):
    """クライアントアドレス単位でリクエスト数を制限する。"""
    client = request.client.host if request.client else "unknown"
    decision = rate_limiter.hit(client)
    if decision.allowed:
        response = await call_next(request)
    else:
        logger.warning("rate limit exceeded for client")
        body = ErrorBody(error="TooManyRequests", code=429, message=RATE_LIMIT_MESSAGE)
        response = JSONResponse(status_code=429, content=body.model_dump())

    for name, value in decision.headers().items():
        response.headers[name] = value
    return response


@app.middleware("http")
async def security_headers(request: Request, call_next):
    """全レスポンスにセキュリティヘッダを付与する。"""
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    logger.warning("%s: %s", type(exc).__name__, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """ボディの構文エラーは InvalidJSON、それ以外は ValidationError に変換する。"""
    if any(error.get("type") == "json_invalid" for error in exc.errors()):
        error: PipelineError = MalformedBodyError(
            "O corpo da requisição contém JSON inválido."
        )
    else:
        error = InputValidationError(
            "O corpo da requisição deve ser um objeto JSON.",
            {"campo": "body", "tipo": "invalid_body"},
        )
    logger.warning("%s: %s", type(error).__name__, error.message)
    return _error_response(error)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        body = ErrorBody(
            error="NotFound",
            code=404,
            message=f"Rota '{request.method} {request.url.path}' não existe.",
        )
    else:
        phrase = HTTPStatus(exc.status_code).phrase
        body = ErrorBody(
            error=phrase.replace(" ", ""),
            code=exc.status_code,
            message=str(exc.detail),
        )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return _unhandled_response(exc)


@app.get("/health")
def health() -> dict[str, str]:
    """ヘルスチェック結果を返す。

    Returns:
        dict[str, str]: status/engine_version/timestamp
    """
    return {
        "status": "ok",
        "engine_version": settings.engine_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/analisar")
async def analisar(req: AnalyzeRequest | None = Body(default=None)) -> dict[str, Any]:
    """自然文を分析し、検証済みの分析JSONを返す。

    Args:
        req: mensagem を含む入力モデル（ボディ未指定時は None）

    Returns:
        dict[str, Any]: Schema Gate 通過済みの分析結果

    Raises:
        PipelineError: 各ステージの失敗時（exception handler で HTTP へ変換）
    """
    # 未送信フィールドと null を区別するため、設定済みの項目のみを渡す。
    payload = req.model_dump(exclude_unset=True) if req is not None else None
    return await orchestrator.run(payload)
