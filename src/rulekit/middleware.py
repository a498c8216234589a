"""Starlette向けのサニタイズミドルウェアとバリデーションデコレータ。"""

import functools
import json
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qsl, urlencode

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from rulekit.models.errors import SanitizeDepthError
from rulekit.sanitizer import clean, deep_clean
from rulekit.validators.compiler import RuleSet
from rulekit.validators.runner import ValidationRunner

logger = structlog.get_logger()

Endpoint = Callable[[Request], Awaitable[Response]]


class SanitizeMiddleware:
    """JSONボディとクエリパラメータの文字列をサニタイズするミドルウェア。

    ボディとクエリはそれぞれ独立したツリーとして deep_clean を適用する。
    パスパラメータはルーティング後に確定するため collect_record 側で処理する。
    """

    def __init__(self, app: ASGIApp, max_depth: int | None = None) -> None:
        self.app = app
        self.max_depth = max_depth

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope = dict(scope)
        query_string: bytes = scope.get("query_string", b"")
        if query_string:
            pairs = parse_qsl(query_string.decode("latin-1"), keep_blank_values=True)
            scope["query_string"] = urlencode([(k, clean(v)) for k, v in pairs]).encode("latin-1")

        content_type = Headers(scope=scope).get("content-type", "")
        if "application/json" not in content_type:
            await self.app(scope, receive, send)
            return

        body = b""
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body += message.get("body", b"")
            more_body = message.get("more_body", False)

        try:
            cleaned = self._clean_body(body)
        except SanitizeDepthError as e:
            response = JSONResponse({"errors": [str(e)]}, status_code=400)
            await response(scope, receive, send)
            return

        headers = MutableHeaders(scope=scope)
        headers["content-length"] = str(len(cleaned))
        logger.debug("Request sanitized", path=scope.get("path"), body_bytes=len(cleaned))

        sent = False

        async def replay() -> Message:
            nonlocal sent
            if sent:
                return await receive()
            sent = True
            return {"type": "http.request", "body": cleaned, "more_body": False}

        await self.app(scope, replay, send)

    def _clean_body(self, body: bytes) -> bytes:
        try:
            payload = json.loads(body)
        except ValueError:
            # 不正なJSONはそのまま下流に渡す
            return body
        return json.dumps(deep_clean(payload, self.max_depth)).encode("utf-8")


async def json_body(request: Request) -> dict[str, Any]:
    """リクエストボディをJSONオブジェクトとして読み込む。

    空ボディやオブジェクト以外のJSONは空のdictとして扱う。

    Raises:
        ValueError: ボディがJSONとして不正な場合。
    """
    body = await request.body()
    if not body:
        return {}
    payload = json.loads(body)
    return payload if isinstance(payload, dict) else {}


async def collect_record(request: Request, sanitize: bool = True) -> dict[str, Any]:
    """パスパラメータ・クエリ・ボディを1つのレコードにまとめる。

    後のものが優先される（ボディ > クエリ > パスパラメータ）。
    """
    params: dict[str, Any] = dict(request.path_params)
    if sanitize:
        params = deep_clean(params)
    record = {**params, **dict(request.query_params)}
    record.update(await json_body(request))
    return record


def validate_with(
    rule_set: RuleSet,
    status_code: int = 422,
    sanitize_params: bool = True,
) -> Callable[[Endpoint], Endpoint]:
    """エンドポイントの前にルールセットによる検証を挟むデコレータ。

    検証に失敗した場合は {"errors": [...]} を status_code で返す。
    成功した場合は変換後のレコードを request.state.validated に格納する。
    """
    runner = ValidationRunner(rule_set)

    def decorator(endpoint: Endpoint) -> Endpoint:
        @functools.wraps(endpoint)
        async def wrapper(request: Request) -> Response:
            try:
                record = await collect_record(request, sanitize=sanitize_params)
            except ValueError:
                return JSONResponse({"errors": ["Malformed JSON body"]}, status_code=400)

            outcome = await runner.validate(record)
            if not outcome.accepted:
                return JSONResponse({"errors": outcome.errors}, status_code=status_code)

            request.state.validated = outcome.data
            return await endpoint(request)

        return wrapper

    return decorator
