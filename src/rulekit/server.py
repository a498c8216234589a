"""rulekitのリファレンスHTTPアプリケーション。"""

import logging

import structlog
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from rulekit.config import ServerConfig
from rulekit.middleware import SanitizeMiddleware, json_body
from rulekit.models.errors import RuleConfigError, RuleSetNotFoundError
from rulekit.services.validation import ValidationService

logger = structlog.get_logger()


def configure_logging(config: ServerConfig) -> None:
    """structlogの出力形式とログレベルを設定する。"""
    logging.basicConfig(format="%(message)s", level=config.log_level.upper())
    renderer = (
        structlog.processors.JSONRenderer() if config.log_format == "json" else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_app(config: ServerConfig | None = None) -> Starlette:
    """ルールセット検証用のStarletteアプリケーションを作成する。

    Args:
        config: サーバー設定。Noneの場合はデフォルト設定を使用。

    Returns:
        設定済みのStarletteインスタンス。
    """
    if config is None:
        config = ServerConfig()

    service = ValidationService(config_dir=config.config_dir, strict=config.strict_rules)

    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok"})

    async def list_rule_sets(request: Request) -> JSONResponse:
        return JSONResponse({"rule_sets": service.list_rule_sets()})

    async def validate(request: Request) -> JSONResponse:
        name = request.path_params["rule_set"]
        try:
            record = await json_body(request)
        except ValueError:
            return JSONResponse({"errors": ["Malformed JSON body"]}, status_code=400)

        try:
            outcome = await service.validate(name, record)
        except RuleSetNotFoundError as e:
            return JSONResponse({"error": "Not Found", "message": str(e)}, status_code=404)
        except RuleConfigError as e:
            logger.error("Invalid rule set", rule_set=name, field=e.field, rule=e.rule, reason=e.reason)
            return JSONResponse({"error": "Invalid rule set", "message": str(e)}, status_code=500)

        if not outcome.accepted:
            return JSONResponse({"errors": outcome.errors}, status_code=config.error_status_code)
        return JSONResponse({"success": True, "body": outcome.data})

    middleware = []
    if config.sanitize_requests:
        middleware.append(Middleware(SanitizeMiddleware, max_depth=config.sanitize_max_depth))

    return Starlette(
        routes=[
            Route("/health", health_check, methods=["GET"]),
            Route("/rule-sets", list_rule_sets, methods=["GET"]),
            Route("/validate/{rule_set}", validate, methods=["POST"]),
        ],
        middleware=middleware,
    )
