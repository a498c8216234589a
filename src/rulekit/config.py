"""rulekitサーバーの設定管理。"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

_PACKAGE_ROOT = Path(__file__).parent
_REPO_ROOT = _PACKAGE_ROOT.parent.parent


class ServerConfig(BaseSettings):
    """サーバー設定。環境変数から読み込み可能。"""

    model_config = {"env_prefix": "RULEKIT_"}

    config_dir: Path = _REPO_ROOT / "config"
    host: str = "0.0.0.0"
    port: int = 8000

    # ルールコンパイル
    strict_rules: bool = False

    # リクエスト処理
    sanitize_requests: bool = True
    sanitize_max_depth: int | None = None
    error_status_code: int = 422

    # ロギング
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
