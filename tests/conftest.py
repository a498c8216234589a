"""テスト共通フィクスチャ。"""

from pathlib import Path

import pytest

from rulekit.config import ServerConfig
from rulekit.services.validation import ValidationService
from rulekit.validators.compiler import RuleCompiler


@pytest.fixture
def config_dir() -> Path:
    """設定ファイルディレクトリ。"""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def compiler() -> RuleCompiler:
    """テスト用RuleCompiler（lenientモード）。"""
    return RuleCompiler()


@pytest.fixture
def validation_service(config_dir: Path) -> ValidationService:
    """テスト用ValidationService。"""
    return ValidationService(config_dir=config_dir)


@pytest.fixture
def server_config(config_dir: Path) -> ServerConfig:
    """テスト用ServerConfig。"""
    return ServerConfig(config_dir=config_dir)
