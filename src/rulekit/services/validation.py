"""名前付きルールセットの読み込みと検証を行うサービス。"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from rulekit.models.errors import RuleSetNotFoundError
from rulekit.models.validation import ValidationOutcome
from rulekit.validators.compiler import RuleCompiler, RuleSet, load_rule_file
from rulekit.validators.runner import ValidationRunner

logger = structlog.get_logger()


class ValidationService:
    """config_dir/rules/*.yaml のルールセットを管理する。

    ルールセットは初回参照時にコンパイルしてキャッシュする。
    """

    def __init__(self, config_dir: Path, strict: bool = False) -> None:
        self._rules_dir = config_dir / "rules"
        self._compiler = RuleCompiler(strict=strict)
        self._runners: dict[str, ValidationRunner] = {}

    def _rule_file(self, name: str) -> Path:
        # ディレクトリトラバーサル防止
        if Path(name).name != name or not name:
            raise RuleSetNotFoundError(name)
        return self._rules_dir / f"{name}.yaml"

    def list_rule_sets(self) -> list[str]:
        """利用可能なルールセット名の一覧を返す。"""
        if not self._rules_dir.exists():
            return []
        return sorted(p.stem for p in self._rules_dir.glob("*.yaml"))

    def _runner(self, name: str) -> ValidationRunner:
        runner = self._runners.get(name)
        if runner is None:
            rule_file = self._rule_file(name)
            if not rule_file.exists():
                raise RuleSetNotFoundError(name)
            rule_set = self._compiler.compile(load_rule_file(rule_file))
            runner = ValidationRunner(rule_set)
            self._runners[name] = runner
            logger.info("Rule set loaded", rule_set=name, fields=len(rule_set))
        return runner

    def get_rule_set(self, name: str) -> RuleSet:
        """ルールセットを取得する。

        Raises:
            RuleSetNotFoundError: ルールファイルが存在しない場合。
            RuleConfigError: ルール定義が不正な場合。
        """
        return self._runner(name).rule_set

    async def validate(self, name: str, record: Mapping[str, Any]) -> ValidationOutcome:
        """名前付きルールセットでレコードを検証する。"""
        return await self._runner(name).validate(record)
