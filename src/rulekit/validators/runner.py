"""コンパイル済みルールセットをレコードに適用するランナー。"""

from collections.abc import Mapping
from typing import Any

import structlog

from rulekit.models.validation import ValidationOutcome
from rulekit.validators.compiler import RuleSet

logger = structlog.get_logger()


class ValidationRunner:
    """全フィールドのバリデータを実行し、エラーを集約する。

    最初の失敗で止めず、全フィールド・全ルールを評価する。
    ルールセットは読み取り専用のため、複数の検証で共有してよい。
    """

    def __init__(self, rule_set: RuleSet) -> None:
        self._rule_set = rule_set

    @property
    def rule_set(self) -> RuleSet:
        return self._rule_set

    async def validate(self, record: Mapping[str, Any]) -> ValidationOutcome:
        """1レコードを検証する。

        入力レコードは変更せず、変換後のレコードを結果の data として返す。

        Args:
            record: フィールド名 -> 送信値のマッピング。

        Returns:
            エラーメッセージと変換後レコードを持つ検証結果。
        """
        data = dict(record)
        errors: list[str] = []
        for validator in self._rule_set:
            errors.extend(await validator.run(data))

        logger.debug(
            "Record validated",
            fields=len(self._rule_set),
            errors=len(errors),
        )
        return ValidationOutcome(errors=errors, data=data)
