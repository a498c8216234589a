"""rulekitのカスタム例外クラス。"""


class RulekitError(Exception):
    """rulekitの基底例外クラス。"""


class RuleConfigError(RulekitError):
    """ルール定義が不正な場合の例外。コンパイル時に送出される。"""

    def __init__(self, field: str, rule: str, reason: str) -> None:
        super().__init__(f"Invalid rule '{rule}' for field '{field}': {reason}")
        self.field = field
        self.rule = rule
        self.reason = reason


class RuleSetNotFoundError(RulekitError):
    """指定されたルールセットが見つからない場合の例外。"""

    def __init__(self, name: str) -> None:
        super().__init__(f"Rule set not found: {name}")
        self.name = name


class SanitizeDepthError(RulekitError):
    """サニタイズ対象のネストが上限を超えた場合の例外。"""

    def __init__(self, max_depth: int) -> None:
        super().__init__(f"Value nesting exceeds maximum sanitize depth: {max_depth}")
        self.max_depth = max_depth
