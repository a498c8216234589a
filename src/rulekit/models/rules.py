"""ルール定義関連のデータモデル。"""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict


class _Missing:
    """レコードにフィールドが存在しないことを表すセンチネル。"""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True)
class RuleContext:
    """カスタム述語・クロスフィールドルールに渡される評価コンテキスト。

    record は検証中のレコードそのもの（コピーではない）。
    """

    field: str
    record: dict[str, Any]

    def get(self, name: str) -> Any:
        return self.record.get(name, MISSING)


Predicate = Callable[[Any, RuleContext], bool | Awaitable[bool]]


class ParsedRule(BaseModel):
    """ルール文字列の1トークンをデコードした結果。"""

    model_config = ConfigDict(frozen=True)

    tag: str
    params: tuple[str, ...] = ()
    raw: str

    @property
    def parameterized(self) -> bool:
        return ":" in self.raw


class CustomRule(BaseModel):
    """呼び出し側が渡すカスタム述語。"""

    model_config = ConfigDict(frozen=True)

    check: Predicate
    message: str | None = None


RuleItem = str | CustomRule | Mapping[str, Any]
RuleSpec = str | Sequence[RuleItem]
