"""バリデーション結果のデータモデル。"""

from typing import Any

from pydantic import BaseModel, Field


class ValidationOutcome(BaseModel):
    """1レコード分のバリデーション結果。

    errors はフィールド宣言順、フィールド内ではルール宣言順に並ぶ。
    data は default 等の変換を適用した後のレコード。
    """

    errors: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return not self.errors
