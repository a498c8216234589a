"""入れ子データ中の文字列からHTML・スクリプトを取り除くサニタイザ。"""

import re
from collections.abc import Mapping
from typing import Any

from rulekit.models.errors import SanitizeDepthError

_JAVASCRIPT_URI_RE = re.compile(r"javascript\s*:[^;\s]+;?", re.IGNORECASE)
_EVENT_HANDLER_DQ_RE = re.compile(r"(^|\s)on\w+=\"[^\"]*\"", re.IGNORECASE)
_EVENT_HANDLER_SQ_RE = re.compile(r"(^|\s)on\w+='[^']*'", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>?")


def clean(value: str) -> str:
    """1つの文字列をサニタイズする。

    1. 前後の空白を除去
    2. javascript: スキームを除去
    3. on* イベントハンドラ属性を除去
    4. HTMLタグを除去（1パスのみ。除去後の文字列は再走査しない）
    """
    sanitized = value.strip()
    sanitized = _JAVASCRIPT_URI_RE.sub("", sanitized)
    sanitized = _EVENT_HANDLER_DQ_RE.sub("", sanitized)
    sanitized = _EVENT_HANDLER_SQ_RE.sub("", sanitized)
    return _TAG_RE.sub("", sanitized)


def deep_clean(value: Any, max_depth: int | None = None) -> Any:
    """値ツリーの全ての文字列にcleanを適用する。

    リスト・タプルとマッピングは同じ形・同じキーで再構築し、
    それ以外の値はそのまま返す。循環参照は扱わない。

    Args:
        value: サニタイズ対象の値。
        max_depth: コンテナのネスト上限。Noneの場合は無制限。

    Raises:
        SanitizeDepthError: ネストが max_depth を超えた場合。
    """
    return _deep_clean(value, max_depth, 0)


def _deep_clean(value: Any, max_depth: int | None, depth: int) -> Any:
    if isinstance(value, str):
        return clean(value)
    if isinstance(value, (list, tuple, Mapping)):
        if max_depth is not None and depth >= max_depth:
            raise SanitizeDepthError(max_depth)
        if isinstance(value, Mapping):
            return {key: _deep_clean(item, max_depth, depth + 1) for key, item in value.items()}
        cleaned = [_deep_clean(item, max_depth, depth + 1) for item in value]
        return tuple(cleaned) if isinstance(value, tuple) else cleaned
    return value
