"""ルール文字列のトークナイザ。"""

from collections.abc import Mapping

from rulekit.models.rules import CustomRule, ParsedRule, RuleSpec

# カンマ区切りで全要素に分割するタグ
_LIST_PARAM_TAGS: set[str] = {"length", "between", "in"}

# 最初のカンマのみで「フィールド名,値」に分割するタグ
CROSS_FIELD_TAGS: set[str] = {"required_if", "required_unless", "prohibited_if"}


def normalize_spec(spec: RuleSpec) -> tuple[list[str], list[CustomRule]]:
    """RuleSpecを文字列トークンとカスタム述語に分ける。

    文字列は "|" で分割する。シーケンスの場合は各要素を振り分け、
    それぞれの中での順序は保持する。

    Args:
        spec: フィールドのルール定義。

    Returns:
        (文字列トークンのリスト, カスタム述語のリスト)。
    """
    if isinstance(spec, str):
        return spec.split("|"), []

    tokens: list[str] = []
    customs: list[CustomRule] = []
    for item in spec:
        if isinstance(item, str):
            tokens.append(item)
        elif isinstance(item, CustomRule):
            customs.append(item)
        elif isinstance(item, Mapping) and "custom" in item:
            customs.append(CustomRule(check=item["custom"], message=item.get("message")))
    return tokens, customs


def parse_token(token: str) -> ParsedRule:
    """1トークンをParsedRuleにデコードする。

    ":" を含むトークンは最初の ":" でタグとパラメータに分け、
    パラメータはタグごとの規則で分割する。
    """
    if ":" not in token:
        return ParsedRule(tag=token, raw=token)

    tag, raw_params = token.split(":", 1)
    if tag in _LIST_PARAM_TAGS:
        params = tuple(raw_params.split(","))
    elif tag in CROSS_FIELD_TAGS:
        # 比較値にカンマを含めることはできない
        other, sep, value = raw_params.partition(",")
        params = (other, value) if sep else (raw_params,)
    else:
        params = (raw_params,)
    return ParsedRule(tag=tag, params=params, raw=token)


def parse_spec(spec: RuleSpec) -> tuple[list[ParsedRule], list[CustomRule]]:
    """RuleSpec全体をデコードする。"""
    tokens, customs = normalize_spec(spec)
    return [parse_token(t) for t in tokens], customs
