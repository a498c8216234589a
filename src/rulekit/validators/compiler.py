"""ルール文字列からフィールドバリデータを構築するコンパイラ。"""

import re
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import structlog
import yaml

from rulekit.models.errors import RuleConfigError
from rulekit.models.rules import MISSING, CustomRule, ParsedRule, RuleContext, RuleSpec
from rulekit.validators.checks import (
    BASIC_PREDICATES,
    Check,
    CrossFieldCheck,
    CustomCheck,
    DefaultValue,
    PredicateCheck,
    Transform,
    TrimString,
    as_number,
    as_text,
    format_number,
    is_empty,
    loosely_equals,
    strictly_equals,
)
from rulekit.validators.parser import CROSS_FIELD_TAGS, parse_spec

logger = structlog.get_logger()

_LEADING_INT_RE = re.compile(r"^\s*([-+]?\d+)")

# min/max/between を数値比較として解釈させるタグ
_NUMERIC_TAGS: set[str] = {"integer", "numeric"}

# チェックを生成しない、フィールド全体に効くフラグ
_FLAG_TAGS: set[str] = {"optional", "nullable"}

Step = Check | Transform


class FieldValidator:
    """1フィールド分のコンパイル済みステップ列。

    タグ集合はコンパイル時に確定し、以後変更されない。
    """

    def __init__(self, field: str, steps: list[Step], tags: frozenset[str]) -> None:
        self.field = field
        self.steps = steps
        self.tags = tags

    def _skippable(self, value: Any) -> bool:
        if "optional" in self.tags and value is MISSING:
            return True
        return "nullable" in self.tags and (value is MISSING or value is None)

    async def run(self, record: dict[str, Any]) -> list[str]:
        """ステップを宣言順に実行し、失敗メッセージを返す。

        変換ステップは record のフィールド値を書き換える。
        bail ステップの時点で失敗が1つでもあれば、以降のステップは実行しない。
        """
        errors: list[str] = []
        context = RuleContext(field=self.field, record=record)
        for step in self.steps:
            value = record.get(self.field, MISSING)
            if self._skippable(value):
                continue
            if isinstance(step, Transform):
                new_value = step.apply(value)
                if new_value is not MISSING:
                    record[self.field] = new_value
                continue
            message = await step.evaluate(value, context)
            if message is not None:
                errors.append(message)
            if step.bail and errors:
                break
        return errors


class RuleSet:
    """フィールド宣言順に並んだFieldValidatorの集合。読み取り専用として共有できる。"""

    def __init__(self, validators: list[FieldValidator]) -> None:
        self._validators = validators

    @property
    def fields(self) -> list[str]:
        return [v.field for v in self._validators]

    def __iter__(self) -> Iterator[FieldValidator]:
        return iter(self._validators)

    def __len__(self) -> int:
        return len(self._validators)

    def __getitem__(self, field: str) -> FieldValidator:
        for v in self._validators:
            if v.field == field:
                return v
        raise KeyError(field)


def _parse_int_param(field: str, rule: ParsedRule, raw: str) -> int:
    match = _LEADING_INT_RE.match(raw)
    if match is None:
        raise RuleConfigError(field, rule.raw, f"'{raw}' is not an integer")
    return int(match.group(1))


def _parse_range_params(field: str, rule: ParsedRule) -> tuple[float, float]:
    if len(rule.params) != 2:
        raise RuleConfigError(field, rule.raw, "expected two comma-separated numbers")
    bounds = [as_number(p) for p in rule.params]
    if bounds[0] is None or bounds[1] is None:
        raise RuleConfigError(field, rule.raw, "bounds must be numeric")
    return bounds[0], bounds[1]


def _length(value: Any) -> int:
    return len(as_text(value))


def _within(number: float | None, low: float | None, high: float | None) -> bool:
    if number is None:
        return False
    return (low is None or number >= low) and (high is None or number <= high)


class RuleCompiler:
    """RuleSpecをFieldValidatorに変換する。

    1パス目で全トークンをデコードしてタグ集合を確定し、
    2パス目でタグ集合を参照しながら各ルールを解釈する。
    """

    def __init__(self, strict: bool = False) -> None:
        self._strict = strict

    def compile(self, rules: Mapping[str, RuleSpec]) -> RuleSet:
        """フィールド名 -> RuleSpec のマッピング全体をコンパイルする。

        Raises:
            RuleConfigError: ルール定義が不正な場合。
        """
        validators = [self.compile_field(field, spec) for field, spec in rules.items()]
        logger.debug("Rule set compiled", fields=len(validators))
        return RuleSet(validators)

    def compile_field(self, field: str, spec: RuleSpec) -> FieldValidator:
        parsed, customs = parse_spec(spec)
        tags = frozenset(r.tag for r in parsed if r.tag)
        numeric = bool(tags & _NUMERIC_TAGS)

        steps: list[Step] = []
        for rule in parsed:
            if not rule.tag:
                continue
            if rule.parameterized:
                steps.extend(self._param_steps(field, rule, numeric))
            else:
                steps.extend(self._basic_steps(field, rule))

        # カスタム述語は常に文字列ルールの後に実行する
        steps.extend(self._custom_step(field, c) for c in customs)
        return FieldValidator(field=field, steps=steps, tags=tags)

    def _ignore(self, field: str, rule: ParsedRule, reason: str) -> None:
        if self._strict:
            raise RuleConfigError(field, rule.raw, reason)
        logger.warning("Rule ignored", field=field, rule=rule.raw, reason=reason)

    def _basic_steps(self, field: str, rule: ParsedRule) -> list[Step]:
        if rule.tag in _FLAG_TAGS:
            return []
        entry = BASIC_PREDICATES.get(rule.tag)
        if entry is None:
            self._ignore(field, rule, "unknown rule")
            return []
        predicate, suffix = entry
        return [PredicateCheck(predicate, f"{field} {suffix}", bail=rule.tag == "required")]

    def _custom_step(self, field: str, rule: CustomRule) -> Step:
        return CustomCheck(rule, field)

    def _param_steps(self, field: str, rule: ParsedRule, numeric: bool) -> list[Step]:
        tag = rule.tag
        if tag in ("min", "max"):
            bound = _parse_int_param(field, rule, rule.params[0])
            low, high = (bound, None) if tag == "min" else (None, bound)
            label = "at least" if tag == "min" else "at most"
            if numeric:
                return [
                    PredicateCheck(
                        lambda v: _within(as_number(v), low, high),
                        f"{field} must be {label} {bound}",
                    )
                ]
            return [
                PredicateCheck(
                    lambda v: _within(_length(v), low, high),
                    f"{field} must be {label} {bound} characters",
                )
            ]

        if tag in ("length", "between"):
            low, high = _parse_range_params(field, rule)
            text = f"{field} must be between {format_number(low)} and {format_number(high)}"
            if tag == "between" and numeric:
                return [PredicateCheck(lambda v: _within(as_number(v), low, high), text)]
            return [PredicateCheck(lambda v: _within(_length(v), low, high), f"{text} characters")]

        if tag == "in":
            allowed = [v.strip() for v in rule.params]
            return [
                TrimString(),
                PredicateCheck(
                    lambda v: as_text(v).strip() in allowed,
                    f"{field} must be one of: {', '.join(allowed)}",
                ),
            ]

        if tag == "regex":
            pattern = rule.params[0]
            if len(pattern) >= 2 and pattern.startswith("/") and pattern.endswith("/"):
                pattern = pattern[1:-1]
            try:
                compiled = re.compile(pattern)
            except re.error as e:
                raise RuleConfigError(field, rule.raw, f"invalid pattern: {e}") from e
            return [
                PredicateCheck(
                    lambda v: compiled.search(as_text(v)) is not None,
                    f"{field} format is invalid",
                )
            ]

        if tag == "same":
            other = rule.params[0]
            return [CrossFieldCheck(other, strictly_equals, f"{field} must match {other}")]

        if tag == "default":
            return [DefaultValue(rule.params[0])]

        if tag in CROSS_FIELD_TAGS:
            return self._conditional_steps(field, rule)

        self._ignore(field, rule, "unknown rule")
        return []

    def _conditional_steps(self, field: str, rule: ParsedRule) -> list[Step]:
        if len(rule.params) != 2:
            # "フィールド名,値" 形式でない場合は常に成功扱い
            self._ignore(field, rule, "expected 'field,value' parameter")
            return []
        other, raw = rule.params
        if rule.tag == "required_if":
            check = CrossFieldCheck(
                other,
                lambda v, o: not (loosely_equals(o, raw) and is_empty(v)),
                f"{field} is required when {other} is {raw}",
            )
        elif rule.tag == "required_unless":
            check = CrossFieldCheck(
                other,
                lambda v, o: loosely_equals(o, raw) or not is_empty(v),
                f"{field} is required unless {other} is {raw}",
            )
        else:
            check = CrossFieldCheck(
                other,
                lambda v, o: not (loosely_equals(o, raw) and not is_empty(v)),
                f"{field} is not allowed when {other} is {raw}",
            )
        return [check]


def load_rule_file(path: Path) -> dict[str, RuleSpec]:
    """YAMLのルールファイルを読み込む。

    ファイルはトップレベルに rules マッピングを持つ。
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not data or "rules" not in data:
        return {}
    rules = data["rules"]
    if not isinstance(rules, Mapping):
        raise RuleConfigError("*", str(path), "'rules' must be a mapping")
    return dict(rules)
